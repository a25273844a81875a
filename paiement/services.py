import logging

from django.db import IntegrityError, transaction
from django.utils import timezone

from abonnement.otp import verifier_otp
from abonnement.services import confirmer_paiement
from .exceptions import TransactionDupliquee, ValidationPaiementError
from .models import PaymentTransaction
from .providers.factory import (
    MOBILE_MONEY_PROVIDERS,
    get_provider,
    get_provider_class,
    resoudre_provider,
)

logger = logging.getLogger('paiement')


# --- Registre des transactions ---

def enregistrer_transaction(abonnement, provider, transaction_id, payment_method,
                            amount=None, currency='USD', status=PaymentTransaction.PENDING,
                            metadata=None, customer_email=None, customer_phone=None):
    """
    Crée une ligne du registre. Lève TransactionDupliquee si le couple
    (provider, transaction_id) existe déjà.
    """
    if PaymentTransaction.objects.filter(provider=provider, transaction_id=transaction_id).exists():
        raise TransactionDupliquee(f"Transaction {provider}/{transaction_id} déjà enregistrée.")
    try:
        with transaction.atomic():
            tx = PaymentTransaction.objects.create(
                abonnement=abonnement,
                provider=provider,
                transaction_id=transaction_id,
                payment_method=payment_method,
                amount=abonnement.montant_mensuel if amount is None else amount,
                currency=currency,
                status=status,
                metadata=metadata or {},
                customer_email=customer_email,
                customer_phone=customer_phone,
            )
    except IntegrityError:
        raise TransactionDupliquee(f"Transaction {provider}/{transaction_id} déjà enregistrée.")
    logger.info("Transaction %s/%s enregistrée (%s) pour l'abonnement %s",
                provider, transaction_id, status, abonnement.pk)
    return tx


def _fusionner_metadata(tx, extra):
    metadata = dict(tx.metadata or {})
    metadata.update(extra or {})
    return metadata


def finaliser_transaction(tx, reference=None, metadata=None):
    """
    pending -> completed exactement une fois, puis confirmation de
    l'abonnement, dans la même transaction base de données.
    Retourne True si cet appel a effectivement terminé la transaction.
    """
    with transaction.atomic():
        # 1) Verrou sur la ligne (sans effet sur sqlite)
        courante = PaymentTransaction.objects.select_for_update().get(pk=tx.pk)
        maintenant = timezone.now()

        # 2) Mise à jour conditionnelle : status != completed
        lignes = (
            PaymentTransaction.objects
            .filter(pk=tx.pk)
            .exclude(status=PaymentTransaction.COMPLETED)
            .update(
                status=PaymentTransaction.COMPLETED,
                processed_at=maintenant,
                failure_reason=None,
                metadata=_fusionner_metadata(courante, metadata),
                updated=maintenant,
            )
        )
        if not lignes:
            logger.info("Transaction %s déjà terminée, rien à faire", tx.transaction_id)
            return False

        # 3) Effets de bord sur l'abonnement
        confirmer_paiement(courante.abonnement, reference or courante.transaction_id)

    tx.refresh_from_db()
    logger.info("Transaction %s/%s terminée", tx.provider, tx.transaction_id)
    return True


def marquer_transaction_echouee(tx, raison, metadata=None):
    """Passe une transaction non terminée à `failed`. Une transaction terminée reste terminée."""
    lignes = (
        PaymentTransaction.objects
        .filter(pk=tx.pk)
        .exclude(status=PaymentTransaction.COMPLETED)
        .update(
            status=PaymentTransaction.FAILED,
            failure_reason=raison,
            metadata=_fusionner_metadata(tx, metadata),
            updated=timezone.now(),
        )
    )
    if lignes:
        logger.warning("Transaction %s/%s échouée : %s", tx.provider, tx.transaction_id, raison)
    tx.refresh_from_db()
    return bool(lignes)


# --- Paiement d'un abonnement ---

def traiter_paiement(abonnement, donnees=None):
    """
    Lance le paiement selon le mode de l'abonnement.
    - espece : transaction CASH en attente de validation par un administrateur
    - carte_bancaire : session Stripe Checkout (success_url / cancel_url)
    - mobile_money : demande au fournisseur (phone_number, provider)
    """
    donnees = donnees or {}
    provider = get_provider(abonnement.mode_paiement, donnees.get('provider'))
    logger.info("Paiement de l'abonnement %s via %s", abonnement.pk, provider.code)
    return provider.initiate_payment(abonnement, **donnees)


class MobileMoneyService:
    """
    Façade mobile money : choisit l'adaptateur Orange / Airtel
    (MOBILE_MONEY_PROVIDER par défaut).
    """

    def __init__(self, provider=None):
        self.provider = provider

    def _adaptateur(self, provider=None):
        code = resoudre_provider('mobile_money', provider or self.provider)
        return get_provider_class(code)()

    def initiate_payment(self, abonnement, phone_number, provider=None):
        return self._adaptateur(provider).initiate_payment(abonnement, phone_number=phone_number)

    def verify_payment(self, transaction_id, provider=None):
        return self._adaptateur(provider).verify_payment(transaction_id)

    def confirm_payment(self, abonnement, otp_code, provider=None):
        return self._adaptateur(provider).confirm_payment(abonnement, otp_code)


def verifier_otp_et_confirmer(abonnement, otp_code, provider=None):
    """
    Étape OTP du mobile money : vérifie le code local puis demande au
    fournisseur si le paiement est confirmé. L'OTP seul ne valide jamais
    un paiement.
    """
    if abonnement.mode_paiement != 'mobile_money':
        raise ValidationPaiementError("Mode de paiement invalide.")
    if not verifier_otp(abonnement, otp_code):
        raise ValidationPaiementError("Code OTP invalide ou expiré.")
    if provider is None:
        # fournisseur de la dernière demande en attente
        provider = (
            PaymentTransaction.objects
            .filter(abonnement=abonnement, status=PaymentTransaction.PENDING,
                    provider__in=MOBILE_MONEY_PROVIDERS)
            .order_by('-created', '-id')
            .values_list('provider', flat=True)
            .first()
        )
    return MobileMoneyService(provider).confirm_payment(abonnement, otp_code)
