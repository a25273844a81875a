import logging
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from paiement.exceptions import ValidationPaiementError
from restaurant.models import Restaurant
from utils.payments import generer_reference

from .exceptions import AbonnementIntrouvable, TransitionInvalide
from .models import PLANS, Abonnement, Facture
from .otp import generer_otp
from .signals import abonnement_active

logger = logging.getLogger('abonnement')

DUREE_ABONNEMENT_JOURS = 30


def _get_abonnement(abonnement_id, verrou=False):
    qs = Abonnement.objects.all()
    if verrou:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=abonnement_id)
    except Abonnement.DoesNotExist:
        raise AbonnementIntrouvable(f"Abonnement {abonnement_id} introuvable.")


def _deplacer_pointeur(abonnement):
    Restaurant.objects.filter(pk=abonnement.restaurant_id).update(abonnement_courant=abonnement.pk)


def _verifier_mode(mode_paiement):
    modes = dict(Abonnement.MODE_PAIEMENT_CHOICES)
    if mode_paiement not in modes:
        raise ValidationPaiementError(f"Mode de paiement invalide : {mode_paiement}")


def get_abonnement_courant(restaurant_id):
    """
    Abonnement en vigueur d'un restaurant (lecture fraîche en base).
    Pointeur `Restaurant.abonnement_courant` d'abord, sinon le plus récemment
    modifié (à égalité : id le plus élevé).
    """
    abonnement_id = (
        Restaurant.objects.filter(pk=restaurant_id)
        .values_list('abonnement_courant', flat=True)
        .first()
    )
    if abonnement_id:
        abonnement = Abonnement.objects.filter(pk=abonnement_id).first()
        if abonnement is not None:
            return abonnement
    return (
        Abonnement.objects.filter(restaurant_id=restaurant_id)
        .order_by('-updated_at', '-id')
        .first()
    )


def creer_abonnement(restaurant, plan='simple', mode_paiement=Abonnement.ESPECE):
    """
    Crée un abonnement mensuel en attente de paiement et le désigne comme
    abonnement courant du restaurant.
    """
    if plan not in PLANS:
        raise ValidationPaiementError(f"Plan d'abonnement invalide : {plan}")
    _verifier_mode(mode_paiement)

    donnees = PLANS[plan]
    aujourd_hui = timezone.localdate()
    with transaction.atomic():
        abonnement = Abonnement.objects.create(
            restaurant=restaurant,
            plan=plan,
            montant_mensuel=donnees['montant_mensuel'],
            mode_paiement=mode_paiement,
            statut_paiement=Abonnement.EN_ATTENTE,
            statut=Abonnement.ACTIF,
            est_actif=True,
            date_debut=aujourd_hui,
            date_fin=aujourd_hui + timedelta(days=DUREE_ABONNEMENT_JOURS),
            limitations=donnees['limitations'],
        )
        if mode_paiement == Abonnement.MOBILE_MONEY:
            generer_otp(abonnement)
        _deplacer_pointeur(abonnement)

    logger.info("Abonnement %s créé pour %s (plan=%s, mode=%s)",
                abonnement.pk, restaurant, plan, mode_paiement)
    return abonnement


def changer_mode_paiement(abonnement_id, mode_paiement):
    """
    Change le mode de paiement. Le statut de paiement repasse toujours à
    `en_attente` ; un OTP est émis pour le mobile money, effacé sinon.
    Autorisé même si un paiement est en cours.
    """
    _verifier_mode(mode_paiement)
    with transaction.atomic():
        abonnement = _get_abonnement(abonnement_id)
        abonnement.mode_paiement = mode_paiement
        abonnement.statut_paiement = Abonnement.EN_ATTENTE
        abonnement.otp_code = None
        abonnement.otp_expires_at = None
        abonnement.save()
        if mode_paiement == Abonnement.MOBILE_MONEY:
            generer_otp(abonnement)
        _deplacer_pointeur(abonnement)

    logger.info("Abonnement %s : mode de paiement -> %s", abonnement.pk, mode_paiement)
    abonnement.refresh_from_db()
    return abonnement


def changer_plan(abonnement_id, plan, mode_paiement=None):
    """Change de plan : nouveau montant figé, paiement à refaire."""
    if plan not in PLANS:
        raise ValidationPaiementError(f"Plan d'abonnement invalide : {plan}")
    with transaction.atomic():
        abonnement = _get_abonnement(abonnement_id)
        abonnement.plan = plan
        abonnement.montant_mensuel = PLANS[plan]['montant_mensuel']
        abonnement.limitations = PLANS[plan]['limitations']
        abonnement.save()
        abonnement = changer_mode_paiement(abonnement.pk, mode_paiement or abonnement.mode_paiement)

    logger.info("Abonnement %s : plan -> %s", abonnement.pk, plan)
    return abonnement


def suspendre_abonnement(abonnement_id):
    abonnement = _get_abonnement(abonnement_id)
    abonnement.statut = Abonnement.SUSPENDU
    abonnement.est_actif = False
    abonnement.save(update_fields=['statut', 'est_actif'])
    logger.info("Abonnement %s suspendu", abonnement.pk)
    return abonnement


def activer_abonnement(abonnement_id):
    abonnement = _get_abonnement(abonnement_id)
    abonnement.statut = Abonnement.ACTIF
    abonnement.est_actif = True
    abonnement.save(update_fields=['statut', 'est_actif'])
    logger.info("Abonnement %s réactivé", abonnement.pk)
    return abonnement


def confirmer_paiement(abonnement, reference=None):
    """
    Valide le paiement d'un abonnement et active le compte du restaurant.
    Appliqué uniquement depuis `en_attente` (UPDATE conditionnel) :
    retourne True si l'activation a eu lieu, False si l'abonnement était
    déjà validé (ou refusé). Le signal `abonnement_active` n'est émis
    qu'en cas d'activation effective.
    """
    maintenant = timezone.now()
    with transaction.atomic():
        # 1) Transition en_attente -> valide, exactement une fois
        champs = {
            'statut_paiement': Abonnement.VALIDE,
            'statut': Abonnement.ACTIF,
            'est_actif': True,
            'date_paiement': maintenant,
            'updated_at': maintenant,
        }
        if reference:
            champs['numero_transaction'] = reference
        lignes = Abonnement.objects.filter(
            pk=abonnement.pk, statut_paiement=Abonnement.EN_ATTENTE,
        ).update(**champs)

        abonnement.refresh_from_db()
        if not lignes:
            if abonnement.statut_paiement == Abonnement.REFUSE:
                logger.warning("Paiement %s reçu pour l'abonnement %s déjà refusé",
                               reference, abonnement.pk)
            else:
                logger.info("Abonnement %s déjà validé, confirmation ignorée", abonnement.pk)
            return False

        # 2) Activation de l'admin du restaurant
        admin = abonnement.restaurant.admin_principal()
        if admin is not None and not admin.is_active:
            admin.is_active = True
            admin.save(update_fields=['is_active'])

        # 3) Pointeur "abonnement courant"
        _deplacer_pointeur(abonnement)

        abonnement_active.send(sender=Abonnement, abonnement=abonnement, reference=reference)

    logger.info("Paiement confirmé pour l'abonnement %s (réf. %s)", abonnement.pk, reference)
    return True


def valider_paiement_especes(abonnement_id, acteur=None):
    """
    Validation manuelle d'un paiement en espèces par le super-admin.
    Termine la transaction CASH en attente, confirme l'abonnement et
    réactive le restaurant.
    """
    from paiement.models import PaymentTransaction
    from paiement.services import enregistrer_transaction, finaliser_transaction

    with transaction.atomic():
        abonnement = _get_abonnement(abonnement_id, verrou=True)
        if abonnement.mode_paiement != Abonnement.ESPECE:
            raise ValidationPaiementError("Ce paiement n'est pas un paiement en espèce.")
        if abonnement.statut_paiement == Abonnement.REFUSE:
            raise TransitionInvalide("Paiement refusé : changez de mode de paiement pour recommencer.")
        if abonnement.statut_paiement == Abonnement.VALIDE:
            logger.info("Abonnement %s déjà validé, validation espèces ignorée", abonnement.pk)
            return abonnement

        tx = (
            PaymentTransaction.objects
            .filter(abonnement=abonnement, provider=PaymentTransaction.ESPECE,
                    status=PaymentTransaction.PENDING)
            .order_by('-created', '-id')
            .first()
        )
        if tx is None:
            tx = enregistrer_transaction(
                abonnement,
                provider=PaymentTransaction.ESPECE,
                transaction_id=generer_reference('CASH'),
                payment_method=Abonnement.ESPECE,
            )
        finaliser_transaction(tx, metadata={'valide_par': getattr(acteur, 'pk', None)})
        Restaurant.objects.filter(pk=abonnement.restaurant_id).update(est_actif=True)

    logger.info("Paiement espèces validé pour l'abonnement %s par %s", abonnement.pk, acteur)
    abonnement.refresh_from_db()
    return abonnement


def refuser_paiement_especes(abonnement_id, acteur=None, notes=''):
    """
    Refus d'un paiement en espèces. Le restaurant et ses utilisateurs ne sont
    pas désactivés. Un paiement déjà validé ne peut pas être refusé.
    """
    from paiement.models import PaymentTransaction
    from paiement.services import marquer_transaction_echouee

    with transaction.atomic():
        abonnement = _get_abonnement(abonnement_id, verrou=True)
        if abonnement.mode_paiement != Abonnement.ESPECE:
            raise ValidationPaiementError("Ce paiement n'est pas un paiement en espèce.")
        if abonnement.statut_paiement == Abonnement.VALIDE:
            raise TransitionInvalide("Un paiement validé ne peut pas être refusé.")

        abonnement.statut_paiement = Abonnement.REFUSE
        abonnement.statut = Abonnement.REFUSE
        abonnement.est_actif = False
        abonnement.notes = notes or ''
        abonnement.save()

        en_attente = PaymentTransaction.objects.filter(
            abonnement=abonnement, provider=PaymentTransaction.ESPECE,
            status=PaymentTransaction.PENDING,
        )
        for tx in en_attente:
            marquer_transaction_echouee(tx, notes or "Paiement en espèce refusé")

    logger.info("Paiement espèces refusé pour l'abonnement %s par %s", abonnement.pk, acteur)
    return abonnement


def generer_facture(abonnement):
    """Facture d'un mois d'abonnement : TVA FACTURE_TAUX_TVA, échéance à 7 jours."""
    taux = Decimal(str(getattr(settings, 'FACTURE_TAUX_TVA', '0.18')))
    montant = Decimal(abonnement.montant_mensuel)
    tva = (montant * taux).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    aujourd_hui = timezone.localdate()
    facture = Facture.objects.create(
        abonnement=abonnement,
        restaurant_id=abonnement.restaurant_id,
        amount=montant,
        tax_amount=tva,
        total_amount=montant + tva,
        status='paid' if abonnement.is_payment_validated() else 'sent',
        issue_date=aujourd_hui,
        due_date=aujourd_hui + timedelta(days=7),
        paid_at=abonnement.date_paiement.date() if abonnement.date_paiement else None,
        line_items=[{
            'description': f"Abonnement {abonnement.get_plan_display()} - mensuel",
            'quantity': 1,
            'unit_price': str(montant),
            'total': str(montant),
        }],
    )
    logger.info("Facture %s générée pour l'abonnement %s", facture.invoice_number, abonnement.pk)
    return facture


def abonnements_expirant(jours=7):
    """
    Abonnements actifs expirés ou expirant dans `jours` jours.
    Retourne une liste de dicts {type, restaurant, abonnement, message}.
    """
    aujourd_hui = timezone.localdate()
    actifs = Abonnement.objects.filter(
        est_actif=True, statut=Abonnement.ACTIF, date_fin__isnull=False,
    ).select_related('restaurant')

    notifications = []
    for abo in actifs.filter(date_fin__lt=aujourd_hui):
        notifications.append({
            'type': 'expired',
            'restaurant': abo.restaurant,
            'abonnement': abo,
            'message': f"L'abonnement de {abo.restaurant.nom} a expiré le {abo.date_fin:%d/%m/%Y}.",
        })
    limite = aujourd_hui + timedelta(days=jours)
    for abo in actifs.filter(date_fin__gte=aujourd_hui, date_fin__lte=limite):
        restants = (abo.date_fin - aujourd_hui).days
        notifications.append({
            'type': 'expiring',
            'restaurant': abo.restaurant,
            'abonnement': abo,
            'days_until_expiration': restants,
            'message': (f"L'abonnement de {abo.restaurant.nom} expire dans {restants} jour(s) "
                        f"({abo.date_fin:%d/%m/%Y})."),
        })
    return notifications


def notifications_restaurant(restaurant_id, jours=7):
    return [n for n in abonnements_expirant(jours) if n['restaurant'].pk == restaurant_id]
