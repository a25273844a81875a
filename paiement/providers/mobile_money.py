import logging
import re

import requests

from abonnement.otp import generer_otp
from paiement.exceptions import ConfigurationError, ProviderError, ValidationPaiementError
from paiement.models import PaymentTransaction
from paiement.services import (
    enregistrer_transaction,
    finaliser_transaction,
    marquer_transaction_echouee,
)
from utils.payments import generer_reference
from .base import BasePaymentProvider

logger = logging.getLogger('paiement')

TELEPHONE_RDC = re.compile(r'^(\+?243|0)[0-9]{9}$')


def valider_telephone(phone):
    phone = (phone or '').replace(' ', '')
    if not TELEPHONE_RDC.match(phone):
        raise ValidationPaiementError("Numéro de téléphone invalide (format attendu : +243XXXXXXXXX ou 0XXXXXXXXX).")
    return phone


def normaliser_telephone(phone):
    """0812345678 / 243812345678 / +243812345678 -> +243812345678"""
    num = re.sub(r'[^0-9+]', '', phone)
    if num.startswith('0'):
        num = '243' + num[1:]
    if not num.startswith('+'):
        if not num.startswith('243'):
            num = '243' + num
        num = '+' + num
    return num


def extraire(data, chemin):
    """Valeur au chemin pointé `a.b.c` d'un dict imbriqué (None si absent)."""
    valeur = data
    for cle in chemin.split('.'):
        if not isinstance(valeur, dict):
            return None
        valeur = valeur.get(cle)
    return valeur


class MobileMoneyProvider(BasePaymentProvider):
    """
    Base commune Orange Money / Airtel Money : validation du numéro, jeton
    OAuth, registre, table des statuts fournisseur.
    """
    mode_paiement = 'mobile_money'
    prefixe = None
    champs_obligatoires = ()
    codes_succes = ()
    codes_echec = ()
    # chemins pointés lus dans un webhook, par ordre de priorité
    champs_id_webhook = ()
    champs_statut_webhook = ()

    @property
    def api_url(self):
        return (self.config.get('api_url') or '').rstrip('/')

    @property
    def timeout(self):
        return self.config.get('timeout', 30)

    def verifier_configuration(self):
        manquants = [c for c in self.champs_obligatoires if not self.config.get(c)]
        if manquants:
            raise ConfigurationError(
                f"Configuration {self.code} manquante : {', '.join(manquants)}")

    def statut_normalise(self, code):
        code = (code or '').upper()
        if code in self.codes_succes:
            return PaymentTransaction.COMPLETED
        if code in self.codes_echec:
            return PaymentTransaction.FAILED
        return PaymentTransaction.PENDING

    def requete(self, methode, url, **kwargs):
        """Appel HTTP borné par PAYMENT_HTTP_TIMEOUT ; erreurs réseau -> ProviderError."""
        try:
            return requests.request(methode, url, timeout=self.timeout, **kwargs)
        except requests.Timeout:
            raise ProviderError(f"Délai dépassé lors de l'appel {self.code}")
        except requests.RequestException as exc:
            raise ProviderError(f"Erreur réseau {self.code} : {exc}")

    @staticmethod
    def lire_json(response):
        try:
            data = response.json()
        except ValueError:
            return {'text': response.text}
        return data if isinstance(data, dict) else {'data': data}

    # --- à implémenter par fournisseur ---

    def obtenir_token(self):
        raise NotImplementedError

    def demander_paiement(self, abonnement, tx, phone, token):
        """Retourne un dict {transaction_id, payment_url, raw, message}."""
        raise NotImplementedError

    def consulter_statut(self, tx, token):
        """Retourne (code_statut, réponse_brute)."""
        raise NotImplementedError

    # --- opérations ---

    def initiate_payment(self, abonnement, phone_number=None, **donnees):
        # 1) Numéro validé avant tout appel externe
        phone = normaliser_telephone(valider_telephone(phone_number))

        try:
            self.verifier_configuration()
        except ConfigurationError as exc:
            logger.error(str(exc))
            return {'success': False, 'error': str(exc), 'error_type': 'configuration'}

        # 2) Jeton OAuth
        try:
            token = self.obtenir_token()
        except ProviderError as exc:
            logger.error("Jeton %s indisponible : %s", self.code, exc)
            return {'success': False, 'error': str(exc)}

        # 3) Ligne du registre en attente
        tx = enregistrer_transaction(
            abonnement,
            provider=self.code,
            transaction_id=generer_reference(self.prefixe),
            payment_method=self.mode_paiement,
            currency=self.config.get('currency', 'USD'),
            metadata={'phone': phone, 'provider': self.code},
            customer_phone=phone,
            customer_email=abonnement.restaurant.email or None,
        )

        # 4) Demande au fournisseur
        try:
            resultat = self.demander_paiement(abonnement, tx, phone, token)
        except ProviderError as exc:
            logger.error("Initiation %s échouée pour %s : %s", self.code, tx.transaction_id, exc)
            marquer_transaction_echouee(tx, str(exc), {'error': str(exc)})
            return {'success': False, 'error': str(exc)}

        # 5) OTP local pour l'étape de confirmation
        generer_otp(abonnement)
        logger.info("Paiement %s initié : %s", self.code, resultat['transaction_id'])
        return {
            'success': True,
            'transaction_id': resultat['transaction_id'],
            'requires_otp': True,
            'payment_url': resultat.get('payment_url'),
            'message': resultat.get('message'),
        }

    def trouver_transaction(self, transaction_id):
        return PaymentTransaction.objects.filter(
            provider=self.code, transaction_id=transaction_id).first()

    def verify_payment(self, transaction_id):
        tx = self.trouver_transaction(transaction_id)
        if tx is None:
            return {'success': False, 'error': 'Transaction non trouvée'}
        try:
            self.verifier_configuration()
            token = self.obtenir_token()
            code, brut = self.consulter_statut(tx, token)
        except (ConfigurationError, ProviderError) as exc:
            logger.error("Vérification %s %s impossible : %s", self.code, transaction_id, exc)
            return {'success': False, 'error': str(exc)}

        statut = self.statut_normalise(code)
        if statut == PaymentTransaction.COMPLETED:
            finaliser_transaction(tx, metadata={'verification_response': brut})
        elif statut == PaymentTransaction.FAILED:
            marquer_transaction_echouee(tx, f"Statut {self.code} : {code}", {'verification_response': brut})
        return {
            'success': statut == PaymentTransaction.COMPLETED,
            'status': code,
            'transaction': brut,
        }

    def confirm_payment(self, abonnement, otp_code=None):
        """
        Confirmation après OTP : le fournisseur n'expose pas d'API de
        confirmation, on ré-interroge le statut de la dernière demande.
        """
        tx = (
            PaymentTransaction.objects
            .filter(abonnement=abonnement, provider=self.code, status=PaymentTransaction.PENDING)
            .order_by('-created', '-id')
            .first()
        )
        if tx is None:
            return {'success': False, 'error': 'Transaction non trouvée'}
        resultat = self.verify_payment(tx.transaction_id)
        if resultat.get('success'):
            return {'success': True, 'message': 'Paiement confirmé avec succès'}
        return {
            'success': False,
            'error': resultat.get('error') or (
                "Le paiement n'a pas encore été confirmé. "
                "Veuillez vérifier votre compte mobile money."),
        }

    def parse_callback(self, data):
        transaction_id = next(
            (v for v in (extraire(data, c) for c in self.champs_id_webhook) if v), None)
        statut = next(
            (v for v in (extraire(data, c) for c in self.champs_statut_webhook) if v), None)
        return {
            'transaction_id': str(transaction_id) if transaction_id is not None else None,
            'status': str(statut).upper() if statut is not None else '',
        }
