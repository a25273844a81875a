import logging

import stripe

from abonnement.models import Abonnement
from paiement.exceptions import ConfigurationError, ValidationPaiementError
from paiement.models import PaymentTransaction
from paiement.services import (
    enregistrer_transaction,
    finaliser_transaction,
    marquer_transaction_echouee,
)
from .base import BasePaymentProvider

logger = logging.getLogger('paiement')


def _montant_centimes(abonnement):
    return int(abonnement.montant_mensuel * 100)


def _abonnement_id(objet):
    try:
        return objet.metadata['abonnement_id']
    except (AttributeError, KeyError, TypeError):
        return None


class StripeProvider(BasePaymentProvider):
    """
    Carte bancaire via Stripe : session Checkout hébergée ou PaymentIntent.
    La confirmation passe par le webhook signé ou par verify_payment.
    """
    code = 'stripe'
    mode_paiement = 'carte_bancaire'

    def __init__(self, config=None):
        super().__init__(config)
        # appels SDK bornés par PAYMENT_HTTP_TIMEOUT, comme le mobile money
        stripe.default_http_client = stripe.RequestsClient(timeout=self.config.get('timeout', 30))

    def _cle_secrete(self):
        cle = self.config.get('secret_key')
        if not cle:
            raise ConfigurationError("Stripe secret key is not configured. Please set STRIPE_SECRET.")
        return cle

    @property
    def devise(self):
        return (self.config.get('currency') or 'usd').lower()

    def initiate_payment(self, abonnement, success_url=None, cancel_url=None, **donnees):
        return self.create_checkout_session(abonnement, success_url, cancel_url)

    def create_checkout_session(self, abonnement, success_url, cancel_url):
        try:
            cle = self._cle_secrete()
        except ConfigurationError as exc:
            logger.error(str(exc))
            return {'success': False, 'error': str(exc), 'error_type': 'configuration'}

        plan = abonnement.get_plan_display()
        try:
            session = stripe.checkout.Session.create(
                api_key=cle,
                mode='payment',
                payment_method_types=['card'],
                line_items=[{
                    'price_data': {
                        'currency': self.devise,
                        'product_data': {
                            'name': f"Abonnement {plan}",
                            'description': f"Abonnement mensuel - Plan {plan}",
                        },
                        'unit_amount': _montant_centimes(abonnement),
                    },
                    'quantity': 1,
                }],
                success_url=success_url,
                cancel_url=cancel_url,
                customer_email=abonnement.restaurant.email or None,
                client_reference_id=str(abonnement.pk),
                metadata={
                    'abonnement_id': str(abonnement.pk),
                    'restaurant_id': str(abonnement.restaurant_id),
                },
            )
        except stripe.StripeError as exc:
            logger.error("Stripe checkout session error: %s", exc)
            return {'success': False, 'error': str(exc)}

        enregistrer_transaction(
            abonnement,
            provider=self.code,
            transaction_id=session.id,
            payment_method=self.mode_paiement,
            currency=self.devise.upper(),
            metadata={'checkout_url': session.url},
            customer_email=abonnement.restaurant.email or None,
        )
        logger.info("Session Stripe %s créée pour l'abonnement %s", session.id, abonnement.pk)
        return {'success': True, 'url': session.url, 'session_id': session.id}

    def create_payment_intent(self, abonnement, payment_method_id):
        try:
            cle = self._cle_secrete()
        except ConfigurationError as exc:
            logger.error(str(exc))
            return {'success': False, 'error': str(exc), 'error_type': 'configuration'}

        try:
            intent = stripe.PaymentIntent.create(
                api_key=cle,
                amount=_montant_centimes(abonnement),
                currency=self.devise,
                payment_method=payment_method_id,
                confirmation_method='manual',
                confirm=True,
                metadata={
                    'abonnement_id': str(abonnement.pk),
                    'restaurant_id': str(abonnement.restaurant_id),
                },
            )
        except stripe.StripeError as exc:
            logger.error("Stripe payment intent error: %s", exc)
            return {'success': False, 'error': str(exc)}

        tx = enregistrer_transaction(
            abonnement,
            provider=self.code,
            transaction_id=intent.id,
            payment_method=self.mode_paiement,
            currency=self.devise.upper(),
            metadata={'intent_status': intent.status},
            customer_email=abonnement.restaurant.email or None,
        )
        if intent.status == 'succeeded':
            finaliser_transaction(tx, reference=intent.id)
        return {
            'success': intent.status == 'succeeded',
            'payment_intent_id': intent.id,
            'status': intent.status,
            'requires_action': intent.status == 'requires_action',
            'client_secret': intent.client_secret,
        }

    def verify_payment(self, transaction_id):
        """
        `cs_...` : session Checkout (payment_status == 'paid'),
        `pi_...` : PaymentIntent (status == 'succeeded').
        """
        try:
            cle = self._cle_secrete()
        except ConfigurationError as exc:
            return {'success': False, 'error': str(exc), 'error_type': 'configuration'}

        try:
            if transaction_id.startswith('cs_'):
                objet = stripe.checkout.Session.retrieve(transaction_id, api_key=cle)
                statut = objet.payment_status
                paye = statut == 'paid'
                reference = objet.payment_intent or objet.id
            else:
                objet = stripe.PaymentIntent.retrieve(transaction_id, api_key=cle)
                statut = objet.status
                paye = statut == 'succeeded'
                reference = objet.id
        except stripe.StripeError as exc:
            logger.error("Stripe verify payment error: %s", exc)
            return {'success': False, 'error': str(exc)}

        if paye:
            tx = PaymentTransaction.objects.filter(
                provider=self.code, transaction_id=transaction_id).first()
            if tx is None:
                abonnement_id = _abonnement_id(objet)
                abonnement = Abonnement.objects.filter(pk=abonnement_id).first() if abonnement_id else None
                if abonnement is None:
                    logger.warning("Paiement Stripe %s sans abonnement associé", transaction_id)
                    return {'success': True, 'status': statut}
                tx = self._transaction_webhook(abonnement, transaction_id, {})
            finaliser_transaction(tx, reference=reference)
        return {'success': paye, 'status': statut}

    def _transaction_webhook(self, abonnement, transaction_id, objet):
        tx, creee = PaymentTransaction.objects.get_or_create(
            provider=self.code,
            transaction_id=transaction_id,
            defaults={
                'abonnement': abonnement,
                'payment_method': self.mode_paiement,
                'amount': abonnement.montant_mensuel,
                'currency': self.devise.upper(),
                'customer_email': objet.get('customer_email') or abonnement.restaurant.email or None,
            },
        )
        if creee:
            logger.info("Transaction Stripe %s créée depuis le webhook", transaction_id)
        return tx

    def handle_webhook(self, event):
        """
        Événement Stripe déjà authentifié (dict). Retourne True si l'événement
        a été pris en compte.
        """
        type_evenement = event.get('type')
        objet = (event.get('data') or {}).get('object') or {}

        if type_evenement == 'payment_intent.payment_failed':
            tx = PaymentTransaction.objects.filter(
                provider=self.code, transaction_id=objet.get('id')).first()
            if tx is not None:
                raison = (objet.get('last_payment_error') or {}).get('message') or 'Payment failed'
                marquer_transaction_echouee(tx, raison)
            return tx is not None

        if type_evenement not in ('checkout.session.completed', 'payment_intent.succeeded'):
            logger.info("Événement Stripe ignoré : %s", type_evenement)
            return False

        identifiant = objet.get('id')
        if not identifiant:
            raise ValidationPaiementError(f"Événement Stripe {type_evenement} sans identifiant d'objet")

        abonnement_id = str((objet.get('metadata') or {}).get('abonnement_id') or '')
        if not abonnement_id.isdigit():
            raise ValidationPaiementError(
                f"Webhook Stripe {type_evenement} : abonnement_id invalide ({abonnement_id or '-'})")
        abonnement = Abonnement.objects.filter(pk=int(abonnement_id)).first()
        if abonnement is None:
            logger.warning("Webhook Stripe %s sans abonnement valide (%s)", type_evenement, abonnement_id)
            return False

        tx = self._transaction_webhook(abonnement, identifiant, objet)
        reference = objet.get('payment_intent') or identifiant
        finaliser_transaction(tx, reference=reference, metadata={'webhook_event': event.get('id')})
        return True
