import base64
import logging

from django.conf import settings
from django.urls import reverse

from paiement.exceptions import ProviderError
from paiement.models import PaymentTransaction
from .mobile_money import MobileMoneyProvider

logger = logging.getLogger('paiement')


def _url_absolue(nom, **kwargs):
    base = getattr(settings, 'PAYMENT_BASE_URL', '').rstrip('/')
    return base + reverse(nom, kwargs=kwargs or None)


class OrangeMoneyProvider(MobileMoneyProvider):
    """
    Orange Money Web Payment : le client est redirigé vers `payment_url`.
    Le registre garde notre `order_id` (OM-...) comme transaction_id ;
    le `pay_token` Orange est conservé dans metadata.
    """
    code = 'orange_money'
    prefixe = 'OM'
    champs_obligatoires = ('merchant_id', 'api_key')
    codes_succes = ('SUCCESS', 'SUCCESSFUL')
    codes_echec = ('FAILED', 'EXPIRED', 'CANCELLED')
    champs_id_webhook = ('order_id', 'pay_token', 'reference')
    champs_statut_webhook = ('status', 'transaction_status')

    def obtenir_token(self):
        auth = base64.b64encode(f"{self.config['api_key']}:".encode()).decode()
        response = self.requete(
            'POST', f"{self.api_url}/oauth/v3/token",
            headers={
                'Authorization': f"Basic {auth}",
                'Content-Type': 'application/x-www-form-urlencoded',
            },
            data={'grant_type': 'client_credentials'},
        )
        data = self.lire_json(response)
        if not response.ok or not data.get('access_token'):
            logger.error("Orange Money token error: %s", data)
            raise ProviderError("Impossible d'obtenir le token d'accès Orange Money")
        return data['access_token']

    def demander_paiement(self, abonnement, tx, phone, token):
        response = self.requete(
            'POST', f"{self.api_url}/orange-money-webpay/dev/v1/webpayment",
            headers={
                'Authorization': f"Bearer {token}",
                'Content-Type': 'application/json',
                'Accept': 'application/json',
            },
            json={
                'merchant_key': self.config['merchant_id'],
                'currency': self.config.get('currency', 'USD'),
                'order_id': tx.transaction_id,
                'amount': str(abonnement.montant_mensuel),
                'return_url': _url_absolue('paiement_api:mm_callback', provider=self.code),
                'cancel_url': _url_absolue('paiement_api:annuler'),
                'notif_url': _url_absolue('webhook_mobile_money', provider=self.code),
                'lang': 'fr',
                'reference': f"Abonnement {abonnement.plan}",
            },
        )
        data = self.lire_json(response)
        if not response.ok or not data.get('pay_token'):
            message = data.get('message') or data.get('error_description') or \
                "Erreur lors de l'initiation du paiement"
            logger.error("Orange Money payment error (HTTP %s): %s", response.status_code, data)
            raise ProviderError(message)

        metadata = dict(tx.metadata or {})
        metadata.update({
            'pay_token': data['pay_token'],
            'payment_url': data.get('payment_url'),
            'orange_response': data,
        })
        PaymentTransaction.objects.filter(pk=tx.pk).update(metadata=metadata)
        return {
            'transaction_id': tx.transaction_id,
            'payment_url': data.get('payment_url'),
            'message': "Redirigez-vous vers la page de paiement Orange Money pour compléter votre transaction.",
        }

    def consulter_statut(self, tx, token):
        response = self.requete(
            'GET', f"{self.api_url}/orange-money-webpay/dev/v1/transactionstatus",
            headers={'Authorization': f"Bearer {token}", 'Content-Type': 'application/json'},
            params={'order_id': tx.transaction_id},
        )
        data = self.lire_json(response)
        if not response.ok:
            raise ProviderError("Erreur lors de la vérification")
        return data.get('status'), data

    def trouver_transaction(self, transaction_id):
        return (
            super().trouver_transaction(transaction_id)
            or PaymentTransaction.objects.filter(
                provider=self.code, metadata__pay_token=transaction_id).first()
        )
