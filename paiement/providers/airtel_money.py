import logging

from paiement.exceptions import ProviderError
from paiement.models import PaymentTransaction
from .mobile_money import MobileMoneyProvider

logger = logging.getLogger('paiement')


class AirtelMoneyProvider(MobileMoneyProvider):
    """
    Airtel Money (API standard) : demande de paiement poussée sur le
    téléphone, le client valide avec son PIN.
    """
    code = 'airtel_money'
    prefixe = 'ATL'
    champs_obligatoires = ('client_id', 'client_secret')
    codes_succes = ('TS',)
    codes_echec = ('TF', 'TE')
    champs_id_webhook = ('transaction.id', 'data.transaction.id')
    champs_statut_webhook = ('transaction.status', 'transaction.status_code', 'data.transaction.status')

    def _entetes(self, token):
        return {
            'Authorization': f"Bearer {token}",
            'Content-Type': 'application/json',
            'X-Country': self.config.get('country', 'CD'),
            'X-Currency': self.config.get('currency', 'USD'),
        }

    def obtenir_token(self):
        response = self.requete(
            'POST', f"{self.api_url}/auth/oauth2/token",
            data={
                'grant_type': 'client_credentials',
                'client_id': self.config['client_id'],
                'client_secret': self.config['client_secret'],
            },
        )
        data = self.lire_json(response)
        if not response.ok or not data.get('access_token'):
            logger.error("Airtel Money token error: %s", data)
            raise ProviderError("Impossible d'obtenir le token d'accès Airtel Money")
        return data['access_token']

    def demander_paiement(self, abonnement, tx, phone, token):
        # Airtel attend le montant en centimes
        montant_centimes = int(abonnement.montant_mensuel * 100)
        response = self.requete(
            'POST', f"{self.api_url}/standard/v1/payments",
            headers=self._entetes(token),
            json={
                'payee': {'msisdn': phone},
                'reference': tx.transaction_id,
                'transaction': {
                    'amount': str(montant_centimes),
                    'id': tx.transaction_id,
                },
            },
        )
        data = self.lire_json(response)
        statut = data.get('status') if isinstance(data.get('status'), dict) else {}
        if not response.ok or not statut.get('success'):
            message = statut.get('message') or data.get('message') or \
                "Erreur lors de l'initiation du paiement"
            logger.error("Airtel Money payment error (HTTP %s): %s", response.status_code, data)
            raise ProviderError(message)

        api_id = ((data.get('data') or {}).get('transaction') or {}).get('id') or tx.transaction_id
        metadata = dict(tx.metadata or {})
        metadata.update({
            'reference_interne': tx.transaction_id,
            'airtel_response': data,
            'status_code': statut.get('code'),
            'status_message': statut.get('message'),
        })
        PaymentTransaction.objects.filter(pk=tx.pk).update(transaction_id=api_id, metadata=metadata)
        tx.refresh_from_db()
        return {
            'transaction_id': api_id,
            'message': ("Une demande de paiement a été envoyée à votre numéro Airtel Money. "
                        "Entrez votre PIN pour confirmer."),
        }

    def consulter_statut(self, tx, token):
        response = self.requete(
            'GET', f"{self.api_url}/standard/v1/payments/{tx.transaction_id}",
            headers=self._entetes(token),
        )
        data = self.lire_json(response)
        if not response.ok:
            raise ProviderError("Erreur lors de la vérification")
        statut = ((data.get('data') or {}).get('transaction') or {}).get('status')
        return statut, data
