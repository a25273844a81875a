import logging

from paiement.models import PaymentTransaction
from paiement.services import enregistrer_transaction
from utils.payments import generer_reference
from .base import BasePaymentProvider

logger = logging.getLogger('paiement')


class EspecesProvider(BasePaymentProvider):
    """
    Paiement en espèces : aucune API externe, une transaction CASH reste en
    attente jusqu'à la validation par un administrateur.
    """
    code = 'espece'
    mode_paiement = 'espece'

    def initiate_payment(self, abonnement, **donnees):
        # Une seule demande CASH en attente par abonnement
        tx = PaymentTransaction.objects.filter(
            abonnement=abonnement, provider=self.code, status=PaymentTransaction.PENDING,
        ).order_by('-created', '-id').first()
        if tx is None:
            tx = enregistrer_transaction(
                abonnement,
                provider=self.code,
                transaction_id=generer_reference('CASH'),
                payment_method=self.mode_paiement,
                customer_email=abonnement.restaurant.email or None,
            )
        logger.info("Paiement espèces %s en attente de validation", tx.transaction_id)
        return {
            'success': True,
            'transaction_id': tx.transaction_id,
            'requires_otp': False,
            'message': "Votre paiement en espèces est en attente de validation par un administrateur.",
        }

    def verify_payment(self, transaction_id):
        tx = PaymentTransaction.objects.filter(provider=self.code, transaction_id=transaction_id).first()
        if tx is None:
            return {'success': False, 'error': 'Transaction non trouvée'}
        return {'success': tx.is_completed(), 'status': tx.status}
