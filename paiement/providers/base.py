from abc import ABC, abstractmethod

from utils.payments import get_provider_config


class BasePaymentProvider(ABC):
    """
    Adaptateur d'un fournisseur de paiement.
    Les méthodes renvoient des dicts `{'success': bool, ...}` ; les erreurs
    réseau ou fournisseur ne remontent jamais au-delà de l'adaptateur.
    """
    code = None            # valeur de PaymentTransaction.provider
    mode_paiement = None   # valeur de Abonnement.mode_paiement

    def __init__(self, config=None):
        if config is None and self.code != 'espece':
            config = get_provider_config(self.code)
        self.config = config or {}

    @abstractmethod
    def initiate_payment(self, abonnement, **donnees):
        """
        Démarre un paiement pour l'abonnement et crée la ligne du registre.
        """
        pass

    @abstractmethod
    def verify_payment(self, transaction_id):
        """
        Interroge le fournisseur ; si le paiement est confirmé, termine la
        transaction et confirme l'abonnement (chemin idempotent).
        """
        pass

    def confirm_payment(self, abonnement, otp_code=None):
        return {'success': False, 'error': "Confirmation non supportée pour ce mode de paiement."}

    def parse_callback(self, data):
        return {
            'transaction_id': data.get('transaction_id') or data.get('reference'),
            'status': (data.get('status') or '').upper()
        }
