class PaiementError(Exception):
    """Base des erreurs du module paiement."""


class ConfigurationError(PaiementError):
    """Identifiants fournisseur absents ou incomplets."""


class ValidationPaiementError(PaiementError):
    """Donnée utilisateur invalide (téléphone, OTP, mode de paiement)."""


class NotFoundError(PaiementError):
    pass


class TransactionIntrouvable(NotFoundError):
    pass


class SignatureInvalide(PaiementError):
    """Webhook dont l'authenticité n'a pas pu être établie."""


class ProviderError(PaiementError):
    """Erreur réseau, timeout ou refus explicite du fournisseur."""


class TransactionDupliquee(PaiementError):
    """Un couple (provider, transaction_id) existe déjà dans le registre."""
