from paiement.exceptions import NotFoundError


class AbonnementIntrouvable(NotFoundError):
    """Aucun abonnement pour l'identifiant ou le restaurant demandé."""


class TransitionInvalide(Exception):
    """Transition de statut de paiement interdite (ex: valide -> refuse)."""
