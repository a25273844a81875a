import logging

from django.db import transaction
from django.dispatch import Signal, receiver

logger = logging.getLogger('abonnement')

# Émis une seule fois par activation effective (en_attente -> valide).
# kwargs : abonnement, reference
abonnement_active = Signal()


@receiver(abonnement_active)
def planifier_email_confirmation(sender, abonnement, reference=None, **kwargs):
    from .tasks import notifier_paiement_confirme

    transaction.on_commit(
        lambda: notifier_paiement_confirme.delay(abonnement.pk, reference)
    )
