import logging
from datetime import timedelta

from celery import shared_task
from django.utils import timezone

from .models import PaymentTransaction
from .providers.factory import get_provider_class

logger = logging.getLogger('paiement')


@shared_task(name='paiement.tasks.reconcilier_transactions_en_attente')
def reconcilier_transactions_en_attente(age_minutes=15):
    """
    Ré-interroge les fournisseurs pour les transactions restées `pending`
    plus de `age_minutes` (webhook perdu). Même chemin idempotent que les
    webhooks. Non planifiée par défaut (à ajouter dans CELERY_BEAT_SCHEDULE).
    """
    limite = timezone.now() - timedelta(minutes=age_minutes)
    en_attente = (
        PaymentTransaction.objects
        .filter(status=PaymentTransaction.PENDING, created__lt=limite)
        .exclude(provider=PaymentTransaction.ESPECE)
        .order_by('created')
    )
    confirmees = 0
    for tx in en_attente:
        try:
            result = get_provider_class(tx.provider)().verify_payment(tx.transaction_id)
        except Exception:
            logger.exception("Réconciliation %s/%s interrompue", tx.provider, tx.transaction_id)
            continue
        if result.get('success'):
            confirmees += 1
        elif result.get('error'):
            logger.warning("Réconciliation %s/%s : %s", tx.provider, tx.transaction_id, result['error'])
    logger.info("Réconciliation : %s transaction(s) confirmée(s)", confirmees)
    return confirmees
