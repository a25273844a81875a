import logging
import secrets
from datetime import timedelta

from django.conf import settings
from django.utils import timezone

logger = logging.getLogger('abonnement')


def generer_otp(abonnement):
    """
    Génère un code à 6 chiffres, valable OTP_VALIDITE_MINUTES.
    Écrase le code précédent éventuel.
    """
    code = f"{secrets.randbelow(10 ** 6):06d}"
    minutes = getattr(settings, 'OTP_VALIDITE_MINUTES', 10)
    abonnement.otp_code = code
    abonnement.otp_expires_at = timezone.now() + timedelta(minutes=minutes)
    abonnement.save(update_fields=['otp_code', 'otp_expires_at'])
    logger.info("OTP généré pour l'abonnement %s", abonnement.pk)
    return code


def verifier_otp(abonnement, code):
    """True si le code correspond et n'est pas expiré. Le code n'est jamais effacé."""
    if not abonnement.otp_code or not abonnement.otp_expires_at or not code:
        return False
    if timezone.now() > abonnement.otp_expires_at:
        return False
    return secrets.compare_digest(str(abonnement.otp_code), str(code))
