import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

from .models import Abonnement

logger = logging.getLogger('abonnement')


def _destinataires(restaurant):
    admin = restaurant.admin_principal()
    emails = [e for e in (restaurant.email, getattr(admin, 'email', None)) if e]
    return list(dict.fromkeys(emails))


@shared_task(name='abonnement.tasks.envoyer_otp')
def envoyer_otp(abonnement_id):
    """Envoie par e-mail le code OTP courant de l'abonnement."""
    abonnement = Abonnement.objects.select_related('restaurant').get(pk=abonnement_id)
    if not abonnement.otp_code:
        return False
    destinataires = _destinataires(abonnement.restaurant)
    if not destinataires:
        logger.warning("Aucune adresse pour envoyer l'OTP de l'abonnement %s", abonnement_id)
        return False
    send_mail(
        "Votre code de confirmation de paiement",
        f"Votre code de confirmation est : {abonnement.otp_code}\n"
        f"Il expire à {abonnement.otp_expires_at:%H:%M}.",
        None,
        destinataires,
    )
    return True


@shared_task(name='abonnement.tasks.notifier_paiement_confirme')
def notifier_paiement_confirme(abonnement_id, reference=None):
    """
    Mail au restaurant et à l'admin plateforme après une activation.
    """
    abonnement = Abonnement.objects.select_related('restaurant').get(pk=abonnement_id)
    restaurant = abonnement.restaurant
    message = (
        f"Restaurant : {restaurant.nom}\n"
        f"Abonnement : {abonnement.get_plan_display()}\n"
        f"Montant : {abonnement.montant_mensuel}\n"
        f"Mode : {abonnement.get_mode_paiement_display()}\n"
        f"Référence : {reference or '-'}"
    )
    destinataires = _destinataires(restaurant) + [settings.PAYMENT_ADMIN_EMAIL]
    send_mail(f"Paiement validé – {restaurant.nom}", message, None, destinataires)
    logger.info("Mail de confirmation envoyé pour l'abonnement %s", abonnement_id)


@shared_task(name='abonnement.tasks.notifier_abonnements_expirant')
def notifier_abonnements_expirant(jours=7):
    from .services import abonnements_expirant

    envoyes = 0
    for notif in abonnements_expirant(jours):
        destinataires = _destinataires(notif['restaurant'])
        if not destinataires:
            continue
        send_mail("Votre abonnement", notif['message'], None, destinataires)
        envoyes += 1
    logger.info("%s notification(s) d'expiration envoyée(s)", envoyes)
    return envoyes
