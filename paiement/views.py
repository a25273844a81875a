import json
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from .exceptions import NotFoundError, PaiementError, SignatureInvalide, ValidationPaiementError
from .webhooks import traiter_webhook_mobile_money, traiter_webhook_stripe

logger = logging.getLogger('paiement')


@csrf_exempt
@require_POST
def webhook_stripe(request):
    """
    Webhook Stripe.
    1) Vérifie la signature (aucun effet de bord si elle échoue)
    2) Traite l'événement (idempotent)
    3) Retourne {"received": true}
    """
    try:
        traiter_webhook_stripe(request.body, request.META.get('HTTP_STRIPE_SIGNATURE'))
    except SignatureInvalide as exc:
        logger.error("Webhook Stripe refusé : %s", exc)
        return JsonResponse({'error': 'Invalid signature'}, status=400)
    except PaiementError as exc:
        logger.warning("Webhook Stripe rejeté : %s", exc)
        return JsonResponse({'error': str(exc)}, status=400)
    except Exception:
        logger.exception("Erreur lors du traitement du webhook Stripe")
        return JsonResponse({'error': 'Webhook processing failed'}, status=400)
    return JsonResponse({'received': True})


@csrf_exempt
@require_POST
def webhook_mobile_money(request, provider):
    """
    Webhook Orange Money / Airtel Money.
    1) Récupère le JSON
    2) Authentifie (JWT si un secret est configuré)
    3) Met à jour la transaction et l'abonnement (idempotent)
    4) Retourne un JSON minimal
    """
    # 1) Récupération des données
    try:
        data = json.loads(request.body.decode() or '{}')
    except (UnicodeDecodeError, ValueError):
        return JsonResponse({'error': 'Invalid JSON'}, status=400)

    # 2) + 3)
    try:
        traiter_webhook_mobile_money(
            provider, data, request.META.get('HTTP_X_WEBHOOK_SIGNATURE'))
    except SignatureInvalide as exc:
        logger.error("Webhook %s refusé : %s", provider, exc)
        return JsonResponse({'error': 'Invalid signature'}, status=400)
    except NotFoundError as exc:
        logger.warning("Webhook %s : %s", provider, exc)
        return JsonResponse({'error': 'Transaction not found'}, status=400)
    except ValidationPaiementError as exc:
        logger.warning("Webhook %s rejeté : %s", provider, exc)
        return JsonResponse({'error': str(exc)}, status=400)
    except Exception:
        logger.exception("Erreur lors du traitement du webhook %s", provider)
        return JsonResponse({'error': 'Webhook processing failed'}, status=400)

    # 4) Réponse JSON minimale
    return JsonResponse({'received': True, 'status': 'success'})
