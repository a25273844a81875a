import json
import logging

import jwt
import stripe
from jwt import InvalidTokenError

from .exceptions import SignatureInvalide, TransactionIntrouvable, ValidationPaiementError
from .models import PaymentTransaction
from .providers.factory import MOBILE_MONEY_PROVIDERS, get_provider_class
from .services import finaliser_transaction, marquer_transaction_echouee

logger = logging.getLogger('paiement')


def traiter_webhook_stripe(payload, signature):
    """
    1) Vérifie la signature `Stripe-Signature` (STRIPE_WEBHOOK_SECRET)
    2) Passe l'événement à l'adaptateur carte
    Lève SignatureInvalide sans aucun effet de bord si l'authenticité échoue.
    """
    provider = get_provider_class('stripe')()
    secret = provider.config.get('webhook_secret')
    if not secret:
        raise SignatureInvalide("STRIPE_WEBHOOK_SECRET non configuré")
    if not signature:
        raise SignatureInvalide("En-tête Stripe-Signature manquant")
    try:
        stripe.Webhook.construct_event(payload, signature, secret)
    except stripe.SignatureVerificationError as exc:
        raise SignatureInvalide(f"Signature Stripe invalide : {exc}")
    except ValueError as exc:
        raise SignatureInvalide(f"Payload Stripe invalide : {exc}")

    event = json.loads(payload)
    logger.info("Webhook Stripe reçu : %s (%s)", event.get('type'), event.get('id'))
    provider.handle_webhook(event)
    return event


def _authentifier_mobile_money(provider, data, signature_entete=None):
    """
    Si `webhook_secret` est configuré pour le fournisseur, exige un JWT HS256
    (`signature` dans le corps ou en-tête X-Webhook-Signature) et fusionne ses
    claims dans le payload.
    """
    secret = provider.config.get('webhook_secret')
    if not secret:
        logger.warning("Webhook %s accepté sans signature (aucun secret configuré)", provider.code)
        return data

    signature = data.get('signature') or signature_entete
    if not signature:
        raise SignatureInvalide(f"Signature {provider.code} manquante")
    try:
        claims = jwt.decode(signature, secret, algorithms=['HS256'])
    except InvalidTokenError as exc:
        raise SignatureInvalide(f"Signature {provider.code} invalide : {exc}")
    data = dict(data)
    if isinstance(claims, dict):
        data.update(claims)
    return data


def traiter_webhook_mobile_money(code_provider, data, signature_entete=None):
    """
    1) Authentifie le payload
    2) Extrait (transaction_id, statut) selon la table du fournisseur
    3) Retrouve la transaction du registre
    4) Termine / marque en échec / ignore selon le statut
    Retourne le statut normalisé appliqué.
    """
    if code_provider not in MOBILE_MONEY_PROVIDERS:
        raise ValidationPaiementError(f"Provider non supporté : {code_provider}")
    if not isinstance(data, dict):
        raise ValidationPaiementError("Payload invalide")

    provider = get_provider_class(code_provider)()
    data = _authentifier_mobile_money(provider, data, signature_entete)
    logger.info("Webhook %s reçu : %s", code_provider, data)

    champs = provider.parse_callback(data)
    transaction_id = champs['transaction_id']
    if not transaction_id:
        raise ValidationPaiementError("Transaction ID manquant")

    tx = provider.trouver_transaction(transaction_id)
    if tx is None:
        raise TransactionIntrouvable(f"Transaction {code_provider}/{transaction_id} introuvable")

    statut = provider.statut_normalise(champs['status'])
    if statut == PaymentTransaction.COMPLETED:
        finaliser_transaction(tx, metadata={'webhook_payload': data})
    elif statut == PaymentTransaction.FAILED:
        marquer_transaction_echouee(
            tx, f"Statut {code_provider} : {champs['status']}", {'webhook_payload': data})
    else:
        logger.info("Webhook %s : statut %s sans effet pour %s",
                    code_provider, champs['status'] or '-', transaction_id)
    return statut
