import secrets
import string
import time

from django.conf import settings


def get_provider_config(provider):
    """
    Récupère la configuration sensible (lue depuis les variables d'env dans
    settings) pour un fournisseur de paiement.
    Les identifiants manquants ne sont pas vérifiés ici : chaque adaptateur
    lève ConfigurationError au moment de l'appel.
    """
    # --- 1) Carte bancaire (Stripe) ---
    if provider == 'stripe':
        return {
            "public_key": settings.STRIPE_KEY,
            "secret_key": settings.STRIPE_SECRET,
            "webhook_secret": settings.STRIPE_WEBHOOK_SECRET,
            "currency": getattr(settings, 'STRIPE_CURRENCY', 'usd'),
            "timeout": getattr(settings, 'PAYMENT_HTTP_TIMEOUT', 30),
        }

    # --- 2) Mobile money (Orange / Airtel) ---
    config = getattr(settings, 'MOBILE_MONEY', {}).get(provider)
    if config is not None:
        return dict(config, timeout=getattr(settings, 'PAYMENT_HTTP_TIMEOUT', 30))

    # --- Aucun provider trouvé ---
    raise ValueError(f"Aucun provider configuré pour `{provider}`")


def generer_reference(prefixe):
    """Référence interne du type `OM-1731500000-AB12CD34`."""
    alphabet = string.ascii_uppercase + string.digits
    suffixe = ''.join(secrets.choice(alphabet) for _ in range(8))
    return f"{prefixe}-{int(time.time())}-{suffixe}"
