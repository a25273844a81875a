from paiement.exceptions import ValidationPaiementError

_PROVIDERS = {
    'espece': 'paiement.providers.especes.EspecesProvider',
    'stripe': 'paiement.providers.carte.StripeProvider',
    'orange_money': 'paiement.providers.orange_money.OrangeMoneyProvider',
    'airtel_money': 'paiement.providers.airtel_money.AirtelMoneyProvider',
}

# mode de paiement de l'abonnement -> fournisseur par défaut
_MODES = {
    'espece': 'espece',
    'carte_bancaire': 'stripe',
}

MOBILE_MONEY_PROVIDERS = ('orange_money', 'airtel_money')


def resoudre_provider(mode_paiement, provider=None):
    """Code fournisseur pour un mode de paiement (et un choix mobile money éventuel)."""
    if mode_paiement == 'mobile_money':
        from django.conf import settings
        provider = provider or getattr(settings, 'MOBILE_MONEY_PROVIDER', 'orange_money')
        if provider not in MOBILE_MONEY_PROVIDERS:
            raise ValidationPaiementError(f"Provider non supporté : {provider}")
        return provider
    if mode_paiement not in _MODES:
        raise ValidationPaiementError(f"Mode de paiement invalide : {mode_paiement}")
    return _MODES[mode_paiement]


def get_provider_class(code):
    path = _PROVIDERS.get(code)
    if not path:
        raise ValidationPaiementError(f"Provider non supporté : {code}")
    module_path, cls_name = path.rsplit('.', 1)
    module = __import__(module_path, fromlist=[cls_name])
    return getattr(module, cls_name)


def get_provider(mode_paiement, provider=None):
    return get_provider_class(resoudre_provider(mode_paiement, provider))()
