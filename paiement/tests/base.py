import hashlib
import hmac
import json
import time
from unittest import mock

from django.contrib.auth import get_user_model

from abonnement.models import Abonnement
from abonnement.services import creer_abonnement
from restaurant.models import Restaurant

MOBILE_MONEY_TEST = {
    'orange_money': {
        'merchant_id': 'MERCHANT',
        'api_key': 'om-key',
        'api_url': 'https://om.test',
        'currency': 'USD',
        'webhook_secret': None,
    },
    'airtel_money': {
        'client_id': 'airtel-id',
        'client_secret': 'airtel-secret',
        'api_url': 'https://airtel.test',
        'country': 'CD',
        'currency': 'USD',
        'webhook_secret': None,
    },
}


def creer_restaurant(nom='Chez Mama', plan='simple', mode=Abonnement.ESPECE):
    """Restaurant + admin inactif + abonnement en attente."""
    User = get_user_model()
    restaurant = Restaurant.objects.create(nom=nom, email='resto@example.com')
    admin = User.objects.create_user(
        username=f"admin-{restaurant.slug}", email='admin@example.com', password='testpass',
        restaurant=restaurant, role='admin', is_active=False,
    )
    abonnement = creer_abonnement(restaurant, plan, mode)
    return restaurant, admin, abonnement


def creer_super_admin():
    User = get_user_model()
    return User.objects.create_user(
        username='root', email='root@example.com', password='testpass', role='super-admin')


def reponse_http(status_code=200, data=None):
    response = mock.Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = data if data is not None else {}
    response.text = json.dumps(data or {})
    return response


def signer_stripe(payload, secret, timestamp=None):
    """En-tête Stripe-Signature (t=...,v1=HMAC-SHA256)."""
    timestamp = int(timestamp or time.time())
    signe = f"{timestamp}.{payload}".encode()
    signature = hmac.new(secret.encode(), signe, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"
