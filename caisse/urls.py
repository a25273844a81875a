from django.contrib import admin
from django.urls import path, include
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from paiement.views import webhook_stripe, webhook_mobile_money

urlpatterns = [
    path('admin/', admin.site.urls),

    # Authentification JWT (clients API)
    path('api/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),

    path('api/abonnement/', include('abonnement.api_urls')),
    path('api/paiement/', include('paiement.api_urls')),

    # Webhooks fournisseurs (sans CSRF, authentifiés par signature)
    path('webhook/stripe', webhook_stripe, name='webhook_stripe'),
    path('webhook/mobile-money/<str:provider>', webhook_mobile_money, name='webhook_mobile_money'),
]
