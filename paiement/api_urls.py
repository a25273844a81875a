from django.urls import path
from .api_views import (
    PaiementCourantAPI,
    ChangerModeAPI,
    PayerEspecesAPI,
    InitierMobileMoneyAPI,
    RenvoyerOtpAPI,
    VerifierOtpAPI,
    MobileMoneyCallbackAPI,
    CarteCheckoutAPI,
    CartePayerAPI,
    CarteSuccesAPI,
    AnnulerAPI,
    ValiderEspecesAPI,
    RefuserEspecesAPI,
)

app_name = 'paiement_api'
urlpatterns = [
  path('courant/',                          PaiementCourantAPI.as_view(),     name='courant'),
  path('mode/',                             ChangerModeAPI.as_view(),         name='mode'),
  path('espece/',                           PayerEspecesAPI.as_view(),        name='espece'),
  path('mobile-money/initier/',             InitierMobileMoneyAPI.as_view(),  name='mm_initier'),
  path('mobile-money/renvoyer-otp/',        RenvoyerOtpAPI.as_view(),         name='mm_renvoyer_otp'),
  path('mobile-money/verifier-otp/',        VerifierOtpAPI.as_view(),         name='mm_verifier_otp'),
  path('mobile-money/callback/<str:provider>/', MobileMoneyCallbackAPI.as_view(), name='mm_callback'),
  path('carte/checkout/',                   CarteCheckoutAPI.as_view(),       name='carte_checkout'),
  path('carte/payer/',                      CartePayerAPI.as_view(),          name='carte_payer'),
  path('carte/succes/',                     CarteSuccesAPI.as_view(),         name='carte_succes'),
  path('annuler/',                          AnnulerAPI.as_view(),             name='annuler'),
  path('admin/abonnements/<int:pk>/valider/', ValiderEspecesAPI.as_view(),    name='admin_valider'),
  path('admin/abonnements/<int:pk>/refuser/', RefuserEspecesAPI.as_view(),    name='admin_refuser'),
]
