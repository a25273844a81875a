import logging

from django.db.models import Q
from django.urls import reverse
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from abonnement.exceptions import AbonnementIntrouvable, TransitionInvalide
from abonnement.models import Abonnement
from abonnement.serializers import AbonnementSerializer
from abonnement.services import (
    changer_mode_paiement,
    get_abonnement_courant,
    refuser_paiement_especes,
    valider_paiement_especes,
)
from abonnement.tasks import envoyer_otp
from restaurant.permissions import HasRestaurant, IsSuperAdmin

from .exceptions import ValidationPaiementError
from .models import PaymentTransaction
from .providers.factory import get_provider_class
from .serializers import (
    ChangerModeSerializer,
    InitierMobileMoneySerializer,
    PayerCarteSerializer,
    PaymentTransactionSerializer,
    RefuserPaiementSerializer,
    RenvoyerOtpSerializer,
    VerifierOtpSerializer,
)
from .services import MobileMoneyService, traiter_paiement, verifier_otp_et_confirmer

logger = logging.getLogger('paiement')


def _erreur(detail, abonnement=None, code=status.HTTP_400_BAD_REQUEST):
    data = {"detail": detail}
    if abonnement is not None:
        data["mode_paiement"] = abonnement.mode_paiement
    return Response(data, status=code)


def _transaction_du_restaurant(request, provider, transaction_id):
    """Vrai si la transaction appartient au restaurant de l'utilisateur (Orange : aussi par pay_token)."""
    return PaymentTransaction.objects.filter(
        Q(transaction_id=transaction_id) | Q(metadata__pay_token=transaction_id),
        provider=provider,
        abonnement__restaurant_id=request.user.restaurant_id,
    ).exists()


class AbonnementCourantMixin:
    """Abonnement courant du restaurant de l'utilisateur connecté."""
    permission_classes = [HasRestaurant]
    mode_requis = None

    def abonnement(self, request):
        abonnement = get_abonnement_courant(request.user.restaurant_id)
        if abonnement is None:
            raise AbonnementIntrouvable("Abonnement non trouvé.")
        if self.mode_requis and abonnement.mode_paiement != self.mode_requis:
            raise ValidationPaiementError("Mode de paiement invalide.")
        return abonnement

    def handle_exception(self, exc):
        if isinstance(exc, AbonnementIntrouvable):
            return _erreur(str(exc), code=status.HTTP_404_NOT_FOUND)
        if isinstance(exc, ValidationPaiementError):
            abonnement = get_abonnement_courant(self.request.user.restaurant_id)
            return _erreur(str(exc), abonnement)
        return super().handle_exception(exc)


class PaiementCourantAPI(AbonnementCourantMixin, APIView):
    """
    GET /api/paiement/courant/ → abonnement courant + dernières transactions
    """

    def get(self, request):
        abonnement = self.abonnement(request)
        transactions = abonnement.transactions.order_by('-created', '-id')[:10]
        return Response({
            "abonnement": AbonnementSerializer(abonnement).data,
            "transactions": PaymentTransactionSerializer(transactions, many=True).data,
        })


class ChangerModeAPI(AbonnementCourantMixin, APIView):
    """
    POST /api/paiement/mode/ { mode_paiement }
    """

    def post(self, request):
        ser = ChangerModeSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        abonnement = self.abonnement(request)
        abonnement = changer_mode_paiement(abonnement.pk, ser.validated_data['mode_paiement'])
        if abonnement.mode_paiement == Abonnement.MOBILE_MONEY:
            envoyer_otp.delay(abonnement.pk)
        return Response({
            "detail": "Mode de paiement modifié avec succès.",
            "abonnement": AbonnementSerializer(abonnement).data,
        })


class PayerEspecesAPI(AbonnementCourantMixin, APIView):
    """
    POST /api/paiement/espece/ → déclaration d'un paiement en espèces
    """
    mode_requis = Abonnement.ESPECE

    def post(self, request):
        abonnement = self.abonnement(request)
        result = traiter_paiement(abonnement)
        return Response(result, status=status.HTTP_201_CREATED)


class InitierMobileMoneyAPI(AbonnementCourantMixin, APIView):
    """
    POST /api/paiement/mobile-money/initier/ { phone_number, provider? }
    """
    mode_requis = Abonnement.MOBILE_MONEY

    def post(self, request):
        ser = InitierMobileMoneySerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        abonnement = self.abonnement(request)

        result = MobileMoneyService().initiate_payment(
            abonnement,
            ser.validated_data['phone_number'],
            ser.validated_data.get('provider'),
        )
        if not result.get('success'):
            return _erreur(result.get('error') or "Erreur lors de l'initiation du paiement.", abonnement)

        envoyer_otp.delay(abonnement.pk)
        return Response(result, status=status.HTTP_201_CREATED)


class RenvoyerOtpAPI(AbonnementCourantMixin, APIView):
    """
    POST /api/paiement/mobile-money/renvoyer-otp/ { phone_number }
    Réinitie le paiement avec le même numéro et régénère l'OTP.
    """
    mode_requis = Abonnement.MOBILE_MONEY

    def post(self, request):
        ser = RenvoyerOtpSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        abonnement = self.abonnement(request)

        result = MobileMoneyService().initiate_payment(abonnement, ser.validated_data['phone_number'])
        if not result.get('success'):
            return _erreur(result.get('error') or "Erreur lors de la réinitialisation du paiement.", abonnement)

        envoyer_otp.delay(abonnement.pk)
        return Response({"detail": "Un nouveau code OTP a été généré et envoyé."})


class VerifierOtpAPI(AbonnementCourantMixin, APIView):
    """
    POST /api/paiement/mobile-money/verifier-otp/ { otp_code }
    """
    mode_requis = Abonnement.MOBILE_MONEY

    def post(self, request):
        ser = VerifierOtpSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        abonnement = self.abonnement(request)

        result = verifier_otp_et_confirmer(abonnement, ser.validated_data['otp_code'])
        if not result.get('success'):
            return _erreur(
                result.get('error') or "Le paiement n'a pas encore été confirmé.", abonnement)
        abonnement.refresh_from_db()
        return Response({
            "detail": "Paiement confirmé avec succès !",
            "abonnement": AbonnementSerializer(abonnement).data,
        })


class MobileMoneyCallbackAPI(AbonnementCourantMixin, APIView):
    """
    GET /api/paiement/mobile-money/callback/<provider>/ → retour navigateur
    après paiement (Orange Money redirige ici).
    """

    def get(self, request, provider):
        params = request.query_params
        transaction_id = params.get('transaction_id') or params.get('order_id') or params.get('pay_token')
        if not transaction_id:
            return _erreur("Transaction ID manquant dans le callback.")
        self.abonnement(request)
        if not _transaction_du_restaurant(request, provider, transaction_id):
            return _erreur("Transaction non trouvée.", code=status.HTTP_404_NOT_FOUND)

        result = MobileMoneyService().verify_payment(transaction_id, provider)
        if result.get('success'):
            return Response({"detail": "Paiement confirmé avec succès !", "status": result.get('status')})
        return Response({
            "detail": "Votre paiement est en cours de traitement. Vous serez notifié une fois confirmé.",
            "status": result.get('status'),
        }, status=status.HTTP_202_ACCEPTED)


class CarteCheckoutAPI(AbonnementCourantMixin, APIView):
    """
    POST /api/paiement/carte/checkout/ → URL de la session Stripe Checkout
    """
    mode_requis = Abonnement.CARTE_BANCAIRE

    def post(self, request):
        abonnement = self.abonnement(request)
        success_url = request.build_absolute_uri(reverse('paiement_api:carte_succes')) + \
            '?session_id={CHECKOUT_SESSION_ID}'
        cancel_url = request.build_absolute_uri(reverse('paiement_api:annuler'))

        result = get_provider_class('stripe')().create_checkout_session(abonnement, success_url, cancel_url)
        if not result.get('success'):
            return _erreur(result.get('error') or "Erreur lors de la création de la session.", abonnement)
        return Response(result, status=status.HTTP_201_CREATED)


class CartePayerAPI(AbonnementCourantMixin, APIView):
    """
    POST /api/paiement/carte/payer/ { payment_method_id }
    Peut répondre `requires_action` + `client_secret` (3-D Secure).
    """
    mode_requis = Abonnement.CARTE_BANCAIRE

    def post(self, request):
        ser = PayerCarteSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        abonnement = self.abonnement(request)

        result = get_provider_class('stripe')().create_payment_intent(
            abonnement, ser.validated_data['payment_method_id'])
        if result.get('success'):
            return Response({"detail": "Paiement effectué avec succès !", **result})
        if result.get('requires_action'):
            return Response({
                "requires_action": True,
                "client_secret": result.get('client_secret'),
                "payment_intent_id": result.get('payment_intent_id'),
            })
        return _erreur(result.get('error') or "Le paiement n'a pas pu être effectué.", abonnement)


class CarteSuccesAPI(APIView):
    """
    GET /api/paiement/carte/succes/?session_id=cs_...
    """
    permission_classes = [HasRestaurant]

    def get(self, request):
        session_id = request.query_params.get('session_id')
        if session_id:
            if not _transaction_du_restaurant(request, PaymentTransaction.STRIPE, session_id):
                return _erreur("Transaction non trouvée.", code=status.HTTP_404_NOT_FOUND)
            result = get_provider_class('stripe')().verify_payment(session_id)
            if not result.get('success'):
                return Response({
                    "detail": "Votre paiement est en cours de traitement.",
                    "status": result.get('status'),
                }, status=status.HTTP_202_ACCEPTED)
        return Response({"detail": "Paiement effectué avec succès !"})


class AnnulerAPI(APIView):
    """
    GET /api/paiement/annuler/
    """
    permission_classes = [HasRestaurant]

    def get(self, request):
        return Response({"detail": "Paiement annulé. Vous pouvez réessayer."})


# --- Super-admin : paiements en espèces ---

class ValiderEspecesAPI(APIView):
    """
    POST /api/paiement/admin/abonnements/<id>/valider/
    """
    permission_classes = [IsSuperAdmin]

    def post(self, request, pk):
        try:
            abonnement = valider_paiement_especes(pk, acteur=request.user)
        except AbonnementIntrouvable as exc:
            return _erreur(str(exc), code=status.HTTP_404_NOT_FOUND)
        except (ValidationPaiementError, TransitionInvalide) as exc:
            return _erreur(str(exc))
        return Response({
            "detail": "Paiement validé avec succès.",
            "abonnement": AbonnementSerializer(abonnement).data,
        })


class RefuserEspecesAPI(APIView):
    """
    POST /api/paiement/admin/abonnements/<id>/refuser/ { notes }
    """
    permission_classes = [IsSuperAdmin]

    def post(self, request, pk):
        ser = RefuserPaiementSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        try:
            abonnement = refuser_paiement_especes(
                pk, acteur=request.user, notes=ser.validated_data.get('notes', ''))
        except AbonnementIntrouvable as exc:
            return _erreur(str(exc), code=status.HTTP_404_NOT_FOUND)
        except (ValidationPaiementError, TransitionInvalide) as exc:
            return _erreur(str(exc))
        return Response({
            "detail": "Paiement refusé.",
            "abonnement": AbonnementSerializer(abonnement).data,
        })
