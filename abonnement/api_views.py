from django.http import Http404
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from paiement.exceptions import ValidationPaiementError
from restaurant.permissions import HasRestaurant, IsSuperAdmin

from .exceptions import AbonnementIntrouvable
from .models import PLANS, Abonnement
from .serializers import (
    AbonnementSerializer,
    ChangerPlanSerializer,
    FactureSerializer,
    NotificationSerializer,
    PlanSerializer,
)
from .services import (
    activer_abonnement,
    changer_plan,
    generer_facture,
    get_abonnement_courant,
    notifications_restaurant,
    suspendre_abonnement,
)


class PlanListAPI(APIView):
    """
    GET /api/abonnement/plans/ → catalogue des plans mensuels
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        plans = [dict(plan, slug=slug) for slug, plan in PLANS.items()]
        return Response(PlanSerializer(plans, many=True).data)


class CurrentSubscriptionAPI(generics.RetrieveAPIView):
    """
    GET /api/abonnement/courant/ → abonnement en vigueur du restaurant
    """
    serializer_class = AbonnementSerializer
    permission_classes = [HasRestaurant]

    def get_object(self):
        abonnement = get_abonnement_courant(self.request.user.restaurant_id)
        if abonnement is None:
            raise Http404("Abonnement non trouvé.")
        return abonnement


class ChangerPlanAPI(generics.GenericAPIView):
    """
    POST /api/abonnement/plan/ { plan, mode_paiement? } → changement de plan
    """
    serializer_class = ChangerPlanSerializer
    permission_classes = [HasRestaurant]

    def post(self, request):
        ser = self.get_serializer(data=request.data)
        ser.is_valid(raise_exception=True)
        abonnement = get_abonnement_courant(request.user.restaurant_id)
        if abonnement is None:
            return Response({"detail": "Abonnement non trouvé."}, status=status.HTTP_404_NOT_FOUND)
        try:
            abonnement = changer_plan(
                abonnement.pk,
                ser.validated_data['plan'],
                ser.validated_data.get('mode_paiement'),
            )
        except ValidationPaiementError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({
            "detail": "Plan modifié avec succès.",
            "abonnement": AbonnementSerializer(abonnement).data,
        })


class GenererFactureAPI(APIView):
    """
    POST /api/abonnement/<id>/facture/ → facture du mois
    """
    permission_classes = [HasRestaurant]

    def post(self, request, pk):
        abonnement = Abonnement.objects.filter(
            pk=pk, restaurant_id=request.user.restaurant_id).first()
        if abonnement is None:
            return Response({"detail": "Abonnement non trouvé."}, status=status.HTTP_404_NOT_FOUND)
        facture = generer_facture(abonnement)
        return Response(FactureSerializer(facture).data, status=status.HTTP_201_CREATED)


class NotificationsAPI(APIView):
    """
    GET /api/abonnement/notifications/?jours=7
    """
    permission_classes = [HasRestaurant]

    def get(self, request):
        try:
            jours = int(request.query_params.get('jours', 7))
        except ValueError:
            jours = 7
        notifs = notifications_restaurant(request.user.restaurant_id, jours)
        return Response(NotificationSerializer(notifs, many=True).data)


class AdminStatutAPI(APIView):
    """
    POST /api/abonnement/admin/<id>/suspendre/ et .../activer/ (super-admin)
    """
    permission_classes = [IsSuperAdmin]
    operation = None

    def post(self, request, pk):
        fonction = suspendre_abonnement if self.operation == 'suspendre' else activer_abonnement
        try:
            abonnement = fonction(pk)
        except AbonnementIntrouvable as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
        return Response(AbonnementSerializer(abonnement).data)
