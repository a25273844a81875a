from rest_framework import serializers

from .models import Abonnement, Facture, PLANS


class PlanSerializer(serializers.Serializer):
    slug = serializers.CharField()
    nom = serializers.CharField()
    description = serializers.CharField()
    montant_mensuel = serializers.DecimalField(max_digits=10, decimal_places=2)
    limitations = serializers.DictField()


class AbonnementSerializer(serializers.ModelSerializer):
    plan_nom = serializers.CharField(source='get_plan_display', read_only=True)
    otp_envoye = serializers.SerializerMethodField()

    class Meta:
        model = Abonnement
        fields = [
            'id', 'restaurant', 'plan', 'plan_nom', 'montant_mensuel',
            'mode_paiement', 'statut_paiement', 'statut', 'est_actif',
            'numero_transaction', 'date_debut', 'date_fin', 'date_paiement',
            'otp_envoye', 'otp_expires_at', 'limitations', 'updated_at',
        ]
        read_only_fields = fields

    def get_otp_envoye(self, obj):
        return bool(obj.otp_code)


class ChangerPlanSerializer(serializers.Serializer):
    plan = serializers.ChoiceField(choices=list(PLANS))
    mode_paiement = serializers.ChoiceField(
        choices=[c for c, _ in Abonnement.MODE_PAIEMENT_CHOICES], required=False)


class FactureSerializer(serializers.ModelSerializer):
    class Meta:
        model = Facture
        fields = [
            'id', 'invoice_number', 'abonnement', 'amount', 'tax_amount',
            'total_amount', 'currency', 'status', 'issue_date', 'due_date',
            'paid_at', 'line_items',
        ]


class NotificationSerializer(serializers.Serializer):
    type = serializers.CharField()
    message = serializers.CharField()
    abonnement = serializers.IntegerField(source='abonnement.pk')
    days_until_expiration = serializers.IntegerField(required=False)
