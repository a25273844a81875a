from rest_framework import serializers

from .models import PaymentTransaction

TELEPHONE_REGEX = r'^(\+?243|0)[0-9]{9}$'


class PaymentTransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentTransaction
        fields = ['transaction_id', 'provider', 'payment_method', 'status', 'amount',
                  'currency', 'failure_reason', 'processed_at', 'created']


class InitierMobileMoneySerializer(serializers.Serializer):
    phone_number = serializers.RegexField(TELEPHONE_REGEX)
    provider = serializers.ChoiceField(choices=['orange_money', 'airtel_money'], required=False)


class RenvoyerOtpSerializer(serializers.Serializer):
    phone_number = serializers.RegexField(TELEPHONE_REGEX)


class VerifierOtpSerializer(serializers.Serializer):
    otp_code = serializers.RegexField(r'^[0-9]{6}$')


class ChangerModeSerializer(serializers.Serializer):
    mode_paiement = serializers.ChoiceField(choices=['mobile_money', 'carte_bancaire', 'espece'])


class PayerCarteSerializer(serializers.Serializer):
    payment_method_id = serializers.CharField(max_length=191)


class RefuserPaiementSerializer(serializers.Serializer):
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True)
