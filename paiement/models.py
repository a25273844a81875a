from django.db import models


### Registre des transactions de paiement
class PaymentTransaction(models.Model):
    """
    Historique de chaque tentative de paiement d'un abonnement.
    Une transaction passe `pending -> completed` une seule fois (mise à jour
    conditionnelle dans paiement.services.finaliser_transaction).
    """
    ORANGE_MONEY = 'orange_money'
    AIRTEL_MONEY = 'airtel_money'
    STRIPE = 'stripe'
    ESPECE = 'espece'
    PROVIDER_CHOICES = [
        (ORANGE_MONEY, 'Orange Money'),
        (AIRTEL_MONEY, 'Airtel Money'),
        (STRIPE, 'Stripe'),
        (ESPECE, 'Espèce'),
    ]

    PENDING = 'pending'
    COMPLETED = 'completed'
    FAILED = 'failed'
    STATUS_CHOICES = [
        (PENDING, 'En attente'),
        (COMPLETED, 'Terminée'),
        (FAILED, 'Échouée'),
    ]

    abonnement = models.ForeignKey(
        'abonnement.Abonnement', on_delete=models.CASCADE, related_name='transactions')
    provider = models.CharField(max_length=32, choices=PROVIDER_CHOICES)
    transaction_id = models.CharField(max_length=191)
    payment_method = models.CharField(max_length=32)  # carte_bancaire, mobile_money, espece
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    currency = models.CharField(max_length=3, default='USD')
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=PENDING)
    metadata = models.JSONField(blank=True, default=dict)
    customer_email = models.EmailField(blank=True, null=True)
    customer_phone = models.CharField(max_length=20, blank=True, null=True)
    failure_reason = models.TextField(blank=True, null=True)
    processed_at = models.DateTimeField(blank=True, null=True)
    created = models.DateTimeField(auto_now_add=True)
    updated = models.DateTimeField(auto_now=True)

    def is_completed(self):
        return self.status == self.COMPLETED

    def is_pending(self):
        return self.status == self.PENDING

    def is_failed(self):
        return self.status == self.FAILED

    def __str__(self):
        return f"{self.get_provider_display()} - {self.transaction_id} ({self.status})"

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['provider', 'transaction_id'], name='unique_provider_transaction'),
        ]
        indexes = [
            models.Index(fields=['abonnement', 'status'], name='paiement_tx_abo_status_idx'),
        ]
