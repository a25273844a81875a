from django.contrib import admin

from .models import PaymentTransaction


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = (
        "abonnement", "provider", "status", "amount", "currency",
        "transaction_id", "customer_phone", "created"
    )
    list_filter = ("provider", "payment_method", "status", "created")
    search_fields = ("transaction_id", "customer_phone", "customer_email", "abonnement__restaurant__nom")
    readonly_fields = ("metadata", "processed_at")
    raw_id_fields = ("abonnement",)
    date_hierarchy = "created"
