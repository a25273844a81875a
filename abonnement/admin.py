from django.contrib import admin

from .models import Abonnement, Facture


class AbonnementAdmin(admin.ModelAdmin):
    """Admin des abonnements (jamais supprimés : historique conservé)"""

    list_display = ('restaurant', 'plan', 'montant_mensuel', 'mode_paiement',
                    'statut_paiement', 'statut', 'est_actif', 'date_fin', 'updated_at')
    list_filter = ('plan', 'mode_paiement', 'statut_paiement', 'statut')
    search_fields = (
        'restaurant__nom',
        'restaurant__email',
        'numero_transaction',
    )

    fieldsets = (
        ('Restaurant', {
            'fields': ('restaurant', 'plan', 'montant_mensuel', 'limitations')
        }),
        ('Paiement', {
            'fields': ('mode_paiement', 'statut_paiement', 'numero_transaction',
                       'date_paiement', 'notes')
        }),
        ("Cycle de vie", {
            'fields': ('statut', 'est_actif', 'date_debut', 'date_fin')
        }),
    )
    raw_id_fields = ('restaurant',)
    list_per_page = 20

    def has_delete_permission(self, request, obj=None):
        return False


class FactureAdmin(admin.ModelAdmin):
    list_display = ('invoice_number', 'restaurant', 'total_amount', 'currency',
                    'status', 'issue_date', 'due_date')
    list_filter = ('status',)
    search_fields = ('invoice_number', 'restaurant__nom')
    raw_id_fields = ('abonnement', 'restaurant')


admin.site.register(Abonnement, AbonnementAdmin)
admin.site.register(Facture, FactureAdmin)
