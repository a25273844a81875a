import uuid
from decimal import Decimal

from django.db import models
from django.utils import timezone


# Plans prédéfinis (montants mensuels en FC)
PLANS = {
    'simple': {
        'nom': 'Simple',
        'description': "Accès limité aux fonctionnalités de base",
        'montant_mensuel': Decimal('50000'),
        'limitations': {
            'max_users': 2,
            'max_produits': 50,
            'max_ventes_mois': 500,
            'rapports': False,
            'impression': True,
            'personnalisation': False,
            'support': 'email',
        },
    },
    'medium': {
        'nom': 'Medium',
        'description': "Accès plus poussé avec fonctionnalités avancées",
        'montant_mensuel': Decimal('100000'),
        'limitations': {
            'max_users': 5,
            'max_produits': 200,
            'max_ventes_mois': 2000,
            'rapports': True,
            'impression': True,
            'personnalisation': True,
            'support': 'email_phone',
        },
    },
    'premium': {
        'nom': 'Premium',
        'description': "Accès total à toutes les fonctionnalités",
        'montant_mensuel': Decimal('200000'),
        'limitations': {
            'max_users': None,
            'max_produits': None,
            'max_ventes_mois': None,
            'rapports': True,
            'impression': True,
            'personnalisation': True,
            'support': 'prioritaire',
        },
    },
}


class Abonnement(models.Model):
    """
    Abonnement mensuel d'un restaurant.
    Deux axes distincts : `statut_paiement` (confirmation du paiement) et
    `statut` (cycle de vie, modifiable par l'admin indépendamment du paiement).
    Jamais supprimé : l'historique est conservé, plusieurs lignes par restaurant.
    """
    PLAN_CHOICES = [(slug, plan['nom']) for slug, plan in PLANS.items()]

    ESPECE = 'espece'
    CARTE_BANCAIRE = 'carte_bancaire'
    MOBILE_MONEY = 'mobile_money'
    MODE_PAIEMENT_CHOICES = [
        (ESPECE, 'Espèce'),
        (CARTE_BANCAIRE, 'Carte bancaire'),
        (MOBILE_MONEY, 'Mobile Money'),
    ]

    EN_ATTENTE = 'en_attente'
    VALIDE = 'valide'
    REFUSE = 'refuse'
    STATUT_PAIEMENT_CHOICES = [
        (EN_ATTENTE, 'En attente'),
        (VALIDE, 'Validé'),
        (REFUSE, 'Refusé'),
    ]

    ACTIF = 'actif'
    SUSPENDU = 'suspendu'
    EXPIRE = 'expire'
    ANNULE = 'annule'
    STATUT_CHOICES = [
        (ACTIF, 'Actif'),
        (SUSPENDU, 'Suspendu'),
        (EXPIRE, 'Expiré'),
        (ANNULE, 'Annulé'),
        (REFUSE, 'Refusé'),
    ]

    restaurant = models.ForeignKey(
        'restaurant.Restaurant', on_delete=models.CASCADE, related_name='abonnements')
    plan = models.CharField(max_length=16, choices=PLAN_CHOICES, default='simple')
    montant_mensuel = models.DecimalField(max_digits=10, decimal_places=2)
    mode_paiement = models.CharField(max_length=20, choices=MODE_PAIEMENT_CHOICES, default=ESPECE)
    statut_paiement = models.CharField(max_length=16, choices=STATUT_PAIEMENT_CHOICES, default=EN_ATTENTE)
    statut = models.CharField(max_length=16, choices=STATUT_CHOICES, default=ACTIF)
    est_actif = models.BooleanField(default=True)
    numero_transaction = models.CharField(max_length=191, blank=True, null=True)
    otp_code = models.CharField(max_length=6, blank=True, null=True)
    otp_expires_at = models.DateTimeField(blank=True, null=True)
    date_debut = models.DateField(default=timezone.localdate)
    date_fin = models.DateField(blank=True, null=True)
    date_paiement = models.DateTimeField(blank=True, null=True)
    notes = models.TextField(blank=True)
    limitations = models.JSONField(blank=True, null=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(default=timezone.now)

    def save(self, *args, **kwargs):
        self.updated_at = timezone.now()
        update_fields = kwargs.get('update_fields')
        if update_fields is not None and 'updated_at' not in update_fields:
            kwargs['update_fields'] = list(update_fields) + ['updated_at']
        super().save(*args, **kwargs)

    def is_payment_validated(self):
        return self.statut_paiement == self.VALIDE

    def is_active(self):
        return (
            self.est_actif
            and self.statut == self.ACTIF
            and (self.date_fin is None or self.date_fin >= timezone.localdate())
        )

    def __str__(self):
        return f"{self.restaurant} | {self.get_plan_display()} ({self.statut_paiement})"

    class Meta:
        verbose_name = "Abonnement"
        ordering = ['-updated_at', '-id']


def _numero_facture():
    return f"INV-{timezone.now():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


class Facture(models.Model):
    STATUT_CHOICES = [
        ('draft', 'Brouillon'),
        ('sent', 'Envoyée'),
        ('paid', 'Payée'),
        ('overdue', 'En retard'),
        ('cancelled', 'Annulée'),
    ]

    abonnement = models.ForeignKey(Abonnement, on_delete=models.CASCADE, related_name='factures')
    restaurant = models.ForeignKey(
        'restaurant.Restaurant', on_delete=models.CASCADE, related_name='factures')
    invoice_number = models.CharField(max_length=32, unique=True, default=_numero_facture)
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    tax_amount = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=15, decimal_places=2)
    currency = models.CharField(max_length=3, default='USD')
    status = models.CharField(max_length=16, choices=STATUT_CHOICES, default='draft')
    issue_date = models.DateField()
    due_date = models.DateField()
    paid_at = models.DateField(blank=True, null=True)
    notes = models.TextField(blank=True)
    line_items = models.JSONField(blank=True, null=True)
    created = models.DateTimeField(auto_now_add=True)

    def is_paid(self):
        return self.status == 'paid'

    def is_overdue(self):
        return self.status == 'overdue' or (self.due_date < timezone.localdate() and not self.is_paid())

    def __str__(self):
        return f"{self.invoice_number} ({self.status})"

    class Meta:
        verbose_name = "Facture"
