from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils import timezone
from django.utils.text import slugify


class Restaurant(models.Model):
    """
    Restaurant client de la caisse (tenant).
    `abonnement_courant` pointe explicitement vers l'abonnement en vigueur,
    mis à jour dans la même transaction que l'abonnement lui-même.
    """
    nom = models.CharField(max_length=128)
    slug = models.SlugField(max_length=150, unique=True, blank=True)
    email = models.EmailField(blank=True)
    telephone = models.CharField(max_length=20, blank=True)
    est_actif = models.BooleanField(default=True)
    date_creation = models.DateTimeField(default=timezone.now)
    abonnement_courant = models.ForeignKey(
        'abonnement.Abonnement',
        null=True, blank=True,
        on_delete=models.SET_NULL,
        related_name='+',
    )

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = self.generer_slug_unique(self.nom, exclude_id=self.pk)
        super().save(*args, **kwargs)

    @classmethod
    def generer_slug_unique(cls, nom, exclude_id=None):
        base = slugify(nom) or 'restaurant'
        slug, compteur = base, 1
        qs = cls.objects.all()
        if exclude_id:
            qs = qs.exclude(pk=exclude_id)
        while qs.filter(slug=slug).exists():
            slug = f"{base}-{compteur}"
            compteur += 1
        return slug

    def admin_principal(self):
        """Premier utilisateur de rôle 'admin' du restaurant (ou None)."""
        return self.users.filter(role=CustomUser.ROLE_ADMIN).order_by('id').first()

    def __str__(self):
        return self.nom

    class Meta:
        verbose_name = "Restaurant"


class CustomUser(AbstractUser):
    ROLE_SUPER_ADMIN = 'super-admin'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = [
        (ROLE_SUPER_ADMIN, 'Super administrateur'),
        (ROLE_ADMIN, 'Administrateur restaurant'),
        ('caisse', 'Caisse'),
        ('serveur', 'Serveur'),
        ('stock', 'Stock'),
    ]
    restaurant = models.ForeignKey(
        Restaurant, null=True, blank=True,
        on_delete=models.CASCADE, related_name='users',
    )
    role = models.CharField(max_length=32, choices=ROLE_CHOICES, default='serveur')

    def is_super_admin(self):
        return self.role == self.ROLE_SUPER_ADMIN

    def is_admin_restaurant(self):
        return self.role == self.ROLE_ADMIN
