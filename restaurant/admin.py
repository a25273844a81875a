from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import Restaurant, CustomUser


@admin.register(Restaurant)
class RestaurantAdmin(admin.ModelAdmin):
    list_display = ('nom', 'slug', 'email', 'telephone', 'est_actif', 'abonnement_courant')
    list_filter = ('est_actif',)
    search_fields = ('nom', 'slug', 'email', 'telephone')
    raw_id_fields = ('abonnement_courant',)


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    list_display = ('username', 'email', 'restaurant', 'role', 'is_active')
    list_filter = ('role', 'is_active')
    fieldsets = UserAdmin.fieldsets + (
        ('Restaurant', {'fields': ('restaurant', 'role')}),
    )
    raw_id_fields = ('restaurant',)
