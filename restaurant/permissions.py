from rest_framework.permissions import BasePermission


class IsSuperAdmin(BasePermission):
    """Réservé au super administrateur de la plateforme."""
    message = "Accès refusé. Seul le super administrateur peut effectuer cette action."

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, 'role', None) == 'super-admin')


class HasRestaurant(BasePermission):
    message = "Utilisateur non trouvé."

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and getattr(user, 'restaurant_id', None))
