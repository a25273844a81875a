from django.urls import path
from .api_views import (
    PlanListAPI,
    CurrentSubscriptionAPI,
    ChangerPlanAPI,
    GenererFactureAPI,
    NotificationsAPI,
    AdminStatutAPI,
)

app_name = 'abonnement_api'
urlpatterns = [
    path(
        'plans/',
        PlanListAPI.as_view(),
        name='plans'),
    path(
        'courant/',
        CurrentSubscriptionAPI.as_view(),
        name='courant'),
    path(
        'plan/',
        ChangerPlanAPI.as_view(),
        name='changer_plan'),
    path(
        '<int:pk>/facture/',
        GenererFactureAPI.as_view(),
        name='facture'),
    path(
        'notifications/',
        NotificationsAPI.as_view(),
        name='notifications'),
    path(
        'admin/<int:pk>/suspendre/',
        AdminStatutAPI.as_view(operation='suspendre'),
        name='admin_suspendre'),
    path(
        'admin/<int:pk>/activer/',
        AdminStatutAPI.as_view(operation='activer'),
        name='admin_activer'),
]
