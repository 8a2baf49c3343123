# api/procedures/urls.py
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    AssignmentViewSet,
    ChairViewSet,
    PatientProcedureViewSet,
    TreatmentSessionViewSet,
    TreatmentViewSet,
)

router = DefaultRouter()
router.register(r'chairs', ChairViewSet, basename='chair')
router.register(r'treatments', TreatmentViewSet, basename='treatment')
router.register(r'procedures', PatientProcedureViewSet, basename='procedure')
router.register(r'assignments', AssignmentViewSet, basename='assignment')
router.register(r'sessions', TreatmentSessionViewSet, basename='session')

app_name = "procedures"
urlpatterns = [
    path('', include(router.urls)),
]
