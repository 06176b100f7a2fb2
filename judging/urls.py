"""URL configuration for the judging API."""

from rest_framework.routers import DefaultRouter

from .api import EventViewSet, HeatViewSet, PreviewViewSet

router = DefaultRouter()
router.register(r"preview", PreviewViewSet, basename="judging-preview")
router.register(r"events", EventViewSet, basename="judging-event")
router.register(r"heats", HeatViewSet, basename="judging-heat")

urlpatterns = router.urls
