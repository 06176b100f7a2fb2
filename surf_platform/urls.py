"""URL configuration for surf_platform project."""
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/judging/', include('judging.urls')),
]
