"""Channel routing for heat websockets."""

from django.urls import re_path

from . import consumers

websocket_urlpatterns = [
    re_path(r"^ws/heats/(?P<heat_id>\d+)/$", consumers.HeatConsumer.as_asgi()),
]
