from django.urls import path
from .views import QueueStatusView

urlpatterns = [
    path("queue/status/", QueueStatusView.as_view(), name="queue_status"),
]
