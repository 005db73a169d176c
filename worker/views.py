import logging

from rest_framework import views
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from .queues import AmqpJobQueue, BrokerError
from .serializers import QueueStatusSerializer

logger = logging.getLogger(__name__)


class QueueStatusView(views.APIView):
    """
    Read-only view of the input queue: pending message count and active consumers.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def get_queue(self):
        return AmqpJobQueue()

    def get(self, request):
        queue = self.get_queue()
        try:
            status = queue.status()
        except BrokerError as e:
            logger.error(f"Queue status unavailable: {e}")
            return Response({"detail": "Broker unavailable"}, status=503)
        finally:
            queue.close()

        return Response(QueueStatusSerializer(status.to_dict()).data)
