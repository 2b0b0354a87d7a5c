# tracker_user/views.py
import datetime
import logging

from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Role, User
from .serializers import UserSerializer

logger = logging.getLogger(__name__)


class UserSyncView(APIView):
    """
    Pull endpoint for the users collection.

    Users are created by signup against the identity provider and are never
    deleted here, so only `created` and `updated` carry records.
    """

    def get(self, request):
        """
        Return users changed since the last pull, optionally filtered by role.

        Query Parameters:
            last_pulled_at (str): Milliseconds since the Unix epoch of the previous pull.
            role (str): Optional role filter, "student" or "lecturer".

        Returns:
            Response: {"changes": {"users": {...}}, "timestamp": <ms>}, or 400 for an unknown role.
        """
        last_pulled_at_str = request.query_params.get('last_pulled_at')
        if last_pulled_at_str:
            last_pulled_at = datetime.datetime.fromtimestamp(
                int(last_pulled_at_str) / 1000, tz=datetime.timezone.utc
            )
        else:
            last_pulled_at = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)

        users = User.objects.all()
        role = request.query_params.get('role')
        if role:
            if role not in Role.values:
                return Response({'errors': [f"Unknown role '{role}'"]}, status=status.HTTP_400_BAD_REQUEST)
            users = users.filter(role=role)

        users_created = users.filter(created_at__gt=last_pulled_at)
        users_updated = users.filter(updated_at__gt=last_pulled_at, created_at__lte=last_pulled_at)

        changes = {
            'users': {
                'created': UserSerializer(users_created, many=True).data,
                'updated': UserSerializer(users_updated, many=True).data,
                'deleted': [],
            }
        }
        logger.debug("User pull for %s: %d created, %d updated",
                     request.user.pk, len(changes['users']['created']), len(changes['users']['updated']))

        current_timestamp = int(timezone.now().timestamp() * 1000)
        return Response({'changes': changes, 'timestamp': current_timestamp})
