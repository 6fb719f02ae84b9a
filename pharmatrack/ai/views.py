import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from pharmatrack.staff.permissions import IsPharmacyMember
from .dispatcher import dispatch, ACTION_ALIASES, HANDLERS, UnknownActionError
from .gemini import AIServiceError, RateLimitError

logger = logging.getLogger(__name__)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def pharmacy_ai(request):
    """Run an AI action ({action, payload}) for the member's pharmacy"""
    action = request.data.get('action')
    if not action:
        return Response({'error': "Missing 'action' in request body", 'action_failed': True},
                        status=status.HTTP_400_BAD_REQUEST)

    payload = request.data.get('payload') or {}
    if not isinstance(payload, dict):
        return Response({'error': 'payload must be an object', 'action_failed': True},
                        status=status.HTTP_400_BAD_REQUEST)

    try:
        result = dispatch(action, payload, pharmacy=request.membership.pharmacy)
    except UnknownActionError as e:
        return Response({'error': str(e), 'action_failed': True}, status=status.HTTP_400_BAD_REQUEST)
    except RateLimitError as e:
        return Response({'error': str(e), 'action_failed': True}, status=status.HTTP_429_TOO_MANY_REQUESTS)
    except AIServiceError as e:
        logger.error(f"pharmacy-ai {action} failed: {e}")
        return Response({'error': str(e), 'action_failed': True}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return Response(result)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPharmacyMember])
def ai_actions(request):
    """Supported actions and their aliases"""
    return Response({'actions': list(HANDLERS.keys()), 'aliases': ACTION_ALIASES})
