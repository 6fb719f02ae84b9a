from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_date
from pharmatrack.billing.plans import get_plan_limits
from pharmatrack.staff.permissions import IsOwnerOrManager, get_active_membership, get_granted_permissions
from .models import AuditLog
from .serializers import UserSerializer, UserCreateSerializer, AuditLogSerializer

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        membership = get_active_membership(user)
        if membership:
            token['pharmacy_id'] = membership.pharmacy_id
            token['role'] = membership.role
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh serializer that rejects tokens of deleted users cleanly"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """User registration endpoint"""
    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        token = CustomTokenObtainPairSerializer.get_token(user)
        return Response({
            'user': UserSerializer(user).data,
            'access': str(token.access_token),
            'refresh': str(token),
        }, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user with active pharmacy membership, permissions and plan limits"""
    user = request.user

    if request.method == 'PATCH':
        serializer = UserSerializer(user, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()

    user_data = UserSerializer(user).data
    membership = get_active_membership(user, pharmacy_id=request.headers.get('X-Pharmacy-Id'))
    if membership:
        pharmacy = membership.pharmacy
        user_data['membership'] = {
            'id': membership.id,
            'role': membership.role,
            'pharmacy': {
                'id': pharmacy.id,
                'name': pharmacy.name,
                'currency': pharmacy.currency,
                'subscription_plan': pharmacy.subscription_plan,
                'subscription_status': pharmacy.subscription_status,
                'is_subscription_active': pharmacy.is_subscription_active,
            },
            'branch': {'id': membership.branch.id, 'name': membership.branch.name} if membership.branch else None,
        }
        user_data['permissions'] = get_granted_permissions(membership)
        user_data['plan_limits'] = get_plan_limits(pharmacy.subscription_plan)
    else:
        user_data['membership'] = None
        user_data['permissions'] = []
        user_data['plan_limits'] = None
    return Response(user_data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOwnerOrManager])
def audit_log_list(request):
    """List the pharmacy's audit logs with filtering"""
    queryset = AuditLog.objects.filter(pharmacy=request.membership.pharmacy).select_related('user')

    action_filter = request.query_params.get('action')
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model_name')
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    user_filter = request.query_params.get('user')
    if user_filter:
        if not user_filter.isdigit():
            return Response({'error': 'user must be a user id'}, status=status.HTTP_400_BAD_REQUEST)
        queryset = queryset.filter(user_id=int(user_filter))

    for param, lookup in (('date_from', 'created_at__date__gte'), ('date_to', 'created_at__date__lte')):
        raw = request.query_params.get(param)
        if not raw:
            continue
        try:
            value = parse_date(raw)
        except ValueError:
            value = None
        if value is None:
            return Response({'error': f'{param} must be a date in YYYY-MM-DD format'},
                            status=status.HTTP_400_BAD_REQUEST)
        queryset = queryset.filter(**{lookup: value})

    try:
        limit = min(int(request.query_params.get('limit', 100)), 500)
    except ValueError:
        limit = 100
    serializer = AuditLogSerializer(queryset[:limit], many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsOwnerOrManager])
def audit_log_detail(request, pk):
    """Retrieve a single audit log entry"""
    log = get_object_or_404(AuditLog, pk=pk, pharmacy=request.membership.pharmacy)
    return Response(AuditLogSerializer(log).data)
