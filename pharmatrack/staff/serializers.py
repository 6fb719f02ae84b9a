import re
from rest_framework import serializers
from django.contrib.auth import get_user_model
from pharmatrack.pharmacies.models import Branch
from .models import PharmacyStaff, StaffPermission, StaffShift
from .permissions import PERMISSION_KEYS, get_granted_permissions

User = get_user_model()

# the email doubles as the username (150 chars)
MAX_EMAIL_LENGTH = 150
MAX_NAME_LENGTH = 255
MAX_PHONE_LENGTH = 30
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128
MAX_PERMISSIONS = 50
ALLOWED_ROLES = ['manager', 'staff']

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PHONE_RE = re.compile(r'^[\d\s\-+()]+$')
HTML_TAG_RE = re.compile(r'<[^>]*>')


def validate_permission_keys(permissions):
    """De-duplicated list of known permission keys, order preserved"""
    if not isinstance(permissions, list):
        raise serializers.ValidationError('permissions must be an array')
    if len(permissions) > MAX_PERMISSIONS:
        raise serializers.ValidationError(f'permissions cannot exceed {MAX_PERMISSIONS} items')
    validated = []
    for perm in permissions:
        if not isinstance(perm, str):
            raise serializers.ValidationError('each permission must be a string')
        if perm not in PERMISSION_KEYS:
            raise serializers.ValidationError(f'Invalid permission: {perm}')
        if perm not in validated:
            validated.append(perm)
    return validated


class StaffPermissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = StaffPermission
        fields = ['id', 'permission_key', 'is_granted', 'created_at']


class PharmacyStaffSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)
    full_name = serializers.CharField(source='user.full_name', read_only=True)
    phone = serializers.CharField(source='user.phone', read_only=True)
    branch_name = serializers.CharField(source='branch.name', read_only=True, default=None)
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = PharmacyStaff
        fields = ['id', 'user', 'username', 'email', 'full_name', 'phone', 'pharmacy', 'branch',
                  'branch_name', 'role', 'is_active', 'permissions', 'created_at', 'updated_at']
        read_only_fields = ['user', 'pharmacy', 'created_at', 'updated_at']

    def get_permissions(self, obj):
        return get_granted_permissions(obj)


class StaffCreateSerializer(serializers.Serializer):
    """Validates a new staff account for the requesting pharmacy"""
    email = serializers.CharField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)
    full_name = serializers.CharField()
    phone = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    role = serializers.CharField()
    branch = serializers.IntegerField(required=False, allow_null=True)
    permissions = serializers.ListField(child=serializers.CharField(), required=False, default=list)

    def validate_email(self, value):
        trimmed = value.strip().lower()
        if not trimmed:
            raise serializers.ValidationError('email cannot be empty')
        if len(trimmed) > MAX_EMAIL_LENGTH:
            raise serializers.ValidationError(f'email must be at most {MAX_EMAIL_LENGTH} characters')
        if not EMAIL_RE.match(trimmed):
            raise serializers.ValidationError('Invalid email format')
        if User.objects.filter(email__iexact=trimmed).exists() or User.objects.filter(username=trimmed).exists():
            raise serializers.ValidationError('A user with this email already exists')
        return trimmed

    def validate_password(self, value):
        if len(value) < MIN_PASSWORD_LENGTH:
            raise serializers.ValidationError(f'password must be at least {MIN_PASSWORD_LENGTH} characters')
        if len(value) > MAX_PASSWORD_LENGTH:
            raise serializers.ValidationError(f'password must be less than {MAX_PASSWORD_LENGTH} characters')
        return value

    def validate_full_name(self, value):
        trimmed = value.strip()
        if not trimmed:
            raise serializers.ValidationError('full_name cannot be empty')
        if len(trimmed) > MAX_NAME_LENGTH:
            raise serializers.ValidationError(f'full_name must be less than {MAX_NAME_LENGTH} characters')
        return HTML_TAG_RE.sub('', trimmed)[:MAX_NAME_LENGTH]

    def validate_phone(self, value):
        if not value:
            return None
        trimmed = value.strip()
        if len(trimmed) > MAX_PHONE_LENGTH:
            raise serializers.ValidationError(f'phone must be less than {MAX_PHONE_LENGTH} characters')
        if not PHONE_RE.match(trimmed):
            raise serializers.ValidationError('phone contains invalid characters')
        return trimmed

    def validate_role(self, value):
        if value not in ALLOWED_ROLES:
            raise serializers.ValidationError(f"role must be one of: {', '.join(ALLOWED_ROLES)}")
        return value

    def validate_permissions(self, value):
        return validate_permission_keys(value)

    def validate_branch(self, value):
        if value is None:
            return None
        pharmacy = self.context['pharmacy']
        try:
            return Branch.objects.get(pk=value, pharmacy=pharmacy)
        except Branch.DoesNotExist:
            raise serializers.ValidationError('Branch does not belong to this pharmacy')


class StaffUpdateSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=ALLOWED_ROLES, required=False)
    branch = serializers.IntegerField(required=False, allow_null=True)
    is_active = serializers.BooleanField(required=False)
    permissions = serializers.ListField(child=serializers.CharField(), required=False)

    def validate_permissions(self, value):
        return validate_permission_keys(value)

    def validate_branch(self, value):
        if value is None:
            return None
        try:
            return Branch.objects.get(pk=value, pharmacy=self.context['pharmacy'])
        except Branch.DoesNotExist:
            raise serializers.ValidationError('Branch does not belong to this pharmacy')


class StaffShiftSerializer(serializers.ModelSerializer):
    staff_name = serializers.CharField(source='staff.user.get_display_name', read_only=True)
    branch_name = serializers.CharField(source='branch.name', read_only=True, default=None)
    is_open = serializers.BooleanField(read_only=True)

    class Meta:
        model = StaffShift
        fields = ['id', 'staff', 'staff_name', 'pharmacy', 'branch', 'branch_name', 'clock_in', 'clock_out',
                  'clock_in_method', 'wifi_name', 'wifi_verified', 'total_sales', 'total_transactions',
                  'notes', 'is_open']
        read_only_fields = fields
