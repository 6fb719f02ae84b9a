"""
Admin PIN for manager overrides at the till.

The PIN is stored as a Django password hash on the pharmacy. Failed
verifications are counted per pharmacy in the cache; after
MAX_PIN_ATTEMPTS failures the PIN is locked for PIN_LOCKOUT_SECONDS.
"""
import logging
from django.contrib.auth.hashers import make_password, check_password
from django.core.cache import cache
from rest_framework import status
from rest_framework.response import Response

logger = logging.getLogger(__name__)

MAX_PIN_ATTEMPTS = 5
PIN_LOCKOUT_SECONDS = 15 * 60


class AdminPinError(Exception):
    """Base error for admin PIN checks"""


class PinNotSetError(AdminPinError):
    pass


class PinLockedError(AdminPinError):
    pass


class IncorrectPinError(AdminPinError):

    def __init__(self, remaining_attempts):
        self.remaining_attempts = remaining_attempts
        super().__init__('Incorrect PIN')


def _failures_key(pharmacy):
    return f"admin_pin_failures:{pharmacy.id}"


def set_admin_pin(pharmacy, pin):
    pharmacy.admin_pin_hash = make_password(pin)
    pharmacy.save(update_fields=['admin_pin_hash', 'updated_at'])
    cache.delete(_failures_key(pharmacy))
    logger.info(f"Admin PIN set for pharmacy {pharmacy.id}")


def verify_admin_pin(pharmacy, pin):
    """
    Check ``pin`` against the pharmacy's admin PIN.

    Raises PinNotSetError when no PIN is configured, PinLockedError while
    locked out and IncorrectPinError (carrying the attempts left) on a
    mismatch. Returns True on success and resets the failure count.
    """
    if not pharmacy.admin_pin_hash:
        raise PinNotSetError('No admin PIN has been set for this pharmacy')

    key = _failures_key(pharmacy)
    failures = cache.get(key, 0)
    if failures >= MAX_PIN_ATTEMPTS:
        raise PinLockedError('Too many failed attempts. Please try again in 15 minutes.')

    if check_password(str(pin or ''), pharmacy.admin_pin_hash):
        cache.delete(key)
        return True

    failures += 1
    cache.set(key, failures, PIN_LOCKOUT_SECONDS)
    remaining = max(MAX_PIN_ATTEMPTS - failures, 0)
    logger.warning(f"Invalid admin PIN attempt for pharmacy {pharmacy.id}, {remaining} attempts left")
    raise IncorrectPinError(remaining)


def authorize_override(membership, pin):
    """
    Owners and managers may always override; other staff need the admin
    PIN. Raises AdminPinError when the override is refused.
    """
    if membership.is_owner_or_manager:
        return True
    if not pin:
        raise AdminPinError('Admin PIN required')
    return verify_admin_pin(membership.pharmacy, pin)


def pin_error_response(error):
    if isinstance(error, PinLockedError):
        return Response({'valid': False, 'error': str(error), 'remaining_attempts': 0},
                        status=status.HTTP_429_TOO_MANY_REQUESTS)
    if isinstance(error, IncorrectPinError):
        return Response({'valid': False, 'error': str(error), 'remaining_attempts': error.remaining_attempts},
                        status=status.HTTP_401_UNAUTHORIZED)
    return Response({'valid': False, 'error': str(error)}, status=status.HTTP_403_FORBIDDEN)
