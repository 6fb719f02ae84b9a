"""
Paystack REST client: transactions, plans and recurring subscriptions.
"""
import os
import hmac
import hashlib
import logging
from typing import Any, Dict, List, Optional

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

PAYSTACK_BASE_URL = 'https://api.paystack.co'
REQUEST_TIMEOUT = 30
PAYMENT_CHANNELS = ['card', 'bank', 'ussd', 'bank_transfer']


class PaystackError(Exception):
    """Raised when Paystack rejects a request or is not configured"""

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details or {}


def _setting(name, default=''):
    return getattr(settings, name, os.getenv(name, default))


def _post(path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    secret_key = _setting('PAYSTACK_SECRET_KEY')
    if not secret_key:
        raise PaystackError('PAYSTACK_SECRET_KEY not configured')

    try:
        response = requests.post(
            f"{PAYSTACK_BASE_URL}{path}",
            json=payload,
            headers={
                'Authorization': f'Bearer {secret_key}',
                'Content-Type': 'application/json',
            },
            timeout=REQUEST_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.error(f"Paystack request to {path} failed: {e}")
        raise PaystackError(f'Payment gateway unreachable: {e}')

    try:
        data = response.json()
    except ValueError:
        data = {}

    if not response.ok or not data.get('status'):
        message = data.get('message') or f'Paystack error: {response.status_code}'
        logger.warning(f"Paystack {path} rejected: {message}")
        raise PaystackError(message, status_code=response.status_code, details=data)
    return data.get('data') or {}


def initialize_transaction(email: str, amount: int, metadata: Dict[str, Any],
                           callback_url: Optional[str] = None,
                           channels: Optional[List[str]] = None) -> Dict[str, Any]:
    """Start a checkout; ``amount`` is in kobo. Returns authorization_url, access_code and reference."""
    payload = {
        'email': email,
        'amount': amount,
        'metadata': metadata,
        'channels': channels or PAYMENT_CHANNELS,
    }
    if callback_url:
        payload['callback_url'] = callback_url
    return _post('/transaction/initialize', payload)


def create_plan(name: str, amount: int, interval: str = 'monthly', description: str = '') -> Dict[str, Any]:
    return _post('/plan', {
        'name': name,
        'amount': amount,
        'interval': interval,
        'description': description,
    })


def create_subscription(customer: str, plan: str, start_date: Optional[str] = None) -> Dict[str, Any]:
    payload = {'customer': customer, 'plan': plan}
    if start_date:
        payload['start_date'] = start_date
    return _post('/subscription', payload)


def enable_subscription(code: str, token: str) -> Dict[str, Any]:
    return _post('/subscription/enable', {'code': code, 'token': token})


def disable_subscription(code: str, token: str) -> Dict[str, Any]:
    return _post('/subscription/disable', {'code': code, 'token': token})


def verify_signature(raw_body: bytes, signature: Optional[str], secret_key: Optional[str] = None) -> bool:
    """Check the ``x-paystack-signature`` header: hex HMAC-SHA512 of the raw body"""
    secret_key = secret_key or _setting('PAYSTACK_SECRET_KEY')
    if not signature or not secret_key:
        return False
    expected = hmac.new(secret_key.encode('utf-8'), raw_body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature)
