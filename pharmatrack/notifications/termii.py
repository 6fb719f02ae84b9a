"""
Termii messaging client (SMS and WhatsApp).
"""
import os
import re
import logging
from typing import Dict, Any

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

TERMII_BASE_URL = 'https://api.ng.termii.com/api'
REQUEST_TIMEOUT = 30


class TermiiError(Exception):
    """Raised when Termii rejects a message or is not configured"""

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details or {}


def _setting(name, default=''):
    return getattr(settings, name, os.getenv(name, default))


def format_phone_number(phone: str) -> str:
    """International format without '+'; local numbers default to Nigeria (234)"""
    formatted = re.sub(r'\s+', '', phone or '')
    formatted = re.sub(r'^\+', '', formatted)
    if formatted.startswith('0'):
        formatted = '234' + formatted[1:]
    return formatted


def get_sender_id(pharmacy) -> str:
    """Pharmacy's configured sender id, else its name cut to 11 characters without spaces"""
    if pharmacy is not None and pharmacy.termii_sender_id:
        return pharmacy.termii_sender_id
    name = pharmacy.name if pharmacy is not None and pharmacy.name else 'PharmaTrack'
    return re.sub(r'\s+', '', name[:11])


def send_message(to: str, message: str, sender_id: str, channel: str = 'sms') -> Dict[str, Any]:
    """
    Send a plain-text message. Returns the provider payload on success
    (``message_id``, ``balance``); raises TermiiError otherwise.
    """
    api_key = _setting('TERMII_API_KEY')
    if not api_key:
        raise TermiiError('Termii API key not configured. Please add your TERMII_API_KEY in settings.')

    payload = {
        'api_key': api_key,
        'to': format_phone_number(to),
        'from': sender_id,
        'sms': message,
        'type': 'plain',
    }
    if channel == 'whatsapp':
        device_id = _setting('TERMII_WHATSAPP_DEVICE_ID')
        if not device_id:
            raise TermiiError('WhatsApp Device ID not configured. Please add your TERMII_WHATSAPP_DEVICE_ID in settings.')
        url = f"{TERMII_BASE_URL}/send"
        payload.update({'channel': 'whatsapp', 'device_id': device_id})
    else:
        url = f"{TERMII_BASE_URL}/sms/send"
        payload['channel'] = 'generic'

    logger.info(f"Sending {channel} message to {payload['to']} via Termii")
    try:
        response = requests.post(url, json=payload, timeout=REQUEST_TIMEOUT)
    except requests.exceptions.RequestException as e:
        logger.error(f"Termii request failed: {str(e)}")
        raise TermiiError(f'Failed to reach Termii: {str(e)}')

    try:
        data = response.json()
    except ValueError:
        data = {}

    if not response.ok or data.get('code') != 'ok':
        logger.error(f"Termii error ({response.status_code}): {data}")
        raise TermiiError(
            data.get('message') or 'Failed to send alert via Termii',
            status_code=response.status_code,
            details=data,
        )

    logger.info(f"Termii message sent: {data.get('message_id')}")
    return data


def send_sms(to: str, message: str, sender_id: str) -> Dict[str, Any]:
    return send_message(to, message, sender_id, channel='sms')


def send_whatsapp(to: str, message: str, sender_id: str) -> Dict[str, Any]:
    return send_message(to, message, sender_id, channel='whatsapp')
