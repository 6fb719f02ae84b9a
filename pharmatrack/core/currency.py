"""Currency formatting and minor-unit conversion"""
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings

CURRENCY_SYMBOLS = {
    'NGN': '₦',
    'USD': '$',
    'GBP': '£',
    'GHS': 'GH₵',
    'KES': 'KSh',
}

TWO_PLACES = Decimal('0.01')


def to_decimal(value) -> Decimal:
    if value is None or value == '':
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def format_currency(amount, currency=None) -> str:
    """Format an amount with the currency symbol and thousands separators, e.g. ₦1,250.00"""
    currency = (currency or getattr(settings, 'DEFAULT_CURRENCY', 'NGN')).upper()
    symbol = CURRENCY_SYMBOLS.get(currency, f'{currency} ')
    value = to_decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    sign = '-' if value < 0 else ''
    return f"{sign}{symbol}{abs(value):,.2f}"


def to_minor_units(amount) -> int:
    """Naira to kobo"""
    return int((to_decimal(amount) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def from_minor_units(amount) -> Decimal:
    """Kobo to naira"""
    return (to_decimal(amount) / 100).quantize(TWO_PLACES)
