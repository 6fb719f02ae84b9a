"""
Field validators for catalog data
"""
import re

NAFDAC_REG_NUMBER_RE = re.compile(r'^[A-Z0-9]{2}-\d{4,6}[A-Z]?$')


def normalize_nafdac_reg_number(value: str) -> str:
    """Uppercase and strip spaces, e.g. ' a4-1234 ' -> 'A4-1234'"""
    return (value or '').strip().upper().replace(' ', '')


def is_valid_nafdac_reg_number(value: str) -> bool:
    """
    NAFDAC registration numbers look like ``A4-1234``, ``04-5678L`` or
    ``B1-123456``: two alphanumerics, a hyphen, 4-6 digits and an
    optional letter suffix.
    """
    normalized = normalize_nafdac_reg_number(value)
    if not normalized:
        return False
    return bool(NAFDAC_REG_NUMBER_RE.match(normalized))
