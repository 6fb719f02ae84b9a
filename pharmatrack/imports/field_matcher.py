"""
Fuzzy mapping of spreadsheet headers onto import target fields.

Headers are scored against a synonym dictionary; columns whose header says
nothing useful fall back to a guess from their sample values. Anything left
unmapped is carried into the record's metadata by the importer.
"""
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

FIELD_SYNONYMS = {
    # Medication fields
    'name': ['item', 'description', 'drug name', 'product', 'sku name', 'product name', 'drug', 'medicine',
             'medication', 'item name', 'article'],
    'unit_price': ['p.price', 'cost', 'unit cost', 'rate', 'w-sale', 'land cost', 'purchase price', 'buy price',
                   'cost price', 'wholesale'],
    'selling_price': ['s.price', 'retail', 'msrp', 'unit price', 'dispense price', 'sale price', 'sell price',
                      'retail price', 'selling'],
    'batch_number': ['bn', 'b/n', 'batch', 'lot', 'lot no', 'control no', 'batch no', 'batch number', 'lot number'],
    'expiry_date': ['exp', 'expiry', 'best before', 'valid to', 'e.date', 'expiration', 'exp date', 'expiry date',
                    'expires'],
    'manufacturing_date': ['mfg', 'mfg date', 'manufacturing', 'mfd', 'production date', 'manufactured'],
    'current_stock': ['qty', 'in stock', 'balance', 'soh', 'stock on hand', 'count', 'quantity', 'stock',
                      'stock level', 'available'],
    'category': ['type', 'form', 'dosage form', 'category', 'classification', 'class'],
    'barcode_id': ['barcode', 'upc', 'ean', 'sku', 'code', 'product code', 'item code'],
    'nafdac_reg_number': ['nafdac', 'reg no', 'registration', 'nafdac no', 'reg number'],
    'reorder_level': ['reorder', 'minimum', 'min stock', 'min qty', 'threshold', 'alert level'],
    'supplier': ['vendor', 'manufacturer', 'supplier', 'source', 'distributor'],
    'location': ['shelf', 'bin', 'location', 'storage', 'rack', 'position'],

    # Customer fields
    'full_name': ['patient', 'customer', 'name', 'patient name', 'customer name', 'client', 'client name',
                  'full name'],
    'phone': ['mobile', 'gsm', 'contact', 'tel', 'phone no', 'phone number', 'cell', 'telephone', 'mobile no'],
    'email': ['email', 'e-mail', 'email address', 'mail'],
    'date_of_birth': ['dob', 'birth date', 'birthday', 'date of birth', 'age', 'born'],
    'address': ['address', 'location', 'residence', 'home address', 'street'],

    # Doctor fields
    'hospital_clinic': ['hospital', 'clinic', 'facility', 'workplace', 'practice', 'institution'],
    'specialty': ['specialty', 'specialization', 'department', 'field', 'discipline'],
    'license_number': ['license', 'license no', 'medical license', 'practitioner no', 'reg no', 'mdcn'],
}

HIGH_CONFIDENCE = 0.7
MIN_CONFIDENCE = 0.3
VALUE_MATCH_CONFIDENCE = 0.5

DATE_PATTERNS = [
    re.compile(r'^\d{4}-\d{2}-\d{2}$'),
    re.compile(r'^\d{2}/\d{2}/\d{4}$'),
    re.compile(r'^\d{2}-\d{2}-\d{4}$'),
    re.compile(r'^\d{2}/\d{4}$'),
    re.compile(r'^\d{2}-\d{4}$'),
    re.compile(r'^(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)', re.IGNORECASE),
]

BATCH_PATTERNS = [
    re.compile(r'^[A-Z]{2,}\d+$', re.IGNORECASE),
    re.compile(r'^BN?\d+$', re.IGNORECASE),
    re.compile(r'^[A-Z0-9]{6,}$', re.IGNORECASE),
]

PHONE_PATTERNS = [
    re.compile(r'^0[789]\d{9}$'),
    re.compile(r'^\+234\d{10}$'),
    re.compile(r'^\d{10,11}$'),
]

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
NUMERIC_PATTERN = re.compile(r'^[\d,]+\.?\d*$')
CURRENCY_CHARS = re.compile(r'[₦$,\s]')

FALLBACK_DATE_FORMATS = [
    '%Y/%m/%d', '%d %b %Y', '%d %B %Y', '%b %d %Y', '%b %d, %Y', '%B %d %Y', '%B %d, %Y',
    '%d-%b-%Y', '%d-%b-%y', '%b-%Y', '%b %Y', '%B %Y', '%m-%Y', '%d.%m.%Y',
]


def normalize(value: str) -> str:
    return re.sub(r'[_\-\s./]+', ' ', value.lower()).strip()


def similarity(first: str, second: str) -> float:
    """1 for an exact match, 0.9 when one contains the other, 0.7 scaled by shared words"""
    s1 = normalize(first)
    s2 = normalize(second)

    if s1 == s2:
        return 1.0
    if s1 in s2 or s2 in s1:
        return 0.9

    words1 = s1.split(' ')
    words2 = s2.split(' ')
    common = [word for word in words1 if word in words2]
    if common:
        return 0.7 * (len(common) / max(len(words1), len(words2)))
    return 0.0


def detect_field_type_from_values(values: List[str]) -> Optional[str]:
    """
    Guess what a column holds from its first ten values.

    Returns one of 'expiry_date', 'date', 'batch_number', 'phone', 'email',
    'price', 'numeric' or None.
    """
    samples = [value for value in values[:10] if value and value.strip()]
    if not samples:
        return None

    date_matches = [v for v in samples if any(p.match(v.strip()) for p in DATE_PATTERNS)]
    if len(date_matches) >= len(samples) * 0.7:
        this_year = date.today().year
        has_future_year = False
        for value in samples:
            year = re.search(r'20[2-9]\d', value)
            if year and int(year.group(0)) > this_year:
                has_future_year = True
                break
        return 'expiry_date' if has_future_year else 'date'

    batch_matches = [v for v in samples if any(p.match(v.strip()) for p in BATCH_PATTERNS)]
    if len(batch_matches) >= len(samples) * 0.5:
        return 'batch_number'

    phone_matches = [v for v in samples if any(p.match(re.sub(r'[\s\-()]', '', v)) for p in PHONE_PATTERNS)]
    if len(phone_matches) >= len(samples) * 0.5:
        return 'phone'

    email_matches = [v for v in samples if EMAIL_PATTERN.match(v.strip())]
    if len(email_matches) >= len(samples) * 0.5:
        return 'email'

    numeric_matches = [v for v in samples if NUMERIC_PATTERN.match(CURRENCY_CHARS.sub('', v))]
    if len(numeric_matches) >= len(samples) * 0.7:
        has_currency = any(re.search(r'[₦$]', v) for v in samples)
        has_decimals = any(re.search(r'\.\d{2}$', v) for v in samples)
        return 'price' if has_currency or has_decimals else 'numeric'

    return None


def _field_for_detected_type(detected: str, target_fields: List[str]) -> Optional[str]:
    for field in target_fields:
        if detected == 'price':
            if 'price' in field:
                return field
        elif detected == 'numeric':
            if 'stock' in field or 'quantity' in field:
                return field
        elif detected == 'date':
            if 'date' in field:
                return field
        elif field == detected:
            return field
    return None


def match_header_to_field(header: str, target_fields: List[str],
                          column_values: Optional[List[str]] = None) -> Optional[Dict]:
    """Best target field for a header as {'field', 'confidence'}, or None below 0.3"""
    normalized_header = normalize(header)
    best = None

    for field in target_fields:
        for synonym in FIELD_SYNONYMS.get(field, [field]):
            score = similarity(normalized_header, synonym)
            if score > 0 and (best is None or score > best['confidence']):
                best = {'field': field, 'confidence': score}

        direct_score = similarity(normalized_header, field.replace('_', ' '))
        if direct_score > 0 and (best is None or direct_score > best['confidence']):
            best = {'field': field, 'confidence': direct_score}

    if best is None and column_values is not None:
        detected = detect_field_type_from_values(column_values)
        if detected:
            field = _field_for_detected_type(detected, target_fields)
            if field:
                best = {'field': field, 'confidence': VALUE_MATCH_CONFIDENCE}

    if best and best['confidence'] >= MIN_CONFIDENCE:
        return best
    return None


def auto_map_headers(headers: List[str], target_fields: List[str], rows: List[Dict[str, str]]) -> Dict:
    """
    Map every header to a distinct target field or None.

    High-confidence matches claim their fields first; the remaining headers
    then compete for the fields still free. None means the column is kept
    as metadata.
    """
    mappings = {}
    used_fields = set()

    for header in headers:
        column_values = [row.get(header) or '' for row in rows]
        match = match_header_to_field(header, target_fields, column_values)
        if match and match['confidence'] >= HIGH_CONFIDENCE and match['field'] not in used_fields:
            mappings[header] = {'mapped_to': match['field'], 'confidence': match['confidence']}
            used_fields.add(match['field'])

    for header in headers:
        if header in mappings:
            continue
        column_values = [row.get(header) or '' for row in rows]
        remaining = [field for field in target_fields if field not in used_fields]
        match = match_header_to_field(header, remaining, column_values)
        if match and match['field'] not in used_fields:
            mappings[header] = {'mapped_to': match['field'], 'confidence': match['confidence']}
            used_fields.add(match['field'])
        else:
            mappings[header] = None

    return mappings


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_flexible_date(value: Optional[str]) -> Optional[date]:
    """
    Parse the date spellings seen in pharmacy spreadsheets.

    Slash dates are read month-first unless the first part is above 12, in
    which case it is taken as the day. MM/YYYY expiries land on the first of
    the month.
    """
    if not value or not str(value).strip():
        return None
    cleaned = str(value).strip()

    match = re.match(r'^(\d{4})-(\d{2})-(\d{2})$', cleaned)
    if match:
        return _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = re.match(r'^(\d{1,2})/(\d{1,2})/(\d{4})$', cleaned)
    if match:
        first, second, year = int(match.group(1)), int(match.group(2)), int(match.group(3))
        if first > 12:
            return _safe_date(year, second, first)
        return _safe_date(year, first, second)

    match = re.match(r'^(\d{1,2})/(\d{4})$', cleaned)
    if match:
        return _safe_date(int(match.group(2)), int(match.group(1)), 1)

    match = re.match(r'^(\d{1,2})-(\d{1,2})-(\d{4})$', cleaned)
    if match:
        return _safe_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))

    try:
        return datetime.fromisoformat(cleaned).date()
    except ValueError:
        pass

    for fmt in FALLBACK_DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    return None


def parse_numeric_value(value) -> Decimal:
    """Number from a cell with currency symbols and thousands separators; 0 when unreadable"""
    if value is None:
        return Decimal('0')
    cleaned = CURRENCY_CHARS.sub('', str(value))
    match = re.match(r'^[+-]?(\d+\.?\d*|\.\d+)', cleaned)
    if not match:
        return Decimal('0')
    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return Decimal('0')
