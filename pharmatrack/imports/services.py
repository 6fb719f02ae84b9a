"""
Smart CSV import for medications, customers and doctors, plus invoice scans.

The flow is read -> preview -> commit. Mapping is automatic unless the
caller overrides it; every column left unmapped is preserved in the
record's metadata.
"""
import csv
import io
import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from django.db import transaction
from django.utils import timezone

from pharmatrack.catalog.models import Medication, ALL_CATEGORIES
from pharmatrack.catalog.validators import is_valid_nafdac_reg_number, normalize_nafdac_reg_number
from pharmatrack.parties.models import Customer, Doctor
from .configs import IMPORT_CONFIGS, CATEGORY_ALIASES, get_target_fields, get_label
from .field_matcher import auto_map_headers, parse_flexible_date, parse_numeric_value, HIGH_CONFIDENCE

logger = logging.getLogger(__name__)

MAX_IMPORT_ROWS = 5000
PREVIEW_ROWS = 50
DATE_FIELDS = ('expiry_date', 'manufacturing_date', 'date_of_birth')
NUMERIC_FIELDS = ('unit_price', 'selling_price', 'current_stock', 'reorder_level')
CSV_DELIMITERS = ',;\t|'


class ImportValidationError(Exception):
    """Raised when an uploaded file or mapping cannot be imported at all"""


def read_csv(content) -> Tuple[List[str], List[Dict[str, str]]]:
    """
    Decode an uploaded CSV (bytes or str) into headers and row dicts.
    A UTF-8 byte-order mark is dropped and the delimiter is sniffed.
    """
    if isinstance(content, bytes):
        try:
            text = content.decode('utf-8-sig')
        except UnicodeDecodeError:
            text = content.decode('latin-1')
    else:
        text = content.lstrip("\ufeff")

    if not text.strip():
        raise ImportValidationError('The file is empty')

    sample = text[:4096]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=CSV_DELIMITERS)
    except csv.Error:
        dialect = csv.excel

    reader = csv.DictReader(io.StringIO(text), dialect=dialect)
    headers = [h.strip() for h in (reader.fieldnames or []) if h and h.strip()]
    if not headers:
        raise ImportValidationError('No header row found')

    rows = []
    for raw in reader:
        row = {}
        for key, value in raw.items():
            # DictReader puts surplus cells under a None key
            if key is None:
                continue
            row[key.strip()] = value.strip() if isinstance(value, str) else ''
        if any(row.get(header) for header in headers):
            rows.append(row)
    if not rows:
        raise ImportValidationError('No data found in the file')
    if len(rows) > MAX_IMPORT_ROWS:
        raise ImportValidationError(f'Too many rows: {len(rows)} (maximum {MAX_IMPORT_ROWS})')
    return headers, rows


def resolve_mappings(entity_type: str, headers: List[str], rows: List[Dict[str, str]],
                     overrides: Optional[Dict] = None) -> Dict:
    """
    Automatic mappings with caller overrides applied. An override maps a
    header to a target field name, or to ''/None to keep it as metadata.
    """
    if entity_type not in IMPORT_CONFIGS:
        raise ImportValidationError(f'Unknown entity type: {entity_type}')
    target_fields = get_target_fields(entity_type)
    mappings = auto_map_headers(headers, target_fields, rows)

    for header, target in (overrides or {}).items():
        if header not in mappings:
            continue
        if isinstance(target, dict):
            target = target.get('mapped_to')
        if not target:
            mappings[header] = None
            continue
        if target not in target_fields:
            raise ImportValidationError(f'Unknown field "{target}" for {entity_type}')
        # a field can only be fed by one column
        for other, mapping in mappings.items():
            if other != header and mapping and mapping['mapped_to'] == target:
                mappings[other] = None
        mappings[header] = {'mapped_to': target, 'confidence': 1.0}
    return mappings


def split_row(headers: List[str], row: Dict[str, str], mappings: Dict) -> Tuple[Dict, Dict]:
    """(mapped data, metadata) for one row"""
    data, metadata = {}, {}
    for header in headers:
        value = (row.get(header) or '').strip()
        mapping = mappings.get(header)
        if mapping:
            data[mapping['mapped_to']] = value
        elif value:
            metadata[header] = value
    return data, metadata


def validate_row(entity_type: str, data: Dict, pharmacy=None, today: Optional[date] = None) -> Tuple[List, List]:
    """Blocking errors and advisory warnings for a mapped row"""
    today = today or timezone.localdate()
    config = IMPORT_CONFIGS[entity_type]
    errors, warnings = [], []

    for field in config['required']:
        if not data.get(field):
            errors.append(f"Missing required field: {get_label(entity_type, field)}")

    for field in DATE_FIELDS:
        raw = data.get(field)
        if raw and parse_flexible_date(raw) is None:
            errors.append(f"Invalid {get_label(entity_type, field)}: {raw}")

    for field in NUMERIC_FIELDS:
        raw = data.get(field)
        if raw and parse_numeric_value(raw) < 0:
            errors.append(f"{get_label(entity_type, field)} cannot be negative")

    if entity_type == 'medication':
        expiry = parse_flexible_date(data.get('expiry_date'))
        if expiry and expiry <= today:
            warnings.append('Product is already expired')
        nafdac = data.get('nafdac_reg_number')
        if nafdac and not is_valid_nafdac_reg_number(nafdac):
            warnings.append(f'NAFDAC number looks invalid: {nafdac}')
        if pharmacy is not None and data.get('name') and data.get('batch_number'):
            exists = Medication.objects.filter(
                pharmacy=pharmacy, name__iexact=data['name'].strip(), batch_number=data['batch_number'].strip()
            ).exists()
            if exists:
                warnings.append('A product with this name and batch number already exists')
    return errors, warnings


def build_preview(pharmacy, entity_type: str, headers: List[str], rows: List[Dict[str, str]],
                  overrides: Optional[Dict] = None, limit: int = PREVIEW_ROWS) -> Dict:
    mappings = resolve_mappings(entity_type, headers, rows, overrides)
    today = timezone.localdate()

    preview_rows = []
    for index, row in enumerate(rows[:limit]):
        data, metadata = split_row(headers, row, mappings)
        errors, warnings = validate_row(entity_type, data, pharmacy, today)
        for header, mapping in mappings.items():
            if mapping and mapping['confidence'] < HIGH_CONFIDENCE and data.get(mapping['mapped_to']):
                warnings.append(f'"{header}" -> "{mapping["mapped_to"]}" (low confidence)')
        preview_rows.append({
            # +2: spreadsheet row numbers start at 1 and row 1 is the header
            'row_index': index + 2,
            'data': data,
            'metadata': metadata,
            'errors': errors,
            'warnings': warnings,
        })

    unmapped = [header for header, mapping in mappings.items() if not mapping]
    return {
        'entity_type': entity_type,
        'headers': headers,
        'mappings': mappings,
        'fields': get_target_fields(entity_type),
        'labels': IMPORT_CONFIGS[entity_type]['labels'],
        'unmapped_columns': [
            {'source_column': header, 'sample_values': [row.get(header, '') for row in rows[:3]]}
            for header in unmapped
        ],
        'total_rows': len(rows),
        'rows': preview_rows,
    }


def _category(value: str) -> str:
    cleaned = (value or '').strip()
    if cleaned in ALL_CATEGORIES:
        return cleaned
    return CATEGORY_ALIASES.get(cleaned.lower(), 'Other')


def _create_medication(pharmacy, branch, data: Dict, metadata: Dict) -> Medication:
    expiry = parse_flexible_date(data.get('expiry_date'))
    if expiry is None:
        raise ImportValidationError('Invalid expiry date')
    name = (data.get('name') or '').strip()
    if not name:
        raise ImportValidationError('Name is required')

    stock = int(parse_numeric_value(data.get('current_stock')))
    reorder_level = int(parse_numeric_value(data.get('reorder_level'))) or 10
    selling_price = parse_numeric_value(data.get('selling_price'))
    nafdac = data.get('nafdac_reg_number')
    batch_number = (data.get('batch_number') or '').strip() or \
        f"BATCH-{timezone.now().strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:4]}"

    return Medication.objects.create(
        pharmacy=pharmacy,
        branch=branch,
        name=name,
        category=_category(data.get('category')),
        batch_number=batch_number,
        current_stock=max(stock, 0),
        store_quantity=max(stock, 0),
        reorder_level=reorder_level,
        expiry_date=expiry,
        manufacturing_date=parse_flexible_date(data.get('manufacturing_date')),
        unit_price=parse_numeric_value(data.get('unit_price')).quantize(Decimal('0.01')),
        selling_price=selling_price.quantize(Decimal('0.01')) if selling_price > 0 else None,
        barcode_id=(data.get('barcode_id') or '').strip() or None,
        nafdac_reg_number=normalize_nafdac_reg_number(nafdac) if nafdac else None,
        supplier=(data.get('supplier') or '').strip() or None,
        location=(data.get('location') or '').strip() or None,
        metadata=metadata,
    )


def _create_customer(pharmacy, branch, data: Dict, metadata: Dict) -> Customer:
    full_name = (data.get('full_name') or '').strip()
    if not full_name:
        raise ImportValidationError('Name is required')
    return Customer.objects.create(
        pharmacy=pharmacy,
        full_name=full_name,
        phone=data.get('phone') or None,
        email=data.get('email') or None,
        date_of_birth=parse_flexible_date(data.get('date_of_birth')),
        address=data.get('address') or '',
        notes=data.get('notes') or '',
        metadata=metadata,
    )


def _create_doctor(pharmacy, branch, data: Dict, metadata: Dict) -> Doctor:
    full_name = (data.get('full_name') or '').strip()
    if not full_name:
        raise ImportValidationError('Name is required')
    return Doctor.objects.create(
        pharmacy=pharmacy,
        full_name=full_name,
        phone=data.get('phone') or None,
        email=data.get('email') or None,
        hospital_clinic=data.get('hospital_clinic') or None,
        specialty=data.get('specialty') or None,
        license_number=data.get('license_number') or None,
        address=data.get('address') or '',
        notes=data.get('notes') or '',
        metadata=metadata,
    )


CREATORS = {
    'medication': _create_medication,
    'customer': _create_customer,
    'doctor': _create_doctor,
}


def commit_import(pharmacy, entity_type: str, headers: List[str], rows: List[Dict[str, str]],
                  overrides: Optional[Dict] = None, branch=None) -> Dict:
    """
    Create records for every valid row. Each row is saved in its own
    savepoint so one bad row does not undo the rest.
    """
    mappings = resolve_mappings(entity_type, headers, rows, overrides)
    creator = CREATORS[entity_type]
    today = timezone.localdate()

    errors = []
    created_ids = []
    metadata_columns = set()

    with transaction.atomic():
        for index, row in enumerate(rows):
            row_number = index + 2
            data, metadata = split_row(headers, row, mappings)
            row_errors, _ = validate_row(entity_type, data, None, today)
            if row_errors:
                errors.append({'row': row_number, 'message': '; '.join(row_errors)})
                continue
            try:
                with transaction.atomic():
                    record = creator(pharmacy, branch, data, metadata)
            except Exception as e:
                logger.warning(f"Import row {row_number} failed: {e}")
                errors.append({'row': row_number, 'message': str(e)})
                continue
            created_ids.append(record.id)
            metadata_columns.update(metadata.keys())

    logger.info(
        f"Imported {len(created_ids)}/{len(rows)} {entity_type} rows for pharmacy {pharmacy.id} "
        f"({len(errors)} errors)"
    )
    return {
        'entity_type': entity_type,
        'total_rows': len(rows),
        'success_count': len(created_ids),
        'error_count': len(errors),
        'metadata_columns_preserved': len(metadata_columns),
        'created_ids': created_ids,
        'errors': errors,
    }


def _coerce_quantity(value) -> int:
    quantity = int(parse_numeric_value(value))
    return quantity if quantity >= 1 else 1


def normalize_invoice_result(result) -> Dict:
    """
    Flatten an invoice extraction into the import line shape: items at the
    top level, ISO expiry dates or None, quantity at least 1.
    """
    if not isinstance(result, dict):
        result = {}
    items = result.get('items')
    if items is None and isinstance(result.get('result'), dict):
        items = result['result'].get('items')

    normalized = []
    for item in items or []:
        if not isinstance(item, dict):
            continue
        name = (item.get('name') or item.get('productName') or item.get('product_name') or '').strip()
        if not name:
            continue
        expiry = parse_flexible_date(item.get('expiry_date') or item.get('expiryDate'))
        unit_price = parse_numeric_value(item.get('unit_price', item.get('unitPrice')))
        selling_price = item.get('selling_price', item.get('sellingPrice'))
        normalized.append({
            'name': name,
            'quantity': _coerce_quantity(item.get('quantity')),
            'unit_price': str(unit_price),
            'selling_price': str(parse_numeric_value(selling_price)) if selling_price not in (None, '') else None,
            'total_price': str(parse_numeric_value(item.get('total_price', item.get('totalPrice')))),
            'batch_number': (item.get('batch_number') or item.get('batchNumber') or '') or None,
            'expiry_date': expiry.isoformat() if expiry else None,
        })

    supplier = result.get('supplier')
    if isinstance(supplier, str):
        supplier = {'name': supplier}
    if supplier is None and result.get('supplierName'):
        supplier = {'name': result['supplierName']}

    return {
        'supplier': supplier or {},
        'items': normalized,
        'totals': result.get('totals') or {},
        'confidence': result.get('confidence'),
        'notes': result.get('notes'),
    }


def scan_invoice(pharmacy, image_data: str) -> Dict:
    """Extract invoice lines from an image through the AI dispatcher"""
    from pharmatrack.ai.dispatcher import dispatch

    result = dispatch('scan_invoice', {'image_base64': image_data}, pharmacy=pharmacy)
    return normalize_invoice_result(result)
