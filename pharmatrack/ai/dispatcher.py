"""
AI action dispatcher.

Requests arrive as ``{action, payload}``. Aliases resolve to a canonical
action, the handler builds its prompt and calls Gemini, and answers are
cached for ``AI_CACHE_TTL`` seconds under a SHA-256 of the action and the
canonical JSON of its payload.
"""
import os
import re
import json
import hashlib
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from pharmatrack.core.currency import CURRENCY_SYMBOLS
from . import prompts
from .gemini import GeminiClient, AIServiceError

logger = logging.getLogger(__name__)

ACTION_ALIASES = {
    'interaction_check': 'check_drug_interactions',
    'upsell_suggestion': 'smart_upsell',
    'business_analysis': 'generate_insights',
}

MAX_INTERACTION_MEDICATIONS = 50
MAX_UPSELL_INVENTORY = 50
MAX_ATTENTION_ITEMS = 10
CACHE_PREFIX = 'ai_action'


class UnknownActionError(AIServiceError):
    """Raised for an action the dispatcher does not handle"""


def _setting(name, default=''):
    return getattr(settings, name, os.getenv(name, default))


def resolve_action(action: str) -> str:
    canonical = ACTION_ALIASES.get(action, action)
    if canonical not in HANDLERS:
        raise UnknownActionError(f'Unknown action: {action}')
    return canonical


def make_action_cache_key(action: str, payload: Any) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(',', ':'), default=str)
    digest = hashlib.sha256(f"{action}:{canonical}".encode('utf-8')).hexdigest()
    return f"{CACHE_PREFIX}:{digest}"


def _to_float(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _to_date(value) -> Optional[date]:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except (TypeError, ValueError):
        return None


def _money(value: float, currency: str) -> str:
    symbol = CURRENCY_SYMBOLS.get(currency, f'{currency} ')
    return f"{symbol}{value:,.0f}"


# Drug interactions
def handle_drug_interactions(payload: Dict, client: GeminiClient, pharmacy=None) -> Dict:
    medications = payload.get('medications') or []
    if len(medications) < 2:
        return {
            'interactions': [],
            'overall_safety': 'safe',
            'summary': 'Single medication - no interaction check needed.',
        }
    if len(medications) > MAX_INTERACTION_MEDICATIONS:
        raise AIServiceError(f'Too many medications. Maximum allowed: {MAX_INTERACTION_MEDICATIONS}')

    names = [m.get('name', '') if isinstance(m, dict) else str(m) for m in medications]
    user_content = f"Check for drug interactions between these medications: {', '.join(names)}"
    return client.generate_from_prompt(prompts.DRUG_INTERACTION, user_content)


# Smart upsell
def _pharmacy_inventory(pharmacy) -> List[Dict]:
    from pharmatrack.catalog.models import Medication

    rows = Medication.objects.filter(
        pharmacy=pharmacy, current_stock__gt=0, expiry_date__gt=timezone.localdate()
    ).values('id', 'name', 'category', 'current_stock', 'selling_price', 'unit_price')
    return [
        {**row, 'selling_price': _to_float(row['selling_price'] or row['unit_price'])}
        for row in rows[:200]
    ]


def handle_smart_upsell(payload: Dict, client: GeminiClient, pharmacy=None) -> Dict:
    cart_items = payload.get('cart_items') or payload.get('cartItems') or []
    if not cart_items:
        return {'suggestions': [], 'cart_context': 'Empty cart - no suggestions available.'}

    inventory = payload.get('available_inventory') or payload.get('availableInventory')
    if inventory is None and pharmacy is not None:
        inventory = _pharmacy_inventory(pharmacy)
    inventory = inventory or []

    currency = payload.get('currency') or getattr(pharmacy, 'currency', None) or _setting('DEFAULT_CURRENCY', 'NGN')
    cart_ids = {item.get('id') for item in cart_items if item.get('id') is not None}
    cart_names = {(item.get('name') or '').lower() for item in cart_items}
    available = [
        item for item in inventory
        if _to_float(item.get('current_stock')) > 0
        and item.get('id') not in cart_ids
        and (item.get('name') or '').lower() not in cart_names
    ][:MAX_UPSELL_INVENTORY]

    cart_description = ', '.join(f"{item.get('name')} ({item.get('category') or 'General'})" for item in cart_items)
    available_description = ', '.join(
        f"{item.get('name')} ({item.get('category')}, {_money(_to_float(item.get('selling_price')), currency)})"
        for item in available
    )
    user_content = (
        f"Customer's cart contains: {cart_description}\n\n"
        f"Available products in our inventory that could be suggested:\n"
        f"{available_description or 'Use general pharmacy product suggestions'}\n\n"
        f"Suggest complementary products that would genuinely help this customer."
    )
    return client.generate_from_prompt(prompts.SMART_UPSELL, user_content)


# Business insights
def compute_inventory_metrics(medications: List[Dict], today: Optional[date] = None) -> Dict:
    """Headline inventory numbers fed to the insights prompt"""
    today = today or timezone.localdate()
    total_value = 0.0
    expired = expiring = low_stock = out_of_stock = 0
    category_totals = {}

    for med in medications:
        stock = _to_float(med.get('current_stock'))
        value = stock * _to_float(med.get('selling_price') or med.get('unit_price'))
        total_value += value
        category = med.get('category') or 'Uncategorized'
        category_totals[category] = category_totals.get(category, 0.0) + value

        expiry = _to_date(med.get('expiry_date'))
        if expiry is not None:
            days_left = (expiry - today).days
            if days_left <= 0:
                expired += 1
            elif days_left <= 30:
                expiring += 1
        if stock <= _to_float(med.get('reorder_level')):
            low_stock += 1
        if stock == 0:
            out_of_stock += 1

    top_categories = sorted(category_totals.items(), key=lambda pair: pair[1], reverse=True)[:5]
    return {
        'total_products': len(medications),
        'total_inventory_value': round(total_value, 2),
        'expired': expired,
        'expiring_30_days': expiring,
        'low_stock': low_stock,
        'out_of_stock': out_of_stock,
        'top_categories': [{'category': name, 'value': round(value, 2)} for name, value in top_categories],
    }


def summarize_sales(sales: List[Dict]) -> Dict:
    totals = [_to_float(sale.get('total_price', sale.get('total'))) for sale in sales]
    revenue = sum(totals)
    return {
        'transactions': len(totals),
        'revenue': round(revenue, 2),
        'average_transaction': round(revenue / len(totals), 2) if totals else 0.0,
    }


def attention_items(medications: List[Dict], today: Optional[date] = None) -> List[str]:
    """Up to ten 'name: issue, issue' lines for expiring or low-stock items"""
    today = today or timezone.localdate()
    lines = []
    for med in medications:
        expiry = _to_date(med.get('expiry_date'))
        days_left = (expiry - today).days if expiry else None
        stock = _to_float(med.get('current_stock'))
        reorder_level = _to_float(med.get('reorder_level'))
        if not ((days_left is not None and days_left <= 30) or stock <= reorder_level):
            continue
        issues = []
        if days_left is not None and days_left <= 0:
            issues.append('EXPIRED')
        elif days_left is not None and days_left <= 30:
            issues.append(f'expires in {days_left} days')
        if stock == 0:
            issues.append('OUT OF STOCK')
        elif stock <= reorder_level:
            issues.append('low stock')
        lines.append(f"{med.get('name')}: {', '.join(issues)}")
        if len(lines) >= MAX_ATTENTION_ITEMS:
            break
    return lines


def _pharmacy_insight_data(pharmacy):
    from pharmatrack.catalog.models import Medication
    from pharmatrack.pos.models import Sale

    medications = list(Medication.objects.filter(pharmacy=pharmacy).values(
        'name', 'category', 'current_stock', 'reorder_level', 'expiry_date', 'selling_price', 'unit_price'
    ))
    since = timezone.now() - timedelta(days=30)
    sales = [
        {'total_price': _to_float(total)}
        for total in Sale.objects.filter(pharmacy=pharmacy, status='completed', created_at__gte=since)
        .values_list('total', flat=True)
    ]
    return medications, sales


def handle_generate_insights(payload: Dict, client: GeminiClient, pharmacy=None) -> Dict:
    medications = payload.get('medications')
    sales = payload.get('sales')
    if medications is None and pharmacy is not None:
        medications, db_sales = _pharmacy_insight_data(pharmacy)
        if sales is None:
            sales = db_sales
    medications = medications or []
    sales = sales or []
    currency = payload.get('currency') or getattr(pharmacy, 'currency', None) or 'NGN'

    metrics = compute_inventory_metrics(medications)
    sales_summary = summarize_sales(sales)
    attention = attention_items(medications)

    if metrics['top_categories']:
        categories_text = '\n'.join(
            f"- {row['category']}: {_money(row['value'], currency)}" for row in metrics['top_categories']
        )
    else:
        categories_text = 'No data available'
    if sales_summary['transactions']:
        sales_text = (
            f"- Total Transactions: {sales_summary['transactions']}\n"
            f"- Total Revenue: {_money(sales_summary['revenue'], currency)}\n"
            f"- Average Transaction: {_money(sales_summary['average_transaction'], currency)}"
        )
    else:
        sales_text = 'No recent sales data'

    user_content = f"""PHARMACY INVENTORY ANALYSIS REQUEST
Currency: {currency}

CURRENT INVENTORY METRICS:
- Total Inventory Value: {currency} {metrics['total_inventory_value']:,.2f}
- Total Products: {metrics['total_products']}
- Expired Products: {metrics['expired']}
- Expiring in 30 Days: {metrics['expiring_30_days']}
- Low Stock Items: {metrics['low_stock']}
- Out of Stock: {metrics['out_of_stock']}

TOP CATEGORIES BY VALUE:
{categories_text}

RECENT SALES TRENDS:
{sales_text}

ITEMS NEEDING ATTENTION:
{chr(10).join('- ' + line for line in attention) or 'No immediate concerns'}

Provide actionable insights to maximize profit and reduce waste."""

    result = client.generate_from_prompt(prompts.BUSINESS_INSIGHTS, user_content)
    if isinstance(result, dict):
        result['computed_metrics'] = {**metrics, 'sales': sales_summary}
    return result


# Search
def handle_ai_search(payload: Dict, client: GeminiClient, pharmacy=None) -> Dict:
    query = (payload.get('query') or '').strip()
    if len(query) < 2:
        return {'searchTerms': [], 'interpretation': 'Query too short', 'searchIn': []}
    user_content = (
        f'User search query: "{query}"\n\n'
        f'Interpret this pharmacy search query and extract the search parameters.'
    )
    return client.generate_from_prompt(prompts.AI_SEARCH, user_content)


# Invoice scanning
DATA_URI_RE = re.compile(r'^data:([\w.+-]+/[\w.+-]+);base64,')


def split_data_uri(image_data: str):
    """(mime_type, base64_body); jpeg when there is no data-URI prefix"""
    match = DATA_URI_RE.match(image_data)
    if match:
        return match.group(1), image_data[match.end():]
    return 'image/jpeg', image_data


def handle_scan_invoice(payload: Dict, client: GeminiClient, pharmacy=None) -> Dict:
    image_data = payload.get('image_base64') or payload.get('imageBase64') or payload.get('imageUrl') \
        or payload.get('image')
    if not image_data:
        raise AIServiceError('No invoice image provided. Send imageBase64 or imageUrl.')

    mime_type, content = split_data_uri(image_data)
    logger.info(f"Processing invoice image, mime type {mime_type}, {len(content)} chars")
    parsed = client.generate_json([
        {'text': prompts.SCAN_INVOICE},
        {'inlineData': {'mimeType': mime_type, 'data': content}},
    ])
    if isinstance(parsed, dict) and 'items' not in parsed and isinstance(parsed.get('result'), dict):
        if 'items' in parsed['result']:
            parsed['items'] = parsed['result']['items']
    if isinstance(parsed, dict):
        logger.info(f"Extracted {len(parsed.get('items') or [])} items from invoice")
    return parsed


HANDLERS = {
    'check_drug_interactions': handle_drug_interactions,
    'smart_upsell': handle_smart_upsell,
    'generate_insights': handle_generate_insights,
    'ai_search': handle_ai_search,
    'scan_invoice': handle_scan_invoice,
}


def dispatch(action: str, payload: Optional[Dict] = None, pharmacy=None,
             client: Optional[GeminiClient] = None, use_cache: bool = True) -> Any:
    """
    Run an AI action and return its JSON result.

    Raises UnknownActionError, RateLimitError or AIServiceError.
    """
    canonical = resolve_action(action)
    payload = payload or {}
    pharmacy_id = getattr(pharmacy, 'id', None)
    logger.info(f"Processing AI action {canonical} for pharmacy {pharmacy_id}")

    cache_key = None
    if use_cache:
        cache_key = make_action_cache_key(canonical, {'payload': payload, 'pharmacy': pharmacy_id})
        cached = cache.get(cache_key)
        if cached is not None:
            logger.debug(f"AI cache HIT for {canonical}")
            return cached

    result = HANDLERS[canonical](payload, client or GeminiClient(), pharmacy)

    if cache_key:
        cache.set(cache_key, result, int(_setting('AI_CACHE_TTL', 300)))
    return result

