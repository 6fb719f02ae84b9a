"""
Message bodies for SMS/WhatsApp alerts.
"""
from pharmatrack.core.currency import format_currency

ALERT_TYPES = ['expiring', 'low_stock', 'expired', 'daily_summary', 'custom']

DEFAULT_REORDER_SUGGESTION = 50


def build_alert_message(alert_type, pharmacy_name, message='', item_name=None, item_value=None,
                        days_left=None, current_stock=None, suggested_reorder=None, currency='NGN'):
    """Format an alert for the given type; unknown types fall back to a plain pharmacy alert"""
    pharmacy_name = pharmacy_name or 'PharmaTrack'
    item_name = item_name or 'Multiple items'

    if alert_type == 'expiring':
        days = f"{days_left} days" if days_left is not None else 'Soon'
        return (
            f"🚨 {pharmacy_name} AI: Expiry Alert\n\n"
            f"Boss, you have stock nearing expiry!\n\n"
            f"📦 Product: {item_name}\n"
            f"🗓️ Days Left: {days}\n"
            f"💰 Value at Risk: {format_currency(item_value or 0, currency)}\n\n"
            f"💡 AI Suggestion: Apply a 20% Discount now to clear this stock before it's a total loss."
        )

    if alert_type == 'low_stock':
        stock = f"{current_stock} units left" if current_stock is not None else 'Low'
        return (
            f"📉 {pharmacy_name} AI: Low Stock Alert\n\n"
            f"You are running out of a fast-moving item!\n\n"
            f"📦 Product: {item_name}\n"
            f"📊 Current Stock: {stock}\n\n"
            f"🛒 Suggested Reorder: {suggested_reorder or DEFAULT_REORDER_SUGGESTION} units"
        )

    if alert_type == 'expired':
        return (
            f"🚨 {pharmacy_name}: URGENT - Expired Stock\n\n"
            f"📦 Product: {item_name}\n"
            f"⚠️ Status: EXPIRED - Do not sell!\n\n"
            f"Remove from shelves immediately to comply with NAFDAC regulations."
        )

    if alert_type == 'daily_summary':
        return f"📊 {pharmacy_name} Daily Summary\n\n{message}\n\nStay profitable! 💰"

    return f"📢 {pharmacy_name} Alert\n\n{message}"


def build_daily_digest(pharmacy, expiring, low_stock, today, currency='NGN'):
    """
    Summary body for the daily digest: counts plus the first three items of
    each list. ``expiring`` and ``low_stock`` are lists of medications.
    """
    lines = [f"📅 Date: {today.strftime('%A, %d %b %Y')}", '']
    if expiring:
        lines.append(f"⚠️ {len(expiring)} Items Expiring Soon")
        for med in expiring[:3]:
            days_left = (med.expiry_date - today).days
            label = 'EXPIRED' if days_left <= 0 else f"{days_left} days"
            lines.append(f"• {med.name}: {label} ({format_currency(med.effective_price * med.current_stock, currency)})")
        if len(expiring) > 3:
            lines.append(f"  ...and {len(expiring) - 3} more")
        lines.append('')
    if low_stock:
        lines.append(f"📉 {len(low_stock)} Items Low on Stock")
        for med in low_stock[:3]:
            lines.append(f"• {med.name}: {med.current_stock} left")
        if len(low_stock) > 3:
            lines.append(f"  ...and {len(low_stock) - 3} more")
    return '\n'.join(lines).strip()
