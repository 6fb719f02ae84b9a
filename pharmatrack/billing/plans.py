"""
Subscription plan catalogue. Gateway amounts are in kobo.
"""
ANNUAL_DISCOUNT = 0.4

SUBSCRIPTION_PERIOD_DAYS = 30
ANNUAL_PERIOD_DAYS = 365


def _annual(monthly_fee):
    return round(monthly_fee * 12 * (1 - ANNUAL_DISCOUNT))


PLAN_CONFIG = {
    'lite': {
        'setup_fee': 0,
        'monthly_fee': 750000,  # ₦7,500/month
        'annual_fee': _annual(750000),
        'is_hybrid': False,
    },
    'starter': {
        'setup_fee': 15000000,  # ₦150,000 one-time setup
        'monthly_fee': 1000000,  # ₦10,000/month maintenance
        'annual_fee': _annual(1000000),
        'is_hybrid': True,
    },
    'pro': {
        'setup_fee': 0,
        'monthly_fee': 3500000,  # ₦35,000/month
        'annual_fee': _annual(3500000),
        'is_hybrid': False,
    },
    'enterprise': {
        'setup_fee': 0,
        'monthly_fee': 0,
        'annual_fee': 0,
        'is_hybrid': False,
    },
}

PLAN_FEATURES = {
    'lite': {
        'name': 'Lite',
        'max_users': 1,
        'max_branches': 1,
        'has_ai_features': False,
        'has_multi_branch': False,
        'has_nafdac_reports': False,
        'has_controlled_drugs_register': False,
        'has_staff_clock_in': False,
        'has_priority_support': False,
    },
    'starter': {
        'name': 'Switch & Save',
        'max_users': 1,
        'max_branches': 1,
        'has_ai_features': False,
        'has_multi_branch': False,
        'has_nafdac_reports': False,
        'has_controlled_drugs_register': False,
        'has_staff_clock_in': False,
        'has_priority_support': False,
    },
    'pro': {
        'name': 'AI Powerhouse',
        'max_users': 999,
        'max_branches': 10,
        'has_ai_features': True,
        'has_multi_branch': True,
        'has_nafdac_reports': True,
        'has_controlled_drugs_register': True,
        'has_staff_clock_in': True,
        'has_priority_support': True,
    },
    'enterprise': {
        'name': 'Enterprise',
        'max_users': 999,
        'max_branches': 999,
        'has_ai_features': True,
        'has_multi_branch': True,
        'has_nafdac_reports': True,
        'has_controlled_drugs_register': True,
        'has_staff_clock_in': True,
        'has_priority_support': True,
    },
}

# Featured marketplace listing prices in kobo, keyed by duration in days
FEATURED_PRICING = {
    7: 100000,  # ₦1,000
    14: 150000,  # ₦1,500
    30: 250000,  # ₦2,500
}


class PlanLimitError(Exception):
    """Raised when an action would exceed the pharmacy's plan limits"""


def get_plan_limits(plan):
    """Feature/limit dictionary for a plan, falling back to starter"""
    limits = dict(PLAN_FEATURES.get(plan) or PLAN_FEATURES['starter'])
    limits['plan'] = plan if plan in PLAN_FEATURES else 'starter'
    limits['can_add_branches'] = limits['max_branches'] > 1
    return limits


def calculate_charge_amount(plan, billing_period='monthly'):
    """
    Amount in kobo to charge when subscribing to a plan.
    Hybrid plans charge their setup fee first; annual billing uses the
    discounted annual fee where one exists.
    """
    config = PLAN_CONFIG.get(plan)
    if config is None:
        raise ValueError('Invalid plan selected')
    if config['is_hybrid']:
        amount = config['setup_fee']
    elif billing_period == 'annual' and config['annual_fee'] > 0:
        amount = config['annual_fee']
    else:
        amount = config['monthly_fee']
    if amount == 0:
        raise ValueError('Enterprise plan requires contacting sales')
    return amount


def infer_plan_from_amount(amount):
    """
    Best-effort plan lookup from a charged amount in kobo, used when a
    gateway event carries no plan metadata.
    """
    if amount in (PLAN_CONFIG['starter']['setup_fee'], PLAN_CONFIG['starter']['monthly_fee'],
                  PLAN_CONFIG['starter']['annual_fee']):
        return 'starter'
    if amount in (PLAN_CONFIG['pro']['monthly_fee'], PLAN_CONFIG['pro']['annual_fee']):
        return 'pro'
    if amount in (PLAN_CONFIG['lite']['monthly_fee'], PLAN_CONFIG['lite']['annual_fee']):
        return 'lite'
    if amount >= 10000000:
        return 'enterprise'
    return 'starter'
