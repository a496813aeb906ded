"""
Accessors for the ``ACCOUNTABILITY`` settings block.
"""
from django.conf import settings

DEFAULTS = {
    'BREAKGLASS_DEFAULT_TTL_MINUTES': 15,
    'BREAKGLASS_MAX_TTL_MINUTES': 240,
    'BREAKGLASS_MIN_JUSTIFICATION_LENGTH': 5,
    'AUDIT_DEFAULT_TAKE': 50,
    'AUDIT_MAX_TAKE': 500,
    'AUDIT_DENIALS': False,
}


def accountability_setting(name):
    """Return ``settings.ACCOUNTABILITY[name]`` falling back to the default."""
    overrides = getattr(settings, 'ACCOUNTABILITY', {}) or {}
    if name in overrides:
        return overrides[name]
    return DEFAULTS[name]
