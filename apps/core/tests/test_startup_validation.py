"""
Tests for startup configuration validation.
"""
import pytest
from django.core.exceptions import ImproperlyConfigured

from apps.core.apps import validate_accountability_settings, validate_jwt_configuration
from apps.core.conf import DEFAULTS, accountability_setting

STRONG_SECRET = 'Qm7vR2xK9pL4sT8wY1zB6nC3dF5gH0jE'


class TestAccountabilitySettings:
    """validate_accountability_settings."""

    def test_defaults_are_valid(self):
        validate_accountability_settings({})
        validate_accountability_settings(dict(DEFAULTS))

    def test_unknown_key(self):
        with pytest.raises(ImproperlyConfigured, match='BREAKGLASS_TTL'):
            validate_accountability_settings({'BREAKGLASS_TTL': 10})

    @pytest.mark.parametrize('name', [
        'BREAKGLASS_DEFAULT_TTL_MINUTES',
        'BREAKGLASS_MAX_TTL_MINUTES',
        'AUDIT_DEFAULT_TAKE',
        'AUDIT_MAX_TAKE',
        'BREAKGLASS_MIN_JUSTIFICATION_LENGTH',
    ])
    @pytest.mark.parametrize('value', [0, -1, '10', True])
    def test_numeric_settings_must_be_positive_integers(self, name, value):
        with pytest.raises(ImproperlyConfigured):
            validate_accountability_settings({name: value})

    def test_default_ttl_within_maximum(self):
        with pytest.raises(ImproperlyConfigured, match='must not exceed'):
            validate_accountability_settings({
                'BREAKGLASS_DEFAULT_TTL_MINUTES': 60,
                'BREAKGLASS_MAX_TTL_MINUTES': 30,
            })

    def test_default_take_within_maximum(self):
        with pytest.raises(ImproperlyConfigured, match='must not exceed'):
            validate_accountability_settings({'AUDIT_DEFAULT_TAKE': 600})

    def test_audit_denials_must_be_boolean(self):
        with pytest.raises(ImproperlyConfigured):
            validate_accountability_settings({'AUDIT_DENIALS': 'yes'})

    def test_accessor_prefers_override(self, settings):
        settings.ACCOUNTABILITY = {'AUDIT_MAX_TAKE': 10}

        assert accountability_setting('AUDIT_MAX_TAKE') == 10
        assert accountability_setting('AUDIT_DEFAULT_TAKE') == DEFAULTS['AUDIT_DEFAULT_TAKE']


class TestJWTConfiguration:
    """validate_jwt_configuration."""

    def test_strong_secret_passes(self):
        validate_jwt_configuration(STRONG_SECRET, 'django-secret')

    def test_missing_secret(self):
        with pytest.raises(ImproperlyConfigured, match='must be set'):
            validate_jwt_configuration('', 'django-secret')

    def test_short_secret(self):
        with pytest.raises(ImproperlyConfigured, match='at least 32 characters'):
            validate_jwt_configuration('short', 'django-secret')

    def test_secret_reused_from_django(self):
        with pytest.raises(ImproperlyConfigured, match='different from SECRET_KEY'):
            validate_jwt_configuration(STRONG_SECRET, STRONG_SECRET)

    def test_low_entropy_secret(self):
        with pytest.raises(ImproperlyConfigured, match='insufficient entropy'):
            validate_jwt_configuration('ab' * 20, 'django-secret')
