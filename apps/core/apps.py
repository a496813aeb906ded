from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging

from apps.core.conf import DEFAULTS

logger = logging.getLogger(__name__)


def validate_accountability_settings(config):
    """
    Validate the ``ACCOUNTABILITY`` settings block.

    Raises:
        ImproperlyConfigured: On unknown keys or out-of-range values
    """
    unknown = set(config) - set(DEFAULTS)
    if unknown:
        raise ImproperlyConfigured(
            f"Unknown ACCOUNTABILITY setting(s): {', '.join(sorted(unknown))}"
        )

    merged = {**DEFAULTS, **config}

    for name in (
        'BREAKGLASS_DEFAULT_TTL_MINUTES',
        'BREAKGLASS_MAX_TTL_MINUTES',
        'AUDIT_DEFAULT_TAKE',
        'AUDIT_MAX_TAKE',
    ):
        value = merged[name]
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ImproperlyConfigured(
                f"ACCOUNTABILITY['{name}'] must be a positive integer, got {value!r}"
            )

    min_length = merged['BREAKGLASS_MIN_JUSTIFICATION_LENGTH']
    if not isinstance(min_length, int) or isinstance(min_length, bool) or min_length < 1:
        raise ImproperlyConfigured(
            "ACCOUNTABILITY['BREAKGLASS_MIN_JUSTIFICATION_LENGTH'] must be at least 1"
        )

    if merged['BREAKGLASS_DEFAULT_TTL_MINUTES'] > merged['BREAKGLASS_MAX_TTL_MINUTES']:
        raise ImproperlyConfigured(
            "ACCOUNTABILITY['BREAKGLASS_DEFAULT_TTL_MINUTES'] must not exceed "
            "ACCOUNTABILITY['BREAKGLASS_MAX_TTL_MINUTES']"
        )

    if merged['AUDIT_DEFAULT_TAKE'] > merged['AUDIT_MAX_TAKE']:
        raise ImproperlyConfigured(
            "ACCOUNTABILITY['AUDIT_DEFAULT_TAKE'] must not exceed ACCOUNTABILITY['AUDIT_MAX_TAKE']"
        )

    if not isinstance(merged['AUDIT_DENIALS'], bool):
        raise ImproperlyConfigured("ACCOUNTABILITY['AUDIT_DENIALS'] must be a boolean")


def validate_jwt_configuration(jwt_secret, secret_key):
    """
    Validate JWT secret key configuration.

    Raises:
        ImproperlyConfigured: If the secret is missing, short or reused
    """
    hint = "Generate a strong key with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""

    # JWT_SECRET_KEY must be set
    if not jwt_secret:
        raise ImproperlyConfigured(f"JWT_SECRET_KEY must be set in environment variables. {hint}")

    # JWT_SECRET_KEY must be at least 32 characters
    if len(jwt_secret) < 32:
        raise ImproperlyConfigured(
            f"JWT_SECRET_KEY must be at least 32 characters long for security. "
            f"Current length: {len(jwt_secret)}. {hint}"
        )

    # JWT_SECRET_KEY must differ from SECRET_KEY
    if jwt_secret == secret_key:
        raise ImproperlyConfigured(f"JWT_SECRET_KEY must be different from SECRET_KEY. {hint}")

    unique_chars = len(set(jwt_secret))
    if unique_chars < 16:
        raise ImproperlyConfigured(
            f"JWT_SECRET_KEY has insufficient entropy. "
            f"Found only {unique_chars} unique characters, need at least 16. {hint}"
        )


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Perform startup validation checks when Django initializes.

        The ACCOUNTABILITY block is always validated. Secrets are only
        checked when serving requests so that migrations, shell, etc. run
        without full config.
        """
        validate_accountability_settings(getattr(settings, 'ACCOUNTABILITY', {}) or {})

        import sys
        serving = 'runserver' in sys.argv or 'gunicorn' in sys.argv[0]
        if not serving:
            return

        validate_jwt_configuration(
            getattr(settings, 'JWT_SECRET_KEY', None),
            getattr(settings, 'SECRET_KEY', None),
        )
        self._validate_security_settings()

        logger.info("✓ All startup security validations passed")

    def _validate_security_settings(self):
        """Validate general security settings."""
        debug = getattr(settings, 'DEBUG', False)
        secret_key = getattr(settings, 'SECRET_KEY', None)

        if not secret_key:
            raise ImproperlyConfigured("SECRET_KEY must be set in environment variables.")

        if not debug:
            weak_patterns = ['change-me', 'insecure', 'django-insecure', '12345', 'password']
            secret_lower = secret_key.lower()
            for pattern in weak_patterns:
                if pattern in secret_lower:
                    raise ImproperlyConfigured(
                        f"SECRET_KEY appears to be a default or weak value (contains '{pattern}')."
                    )

            if not getattr(settings, 'SECURE_SSL_REDIRECT', False):
                logger.warning(
                    "⚠ SECURE_SSL_REDIRECT is not enabled in production. "
                    "HTTPS should be enforced for security."
                )
