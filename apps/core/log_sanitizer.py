"""
Log sanitization to prevent sensitive data leakage.

Automatically redacts sensitive information from logs including:
- Bearer tokens and JWTs
- Break-glass tokens (header or key=value form)
- Passwords and secrets
- Database URLs with passwords
"""
import re
import logging


class SanitizingFormatter(logging.Formatter):
    """
    Custom log formatter that sanitizes sensitive data.
    """

    # Regex patterns for sensitive data
    PATTERNS = [
        # Bearer tokens
        (re.compile(r'Bearer\s+([a-zA-Z0-9_\-\.]{20,})', re.IGNORECASE), r'Bearer [REDACTED]'),

        # JWT tokens (header.payload.signature format)
        (re.compile(r'eyJ[a-zA-Z0-9_\-]+\.eyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+'), r'[REDACTED_JWT]'),

        # Break-glass tokens
        (re.compile(r'X-Breakglass-Token["\s:]+([^\s,\]}"\']+)', re.IGNORECASE), r'X-Breakglass-Token: [REDACTED]'),
        (re.compile(r'breakglass[_-]?token["\s:=]+([a-zA-Z0-9_\-]{16,})', re.IGNORECASE), r'breakglass_token=[REDACTED]'),

        # Generic tokens
        (re.compile(r'token["\s:=]+([a-zA-Z0-9_\-\.]{32,})', re.IGNORECASE), r'token=[REDACTED]'),

        # Passwords
        (re.compile(r'password["\s:=]+([^\s,\]}"\']+)', re.IGNORECASE), r'password=[REDACTED]'),

        # Secrets
        (re.compile(r'secret["\s:=]+([a-zA-Z0-9_\-]{20,})', re.IGNORECASE), r'secret=[REDACTED]'),

        # Database URLs with passwords
        (re.compile(r'://([^:/\s]+):([^@\s]+)@'), r'://\1:[REDACTED]@'),

        # Authorization headers
        (re.compile(r'Authorization["\s:]+([^\s,\]}"\']+)', re.IGNORECASE), r'Authorization: [REDACTED]'),
    ]

    @classmethod
    def sanitize(cls, text):
        """Apply every redaction pattern to ``text``."""
        for pattern, replacement in cls.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def format(self, record):
        """
        Format log record and sanitize sensitive data.
        """
        return self.sanitize(super().format(record))


class SanitizingFilter(logging.Filter):
    """
    Logging filter that sanitizes sensitive data in log records.

    Sanitizes the message before formatting so every handler benefits,
    including the JSON formatter.
    """

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = SanitizingFormatter.sanitize(record.msg)

        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                SanitizingFormatter.sanitize(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )

        return True
