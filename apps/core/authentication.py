"""
JWT authentication for the administrative API.

Tokens are HS256 JWTs carrying the user id. The principal resolved here is
what the views pass explicitly into the policy resolver and audit trail.
"""
import logging
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Dict, Optional

import jwt
from django.conf import settings
from django.contrib.auth import get_user_model
from rest_framework import exceptions
from rest_framework.authentication import BaseAuthentication, get_authorization_header

logger = logging.getLogger(__name__)


def generate_jwt(user) -> str:
    """
    Generate JWT token for a user.

    Args:
        user: User instance

    Returns:
        JWT token string
    """
    now = datetime.now(dt_timezone.utc)
    payload = {
        'user_id': str(user.pk),
        'exp': now + timedelta(hours=settings.JWT_EXPIRATION_HOURS),
        'iat': now,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def validate_jwt(token: str) -> Optional[Dict[str, Any]]:
    """
    Validate JWT token and return payload.

    Returns:
        Decoded payload dict or None if invalid or expired
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired JWT")
        return None
    except jwt.InvalidTokenError:
        logger.info("Rejected invalid JWT")
        return None


class JWTAuthentication(BaseAuthentication):
    """
    DRF authentication class for ``Authorization: Bearer <jwt>``.

    Returns None when no bearer token is present so that DRF reports an
    unauthenticated request; a malformed or expired token is an error.
    """

    keyword = b'bearer'

    def authenticate(self, request):
        auth = get_authorization_header(request).split()
        if not auth or auth[0].lower() != self.keyword:
            return None
        if len(auth) != 2:
            raise exceptions.AuthenticationFailed('Invalid Authorization header')

        payload = validate_jwt(auth[1].decode('utf-8', errors='replace'))
        if not payload or not payload.get('user_id'):
            raise exceptions.AuthenticationFailed('Invalid or expired token')

        User = get_user_model()
        try:
            user = User.objects.get(pk=payload['user_id'], is_active=True)
        except (User.DoesNotExist, ValueError):
            raise exceptions.AuthenticationFailed('Invalid or expired token')

        return (user, payload)

    def authenticate_header(self, request):
        return 'Bearer'
