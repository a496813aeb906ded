"""
Core middleware for request processing.
"""
import uuid
import logging
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)


class RequestIDMiddleware(MiddlewareMixin):
    """
    Inject a unique request_id into each request for tracing.

    The id travels into audit entries through ``AuditContext.from_request``
    and back to the client in the ``X-Request-ID`` header.
    """

    def process_request(self, request):
        """Generate and attach request_id to the request."""
        request.request_id = request.META.get('HTTP_X_REQUEST_ID') or str(uuid.uuid4())

    def process_response(self, request, response):
        """Add request_id to response headers."""
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        return response
