import json
import logging
import traceback

from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger("common")

SENSITIVE_KEYS = {"password", "code", "access_token", "refresh_token", "token", "state"}


class GlobalRequestLoggingMiddleware(MiddlewareMixin):
    """Emit one JSON log line per request start, request end and unhandled exception."""

    def process_request(self, request):
        try:
            logger.info(json.dumps({
                "type": "request_start",
                "user": self._get_user(request),
                "method": request.method,
                "path": request.path,
                "query_params": self._mask(request.GET.dict()),
                "body": self._get_body(request),
            }))
        except Exception as e:
            logger.error("Error logging request start: %s", e)

    def process_response(self, request, response):
        try:
            logger.info(json.dumps({
                "type": "request_end",
                "user": self._get_user(request),
                "method": request.method,
                "path": request.path,
                "status_code": response.status_code,
            }))
        except Exception as e:
            logger.error("Error logging request end: %s", e)
        return response

    def process_exception(self, request, exception):
        try:
            logger.error(json.dumps({
                "type": "exception",
                "user": self._get_user(request),
                "method": request.method,
                "path": request.path,
                "query_params": self._mask(request.GET.dict()),
                "exception": str(exception),
                "traceback": traceback.format_exc(),
            }))
        except Exception as e:
            logger.error("Error logging exception: %s", e)
        return None

    def _get_user(self, request):
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            return "Anonymous"
        return user.email

    def _mask(self, data):
        if not isinstance(data, dict):
            return data
        return {key: ("***" if key in SENSITIVE_KEYS else value) for key, value in data.items()}

    def _get_body(self, request):
        content_type = request.META.get("CONTENT_TYPE", "")
        if not content_type.startswith("application/json"):
            return {}
        try:
            if request.body:
                return self._mask(json.loads(request.body.decode("utf-8")))
        except Exception:
            return "<unreadable body>"
        return {}
