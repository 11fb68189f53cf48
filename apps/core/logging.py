"""
Structured JSON logging, request context, PII masking and security event
logging. Nothing here touches models, so the LOGGING config can load it
before the app registry is ready.
"""
import json
import logging
import re
import threading
import traceback
from datetime import datetime, timezone as dt_timezone
from django.utils import timezone
import sentry_sdk

_request_context = threading.local()


def get_current_request_id():
    return getattr(_request_context, 'request_id', None)


def get_current_store_id():
    return getattr(_request_context, 'store_id', None)


def set_request_context(request_id=None, store_id=None):
    """Bind the ids of the request being served to the current thread."""
    if request_id is not None:
        _request_context.request_id = request_id
    _request_context.store_id = store_id


def clear_request_context():
    _request_context.request_id = None
    _request_context.store_id = None


class RequestContextLogFilter(logging.Filter):
    """Copy request_id and store_id of the current request onto log records."""

    def filter(self, record):
        if not getattr(record, 'request_id', None):
            record.request_id = get_current_request_id()
        if not getattr(record, 'store_id', None):
            record.store_id = get_current_store_id()
        return True


class PIIMasker:
    """
    Mask customer PII and credentials before they reach log output.
    """

    PHONE_PATTERN = re.compile(r'\+?\d{10,15}')
    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
    SECRET_PATTERN = re.compile(
        r'(api[_-]?key|token|secret|password|smtp_password|auth)["\']?\s*[:=]\s*["\']?([^"\'\s,}]+)',
        re.IGNORECASE
    )
    CREDIT_CARD_PATTERN = re.compile(r'\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b')

    SENSITIVE_FIELDS = {
        'phone', 'contact_phone',
        'email', 'email_address',
        'password', 'password_hash', 'smtp_password',
        'api_key', 'access_token', 'token', 'client_secret',
        'secret', 'secret_key',
        'credit_card', 'card_number', 'cvv',
        'shipping_address', 'billing_address',
    }

    @classmethod
    def mask_phone(cls, text):
        if not isinstance(text, str):
            return text
        return cls.PHONE_PATTERN.sub(lambda m: m.group(0)[:3] + '*' * (len(m.group(0)) - 3), text)

    @classmethod
    def mask_email(cls, text):
        """Keep the first character of the local part and the domain."""
        if not isinstance(text, str):
            return text

        def mask_email_match(match):
            username, _, domain = match.group(0).partition('@')
            if len(username) > 1:
                username = username[0] + '*' * (len(username) - 1)
            return f"{username}@{domain}"

        return cls.EMAIL_PATTERN.sub(mask_email_match, text)

    @classmethod
    def mask_secrets(cls, text):
        if not isinstance(text, str):
            return text
        return cls.SECRET_PATTERN.sub(r'\1: ********', text)

    @classmethod
    def mask_credit_cards(cls, text):
        if not isinstance(text, str):
            return text
        return cls.CREDIT_CARD_PATTERN.sub(lambda m: '*' * (len(m.group(0)) - 4) + m.group(0)[-4:], text)

    @classmethod
    def mask_text(cls, text):
        """Apply all masking patterns to text."""
        if not isinstance(text, str):
            return text
        text = cls.mask_credit_cards(text)
        text = cls.mask_phone(text)
        text = cls.mask_email(text)
        text = cls.mask_secrets(text)
        return text

    @classmethod
    def mask_dict(cls, data):
        """Recursively mask sensitive values in a dictionary."""
        if not isinstance(data, dict):
            return data

        masked = {}
        for key, value in data.items():
            if key.lower() in cls.SENSITIVE_FIELDS:
                masked[key] = '********' if value else value
            elif isinstance(value, dict):
                masked[key] = cls.mask_dict(value)
            elif isinstance(value, list):
                masked[key] = [
                    cls.mask_dict(item) if isinstance(item, dict) else cls.mask_text(item)
                    for item in value
                ]
            elif isinstance(value, str):
                masked[key] = cls.mask_text(value)
            else:
                masked[key] = value

        return masked


# LogRecord attributes that are not user-supplied extras
_RESERVED_RECORD_ATTRS = {
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs', 'message',
    'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
    'taskName', 'request_id', 'store_id', 'task_id', 'task_name',
}


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.

    Includes request_id and store_id (set by RequestContextLogFilter) and
    Celery task ids when present. PII in messages and extras is masked.
    """

    def format(self, record):
        log_data = {
            'timestamp': datetime.now(dt_timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for attr in ('request_id', 'store_id', 'task_id', 'task_name'):
            value = getattr(record, attr, None)
            if value is not None:
                log_data[attr] = str(value)

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': PIIMasker.mask_text(str(record.exc_info[1])),
                'traceback': [PIIMasker.mask_text(line) for line in traceback.format_exception(*record.exc_info)],
            }

        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_ATTRS or key.startswith('_'):
                continue
            if isinstance(value, dict):
                value = PIIMasker.mask_dict(value)
            elif isinstance(value, str):
                value = PIIMasker.mask_text(value)
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = PIIMasker.mask_text(str(value))

        return json.dumps(log_data)


class SecurityLogger:
    """
    Centralized logging of security events on the ``security`` logger.

    Critical events are also sent to Sentry for alerting.
    """

    CRITICAL_EVENTS = {
        'super_admin_created',
        'super_admin_promoted',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event with structured data.

        Args:
            event_type: Type of security event (e.g., 'failed_login')
            level: Log level ('info', 'warning', 'error', 'critical')
            **context: Additional context (ip_address, user_email, store_id, ...)
        """
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'timestamp': timezone.now().isoformat(),
            **context,
        }
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(f"Security event: {event_type}", extra={'security': log_data})

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
            )

    @staticmethod
    def log_failed_login(email: str, ip_address: str, user_agent: str = None, reason: str = None):
        SecurityLogger.log_event(
            'failed_login',
            level='warning',
            email=email,
            ip_address=ip_address,
            user_agent=user_agent,
            reason=reason
        )

    @staticmethod
    def log_rate_limit_exceeded(endpoint: str, ip_address: str, user_email: str = None,
                                store_id: str = None, limit: str = None):
        SecurityLogger.log_event(
            'rate_limit_exceeded',
            level='warning',
            endpoint=endpoint,
            ip_address=ip_address,
            user_email=user_email,
            store_id=store_id,
            limit=limit
        )

    @staticmethod
    def log_invalid_token(ip_address: str, path: str, reason: str = None):
        SecurityLogger.log_event(
            'invalid_token',
            level='info',
            ip_address=ip_address,
            path=path,
            reason=reason
        )

