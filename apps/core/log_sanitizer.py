"""
Log sanitization to prevent credential leakage.

Redacts JWTs, bearer tokens, passwords (including SMTP passwords),
Stripe keys, database URL passwords and card numbers.
"""
import re
import logging


REDACTION_PATTERNS = [
    # Bearer tokens and JWTs
    (re.compile(r'Bearer\s+([a-zA-Z0-9_\-\.]{20,})', re.IGNORECASE), r'Bearer [REDACTED]'),
    (re.compile(r'eyJ[a-zA-Z0-9_\-]+\.eyJ[a-zA-Z0-9_\-]+\.[a-zA-Z0-9_\-]+'), r'[REDACTED_JWT]'),
    (re.compile(r'Authorization["\s:]+([^\s,\]}"\']+)', re.IGNORECASE), r'Authorization: [REDACTED]'),

    # Passwords
    (re.compile(r'(smtp_)?password["\s:=]+([^\s,\]}"\']+)', re.IGNORECASE), r'password=[REDACTED]'),
    (re.compile(r'passwd["\s:=]+([^\s,\]}"\']+)', re.IGNORECASE), r'passwd=[REDACTED]'),

    # Secrets and generic tokens
    (re.compile(r'client[_-]?secret["\s:=]+([a-zA-Z0-9_\-]{20,})', re.IGNORECASE), r'client_secret=[REDACTED]'),
    (re.compile(r'secret["\s:=]+([a-zA-Z0-9_\-]{20,})', re.IGNORECASE), r'secret=[REDACTED]'),
    (re.compile(r'token["\s:=]+([a-zA-Z0-9_\-\.]{32,})', re.IGNORECASE), r'token=[REDACTED]'),

    # Stripe keys
    (re.compile(r'sk_live_[a-zA-Z0-9]{24,}'), r'[REDACTED_STRIPE_SECRET]'),
    (re.compile(r'sk_test_[a-zA-Z0-9]{24,}'), r'[REDACTED_STRIPE_TEST]'),
    (re.compile(r'pi_[a-zA-Z0-9]{14,}_secret_[a-zA-Z0-9]+'), r'[REDACTED_CLIENT_SECRET]'),

    # Database / broker URLs with passwords
    (re.compile(r'://([^:/\s]+):([^@\s]+)@'), r'://\1:[REDACTED]@'),

    # Card numbers
    (re.compile(r'\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b'), r'[REDACTED_CARD]'),
]


def sanitize_text(text):
    for pattern, replacement in REDACTION_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class SanitizingFormatter(logging.Formatter):
    """Formatter that redacts credentials from the formatted line."""

    def format(self, record):
        return sanitize_text(super().format(record))


class SanitizingFilter(logging.Filter):
    """
    Redact credentials from the message and its string args before
    any formatter sees the record.
    """

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = sanitize_text(record.msg)

        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                sanitize_text(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )

        return True

