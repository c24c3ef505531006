"""
Logging utilities for secure logging with secret sanitization.

Provider definitions carry environment overrides (API keys, access tokens,
connection strings) and tool arguments may carry anything, so both pass
through these helpers before they reach a log record.
"""

import logging
import re
from typing import Any, Dict, Optional


# Patterns to detect potential secrets
SECRET_PATTERNS = [
    # Double-quoted JSON style
    (re.compile(r'("(?:password|passphrase|token|api_?key|apiKey|secret)"\s*:\s*")[^"]*(")', re.IGNORECASE),
     r'\1***REDACTED***\2'),
    # Single-quoted repr() style
    (re.compile(r"('(?:password|passphrase|token|api_?key|apiKey|secret)'\s*:\s*')[^']*(')", re.IGNORECASE),
     r"\1***REDACTED***\2"),
    # Query string / env assignment style
    (re.compile(r'((?:password|passphrase|token|api_key)=)[^\s&]+', re.IGNORECASE), r'\1***REDACTED***'),
    # Bearer tokens and OpenAI style keys
    (re.compile(r'(Bearer\s+)[A-Za-z0-9\-._~+/]+=*'), r'\1***REDACTED***'),
    (re.compile(r'sk-[A-Za-z0-9_\-]{16,}'), '***REDACTED***'),
    # Credentials embedded in connection URLs
    (re.compile(r'(://[^:/\s]+:)[^@\s]+(@)'), r'\1***REDACTED***\2'),
]

# Substrings that mark a field (or env var) as secret
SECRET_FIELDS = {
    'password', 'passphrase', 'token', 'api_key', 'apikey', 'secret',
    'private_key', 'privatekey', 'access_key', 'connection_string',
}


def _is_secret_key(key: str) -> bool:
    key_lower = key.lower()
    return any(secret_field in key_lower for secret_field in SECRET_FIELDS)


def sanitize_string(text: str) -> str:
    """
    Sanitize a string by replacing potential secrets with placeholders.

    Args:
        text: String that may contain secrets

    Returns:
        Sanitized string with secrets replaced by placeholders
    """
    if not text:
        return text

    result = text
    for pattern, replacement in SECRET_PATTERNS:
        result = pattern.sub(replacement, result)

    return result


def sanitize_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively sanitize a dictionary by replacing secret values.

    Empty values are kept as-is so a missing credential is still visible
    in logs.
    """
    if not isinstance(data, dict):
        return data

    result = {}
    for key, value in data.items():
        if _is_secret_key(str(key)) and value:
            result[key] = '***REDACTED***'
        elif isinstance(value, dict):
            result[key] = sanitize_dict(value)
        elif isinstance(value, list):
            result[key] = [sanitize_dict(item) if isinstance(item, dict) else item for item in value]
        elif isinstance(value, str):
            result[key] = sanitize_string(value)
        else:
            result[key] = value

    return result


def sanitize_log_message(message: str, context: Optional[Dict[str, Any]] = None) -> str:
    """Sanitize a log message and optional context dict."""
    sanitized_msg = sanitize_string(message)

    if context:
        sanitized_context = sanitize_dict(context)
        sanitized_msg = f"{sanitized_msg} | Context: {sanitized_context}"

    return sanitized_msg


def safe_repr(obj: Any, max_length: int = 200) -> str:
    """Create a safe repr of an object with secrets sanitized and length limited."""
    if isinstance(obj, dict):
        obj = sanitize_dict(obj)

    sanitized = sanitize_string(repr(obj))

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length] + '...(truncated)'

    return sanitized


class SecretRedactingFilter(logging.Filter):
    """Redact secrets from formatted log records before handlers see them."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        sanitized = sanitize_string(message)
        if sanitized != message:
            record.msg = sanitized
            record.args = None
        return True


def configure_logging(level: int = logging.INFO) -> None:
    """Install a stream handler on the ``sidecar`` logger with secret redaction."""
    root = logging.getLogger("sidecar")
    root.setLevel(level)
    for handler in root.handlers:
        if any(isinstance(f, SecretRedactingFilter) for f in handler.filters):
            return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    handler.addFilter(SecretRedactingFilter())
    root.addHandler(handler)
