"""
Logging helpers shared by routers and services.
"""

import logging
from typing import Any, Dict, Optional

SENSITIVE_FIELDS = frozenset({
    'password', 'token', 'secret', 'api_key', 'hash', 'authorization',
})

REDACTED = "***REDACTED***"


def get_logger(name: str) -> logging.Logger:
    """
    Usage:
        from utils.logger import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(sensitive in lowered for sensitive in SENSITIVE_FIELDS)


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of `data` that is safe to log or persist in the audit trail.

    String passwords, hashes and secrets are fully redacted; flags such as
    must_change_password pass through. Tokens keep their
    first 8 characters so support can correlate them. Nested dicts and
    lists of dicts are walked recursively.
    """
    sanitized = {}

    for key, value in data.items():
        if isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)
        elif isinstance(value, list):
            sanitized[key] = [
                sanitize_log_data(item) if isinstance(item, dict) else item
                for item in value
            ]
        elif _is_sensitive(key) and isinstance(value, str):
            if 'token' in key.lower() and len(value) > 8:
                sanitized[key] = f"{value[:8]}..."
            else:
                sanitized[key] = REDACTED
        else:
            sanitized[key] = value

    return sanitized


def log_request(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    client_ip: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None
):
    """
    Log one HTTP exchange. Level follows the status code:
    5xx error, 4xx warning, everything else info.
    """
    log_data = {
        "http_method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": round(duration_ms, 2),
    }

    if client_ip:
        log_data["client_ip"] = client_ip

    if extra:
        log_data.update(sanitize_log_data(extra))

    message = f'{client_ip or "-"} - "{method} {path}" {status_code}'

    if status_code >= 500:
        logger.error(message, extra=log_data)
    elif status_code >= 400:
        logger.warning(message, extra=log_data)
    else:
        logger.info(message, extra=log_data)
