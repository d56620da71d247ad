"""
Log sanitizer utilities to keep OAuth credentials out of logs.

This module scrubs Google access/refresh tokens, client secrets, bearer
headers and authorization codes from log messages and from the short error
strings handed back to callers.
"""

import re
from typing import Any, Dict, List


# Specific formats come before the generic key=value patterns.
SENSITIVE_PATTERNS = [
    (r'ya29\.[0-9A-Za-z\-_.]+', '***GOOGLE_ACCESS_TOKEN***'),
    (r'1//[0-9A-Za-z\-_]{20,}', '***GOOGLE_REFRESH_TOKEN***'),
    (r'GOCSPX-[0-9A-Za-z\-_]+', '***GOOGLE_CLIENT_SECRET***'),
    (r'AIza[0-9A-Za-z\-_]{35}', '***GOOGLE_KEY***'),

    # Bearer tokens in headers
    (r'(Bearer\s+)([a-zA-Z0-9\-._~+/]+=*)', r'\1***REDACTED***'),
    (r'(Authorization:\s*)(Bearer\s+)?([^\s]+)', r'\1\2***REDACTED***'),

    # OAuth query/form parameters
    (r'([?&](?:code|access_token|refresh_token|client_secret)=)([^&\s]+)', r'\1***REDACTED***'),

    # JSON/Dict style
    (r'["\']?(access_token|refresh_token|client_secret|id_token)["\']?\s*:\s*["\']([^"\']+)["\']',
     r'"\1": "***REDACTED***"'),
    (r'(access[_-]?token|refresh[_-]?token|client[_-]?secret)\s*=\s*["\']?([^\s"\'&]+)', r'\1=***REDACTED***'),
]

SENSITIVE_FIELDS = {
    'access_token', 'refresh_token', 'id_token', 'client_secret',
    'code', 'authorization', 'password', 'api_key',
}


def sanitize_string(text: str) -> str:
    """
    Sanitize a string by removing sensitive data patterns.

    Args:
        text: The string to sanitize

    Returns:
        Sanitized string with sensitive data redacted
    """
    if not isinstance(text, str):
        return str(text)

    result = text
    for pattern, replacement in SENSITIVE_PATTERNS:
        result = re.sub(pattern, replacement, result, flags=re.IGNORECASE)
    return result


def sanitize_dict(data: Dict[str, Any], deep: bool = True) -> Dict[str, Any]:
    """
    Sanitize a dictionary by redacting sensitive fields.

    Args:
        data: The dictionary to sanitize
        deep: Whether to recursively sanitize nested structures

    Returns:
        New dictionary with sensitive fields redacted
    """
    if not isinstance(data, dict):
        return data

    result = {}
    for key, value in data.items():
        if str(key).lower() in SENSITIVE_FIELDS:
            result[key] = "***REDACTED***"
        elif deep and isinstance(value, dict):
            result[key] = sanitize_dict(value, deep=True)
        elif deep and isinstance(value, list):
            result[key] = sanitize_list(value, deep=True)
        elif isinstance(value, str):
            result[key] = sanitize_string(value)
        else:
            result[key] = value
    return result


def sanitize_list(data: List[Any], deep: bool = True) -> List[Any]:
    """Sanitize each element of a list."""
    if not isinstance(data, list):
        return data

    result = []
    for item in data:
        if isinstance(item, dict) and deep:
            result.append(sanitize_dict(item, deep=True))
        elif isinstance(item, list) and deep:
            result.append(sanitize_list(item, deep=True))
        elif isinstance(item, str):
            result.append(sanitize_string(item))
        else:
            result.append(item)
    return result


def safe_error_message(error: BaseException, max_length: int = 300) -> str:
    """Short, credential-free message for an exception, suitable for display."""
    message = sanitize_string(str(error)) or type(error).__name__
    if len(message) > max_length:
        message = message[:max_length] + "..."
    return message
