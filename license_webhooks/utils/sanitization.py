"""Utilities for input sanitization."""

import re

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def sanitize_for_log(input_str, max_length: int = 200) -> str:
    """
    Sanitize an untrusted value (request path, header) for logging (CWE-117).

    Control characters are escaped and overly long values are truncated.
    """
    if not input_str:
        return ""
    text = str(input_str)
    if len(text) > max_length:
        text = text[:max_length] + "..."
    return _CONTROL_CHARS.sub(lambda m: f"\\x{ord(m.group(0)):02x}", text)
