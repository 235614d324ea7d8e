"""Helpers for free-text input coming from the mobile and portal clients."""
import re
from typing import Optional

# C0 controls except tab/newline/carriage return, plus DEL and C1 controls
_CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]')


def sanitize_text(value: Optional[str], max_length: Optional[int] = None) -> Optional[str]:
    """Strip control characters and surrounding whitespace.

    Returns None for empty input so optional columns stay NULL.
    """
    if value is None:
        return None
    cleaned = _CONTROL_CHARS.sub('', str(value)).strip()
    if max_length is not None:
        cleaned = cleaned[:max_length]
    return cleaned or None
