"""
Quarto Updater Utilities
"""

import hashlib
from typing import List, Optional


def mask_secret(secret: str, length: int = 5) -> str:
    """Return a short SHA-256 hash of a secret for logging."""
    h = hashlib.sha256(str(secret).encode("utf-8")).hexdigest()
    return f"<masked:{h[:length]}>"


def parse_comma_separated_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated string into trimmed, non-empty items."""
    if not value or not value.strip():
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def pluralize(count: int, word: str) -> str:
    return f"{word}{'s' if count != 1 else ''}"
