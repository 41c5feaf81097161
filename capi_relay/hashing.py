"""PII hashing for Conversions API identity matching."""

import hashlib
from typing import Any, Optional


def hash_identifier(value: Any) -> Optional[str]:
    """SHA256 hash for PII fields, normalized by trimming and lowercasing."""
    if value is None or value == '':
        return None
    normalized = str(value).strip().lower()
    return hashlib.sha256(normalized.encode('utf-8')).hexdigest()
