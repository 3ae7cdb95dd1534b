from __future__ import annotations

import re
from typing import Optional

from ..core.constants import MANUAL_TAG_PATTERN, PHYSICAL_TAG_LENGTH
from ..core.exceptions import ValidationError

_MANUAL_TAG_RE = re.compile(MANUAL_TAG_PATTERN)


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def is_valid_manual_tag(tag: Optional[str]) -> bool:
    if not tag or not isinstance(tag, str):
        return False
    return bool(_MANUAL_TAG_RE.match(tag.strip()))


def normalize_physical_tag(raw: Optional[str], length: int = PHYSICAL_TAG_LENGTH) -> Optional[str]:
    """Keep the first ``length`` characters of a scanner read; None if the read is short."""
    if not raw:
        return None
    tag = raw.strip()[:length]
    if len(tag) < length:
        return None
    return tag


def optional_tag(value: Optional[str]) -> Optional[str]:
    """Normalize a tag field on a student form: blank means 'no badge'."""
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    if not is_valid_manual_tag(value):
        raise ValidationError("Invalid RFID format. Use 3-32 alphanumeric characters.")
    return value
