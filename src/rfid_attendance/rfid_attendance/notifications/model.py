from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union


@dataclass(frozen=True)
class NotificationRecord:
    """Append-only audit entry for a message sent to a parent."""

    student_tag: Optional[str]
    student_name: str
    parent_phone: Optional[str]
    message: str
    sent_at: datetime
    status: str = "sent"
    notification_id: Optional[Union[int, str]] = None
