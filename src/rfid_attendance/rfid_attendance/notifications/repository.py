from __future__ import annotations

from typing import Protocol, Sequence

from .model import NotificationRecord


class NotificationRepository(Protocol):
    def send(self, record: NotificationRecord) -> NotificationRecord:
        """Record/send one parent notification. Raises StoreError on failure."""

        raise NotImplementedError

    def list_recent(self) -> Sequence[NotificationRecord]:
        raise NotImplementedError
