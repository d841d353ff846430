"""Notifier — bounded in-memory toast log for one signed-in user.

Every error caught at a fetch or mutation boundary ends up here, as do the
success confirmations of page actions.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Optional

from workdesk.notifications.schemas import Toast, ToastVariant

logger = logging.getLogger(__name__)


class Notifier:
    """Keep the most recent ``backlog`` toasts; older ones fall off."""

    def __init__(self, backlog: int = 100) -> None:
        self._toasts: deque[Toast] = deque(maxlen=backlog)
        self._unread = 0

    def push(
        self,
        title: str,
        description: str = "",
        *,
        variant: ToastVariant = "default",
    ) -> Toast:
        toast = Toast(title=title, description=description, variant=variant)
        self._toasts.append(toast)
        self._unread = min(self._unread + 1, len(self._toasts))
        log = logger.warning if variant == "destructive" else logger.info
        log("%s: %s", title, description)
        return toast

    @property
    def unread(self) -> int:
        return self._unread

    def recent(self, limit: Optional[int] = None) -> list[Toast]:
        """Newest first."""
        items = list(reversed(self._toasts))
        return items[:limit] if limit is not None else items

    def drain(self) -> list[Toast]:
        """Return the unread toasts (newest first) and mark them read."""
        unread = self.recent(self._unread)
        self._unread = 0
        return unread

    def latest(self) -> Optional[Toast]:
        return self._toasts[-1] if self._toasts else None
