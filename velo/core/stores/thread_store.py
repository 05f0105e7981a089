"""In-memory thread list shown to the user."""

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, List, Optional, Sequence

from velo.core.ports import ThreadStorePort
from velo.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Thread:
    """Summary of one conversation as listed in the UI."""

    id: str
    account_id: str
    subject: Optional[str] = None
    snippet: Optional[str] = None
    last_message_at: int = 0
    message_count: int = 1
    is_read: bool = False
    is_starred: bool = False
    is_pinned: bool = False
    has_attachments: bool = False
    label_ids: tuple[str, ...] = field(default_factory=tuple)


class ThreadStore(ThreadStorePort):
    """Ordered thread list the dispatcher and quick steps mutate.

    Threads are immutable; ``update_thread`` swaps in a copy so readers
    holding the old object never see a half-applied change.
    """

    def __init__(self, threads: Optional[Iterable[Thread]] = None):
        self._threads: List[Thread] = list(threads or [])

    @property
    def threads(self) -> List[Thread]:
        return list(self._threads)

    def set_threads(self, threads: Iterable[Thread]) -> None:
        self._threads = list(threads)

    def get_thread(self, thread_id: str) -> Optional[Thread]:
        for thread in self._threads:
            if thread.id == thread_id:
                return thread
        return None

    def update_thread(self, thread_id: str, **fields: Any) -> None:
        """Apply a partial update. Unknown thread ids are ignored.

        Raises:
            TypeError: If a field name is not a Thread attribute
        """
        if "label_ids" in fields:
            fields["label_ids"] = tuple(fields["label_ids"])

        self._threads = [
            replace(thread, **fields) if thread.id == thread_id else thread
            for thread in self._threads
        ]

    def remove_thread(self, thread_id: str) -> None:
        self.remove_threads([thread_id])

    def remove_threads(self, thread_ids: Sequence[str]) -> None:
        ids = set(thread_ids)
        before = len(self._threads)
        self._threads = [t for t in self._threads if t.id not in ids]

        logger.debug(f"Removed {before - len(self._threads)} threads from view")
