"""Interfaces the mutation engine consumes from its collaborators."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence


class EmailProvider(ABC):
    """Remote mail provider capability, one coroutine per mutation kind.

    Every method either returns or raises. Transport failures should raise
    ``NetworkError`` (or a builtin ``ConnectionError``/``TimeoutError``);
    refusals should raise ``ProviderError`` carrying the HTTP-like status
    when there is one.
    """

    ## Thread mutations

    @abstractmethod
    async def archive(self, thread_id: str, message_ids: Sequence[str]) -> None:
        pass

    @abstractmethod
    async def trash(self, thread_id: str, message_ids: Sequence[str]) -> None:
        pass

    @abstractmethod
    async def permanent_delete(self, thread_id: str, message_ids: Sequence[str]) -> None:
        pass

    @abstractmethod
    async def mark_read(self, thread_id: str, message_ids: Sequence[str], read: bool) -> None:
        pass

    @abstractmethod
    async def star(self, thread_id: str, message_ids: Sequence[str], starred: bool) -> None:
        pass

    @abstractmethod
    async def spam(self, thread_id: str, message_ids: Sequence[str], is_spam: bool) -> None:
        pass

    @abstractmethod
    async def move_to_folder(
        self, thread_id: str, message_ids: Sequence[str], folder_path: str
    ) -> None:
        pass

    @abstractmethod
    async def add_label(self, thread_id: str, label_id: str) -> None:
        pass

    @abstractmethod
    async def remove_label(self, thread_id: str, label_id: str) -> None:
        pass

    @abstractmethod
    async def snooze(self, thread_id: str, message_ids: Sequence[str], until_ms: int) -> None:
        pass

    @abstractmethod
    async def modify_thread(
        self,
        thread_id: str,
        add_label_ids: Optional[Sequence[str]] = None,
        remove_label_ids: Optional[Sequence[str]] = None,
    ) -> None:
        """Add and remove labels on a thread in one call."""

    ## Send and drafts

    @abstractmethod
    async def send_message(
        self, raw_base64url: str, thread_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Send a base64url-encoded RFC 2822 message. Returns ``{"id": ...}``."""

    @abstractmethod
    async def create_draft(
        self, raw_base64url: str, thread_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Returns ``{"draftId": ...}``."""

    @abstractmethod
    async def update_draft(
        self, draft_id: str, raw_base64url: str, thread_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Returns ``{"draftId": ...}``."""

    @abstractmethod
    async def delete_draft(self, draft_id: str) -> None:
        pass


class ConnectivitySignal(ABC):
    """Synchronous read of whether the network is reachable right now."""

    @abstractmethod
    def is_online(self) -> bool:
        pass


class ThreadStorePort(ABC):
    """Local thread list the engine updates optimistically."""

    @abstractmethod
    def get_thread(self, thread_id: str) -> Optional[Any]:
        pass

    @abstractmethod
    def update_thread(self, thread_id: str, **fields: Any) -> None:
        pass

    @abstractmethod
    def remove_thread(self, thread_id: str) -> None:
        pass

    @abstractmethod
    def remove_threads(self, thread_ids: Sequence[str]) -> None:
        pass


class ThreadService(ABC):
    """Local thread state that lives outside the provider (pins, snoozes, categories)."""

    @abstractmethod
    async def pin_thread(self, account_id: str, thread_id: str) -> None:
        pass

    @abstractmethod
    async def unpin_thread(self, account_id: str, thread_id: str) -> None:
        pass

    @abstractmethod
    async def snooze_thread(self, account_id: str, thread_id: str, until_ms: int) -> None:
        pass

    @abstractmethod
    async def set_thread_category(self, account_id: str, thread_id: str, category: str) -> None:
        pass
