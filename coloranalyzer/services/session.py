"""
Color Analyzer Batch Session
Observable state container for one selection of images and their analysis state.
"""
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, Iterator, List, Optional, Union

from coloranalyzer.schemas import AnalysisResult
from coloranalyzer.utils.ids import generate_session_id

if TYPE_CHECKING:
    from coloranalyzer.services.previews import PreviewHandle


class ItemStatus(str, Enum):
    """Lifecycle of a selected image."""
    PENDING = "pending"
    LOADING = "loading"
    DONE = "done"
    ERROR = "error"


# pending -> loading -> {done, error}; nothing leaves a terminal state
ALLOWED_TRANSITIONS = {
    ItemStatus.PENDING: {ItemStatus.LOADING},
    ItemStatus.LOADING: {ItemStatus.DONE, ItemStatus.ERROR},
    ItemStatus.DONE: set(),
    ItemStatus.ERROR: set(),
}


class InvalidTransitionError(ValueError):
    """Raised when an item status change would break monotonic ordering."""
    pass


class StaleSessionError(RuntimeError):
    """Raised when a superseded session is asked to mutate its items."""
    pass


@dataclass(frozen=True)
class FileDescriptor:
    """A raw file as supplied by a picker or drop: payload, declared MIME type, name."""
    name: str
    content_type: Optional[str]
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: Union[str, Path], content_type: Optional[str] = None) -> 'FileDescriptor':
        """Read a file from disk, guessing its MIME type from the extension if not given."""
        path = Path(path)
        if content_type is None:
            content_type, _ = mimetypes.guess_type(path.name)
        return cls(name=path.name, content_type=content_type, data=path.read_bytes())


@dataclass
class SelectionItem:
    """One user-selected image under consideration."""
    index: int
    blob: FileDescriptor
    preview: Optional['PreviewHandle'] = None
    status: ItemStatus = ItemStatus.PENDING
    result: Optional[AnalysisResult] = None
    error_message: Optional[str] = None

    @property
    def name(self) -> str:
        return self.blob.name

    def attach_preview(self, handle: 'PreviewHandle') -> None:
        """Attach a preview handle, releasing the one it replaces."""
        if self.preview is not None and self.preview is not handle:
            self.preview.release()
        self.preview = handle

    def _transition(self, target: ItemStatus) -> None:
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Item {self.index} ({self.name}) cannot move from {self.status.value} to {target.value}"
            )
        self.status = target


@dataclass(frozen=True)
class SessionEvent:
    """Change notification emitted to observers."""
    kind: str  # 'item_updated', 'session_opened', 'session_closed'
    session_id: str
    index: Optional[int] = None
    status: Optional[ItemStatus] = None


SessionObserver = Callable[[SessionEvent], None]


class BatchSession:
    """
    Ordered sequence of SelectionItems.

    Insertion order is display order and dispatch order. Item state is only
    changed through the mark_* methods, each of which notifies observers.
    Once invalidated (superseded by a new selection or cleared) the session
    refuses further mutations.
    """

    def __init__(self, items: List[SelectionItem], session_id: Optional[str] = None):
        self.session_id = session_id or generate_session_id()
        self.items: List[SelectionItem] = list(items)
        for position, item in enumerate(self.items):
            item.index = position
        self.active = True
        self._observers: List[SessionObserver] = []

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[SelectionItem]:
        return iter(self.items)

    def __getitem__(self, index: int) -> SelectionItem:
        return self.items[index]

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def subscribe(self, observer: SessionObserver) -> Callable[[], None]:
        """Register an observer; returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe():
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self, event: SessionEvent) -> None:
        for observer in list(self._observers):
            observer(event)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _ensure_active(self) -> None:
        if not self.active:
            raise StaleSessionError(f"Session {self.session_id} has been superseded")

    def _apply(
        self,
        item: SelectionItem,
        target: ItemStatus,
        result: Optional[AnalysisResult] = None,
        error_message: Optional[str] = None,
    ) -> None:
        self._ensure_active()
        item._transition(target)
        item.result = result
        item.error_message = error_message
        self._notify(SessionEvent('item_updated', self.session_id, item.index, item.status))

    def mark_loading(self, item: SelectionItem) -> None:
        self._apply(item, ItemStatus.LOADING)

    def mark_done(self, item: SelectionItem, result: AnalysisResult) -> None:
        self._apply(item, ItemStatus.DONE, result=result)

    def mark_error(self, item: SelectionItem, message: str) -> None:
        self._apply(item, ItemStatus.ERROR, error_message=message)

    def invalidate(self) -> None:
        """Mark this session superseded. Idempotent."""
        if not self.active:
            return
        self.active = False
        self._notify(SessionEvent('session_closed', self.session_id))
        self._observers.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def pending_items(self) -> List[SelectionItem]:
        return [item for item in self.items if item.status == ItemStatus.PENDING]

    def previews(self) -> List['PreviewHandle']:
        return [item.preview for item in self.items if item.preview is not None]

    def status_counts(self) -> Dict[ItemStatus, int]:
        counts = {status: 0 for status in ItemStatus}
        for item in self.items:
            counts[item.status] += 1
        return counts

    @property
    def is_busy(self) -> bool:
        """True while any item has a request in flight."""
        return any(item.status == ItemStatus.LOADING for item in self.items)

    @property
    def is_settled(self) -> bool:
        """True once every item reached done or error."""
        return all(item.status in (ItemStatus.DONE, ItemStatus.ERROR) for item in self.items)
