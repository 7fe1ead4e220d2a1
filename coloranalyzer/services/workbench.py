"""
Color Analyzer Workbench
Owns the active batch session and wires intake, previews, dispatch and projection.
"""
from typing import Callable, List, Optional, Sequence, Union

from coloranalyzer.config import Config, get_config
from coloranalyzer.schemas import ClearCacheResponse, TrainedColor, TrainResponse
from coloranalyzer.services.aggregator import ItemView, ResultAggregator, SessionSummary
from coloranalyzer.services.client import AnalysisServiceClient
from coloranalyzer.services.intake import FileIntake, IntakeResult, IntakeWarningCallback
from coloranalyzer.services.orchestrator import AnalysisOrchestrator, DispatchPolicy
from coloranalyzer.services.previews import PreviewResourceManager
from coloranalyzer.services.session import (
    BatchSession,
    FileDescriptor,
    SelectionItem,
    SessionEvent,
    SessionObserver,
)
from coloranalyzer.utils.logging import get_logger


class Workbench:
    """
    Single-session analysis workbench.

    Exactly one session is active at a time. Replacing or clearing it
    invalidates the old session and releases every preview handle it held,
    so the number of live previews always equals the number of items in
    the active session.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        client: Optional[AnalysisServiceClient] = None,
        on_warning: Optional[IntakeWarningCallback] = None,
    ):
        self.config = config or get_config()
        self.client = client or AnalysisServiceClient(self.config)
        self.intake = FileIntake(self.config, on_warning=on_warning)
        self.previews = PreviewResourceManager(max_edge=self.config.preview_max_edge)
        self.orchestrator = AnalysisOrchestrator(self.client, self.config)
        self.aggregator = ResultAggregator(self.config)
        self.logger = get_logger()

        self.session: Optional[BatchSession] = None
        self._observers: List[SessionObserver] = []

    async def __aenter__(self) -> 'Workbench':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def subscribe(self, observer: SessionObserver) -> Callable[[], None]:
        """Observe events of whichever session is active."""
        self._observers.append(observer)

        def unsubscribe():
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _forward(self, event: SessionEvent) -> None:
        for observer in list(self._observers):
            observer(event)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def select(self, raw_files: Sequence[FileDescriptor]) -> IntakeResult:
        """
        Start a new session from a raw selection.

        An empty acceptance either clears the current session or leaves it
        alone, depending on config.empty_selection_policy.
        """
        result = self.intake.intake(raw_files)

        if result.is_empty:
            if self.config.empty_selection_policy == "clear":
                self.clear()
            else:
                self.logger.debug("Empty selection ignored; keeping current session")
            return result

        self._open_session(result.accepted)
        return result

    def clear(self) -> None:
        """Release every preview and drop the active session."""
        session, self.session = self.session, None
        if session is None:
            return
        self.previews.release_all(session.previews())
        session.invalidate()
        self.logger.info("Session cleared", extra={'session_id': session.session_id, 'items': len(session)})

    def reset(self) -> None:
        """Full reset: the same files in a fresh, all-pending session."""
        if self.session is None:
            return
        blobs = [item.blob for item in self.session]
        self._open_session([SelectionItem(index=position, blob=blob) for position, blob in enumerate(blobs)])

    def _open_session(self, items: List[SelectionItem]) -> None:
        self.clear()
        for item in items:
            item.attach_preview(self.previews.acquire(item.blob))

        session = BatchSession(items)
        session.subscribe(self._forward)
        self.session = session
        self.logger.info("Session opened", extra={'session_id': session.session_id, 'items': len(session)})
        self._forward(SessionEvent('session_opened', session.session_id))

    async def close(self) -> None:
        """Leave the workbench: clear the session and close the client."""
        self.clear()
        await self.client.aclose()

    # ------------------------------------------------------------------
    # Remote operations
    # ------------------------------------------------------------------

    async def analyze(self, policy: Union[DispatchPolicy, str, None] = None) -> None:
        if self.session is None:
            return
        await self.orchestrator.analyze(self.session, policy)

    async def train(self, raw_files: Sequence[FileDescriptor], color_name: str) -> TrainResponse:
        """Teach the service a named color from a set of reference images."""
        color_name = (color_name or "").strip()
        if not color_name:
            raise ValueError("A color name is required for training")

        result = self.intake.intake(raw_files)
        if result.is_empty:
            raise ValueError("At least one image is required for training")

        response = await self.client.train([item.blob for item in result.accepted], color_name)
        self.logger.info("Training submitted", extra={'color_name': color_name, 'images': len(result.accepted)})
        return response

    async def trained_colors(self) -> List[TrainedColor]:
        return await self.client.trained_colors()

    async def clear_cache(self) -> ClearCacheResponse:
        """Clear the server-side cache, then reset local state."""
        response = await self.client.clear_cache()
        self.clear()
        return response

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    def view(self) -> List[ItemView]:
        return self.aggregator.project(self.session)

    def summary(self) -> SessionSummary:
        return self.aggregator.summary(self.session)
