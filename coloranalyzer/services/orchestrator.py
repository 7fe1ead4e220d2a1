"""
Color Analyzer Orchestrator
Drives analysis requests for a batch session and applies per-item outcomes.
"""
from enum import Enum
from typing import List, Sequence, Union

from coloranalyzer.config import Config
from coloranalyzer.services.client import AnalysisEntry, AnalysisServiceClient
from coloranalyzer.services.reliability import AnalysisServiceError, ServiceError, TransportError
from coloranalyzer.services.session import BatchSession, ItemStatus, SelectionItem
from coloranalyzer.utils.logging import get_logger
from coloranalyzer.utils.metrics import get_metrics


class DispatchPolicy(str, Enum):
    """How a batch is submitted to the service."""
    SEQUENTIAL_PER_ITEM = "sequential"
    BATCHED_SINGLE_REQUEST = "batched"


class LoadingMarker(str, Enum):
    """When items are flagged as loading under sequential dispatch."""
    BULK = "bulk"
    PER_ITEM = "per_item"


class AnalysisOrchestrator:
    """
    Submits the pending items of a session and records each outcome.

    Remote failures never escape analyze(): they become item errors. A
    session that is superseded while a request is in flight keeps its
    state; the late response is dropped and dispatch stops.
    """

    def __init__(self, client: AnalysisServiceClient, config: Config):
        self.client = client
        self.config = config
        self.logger = get_logger()
        self.metrics = get_metrics()

    async def analyze(
        self,
        session: BatchSession,
        policy: Union[DispatchPolicy, str, None] = None,
    ) -> None:
        """
        Analyze every pending item of the session.

        Items already loading, done or in error are left untouched, so
        calling this twice never submits an item twice.

        Args:
            session: Session whose items are mutated in place
            policy: Dispatch policy; defaults to the configured one
        """
        policy = DispatchPolicy(policy or self.config.dispatch_policy)
        if not session.active:
            self.logger.debug("Skipping analyze for superseded session", extra={'session_id': session.session_id})
            return

        items = session.pending_items()
        if not items:
            return

        self.logger.info("Starting analysis", extra={
            'session_id': session.session_id,
            'policy': policy.value,
            'items': len(items)
        })

        if policy == DispatchPolicy.BATCHED_SINGLE_REQUEST:
            await self._analyze_batched(session, items)
        else:
            await self._analyze_sequential(session, items)

        if session.active:
            counts = session.status_counts()
            self.logger.info("Analysis finished", extra={
                'session_id': session.session_id,
                'done': counts[ItemStatus.DONE],
                'error': counts[ItemStatus.ERROR]
            })

    async def _analyze_sequential(self, session: BatchSession, items: List[SelectionItem]) -> None:
        per_item_marker = LoadingMarker(self.config.loading_marker) == LoadingMarker.PER_ITEM
        if not per_item_marker:
            for item in items:
                session.mark_loading(item)

        for item in items:
            if self._is_stale(session):
                return
            if per_item_marker:
                if item.status != ItemStatus.PENDING:
                    continue
                session.mark_loading(item)

            outcome = await self._submit(DispatchPolicy.SEQUENTIAL_PER_ITEM, [item])
            if self._is_stale(session):
                return
            self._apply(session, [item], outcome)

    async def _analyze_batched(self, session: BatchSession, items: List[SelectionItem]) -> None:
        for item in items:
            session.mark_loading(item)

        outcome = await self._submit(DispatchPolicy.BATCHED_SINGLE_REQUEST, items)
        if self._is_stale(session):
            return
        self._apply(session, items, outcome)

    async def _submit(
        self,
        policy: DispatchPolicy,
        items: Sequence[SelectionItem],
    ) -> Union[List[AnalysisEntry], AnalysisServiceError]:
        """One request for the given items; failures are returned as errors, never raised."""
        self.metrics.increment_request_count(policy.value)
        try:
            return await self.client.analyze([item.blob for item in items])
        except AnalysisServiceError as e:
            kind = f"http_{e.status_code}" if isinstance(e, ServiceError) else type(e).__name__
            self.metrics.increment_failure_count(kind)
            self.logger.warning("Analysis request failed", extra={
                'files': [item.name for item in items],
                'error_type': type(e).__name__,
                'error': e.message
            })
            return e
        except Exception as e:
            self.metrics.increment_failure_count("unexpected")
            self.logger.error("Analysis request failed unexpectedly", extra={
                'files': [item.name for item in items],
                'error_type': type(e).__name__,
                'error': str(e)
            })
            return TransportError(self.config.generic_error_message)

    def _apply(
        self,
        session: BatchSession,
        items: Sequence[SelectionItem],
        outcome: Union[List[AnalysisEntry], AnalysisServiceError],
    ) -> None:
        if isinstance(outcome, AnalysisServiceError):
            for item in items:
                self._fail(session, item, outcome.message)
            return

        for item, entry in zip(items, outcome):
            if entry.ok:
                session.mark_done(item, entry.result)
                self.metrics.record_item_outcome(ItemStatus.DONE.value, entry.result.from_cache)
            else:
                self._fail(session, item, entry.error or self.config.generic_error_message)

    def _fail(self, session: BatchSession, item: SelectionItem, message: str) -> None:
        session.mark_error(item, message)
        self.metrics.record_item_outcome(ItemStatus.ERROR.value)

    def _is_stale(self, session: BatchSession) -> bool:
        if session.active:
            return False
        self.metrics.increment("stale_responses_total")
        self.logger.info("Dropping work for superseded session", extra={'session_id': session.session_id})
        return True
