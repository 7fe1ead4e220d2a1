"""
Color Analyzer Result Aggregation
Read-only, order-preserving projection of a batch session for presentation.
"""
from dataclasses import dataclass
from typing import List, Optional

from coloranalyzer.config import Config
from coloranalyzer.schemas import AnalysisResult
from coloranalyzer.services.previews import PreviewHandle
from coloranalyzer.services.session import BatchSession, ItemStatus


@dataclass(frozen=True)
class ItemView:
    """What a presentation layer needs to render one selected image."""
    index: int
    name: str
    content_type: Optional[str]
    size: int
    preview: Optional[PreviewHandle]
    preview_url: Optional[str]
    status: ItemStatus
    result: Optional[AnalysisResult] = None
    error_message: Optional[str] = None
    from_cache: Optional[bool] = None
    dominant_hex: Optional[str] = None
    match_name: Optional[str] = None
    display_match_percentage: Optional[float] = None


@dataclass(frozen=True)
class SessionSummary:
    """Status counts of a session."""
    total: int = 0
    pending: int = 0
    loading: int = 0
    done: int = 0
    error: int = 0

    @property
    def busy(self) -> bool:
        return self.loading > 0

    @property
    def settled(self) -> bool:
        return self.total > 0 and self.done + self.error == self.total


class ResultAggregator:
    """Builds item views; never mutates the session."""

    def __init__(self, config: Config):
        self.config = config

    def project(self, session: Optional[BatchSession]) -> List[ItemView]:
        """Item views in session order, whatever order the items completed in."""
        if session is None:
            return []

        views = []
        for item in sorted(session.items, key=lambda candidate: candidate.index):
            result = item.result if item.status == ItemStatus.DONE else None
            match = result.match if result is not None else None
            views.append(ItemView(
                index=item.index,
                name=item.blob.name,
                content_type=item.blob.content_type,
                size=item.blob.size,
                preview=item.preview,
                preview_url=item.preview.url if item.preview is not None else None,
                status=item.status,
                result=result,
                error_message=item.error_message if item.status == ItemStatus.ERROR else None,
                from_cache=result.from_cache if result is not None else None,
                dominant_hex=result.dominant_hex if result is not None else None,
                match_name=match.name if match is not None else None,
                display_match_percentage=(
                    self.display_percentage(match.similarity) if match is not None else None
                ),
            ))
        return views

    def display_percentage(self, similarity: float) -> float:
        """Similarity shifted by the configured accuracy offset, clamped to [0, 100]."""
        adjusted = similarity + self.config.match_accuracy_offset
        return round(min(100.0, max(0.0, adjusted)), 2)

    def summary(self, session: Optional[BatchSession]) -> SessionSummary:
        if session is None:
            return SessionSummary()
        counts = session.status_counts()
        return SessionSummary(
            total=len(session),
            pending=counts[ItemStatus.PENDING],
            loading=counts[ItemStatus.LOADING],
            done=counts[ItemStatus.DONE],
            error=counts[ItemStatus.ERROR],
        )
