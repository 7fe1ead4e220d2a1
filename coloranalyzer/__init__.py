"""
Color Analyzer Client
Upload-and-analysis orchestration for a remote image color analysis service.
"""
from coloranalyzer.config import Config, get_config
from coloranalyzer.schemas import (
    AnalysisResult,
    ClearCacheResponse,
    ColorMatch,
    DominantColor,
    TrainedColor,
    TrainResponse,
)
from coloranalyzer.services.aggregator import ItemView, ResultAggregator, SessionSummary
from coloranalyzer.services.client import AnalysisEntry, AnalysisServiceClient
from coloranalyzer.services.intake import FileIntake, IntakeResult
from coloranalyzer.services.orchestrator import AnalysisOrchestrator, DispatchPolicy, LoadingMarker
from coloranalyzer.services.previews import PreviewHandle, PreviewResourceManager
from coloranalyzer.services.reliability import (
    AnalysisServiceError,
    MalformedResponseError,
    RequestTimeoutError,
    ServiceError,
    TransportError,
)
from coloranalyzer.services.session import (
    BatchSession,
    FileDescriptor,
    ItemStatus,
    SelectionItem,
    SessionEvent,
)
from coloranalyzer.services.workbench import Workbench

__version__ = "1.0.0"

__all__ = [
    "AnalysisEntry",
    "AnalysisOrchestrator",
    "AnalysisResult",
    "AnalysisServiceClient",
    "AnalysisServiceError",
    "BatchSession",
    "ClearCacheResponse",
    "ColorMatch",
    "Config",
    "DispatchPolicy",
    "DominantColor",
    "FileDescriptor",
    "FileIntake",
    "IntakeResult",
    "ItemStatus",
    "ItemView",
    "LoadingMarker",
    "MalformedResponseError",
    "PreviewHandle",
    "PreviewResourceManager",
    "RequestTimeoutError",
    "ResultAggregator",
    "SelectionItem",
    "ServiceError",
    "SessionEvent",
    "SessionSummary",
    "TrainResponse",
    "TrainedColor",
    "TransportError",
    "Workbench",
    "get_config",
]
