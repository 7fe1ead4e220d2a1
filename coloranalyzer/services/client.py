"""
Color Analyzer Service Client
Async HTTP client for the remote color analysis/training service.
"""
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from pydantic import ValidationError

from coloranalyzer.config import Config
from coloranalyzer.schemas import (
    AnalysisResult,
    ClearCacheResponse,
    ErrorResponse,
    TrainedColor,
    TrainedColorsResponse,
    TrainResponse,
)
from coloranalyzer.services.reliability import (
    MalformedResponseError,
    RequestTimeoutError,
    ServiceError,
    TimeoutManager,
    TransportError,
)
from coloranalyzer.services.session import FileDescriptor
from coloranalyzer.utils.logging import get_logger
from coloranalyzer.utils.metrics import get_metrics


RESULT_WRAPPER_KEYS = ("results", "analysis_results")


@dataclass(frozen=True)
class AnalysisEntry:
    """One per-image entry of an analysis response: a result or an embedded error."""
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None


def build_image_parts(files: Sequence[FileDescriptor]) -> List[Tuple[str, Tuple[str, bytes, str]]]:
    """Multipart parts, one named 'images' per file, in submission order."""
    return [
        ("images", (descriptor.name, descriptor.data, descriptor.content_type or "application/octet-stream"))
        for descriptor in files
    ]


def extract_result_entries(payload: Any) -> List[Any]:
    """Locate the per-image array in a top-level list or a results wrapper."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in RESULT_WRAPPER_KEYS:
            entries = payload.get(key)
            if isinstance(entries, list):
                return entries
    raise MalformedResponseError("Analysis response contains no result array")


class AnalysisServiceClient:
    """Client for /analyze, /train, /trained-colors and /clear-cache."""

    def __init__(self, config: Config, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=config.api_base_url,
            timeout=httpx.Timeout(config.request_timeout),
        )
        self.timeouts = TimeoutManager(default_timeout=config.request_timeout)
        self.logger = get_logger()
        self.metrics = get_metrics()

    async def __aenter__(self) -> 'AnalysisServiceClient':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def analyze(self, files: Sequence[FileDescriptor]) -> List[AnalysisEntry]:
        """
        Submit images for analysis in a single multipart request.

        Args:
            files: Images to submit; the response must hold one entry per file

        Returns:
            One AnalysisEntry per submitted file, in submission order

        Raises:
            TransportError: Network failure, timeout or malformed response
            ServiceError: Non-2xx response
        """
        start_time = time.time()
        try:
            payload = await self._request_json(
                "analyze", "POST", self.config.analyze_path, files=build_image_parts(files)
            )
        finally:
            self.metrics.record_timing("analyze_request", (time.time() - start_time) * 1000)

        entries = extract_result_entries(payload)
        if len(entries) != len(files):
            raise MalformedResponseError(
                f"Expected {len(files)} analysis results, received {len(entries)}"
            )
        return [self._parse_entry(entry) for entry in entries]

    async def train(self, files: Sequence[FileDescriptor], color_name: str) -> TrainResponse:
        """Submit reference images for a named color."""
        payload = await self._request_json(
            "train", "POST", self.config.train_path,
            files=build_image_parts(files),
            data={"color_name": color_name},
        )
        return self._validate(TrainResponse, payload)

    async def trained_colors(self) -> List[TrainedColor]:
        """List the reference colors the service knows about."""
        payload = await self._request_json("trained_colors", "GET", self.config.trained_colors_path)
        return self._validate(TrainedColorsResponse, payload).trained_colors

    async def clear_cache(self) -> ClearCacheResponse:
        """Drop the server-side result cache."""
        payload = await self._request_json("clear_cache", "POST", self.config.clear_cache_path)
        return self._validate(ClearCacheResponse, payload or {})

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _request_json(self, operation: str, method: str, path: str, **kwargs) -> Any:
        try:
            async with self.timeouts.timeout(operation):
                response = await self._http.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            self.logger.warning(f"{operation} timed out", extra={'path': path, 'error': str(e)})
            raise RequestTimeoutError(self.config.generic_error_message) from e
        except RequestTimeoutError as e:
            raise RequestTimeoutError(self.config.generic_error_message) from e
        except httpx.HTTPError as e:
            self.logger.warning(f"{operation} transport failure", extra={'path': path, 'error': str(e)})
            raise TransportError(self.config.generic_error_message) from e

        if not response.is_success:
            message = self._error_detail(response)
            self.logger.warning(f"{operation} rejected by service", extra={
                'path': path,
                'status_code': response.status_code,
                'detail': message
            })
            raise ServiceError(message, response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(self.config.generic_error_message) from e

    def _error_detail(self, response: httpx.Response) -> str:
        """The 'detail' string of an error body, verbatim, or the generic message."""
        try:
            return ErrorResponse.model_validate(response.json()).detail or self.config.generic_error_message
        except (ValueError, ValidationError):
            return self.config.generic_error_message

    def _parse_entry(self, entry: Any) -> AnalysisEntry:
        if isinstance(entry, dict) and entry.get("error"):
            return AnalysisEntry(error=str(entry["error"]))
        try:
            return AnalysisEntry(result=AnalysisResult.model_validate(entry))
        except (ValidationError, TypeError, ValueError) as e:
            self.logger.warning("Unreadable analysis entry", extra={'error': str(e)})
            return AnalysisEntry(error=self.config.generic_error_message)

    def _validate(self, model, payload: Dict[str, Any]):
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise MalformedResponseError(self.config.generic_error_message) from e
