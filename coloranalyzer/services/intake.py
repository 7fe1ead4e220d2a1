"""
Color Analyzer File Intake
Validates and normalizes a raw file selection into an ordered batch.
"""
from typing import Any, Callable, List, Optional, Sequence

from coloranalyzer.config import Config
from coloranalyzer.services.session import FileDescriptor, SelectionItem
from coloranalyzer.utils.logging import get_logger
from coloranalyzer.utils.metrics import get_metrics


class IntakeResult:
    """Outcome of one intake pass."""

    def __init__(
        self,
        accepted: List[SelectionItem],
        rejected_count: int = 0,
        truncated_count: int = 0,
        hard_cap_exceeded: bool = False,
        max_batch_size: Optional[int] = None,
    ):
        self.accepted = accepted
        self.rejected_count = rejected_count
        self.truncated_count = truncated_count
        self.hard_cap_exceeded = hard_cap_exceeded
        self.max_batch_size = max_batch_size

    def __repr__(self) -> str:
        return (
            f"IntakeResult(accepted={len(self.accepted)}, rejected={self.rejected_count}, "
            f"truncated={self.truncated_count}, hard_cap_exceeded={self.hard_cap_exceeded})"
        )

    @property
    def is_empty(self) -> bool:
        return not self.accepted

    @property
    def should_warn(self) -> bool:
        return self.rejected_count > 0 or self.hard_cap_exceeded

    def warning_message(self) -> Optional[str]:
        """Default user-facing warning text, or None when nothing needs reporting."""
        if not self.should_warn:
            return None

        parts = []
        if self.rejected_count:
            noun = "file was" if self.rejected_count == 1 else "files were"
            parts.append(f"Only image files are allowed! {self.rejected_count} {noun} skipped.")
        if self.hard_cap_exceeded:
            parts.append(
                f"You can select up to {self.max_batch_size} images; "
                f"{self.truncated_count} extra were dropped."
            )
        return " ".join(parts)


IntakeWarningCallback = Callable[[IntakeResult], None]


def is_image_descriptor(descriptor: Any) -> bool:
    """True when the declared MIME type starts with image/."""
    content_type = getattr(descriptor, 'content_type', None)
    if not isinstance(content_type, str):
        return False
    if not isinstance(getattr(descriptor, 'data', None), (bytes, bytearray)):
        return False
    return content_type.strip().lower().startswith('image/')


class FileIntake:
    """Filters a raw selection to images and applies the configured batch bound."""

    def __init__(self, config: Config, on_warning: Optional[IntakeWarningCallback] = None):
        self.config = config
        self.on_warning = on_warning
        self.logger = get_logger()
        self.metrics = get_metrics()

    def intake(self, raw_files: Optional[Sequence[FileDescriptor]]) -> IntakeResult:
        """
        Split a raw selection into accepted items and a rejected count.

        Never raises for malformed input: anything that is not an image
        descriptor is counted as rejected.

        Args:
            raw_files: Files in the order the user supplied them

        Returns:
            IntakeResult whose accepted items are pending and have no preview yet
        """
        raw_files = list(raw_files or [])
        valid = [descriptor for descriptor in raw_files if is_image_descriptor(descriptor)]
        rejected_count = len(raw_files) - len(valid)

        limit = self.config.batch_limit
        truncated_count = 0
        if limit is not None and len(valid) > limit:
            truncated_count = len(valid) - limit
            valid = valid[:limit]
        hard_cap_exceeded = truncated_count > 0 and self.config.enforce_hard_cap

        accepted = [SelectionItem(index=position, blob=descriptor) for position, descriptor in enumerate(valid)]
        result = IntakeResult(
            accepted=accepted,
            rejected_count=rejected_count,
            truncated_count=truncated_count,
            hard_cap_exceeded=hard_cap_exceeded,
            max_batch_size=limit,
        )

        if rejected_count:
            self.metrics.increment("intake_rejected_total", rejected_count)
        if truncated_count:
            self.metrics.increment("intake_truncated_total", truncated_count)
            if not hard_cap_exceeded:
                self.logger.debug(f"Soft-truncated selection to {limit} images")

        self.logger.info("Intake complete", extra={
            'received': len(raw_files),
            'accepted': len(accepted),
            'rejected': rejected_count,
            'truncated': truncated_count
        })

        if result.should_warn:
            self.logger.warning(result.warning_message())
            if self.on_warning is not None:
                self.on_warning(result)

        return result
