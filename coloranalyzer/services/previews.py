"""
Color Analyzer Preview Resources
Transient, revocable preview handles for selected image payloads.
"""
import io
from typing import Dict, Iterable, Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from coloranalyzer.services.session import FileDescriptor
from coloranalyzer.utils.ids import generate_preview_id
from coloranalyzer.utils.logging import get_logger
from coloranalyzer.utils.metrics import get_metrics


class PreviewReleasedError(RuntimeError):
    """Raised when a released preview handle is rendered."""
    pass


class PreviewRenderError(ValueError):
    """Raised when a payload cannot be decoded as an image."""
    pass


class PreviewHandle:
    """
    Revocable reference to a renderable preview of one file.

    The handle stays valid until its manager releases it. Thumbnails are
    rendered lazily on first use and cached on the handle.
    """

    def __init__(self, manager: 'PreviewResourceManager', blob: FileDescriptor, max_edge: int):
        self.handle_id = generate_preview_id()
        self.url = f"blob:coloranalyzer/{self.handle_id}"
        self.name = blob.name
        self.content_type = blob.content_type
        self._manager = manager
        self._blob: Optional[FileDescriptor] = blob
        self._max_edge = max_edge
        self._thumbnail: Optional[bytes] = None

    def __repr__(self) -> str:
        state = "live" if self.live else "released"
        return f"PreviewHandle({self.name!r}, {self.url}, {state})"

    @property
    def live(self) -> bool:
        return self._manager.is_live(self)

    def thumbnail(self) -> bytes:
        """PNG thumbnail bounded by max_edge, EXIF orientation applied."""
        if not self.live:
            raise PreviewReleasedError(f"Preview {self.url} has been released")
        if self._thumbnail is None:
            self._thumbnail = render_thumbnail(self._blob.data, self._max_edge)
        return self._thumbnail

    def release(self) -> None:
        self._manager.release(self)

    def _drop(self) -> None:
        self._blob = None
        self._thumbnail = None


def render_thumbnail(image_bytes: bytes, max_edge: int) -> bytes:
    """
    Render an image payload as a PNG thumbnail.

    Args:
        image_bytes: Raw image bytes
        max_edge: Maximum edge of the thumbnail

    Returns:
        PNG bytes

    Raises:
        PreviewRenderError: If the payload is not a decodable image
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image = ImageOps.exif_transpose(image)
        image.thumbnail((max_edge, max_edge), Image.Resampling.LANCZOS)

        if image.mode not in ('RGB', 'RGBA'):
            image = image.convert('RGBA')

        output = io.BytesIO()
        image.save(output, format='PNG')
        return output.getvalue()
    except (UnidentifiedImageError, OSError) as e:
        raise PreviewRenderError(f"Cannot render preview: {e}") from e


class PreviewResourceManager:
    """Owns every live preview handle; release is idempotent."""

    def __init__(self, max_edge: int = 256):
        self.max_edge = max_edge
        self._live: Dict[str, PreviewHandle] = {}
        self.logger = get_logger()
        self.metrics = get_metrics()

    @property
    def live_count(self) -> int:
        return len(self._live)

    def is_live(self, handle: Optional[PreviewHandle]) -> bool:
        return handle is not None and self._live.get(handle.handle_id) is handle

    def acquire(self, blob: FileDescriptor) -> PreviewHandle:
        """Create a preview handle valid until released."""
        handle = PreviewHandle(self, blob, self.max_edge)
        self._live[handle.handle_id] = handle
        self.metrics.increment("previews_acquired_total")
        self.logger.debug("Preview acquired", extra={'url': handle.url, 'file_name': blob.name})
        return handle

    def release(self, handle: Optional[PreviewHandle]) -> None:
        """Release a handle; unknown or already released handles are ignored."""
        if not self.is_live(handle):
            return
        del self._live[handle.handle_id]
        handle._drop()
        self.metrics.increment("previews_released_total")
        self.logger.debug("Preview released", extra={'url': handle.url})

    def release_all(self, handles: Iterable[Optional[PreviewHandle]]) -> None:
        for handle in list(handles):
            self.release(handle)
