"""
Color Analyzer API Schemas
Pydantic models for the remote analysis/training service responses.
"""
import re
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


HEX_RE = re.compile(r"^#?([0-9A-Fa-f]{6})$")


def normalize_hex(value: Any) -> str:
    """Normalize '#abc123', 'abc123' or an [r, g, b] triple to '#ABC123'."""
    if isinstance(value, (list, tuple)) and len(value) == 3:
        try:
            r, g, b = (int(channel) for channel in value)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid RGB triple: {value!r}") from None
        for channel in (r, g, b):
            if not 0 <= channel <= 255:
                raise ValueError(f"RGB channel out of range: {channel}")
        return f"#{r:02X}{g:02X}{b:02X}"
    if isinstance(value, str):
        match = HEX_RE.match(value.strip())
        if match:
            return f"#{match.group(1).upper()}"
    raise ValueError(f"Invalid color value: {value!r}")


def parse_percentage(value: Any) -> Any:
    """Accept 87.5, '87.5' and '87.5%' alike."""
    if isinstance(value, str):
        return float(value.strip().rstrip('%').strip())
    return value


class ServiceModel(BaseModel):
    """Base for service payloads: unknown fields are ignored."""
    model_config = ConfigDict(extra='ignore', frozen=True)


# ============================================================================
# ANALYSIS SCHEMAS
# ============================================================================

class DominantColor(ServiceModel):
    """Single dominant color with its share of the image."""
    hex: str = Field(
        ...,
        validation_alias=AliasChoices('hex', 'color', 'hex_code'),
        description="Hex color code in format #RRGGBB"
    )
    percentage: float = Field(
        ...,
        ge=0.0,
        le=100.0,
        validation_alias=AliasChoices('percentage', 'percent', 'share'),
        description="Share of the image covered by this color (0-100)"
    )

    @field_validator('hex', mode='before')
    @classmethod
    def _normalize_hex(cls, value):
        return normalize_hex(value)

    @field_validator('percentage', mode='before')
    @classmethod
    def _parse_percentage(cls, value):
        return parse_percentage(value)


class ColorMatch(ServiceModel):
    """Closest reference color reported by the service."""
    name: str = Field(
        ...,
        validation_alias=AliasChoices('name', 'color_name', 'closest_color'),
        description="Name of the matched reference color"
    )
    similarity: float = Field(
        ...,
        validation_alias=AliasChoices(
            'similarity', 'similarity_percentage', 'match_percentage', 'percentage'
        ),
        description="Similarity percentage (0-100) as reported by the service"
    )
    distance: Optional[float] = Field(
        None,
        description="Color distance between the dominant color and the match"
    )

    @field_validator('similarity', mode='before')
    @classmethod
    def _parse_similarity(cls, value):
        return parse_percentage(value)


class AnalysisResult(ServiceModel):
    """Per-image analysis payload."""
    dominant_colors: List[DominantColor] = Field(
        default_factory=list,
        validation_alias=AliasChoices('dominant_colors', 'dominant', 'colors'),
        description="Dominant colors ordered by share"
    )
    match: Optional[ColorMatch] = Field(
        None,
        validation_alias=AliasChoices('match', 'best_match', 'closest_match'),
        description="Best/closest reference color"
    )
    from_cache: bool = Field(
        False,
        validation_alias=AliasChoices('from_cache', 'fromCache', 'cached'),
        description="Whether the service answered from its result cache"
    )
    message: Optional[str] = Field(None, description="Free-form service message")

    @model_validator(mode='before')
    @classmethod
    def _normalize_flat_entry(cls, data: Any) -> Any:
        """Fold the flat single-color shape (dominant_color_hex/closest_color) into nested form."""
        if not isinstance(data, dict) or 'dominant_color_hex' not in data:
            return data

        normalized = dict(data)
        hex_value = normalized.pop('dominant_color_hex')
        normalized.setdefault('dominant_colors', [{'hex': hex_value, 'percentage': 100.0}])

        closest = normalized.pop('closest_color', None)
        similarity = normalized.pop('match_percentage', None)
        if closest is not None and 'match' not in normalized:
            match: Dict[str, Any] = {'name': closest, 'similarity': similarity or 0.0}
            if 'distance' in normalized:
                match['distance'] = normalized.pop('distance')
            normalized['match'] = match
        return normalized

    @property
    def percentage_total(self) -> float:
        """Sum of dominant color shares (about 100 up to rounding)."""
        return round(sum(color.percentage for color in self.dominant_colors), 2)

    @property
    def dominant_hex(self) -> Optional[str]:
        """Hex of the most dominant color."""
        return self.dominant_colors[0].hex if self.dominant_colors else None


# ============================================================================
# TRAINING / CACHE SCHEMAS
# ============================================================================

class TrainResponse(ServiceModel):
    """Response of POST /train."""
    message: str = Field(..., description="Confirmation message")


class TrainedColor(ServiceModel):
    """A reference color the service has been trained on."""
    id: str = Field(
        ...,
        validation_alias=AliasChoices('id', '_id', 'color_id'),
        description="Service identifier"
    )
    name: str = Field(
        ...,
        validation_alias=AliasChoices('name', 'color_name'),
        description="Display name"
    )
    reference_colors: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices('reference_colors', 'colors', 'hex_values', 'rgb_values'),
        description="Reference colors normalized to #RRGGBB"
    )

    @field_validator('id', mode='before')
    @classmethod
    def _stringify_id(cls, value):
        return str(value)

    @field_validator('reference_colors', mode='before')
    @classmethod
    def _normalize_colors(cls, value):
        if value is None:
            return []
        return [normalize_hex(color) for color in value]


class TrainedColorsResponse(ServiceModel):
    """Response of GET /trained-colors."""
    trained_colors: List[TrainedColor] = Field(default_factory=list)


class ClearCacheResponse(ServiceModel):
    """Response of POST /clear-cache."""
    message: Optional[str] = Field(None, description="Confirmation message")


class ErrorResponse(ServiceModel):
    """Error body of a non-2xx response."""
    detail: str = Field(..., description="Error message")
