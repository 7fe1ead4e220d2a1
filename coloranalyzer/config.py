"""
Color Analyzer Configuration
Manages environment variables and defaults for the analysis client.
"""
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from dotenv import load_dotenv


DISPATCH_POLICIES = ("sequential", "batched")
LOADING_MARKERS = ("bulk", "per_item")
EMPTY_SELECTION_POLICIES = ("clear", "keep")

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")


def env_flag(name: str, default: bool) -> bool:
    """Read a boolean environment variable (1/0, true/false, yes/no, on/off)."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (one of {TRUE_VALUES + FALSE_VALUES}), got {raw!r}")


@dataclass
class Config:
    """Configuration for the color analyzer client."""

    # Remote service
    api_base_url: str = "http://localhost:8000"
    analyze_path: str = "/analyze"
    train_path: str = "/train"
    trained_colors_path: str = "/trained-colors"
    clear_cache_path: str = "/clear-cache"
    request_timeout: float = 30.0  # seconds

    # Intake (0 = unbounded)
    max_batch_size: int = 3
    enforce_hard_cap: bool = True
    empty_selection_policy: str = "clear"

    # Dispatch
    dispatch_policy: str = "sequential"
    loading_marker: str = "bulk"

    # Presentation hints
    preview_max_edge: int = 256
    match_accuracy_offset: float = 0.0
    generic_error_message: str = "An unknown error occurred"

    # Logging
    log_level: str = "INFO"
    log_to_stderr: bool = False

    @classmethod
    def from_environment(cls, dotenv_path: Optional[str] = None) -> 'Config':
        """Load configuration from environment variables (and an optional .env file)."""
        load_dotenv(dotenv_path)

        config = cls(
            api_base_url=os.getenv('COLORANALYZER_API_BASE_URL', 'http://localhost:8000'),
            analyze_path=os.getenv('COLORANALYZER_ANALYZE_PATH', '/analyze'),
            train_path=os.getenv('COLORANALYZER_TRAIN_PATH', '/train'),
            trained_colors_path=os.getenv('COLORANALYZER_TRAINED_COLORS_PATH', '/trained-colors'),
            clear_cache_path=os.getenv('COLORANALYZER_CLEAR_CACHE_PATH', '/clear-cache'),
            request_timeout=float(os.getenv('COLORANALYZER_REQUEST_TIMEOUT', '30.0')),
            max_batch_size=int(os.getenv('COLORANALYZER_MAX_BATCH_SIZE', '3')),
            enforce_hard_cap=env_flag('COLORANALYZER_ENFORCE_HARD_CAP', True),
            empty_selection_policy=os.getenv('COLORANALYZER_EMPTY_SELECTION_POLICY', 'clear').lower(),
            dispatch_policy=os.getenv('COLORANALYZER_DISPATCH_POLICY', 'sequential').lower(),
            loading_marker=os.getenv('COLORANALYZER_LOADING_MARKER', 'bulk').lower(),
            preview_max_edge=int(os.getenv('COLORANALYZER_PREVIEW_MAX_EDGE', '256')),
            match_accuracy_offset=float(os.getenv('COLORANALYZER_MATCH_ACCURACY_OFFSET', '0.0')),
            generic_error_message=os.getenv(
                'COLORANALYZER_GENERIC_ERROR_MESSAGE', 'An unknown error occurred'
            ),
            log_level=os.getenv('COLORANALYZER_LOG_LEVEL', 'INFO').upper(),
            log_to_stderr=env_flag('COLORANALYZER_LOG_TO_STDERR', False),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Raise ValueError for settings the client cannot run with."""
        if self.max_batch_size < 0:
            raise ValueError(f"max_batch_size must be >= 0, got {self.max_batch_size}")
        if self.request_timeout <= 0:
            raise ValueError(f"request_timeout must be positive, got {self.request_timeout}")
        if self.preview_max_edge <= 0:
            raise ValueError(f"preview_max_edge must be positive, got {self.preview_max_edge}")
        if self.dispatch_policy not in DISPATCH_POLICIES:
            raise ValueError(f"dispatch_policy must be one of {DISPATCH_POLICIES}")
        if self.loading_marker not in LOADING_MARKERS:
            raise ValueError(f"loading_marker must be one of {LOADING_MARKERS}")
        if self.empty_selection_policy not in EMPTY_SELECTION_POLICIES:
            raise ValueError(f"empty_selection_policy must be one of {EMPTY_SELECTION_POLICIES}")

    @property
    def batch_limit(self) -> Optional[int]:
        """Configured batch bound, or None when unbounded."""
        return self.max_batch_size or None

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global configuration."""
    global _config
    if _config is None:
        _config = Config.from_environment()
    return _config
