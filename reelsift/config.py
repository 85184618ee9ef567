"""
config.py - Configuration models for reelsift
"""

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from reelsift.errors import InvalidConfig

try:
    import tomllib
except ModuleNotFoundError:
    import tomli as tomllib

MIN_TIMEOUT_SECONDS = 5.0
MAX_TIMEOUT_SECONDS = 120.0
DEFAULT_TIMEOUT_SECONDS = 15.0
DEFAULT_BACKUP_SOURCE = "torrentio"

PresetName = Literal["maxQuality", "balanced", "minSize", "compatibility"]
ResolutionPreference = Literal["4K", "1080p", "720p", "any"]

GIB = 1024 ** 3


class RankingConfig(BaseModel):
    """
    Caller-tunable ranking knobs.

    Field defaults are the base layer; the named preset fills in every field
    the caller did not pass, so RankingConfig(preset="minSize") and
    build_ranking_config("minSize") are the same config.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    preferred_resolution: ResolutionPreference = Field(
        default="any",
        description="Resolution that earns the +5 preference bonus ('any' disables it)"
    )
    prefer_hdr: bool = Field(default=True, description="Score HDR formats at all")
    prefer_dolby_vision: bool = Field(
        default=True,
        description="Score Dolby Vision above HDR10+; otherwise it counts as generic HDR"
    )
    prefer_hevc: bool = Field(default=True, description="Favor HEVC/AV1 over x264 for 4K results")
    prefer_remux: bool = Field(default=False, description="Give remuxes the top source score")
    min_seeds: int = Field(default=1, ge=0, description="Results below this seed count are penalized")
    min_size_bytes: Optional[int] = Field(default=None, ge=0)
    max_size_bytes: Optional[int] = Field(default=None, ge=0)
    exclude_cam: bool = Field(default=True, description="Drop CAM/telesync releases")
    preset: PresetName = "balanced"
    zero_seed_trusted_sources: Tuple[str, ...] = Field(
        default=(DEFAULT_BACKUP_SOURCE,),
        description="Sources whose zero-seed results are kept (cached availability)"
    )

    @model_validator(mode="before")
    @classmethod
    def _layer_preset(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        preset_name = data.get("preset") or "balanced"
        preset_values = QUALITY_PRESETS.get(preset_name)
        if preset_values is None:
            return data
        return {**preset_values, **data, "preset": preset_name}

    @model_validator(mode="after")
    def _check_size_window(self) -> "RankingConfig":
        if (
            self.min_size_bytes is not None
            and self.max_size_bytes is not None
            and self.min_size_bytes > self.max_size_bytes
        ):
            raise ValueError(
                f"min_size_bytes ({self.min_size_bytes}) exceeds max_size_bytes ({self.max_size_bytes})"
            )
        return self


QUALITY_PRESETS: Dict[str, Dict[str, Any]] = {
    "maxQuality": {
        "preferred_resolution": "4K",
        "prefer_hdr": True,
        "prefer_dolby_vision": True,
        "prefer_hevc": True,
        "prefer_remux": True,
        "min_seeds": 1,
        "exclude_cam": True,
    },
    "balanced": {
        "preferred_resolution": "any",
        "prefer_hdr": True,
        "prefer_dolby_vision": False,
        "prefer_hevc": True,
        "prefer_remux": False,
        "min_seeds": 3,
        "exclude_cam": True,
    },
    "minSize": {
        "preferred_resolution": "1080p",
        "prefer_hdr": False,
        "prefer_dolby_vision": False,
        "prefer_hevc": True,
        "prefer_remux": False,
        "min_seeds": 5,
        "max_size_bytes": 5 * GIB,
        "exclude_cam": True,
    },
    "compatibility": {
        "preferred_resolution": "1080p",
        "prefer_hdr": False,
        "prefer_dolby_vision": False,
        "prefer_hevc": False,
        "prefer_remux": False,
        "min_seeds": 5,
        "exclude_cam": True,
    },
}


def build_ranking_config(preset: Optional[str] = None, **overrides: Any) -> RankingConfig:
    """Layer base defaults, then the named preset, then explicit overrides."""
    preset_name = preset or "balanced"
    if preset_name not in QUALITY_PRESETS:
        known = ", ".join(QUALITY_PRESETS)
        raise InvalidConfig(f"Unknown ranking preset '{preset_name}'. Known presets: {known}.")

    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return RankingConfig(preset=preset_name, **values)
    except ValidationError as e:
        raise InvalidConfig(f"Invalid ranking configuration: {e}") from e


def ranking_config_from_preference(preferred_quality: Optional[str], preset: Optional[str] = None) -> RankingConfig:
    """Build a config from a loose user quality label such as '4k' or '1080p'."""
    label = (preferred_quality or "").strip().lower()
    resolution = {"4k": "4K", "2160p": "4K", "1080p": "1080p", "720p": "720p"}.get(label, "any")
    return build_ranking_config(preset, preferred_resolution=resolution)


def ensure_valid_ranking_config(config: Optional[RankingConfig]) -> RankingConfig:
    """Return a usable config, re-validating instances that skipped validation."""
    if config is None:
        return build_ranking_config()
    if not isinstance(config, RankingConfig):
        raise InvalidConfig(f"Expected RankingConfig, got {type(config).__name__}")
    try:
        return RankingConfig.model_validate(config.model_dump())
    except ValidationError as e:
        raise InvalidConfig(f"Invalid ranking configuration: {e}") from e


class OrchestratorConfig(BaseModel):
    """Fan-out settings for a single search."""

    model_config = ConfigDict(extra="forbid")

    timeout_seconds: float = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        description="Per-source time budget, clamped to [5, 120] seconds"
    )
    use_backup_aggregator: bool = Field(
        default=True,
        description="Run the meta-aggregator backup alongside the primary sources"
    )
    backup_source: str = DEFAULT_BACKUP_SOURCE

    @field_validator("timeout_seconds", mode="before")
    @classmethod
    def _clamp_timeout(cls, value: Any) -> float:
        if value is None:
            return DEFAULT_TIMEOUT_SECONDS
        try:
            seconds = float(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"timeout_seconds must be a number, got {value!r}") from e
        return min(MAX_TIMEOUT_SECONDS, max(MIN_TIMEOUT_SECONDS, seconds))


class SourceConfig(BaseModel):
    """Settings for one source adapter."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    urls: List[str] = Field(
        default_factory=list,
        description="Base URLs tried in order (mirrors); empty uses the adapter's built-in list"
    )
    timeout: int = Field(default=10, ge=1, description="HTTP timeout for a single request")
    min_interval_seconds: float = Field(default=0.5, ge=0.0)
    max_concurrency: int = Field(default=3, ge=1)


class ReelsiftConfig(BaseModel):
    search: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    ranking: RankingConfig = Field(default_factory=build_ranking_config)
    sources: Dict[str, SourceConfig] = Field(default_factory=dict)
    config_path: Optional[Path] = None


def load_config(config_path: Path) -> ReelsiftConfig:
    """Load configuration from TOML file"""

    if not config_path.exists():
        raise InvalidConfig(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            config_data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise InvalidConfig(f"Error reading configuration {config_path}: {e}") from e

    ranking_data = dict(config_data.get("ranking", {}))
    try:
        return ReelsiftConfig(
            search=OrchestratorConfig(**config_data.get("search", {})),
            ranking=build_ranking_config(ranking_data.pop("preset", None), **ranking_data),
            sources={
                name.lower(): SourceConfig(**source_data)
                for name, source_data in config_data.get("sources", {}).items()
            },
            config_path=config_path,
        )
    except ValidationError as e:
        raise InvalidConfig(f"Error loading configuration {config_path}: {e}") from e
