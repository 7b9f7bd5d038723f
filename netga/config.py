"""
Configuration management for netga.
Handles packaged run defaults and environment-driven settings.
"""
from typing import Any, Dict, List, Optional
import json
import logging
from copy import deepcopy
from importlib.resources import files

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

STRATEGIES = ("steady_state", "generational")

_RUN_DEFAULTS_FALLBACK: Dict[str, Any] = {
    "population_size": 20,
    "num_generations": 200,
    "num_servers": 5,
    "num_clients": 20,
    "pr_crossover": 0.5,
    "pr_mutation": 0.4,
    "pr_symbiosis": 0.0,
    "strategy": "steady_state",
    "replace_two": True,
    "tournament_size": 2,
    "gaussian_stddev": 0.0,
    "seed": 42,
    "workspace_width": 950,
    "workspace_height": 700,
    "cost_functions": ["total_edge_cost", "server_load"],
}


def _as_bool(value: Any, default: bool) -> bool:
    """Coerce various JSON-like values to bool."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(default)


def _as_probability(value: Any, default: float) -> float:
    """Coerce to float and clamp into [0, 1]."""
    try:
        prob = float(value)
    except (TypeError, ValueError):
        return float(default)
    return min(1.0, max(0.0, prob))


def _normalize_run_defaults(raw: Any) -> Dict[str, Any]:
    """Merge loaded JSON defaults with robust fallbacks and type coercion."""
    merged = deepcopy(_RUN_DEFAULTS_FALLBACK)
    if isinstance(raw, dict):
        merged.update(raw)

    for key in ("population_size", "num_generations", "tournament_size",
                "workspace_width", "workspace_height"):
        try:
            merged[key] = max(1, int(merged.get(key, _RUN_DEFAULTS_FALLBACK[key])))
        except (TypeError, ValueError):
            merged[key] = _RUN_DEFAULTS_FALLBACK[key]

    for key in ("num_servers", "num_clients", "seed"):
        try:
            merged[key] = max(0, int(merged.get(key, _RUN_DEFAULTS_FALLBACK[key])))
        except (TypeError, ValueError):
            merged[key] = _RUN_DEFAULTS_FALLBACK[key]

    for key in ("pr_crossover", "pr_mutation", "pr_symbiosis"):
        merged[key] = _as_probability(merged.get(key), _RUN_DEFAULTS_FALLBACK[key])

    try:
        merged["gaussian_stddev"] = max(0.0, float(merged.get("gaussian_stddev")))
    except (TypeError, ValueError):
        merged["gaussian_stddev"] = _RUN_DEFAULTS_FALLBACK["gaussian_stddev"]

    strategy = str(merged.get("strategy", "")).strip().lower()
    merged["strategy"] = strategy if strategy in STRATEGIES else _RUN_DEFAULTS_FALLBACK["strategy"]

    merged["replace_two"] = _as_bool(
        merged.get("replace_two"), _RUN_DEFAULTS_FALLBACK["replace_two"]
    )

    names = merged.get("cost_functions")
    if not isinstance(names, list) or not names:
        names = _RUN_DEFAULTS_FALLBACK["cost_functions"]
    merged["cost_functions"] = [str(name) for name in names]

    return merged


def _load_packaged_run_defaults() -> Dict[str, Any]:
    """Load packaged run defaults JSON with fallback behavior."""
    raw_defaults: Any = {}
    try:
        resource = files("netga.defaults").joinpath("run_defaults.json")
        raw_defaults = json.loads(resource.read_text(encoding="utf-8"))
    except (OSError, ValueError, ModuleNotFoundError) as e:
        logger.debug(f"Packaged run defaults unavailable, using fallback: {e}")
        raw_defaults = {}
    return _normalize_run_defaults(raw_defaults)


_RUN_DEFAULTS = _load_packaged_run_defaults()


def get_run_defaults() -> Dict[str, Any]:
    """Return a copy of normalized run defaults."""
    return deepcopy(_RUN_DEFAULTS)


class NetGAConfig(BaseSettings):
    """Main configuration for netga."""

    model_config = SettingsConfigDict(
        env_prefix="NETGA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Population
    population_size: int = Field(default=_RUN_DEFAULTS["population_size"], gt=0)
    num_generations: int = Field(default=_RUN_DEFAULTS["num_generations"], ge=0)
    num_servers: int = Field(default=_RUN_DEFAULTS["num_servers"], ge=0)
    num_clients: int = Field(default=_RUN_DEFAULTS["num_clients"], ge=0)

    # Operators
    pr_crossover: float = Field(default=_RUN_DEFAULTS["pr_crossover"], ge=0.0, le=1.0)
    pr_mutation: float = Field(default=_RUN_DEFAULTS["pr_mutation"], ge=0.0, le=1.0)
    pr_symbiosis: float = Field(default=_RUN_DEFAULTS["pr_symbiosis"], ge=0.0, le=1.0)

    # Evolution strategy
    strategy: str = Field(default=_RUN_DEFAULTS["strategy"], pattern="^(steady_state|generational)$")
    replace_two: bool = _RUN_DEFAULTS["replace_two"]
    tournament_size: int = Field(default=_RUN_DEFAULTS["tournament_size"], ge=1)

    # Cost functions
    cost_functions: List[str] = Field(default_factory=lambda: list(_RUN_DEFAULTS["cost_functions"]))
    gaussian_stddev: float = Field(default=_RUN_DEFAULTS["gaussian_stddev"], ge=0.0)

    seed: Optional[int] = _RUN_DEFAULTS["seed"]

    # Placement area for node coordinates
    workspace_width: int = Field(default=_RUN_DEFAULTS["workspace_width"], gt=0)
    workspace_height: int = Field(default=_RUN_DEFAULTS["workspace_height"], gt=0)

    # Level of the "netga" logger, applied by NetworkGA.from_config
    log_level: str = Field(default="INFO", pattern="(?i)^(debug|info|warning|error|critical)$")


_config_instance: Optional[NetGAConfig] = None


def get_config() -> NetGAConfig:
    """Get or create the global config instance."""
    global _config_instance
    if _config_instance is None:
        _config_instance = NetGAConfig()
    return _config_instance


def reset_config() -> None:
    """Drop the cached global config so the next get_config() re-reads the environment."""
    global _config_instance
    _config_instance = None
