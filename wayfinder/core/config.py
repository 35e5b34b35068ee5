"""
Configuration dataclasses.

Every tunable of the engine lives here with its default. The readiness
timings in particular are empirical heuristics and are kept as
parameters rather than constants.
"""

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional


@dataclass
class BrowserConfig:
    """Browser launch options."""
    headless: bool = True
    window_width: int = 1920
    window_height: int = 1080
    user_agent: Optional[str] = None
    disable_images: bool = False
    # driver.get returns at DOMContentLoaded; the ReadinessDetector decides the rest
    page_load_strategy: str = "eager"
    script_timeout_ms: int = 30000
    page_load_timeout_ms: int = 30000
    extra_args: List[str] = field(default_factory=list)


@dataclass
class DomConfig:
    """Element extraction options."""
    extract_all_elements: bool = True
    include_hidden_elements: bool = False
    max_text_length: int = 1000
    min_text_length: int = 3


@dataclass
class ReadinessConfig:
    """Timings for the navigation readiness race (milliseconds)."""
    grace_ms: int = 1000
    absolute_fallback_ms: int = 8000
    poll_interval_ms: int = 100
    network_quiet_ms: int = 100
    image_check_delay_ms: int = 200


@dataclass
class MonitorConfig:
    """Timings for change detection and auto-refresh (milliseconds)."""
    refresh_wait_ms: int = 1000
    recheck_delay_ms: int = 100
    settle_delay_ms: int = 200
    poll_interval_ms: int = 100


@dataclass
class SessionConfig:
    """Session-level behaviour."""
    navigation_timeout_ms: int = 10000
    auto_refresh: bool = True
    element_timeout_ms: int = 2000
    max_retries: int = 3
    retry_delay_ms: int = 200


@dataclass
class WayfinderConfig:
    """Top-level configuration for a Wayfinder session."""
    browser: BrowserConfig = field(default_factory=BrowserConfig)
    dom: DomConfig = field(default_factory=DomConfig)
    readiness: ReadinessConfig = field(default_factory=ReadinessConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    session: SessionConfig = field(default_factory=SessionConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WayfinderConfig":
        """
        Build a config from a (possibly partial) nested dictionary.

        Unknown sections and keys raise ValueError so typos do not
        silently fall back to defaults.
        """
        section_types = {
            "browser": BrowserConfig,
            "dom": DomConfig,
            "readiness": ReadinessConfig,
            "monitor": MonitorConfig,
            "session": SessionConfig,
        }
        kwargs = {}
        for name, values in (data or {}).items():
            if name not in section_types:
                raise ValueError(f"Unknown config section: {name}")
            section_cls = section_types[name]
            known = {f.name for f in fields(section_cls)}
            unknown = set(values) - known
            if unknown:
                raise ValueError(f"Unknown keys in '{name}': {sorted(unknown)}")
            kwargs[name] = section_cls(**values)
        return cls(**kwargs)
