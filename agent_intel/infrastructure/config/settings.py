"""Configuration schema using Pydantic.

Every value can be overridden from the environment, e.g.
``AGENT_INTEL_MEMORY__CLEANUP_INTERVAL_SECONDS=600`` or
``AGENT_INTEL_INTELLIGENCE__FAST_PATH_THRESHOLD=0.9``.
"""

from typing import Optional, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from agent_intel.domain.models.memory_state import MemoryTier


class TierConfig(BaseModel):
    """Retention policy for one memory tier."""
    ttl: int = Field(gt=0, description="Default time-to-live in seconds")
    max_entries: int = Field(gt=0, description="Entries kept before oldest-first eviction")


class MemoryConfig(BaseModel):
    """Tiered memory configuration."""
    short_term: TierConfig = Field(default_factory=lambda: TierConfig(ttl=3600, max_entries=1000))
    long_term: TierConfig = Field(default_factory=lambda: TierConfig(ttl=2592000, max_entries=10000))
    enable_aggregation: bool = True
    enable_global_access: bool = True  # False requires session_id or namespace on searches
    cleanup_interval_seconds: float = Field(default=3600, gt=0)
    aggregation_limit: int = Field(default=1000, ge=1)
    stats_scan_limit: int = Field(default=10000, ge=1)

    def tier(self, tier: MemoryTier) -> TierConfig:
        return self.short_term if tier == MemoryTier.SHORT_TERM else self.long_term


class IntelligenceConfig(BaseModel):
    """Decision engine configuration."""
    enable_pattern_matching: bool = True
    enable_context_trees: bool = True
    fast_path_threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    context_max_nodes: int = Field(default=50, ge=1)
    include_low_priority_context: bool = False
    pattern_source_path: Optional[str] = None
    context_template_path: Optional[str] = None


class LoggingConfig(BaseModel):
    """structlog output configuration."""
    level: str = "INFO"
    format: Literal["json", "console"] = "json"
    service_name: str = "agent-intel"


class Settings(BaseSettings):
    """Root settings object."""
    model_config = SettingsConfigDict(
        env_prefix="AGENT_INTEL_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    intelligence: IntelligenceConfig = Field(default_factory=IntelligenceConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings(**overrides) -> Settings:
    """Build settings from the environment, with keyword overrides on top."""
    return Settings(**overrides)
