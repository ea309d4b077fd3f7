from .settings import (
    IntelligenceConfig,
    LoggingConfig,
    MemoryConfig,
    Settings,
    TierConfig,
    load_settings,
)

__all__ = [
    "IntelligenceConfig",
    "LoggingConfig",
    "MemoryConfig",
    "Settings",
    "TierConfig",
    "load_settings",
]
