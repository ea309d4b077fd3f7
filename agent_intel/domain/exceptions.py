"""Exception hierarchy for the intelligence and memory subsystem."""


class AgentIntelError(Exception):
    """Base class for subsystem exceptions."""


class IntelligenceInitializationError(AgentIntelError):
    """Raised when a collaborator cannot be set up."""


class MemoryNotInitializedError(AgentIntelError):
    """Raised when a memory write is attempted before initialize()."""


class AggregationUnavailableError(AgentIntelError):
    """Raised when aggregation is requested but disabled by configuration."""


class StorageError(AgentIntelError):
    """Raised when the durable storage cannot complete an operation."""


class StorageUnavailableError(StorageError):
    """Raised when the durable storage reports itself unhealthy."""
