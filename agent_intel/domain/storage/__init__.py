from .base import DurableStorage
from .in_memory_storage import InMemoryStorage

__all__ = ["DurableStorage", "InMemoryStorage"]
