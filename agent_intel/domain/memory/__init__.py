from .aggregation import MemoryAggregator, extract_key_pattern
from .inverted_index import InvertedIndex, tokenize
from .memory_service import MemoryService, build_memory_key, build_search_pattern

__all__ = [
    "InvertedIndex",
    "MemoryAggregator",
    "MemoryService",
    "build_memory_key",
    "build_search_pattern",
    "extract_key_pattern",
    "tokenize",
]
