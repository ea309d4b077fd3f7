from .requests import (
    ClearMemoryResponse,
    DeleteMemoryResponse,
    IntelligenceRequest,
    PatternFeedbackRequest,
    PatternFeedbackResponse,
    StoreMemoryRequest,
    StoreMemoryResponse,
    ToolExecutionRequest,
)

__all__ = [
    "ClearMemoryResponse",
    "DeleteMemoryResponse",
    "IntelligenceRequest",
    "PatternFeedbackRequest",
    "PatternFeedbackResponse",
    "StoreMemoryRequest",
    "StoreMemoryResponse",
    "ToolExecutionRequest",
]
