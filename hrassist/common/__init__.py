"""
HR Assist Common Module

Shared infrastructure: configuration, error kinds, schemas and LLM transport.
"""

from .config import AssistConfig, load_config
from .errors import (
    HRAssistError,
    DataLoadError,
    BatchFetchError,
    AnalysisDegraded,
    BudgetExceeded,
)
from .llm_client import LLMClient, LLMResponse

__all__ = [
    "AssistConfig",
    "load_config",
    "HRAssistError",
    "DataLoadError",
    "BatchFetchError",
    "AnalysisDegraded",
    "BudgetExceeded",
    "LLMClient",
    "LLMResponse",
]
