"""
Context - Budgeted Prompt Assembly

Keeps every LLM call inside the context window.

Key Components:
- ContextBudgetManager: Budgets for instructions, data and history
- history: Token estimates, recency-preserving trimming and summaries
- AppContext / ContextEnhancedChat: Component wiring and one chat turn
"""

from .budget import BoundedContext, ContextBudgetManager, RecommendedAction, TokenUsageAnalysis
from .history import estimate_tokens, generate_summary, optimize_history, prepare_history
from .pipeline import AppContext, ChatResult, ContextEnhancedChat, DEFAULT_INSTRUCTIONS

__all__ = [
    "BoundedContext",
    "ContextBudgetManager",
    "RecommendedAction",
    "TokenUsageAnalysis",
    "estimate_tokens",
    "generate_summary",
    "optimize_history",
    "prepare_history",
    "AppContext",
    "ChatResult",
    "ContextEnhancedChat",
    "DEFAULT_INSTRUCTIONS",
]
