"""
HR Assist

Context-aware retrieval and budgeting engine for the employee and talent
acquisition assistants.

Philosophy:
- Deterministic rules decide what a query is about (no model inference)
- Every record lookup goes through one cached, coalescing data layer
- The LLM call always receives a payload that fits the context window

Usage:
    from hrassist.common import load_config
    from hrassist.context import AppContext, ContextEnhancedChat
    from hrassist.retriever import QueryAnalyzer, RetrievalOrchestrator
    from hrassist.data import TieredCache, CachedRecordService
"""

__version__ = "0.1.0"
