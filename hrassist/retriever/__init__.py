"""
Retriever - Query Understanding and Record Retrieval

Classifies HR questions and gathers the records needed to answer them.

Key Components:
- QueryAnalyzer: Entities, intents and assistant routing for a query
- RetrievalOrchestrator: Parallel record retrieval driven by the analysis
- DataFormatter: Markdown rendering of retrieved records for the prompt

Pipeline:
1. Analyze the query (entities, ranked intents, assistant type)
2. Fetch records for each entity, then expand by intent
3. Fall back to contextual defaults when nothing specific was named
4. Index relationships and format the result for the model
"""

from .analysis import (
    DetectedEntity,
    DetectedIntent,
    EntityType,
    IntentCategory,
    QueryAnalysis,
)
from .formatter import CompressionLevel, DataFormatter, compress_text
from .intent_rules import INTENT_RULES, IntentRule, Shortcut
from .orchestrator import RelatedData, RetrievalMetrics, RetrievalOrchestrator, RetrievedData
from .query_analyzer import QueryAnalyzer

__all__ = [
    "DetectedEntity",
    "DetectedIntent",
    "EntityType",
    "IntentCategory",
    "QueryAnalysis",
    "CompressionLevel",
    "DataFormatter",
    "compress_text",
    "INTENT_RULES",
    "IntentRule",
    "Shortcut",
    "RelatedData",
    "RetrievalMetrics",
    "RetrievalOrchestrator",
    "RetrievedData",
    "QueryAnalyzer",
]
