"""
Context Budget Manager

Splits the model's context window into fixed budgets for instructions,
retrieved data and conversation history, and fits each part into its
budget. Building a context never fails for size: data is compressed and
cut, instructions are cut, and history is trimmed, summarized or, as a
last resort, truncated message by message.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from ..common.config import BudgetConfig
from ..common.errors import BudgetExceeded
from ..common.schemas.conversation import ChatMessage, ContextMetadata, MessageRole
from ..retriever.formatter import CompressionLevel, DataFormatter, NO_DATA_TEXT
from ..retriever.orchestrator import RetrievedData
from .history import count_tokens, estimate_tokens, message_tokens, optimize_history, prepare_history

logger = logging.getLogger("hrassist.context.budget")

TRUNCATION_MARKER = "\n[truncated]"


class RecommendedAction(str, Enum):
    """What the caller should do about history size"""
    NONE = "none"
    OPTIMIZE = "optimize"
    SUMMARIZE = "summarize"


@dataclass
class TokenUsageAnalysis:
    """History size relative to the full context window"""
    total_tokens: int
    percent_used: float
    is_nearing_limit: bool
    recommended_action: RecommendedAction


@dataclass
class BoundedContext:
    """Everything sent to the model for one turn, each part within its budget"""
    messages: List[ChatMessage]
    system_text: str
    data_text: str
    metadata: ContextMetadata
    usage: TokenUsageAnalysis
    summarized: bool = False
    truncated_message_count: int = 0
    advisory: Optional[ChatMessage] = None

    @property
    def total_tokens(self) -> int:
        return self.metadata.total_tokens


class ContextBudgetManager:
    """
    Allocates and enforces the context window budget.

    Budget layout (defaults):
    - 100000 token window, 10000 held back as buffer
    - 4000 for system instructions, 5000 for retrieved data
    - the remaining 81000 for conversation history
    """

    def __init__(self, config: Optional[BudgetConfig] = None, formatter: Optional[DataFormatter] = None):
        self.config = config or BudgetConfig()
        self._formatter = formatter or DataFormatter()

    @property
    def history_budget(self) -> int:
        return self.config.history_budget

    # ------------------------------------------------------------------
    # Estimation
    # ------------------------------------------------------------------

    def estimate_tokens(self, text: str) -> int:
        return estimate_tokens(text, self.config.tokens_per_char)

    def message_tokens(self, message: ChatMessage) -> int:
        return message_tokens(message, self.config)

    def count_tokens(self, messages: Sequence[ChatMessage]) -> int:
        return count_tokens(messages, self.config)

    def _max_chars(self, budget: int) -> int:
        return int(math.floor(budget / self.config.tokens_per_char))

    def _cut(self, text: str, budget: int) -> str:
        if self.estimate_tokens(text) <= budget:
            return text
        max_chars = self._max_chars(budget)
        if max_chars <= len(TRUNCATION_MARKER):
            return text[:max_chars]
        return text[:max_chars - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def optimize_history(self, messages: Sequence[ChatMessage]) -> List[ChatMessage]:
        """Trim history to the history budget, keeping the most recent turns"""
        return optimize_history(messages, self.history_budget, self.config)

    def analyze_token_usage(self, messages: Sequence[ChatMessage]) -> TokenUsageAnalysis:
        """
        Measure history against the full context window.

        Above the summarize threshold the recommendation is to summarize,
        above the optimize threshold to optimize.
        """
        total = self.count_tokens(messages)
        ratio = total / self.config.max_context_tokens if self.config.max_context_tokens else 1.0

        if ratio > self.config.summarize_threshold:
            action = RecommendedAction.SUMMARIZE
        elif ratio > self.config.optimize_threshold:
            action = RecommendedAction.OPTIMIZE
        else:
            action = RecommendedAction.NONE

        return TokenUsageAnalysis(
            total_tokens=total,
            percent_used=ratio * 100,
            is_nearing_limit=ratio > self.config.optimize_threshold,
            recommended_action=action,
        )

    def advisory_message(self, analysis: TokenUsageAnalysis) -> Optional[ChatMessage]:
        """System notice for the host UI when the conversation nears the window limit"""
        if analysis.recommended_action == RecommendedAction.SUMMARIZE:
            content = (
                f"The conversation is getting long (approximately {analysis.total_tokens:,} tokens, "
                f"{analysis.percent_used:.1f}% of capacity). Some older messages have been summarized "
                "to maintain context while staying within limits."
            )
        elif analysis.recommended_action == RecommendedAction.OPTIMIZE:
            content = (
                f"The conversation is approaching context limits (approximately {analysis.total_tokens:,} "
                f"tokens, {analysis.percent_used:.1f}% of capacity). Some older messages may be optimized "
                "in future responses if needed."
            )
        else:
            return None
        return ChatMessage(role=MessageRole.SYSTEM, content=content)

    def fit_history(self, messages: Sequence[ChatMessage]) -> List[ChatMessage]:
        """
        Check prepared history against the history budget.

        Raises:
            BudgetExceeded: if the messages still do not fit
        """
        messages = list(messages)
        required = self.count_tokens(messages)
        if required > self.history_budget:
            raise BudgetExceeded(
                f"History needs {required} tokens, budget is {self.history_budget}",
                key="history",
                required=required,
                budget=self.history_budget,
            )
        return messages

    def _truncate_history(self, messages: List[ChatMessage], overflow: int) -> Tuple[List[ChatMessage], int]:
        """Shorten message content oldest first until the overflow is absorbed"""
        result = list(messages)
        truncated = 0
        for index, message in enumerate(result):
            if overflow <= 0:
                break
            content_tokens = self.estimate_tokens(message.content)
            if content_tokens == 0:
                continue
            allowed = max(0, content_tokens - overflow)
            content = message.content[:self._max_chars(allowed)]
            overflow -= content_tokens - self.estimate_tokens(content)
            result[index] = message.model_copy(update={"content": content})
            truncated += 1

        # Framing overhead alone can still overflow a very small budget
        while len(result) > 1 and self.count_tokens(result) > self.history_budget:
            result.pop(0)
        return result, truncated

    # ------------------------------------------------------------------
    # Data and instructions
    # ------------------------------------------------------------------

    def format_data(self, retrieved: Optional[RetrievedData]) -> str:
        """
        Render retrieved data within the data budget.

        Tries low, medium and high compression in turn, then cuts the text.
        """
        if retrieved is None:
            return NO_DATA_TEXT
        budget = self.config.data_budget
        text = ""
        for level in (CompressionLevel.LOW, CompressionLevel.MEDIUM, CompressionLevel.HIGH):
            text = self._formatter.format(retrieved, level)
            if self.estimate_tokens(text) <= budget:
                return text
            logger.debug("Formatted data over budget at %s compression", level.value)
        logger.info("Cutting formatted data to %d tokens", budget)
        return self._cut(text, budget)

    def fit_instructions(self, instructions: str) -> str:
        fitted = self._cut(instructions, self.config.system_budget)
        if fitted != instructions:
            logger.info("System instructions cut to %d tokens", self.config.system_budget)
        return fitted

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    def build_context(
        self,
        history: Sequence[ChatMessage],
        retrieved: Optional[RetrievedData],
        system_instructions: str,
    ) -> BoundedContext:
        """
        Assemble a context whose parts each fit their budget.

        Args:
            history: Chronological conversation including the new user message
            retrieved: Records for this turn, or None when no data is needed
            system_instructions: Assistant instructions

        Returns:
            BoundedContext; never raises for size
        """
        history = list(history)
        data_text = self.format_data(retrieved)
        system_text = self.fit_instructions(system_instructions)

        prepared, summarized = prepare_history(history, self.config)
        truncated = 0
        try:
            messages = self.fit_history(prepared)
        except BudgetExceeded as e:
            logger.warning("%s; truncating message content", e.message)
            messages, truncated = self._truncate_history(prepared, e.overflow)

        usage = self.analyze_token_usage(history)
        total = self.estimate_tokens(system_text) + self.estimate_tokens(data_text) + self.count_tokens(messages)
        if len(messages) < len(history):
            logger.debug("History trimmed from %d to %d messages", len(history), len(messages))

        return BoundedContext(
            messages=messages,
            system_text=system_text,
            data_text=data_text,
            metadata=ContextMetadata(total_tokens=total, message_count=len(messages)),
            usage=usage,
            summarized=summarized,
            truncated_message_count=truncated,
            advisory=self.advisory_message(usage),
        )
