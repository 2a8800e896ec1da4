"""
Conversation History Trimming

Token estimation, recency-preserving history optimization and the
rule-based summary that replaces older turns in long conversations.
"""

import math
from collections import Counter
from typing import List, Sequence, Tuple

from ..common.config import BudgetConfig
from ..common.schemas.conversation import AssistantType, ChatMessage, MessageRole

EMPLOYEE_TOPICS = ["schedule", "employee", "time off", "task", "performance", "recognition"]
TALENT_TOPICS = ["job", "candidate", "interview", "hire", "recruitment", "position"]

ASSISTANT_NAMES = {
    AssistantType.EMPLOYEE: "the Employee Assistant",
    AssistantType.TALENT: "the Talent Acquisition Assistant",
    AssistantType.UNIFIED: "the Unified Assistant",
}


def estimate_tokens(text: str, tokens_per_char: float = 0.25) -> int:
    """Character-based token estimate"""
    return math.ceil(len(text) * tokens_per_char)


def message_tokens(message: ChatMessage, config: BudgetConfig) -> int:
    """Estimated cost of one message including role and framing overhead"""
    return (
        config.role_tokens
        + estimate_tokens(message.content, config.tokens_per_char)
        + config.message_overhead_tokens
    )


def count_tokens(messages: Sequence[ChatMessage], config: BudgetConfig) -> int:
    return sum(message_tokens(m, config) for m in messages)


def optimize_history(messages: Sequence[ChatMessage], budget: int, config: BudgetConfig) -> List[ChatMessage]:
    """
    Trim history to a token budget while keeping the most recent turns.

    The last ``keep_recent`` messages are always kept. Older system messages
    may use up to ``system_share`` of what is left, newest first. Older
    user/assistant messages are then taken in consecutive pairs from the
    oldest, skipping any pair that would overflow.

    Args:
        messages: Chronological history
        budget: Token budget for the history
        config: Estimation and trimming parameters

    Returns:
        Chronological subset of messages
    """
    messages = list(messages)
    if count_tokens(messages, config) <= budget:
        return messages

    split = max(0, len(messages) - config.keep_recent)
    older = list(enumerate(messages[:split]))
    recent = messages[split:]
    remaining = budget - count_tokens(recent, config)

    kept: List[Tuple[int, ChatMessage]] = []

    system_allowance = max(0, remaining) * config.system_share
    system_used = 0
    for index, message in reversed([(i, m) for i, m in older if m.role == MessageRole.SYSTEM]):
        cost = message_tokens(message, config)
        if system_used + cost <= system_allowance:
            kept.append((index, message))
            system_used += cost
    remaining -= system_used

    conversational = [(i, m) for i, m in older if m.role != MessageRole.SYSTEM]
    for start in range(0, len(conversational), 2):
        pair = conversational[start:start + 2]
        cost = sum(message_tokens(m, config) for _, m in pair)
        if cost <= remaining:
            kept.extend(pair)
            remaining -= cost

    kept.sort(key=lambda item: item[0])
    return [m for _, m in kept] + recent


def dominant_assistant(messages: Sequence[ChatMessage]) -> AssistantType:
    counts = Counter(
        m.assistant_type for m in messages
        if m.role == MessageRole.ASSISTANT and m.assistant_type is not None
    )
    if not counts:
        return AssistantType.UNIFIED
    return counts.most_common(1)[0][0]


def generate_summary(messages: Sequence[ChatMessage]) -> ChatMessage:
    """
    Summarize a run of messages as one system message.

    Names the dominant assistant, counts user messages and lists the
    employee and talent topics that came up in user messages.
    """
    user_messages = [m for m in messages if m.role == MessageRole.USER]
    user_text = " ".join(m.content.lower() for m in user_messages)
    assistant = dominant_assistant(messages)

    parts = [
        f"Conversation summary: {len(user_messages)} user messages, "
        f"predominantly with {ASSISTANT_NAMES[assistant]}."
    ]
    employee_topics = [t for t in EMPLOYEE_TOPICS if t in user_text]
    if employee_topics:
        parts.append(f"Employee topics discussed: {', '.join(employee_topics)}.")
    talent_topics = [t for t in TALENT_TOPICS if t in user_text]
    if talent_topics:
        parts.append(f"Talent topics discussed: {', '.join(talent_topics)}.")

    return ChatMessage(role=MessageRole.SYSTEM, content=" ".join(parts), assistant_type=assistant)


def prepare_history(messages: Sequence[ChatMessage], config: BudgetConfig) -> Tuple[List[ChatMessage], bool]:
    """
    Optimize history and, for long conversations, replace older turns with a summary.

    Summarization applies when there are more than ``summarize_after``
    messages and optimization had to drop something. The summary is only
    used if the summarized history fits the budget.

    Returns:
        (messages, whether a summary was inserted)
    """
    messages = list(messages)
    budget = config.history_budget
    optimized = optimize_history(messages, budget, config)

    if len(messages) <= config.summarize_after or len(optimized) >= len(messages):
        return optimized, False

    tail = max(config.summary_tail, config.keep_recent)
    if len(messages) <= tail:
        return optimized, False

    summarized = [generate_summary(messages[:-tail])] + messages[-tail:]
    if count_tokens(summarized, config) <= budget:
        return summarized, True
    return optimized, False
