"""Tests for history trimming and the ContextBudgetManager."""

import pytest

from hrassist.common.config import BudgetConfig
from hrassist.common.schemas.conversation import AssistantType, ChatMessage, MessageRole


def small_config(**overrides) -> BudgetConfig:
    """400 token window with a 200 token history budget"""
    values = dict(max_context_tokens=400, buffer_tokens=0, system_budget=100, data_budget=100)
    values.update(overrides)
    return BudgetConfig(**values)


def conversation(count: int, chars: int = 40):
    """Alternating user/assistant turns; each message costs chars/4 + 7 tokens"""
    messages = []
    for i in range(count):
        if i % 2 == 0:
            messages.append(ChatMessage(role=MessageRole.USER, content="u" * chars))
        else:
            messages.append(ChatMessage(
                role=MessageRole.ASSISTANT, content="a" * chars, assistant_type=AssistantType.EMPLOYEE,
            ))
    return messages


class TestEstimation:
    def test_estimate_rounds_up(self):
        from hrassist.context.history import estimate_tokens
        assert estimate_tokens("") == 0
        assert estimate_tokens("abc") == 1
        assert estimate_tokens("abcde") == 2

    def test_message_overhead(self):
        from hrassist.context.history import message_tokens
        message = ChatMessage(role=MessageRole.USER, content="x" * 40)
        assert message_tokens(message, BudgetConfig()) == 17


class TestOptimizeHistory:
    def test_under_budget_is_untouched(self):
        from hrassist.context.history import optimize_history
        messages = conversation(4)
        assert optimize_history(messages, 1000, BudgetConfig()) == messages

    def test_recent_messages_always_kept(self):
        from hrassist.context.history import count_tokens, optimize_history
        config = BudgetConfig()
        messages = conversation(20)

        result = optimize_history(messages, 200, config)

        assert result[-8:] == messages[-8:]
        assert result[:2] == messages[:2]
        assert len(result) == 10
        assert count_tokens(result, config) <= 200

    def test_older_system_messages_use_their_share(self):
        from hrassist.context.history import optimize_history
        note = ChatMessage(role=MessageRole.SYSTEM, content="note")
        messages = [note] + conversation(12)

        result = optimize_history(messages, 190, BudgetConfig())

        assert result[0] is note
        assert result[1:3] == messages[1:3]
        assert result[3:] == messages[-8:]

    def test_order_is_preserved(self):
        from hrassist.context.history import optimize_history
        messages = conversation(30)
        result = optimize_history(messages, 250, BudgetConfig())
        positions = [messages.index(m) for m in result]
        assert positions == sorted(positions)


class TestSummary:
    def test_summary_text(self):
        from hrassist.context.history import generate_summary
        messages = [
            ChatMessage(role=MessageRole.USER, content="Can you show Jordan's schedule?"),
            ChatMessage(role=MessageRole.ASSISTANT, content="Sure", assistant_type=AssistantType.EMPLOYEE),
            ChatMessage(role=MessageRole.USER, content="Any open job for a candidate?"),
            ChatMessage(role=MessageRole.ASSISTANT, content="Yes", assistant_type=AssistantType.TALENT),
            ChatMessage(role=MessageRole.USER, content="And time off for Sam"),
            ChatMessage(role=MessageRole.ASSISTANT, content="Done", assistant_type=AssistantType.EMPLOYEE),
        ]

        summary = generate_summary(messages)

        assert summary.role == MessageRole.SYSTEM
        assert summary.content == (
            "Conversation summary: 3 user messages, predominantly with the Employee Assistant. "
            "Employee topics discussed: schedule, time off. "
            "Talent topics discussed: job, candidate."
        )

    def test_summary_without_assistant_turns(self):
        from hrassist.context.history import generate_summary
        summary = generate_summary([ChatMessage(role=MessageRole.USER, content="hello")])
        assert summary.content == "Conversation summary: 1 user messages, predominantly with the Unified Assistant."

    def test_long_history_is_summarized(self):
        from hrassist.context.history import count_tokens, prepare_history
        config = small_config()
        messages = conversation(20)

        result, summarized = prepare_history(messages, config)

        assert summarized is True
        assert result[0].role == MessageRole.SYSTEM
        assert result[0].content.startswith("Conversation summary: 6 user messages")
        assert result[1:] == messages[-8:]
        assert count_tokens(result, config) <= config.history_budget

    def test_short_history_is_not_summarized(self):
        from hrassist.context.history import prepare_history
        config = small_config()
        messages = conversation(12)
        result, summarized = prepare_history(messages, config)
        assert summarized is False
        assert result[-8:] == messages[-8:]


class TestTokenUsage:
    def test_summarize_advisory(self):
        from hrassist.context.budget import ContextBudgetManager, RecommendedAction
        manager = ContextBudgetManager(BudgetConfig(max_context_tokens=1000))
        usage = manager.analyze_token_usage([ChatMessage(role=MessageRole.USER, content="x" * 3400)])

        assert usage.total_tokens == 857
        assert usage.percent_used == pytest.approx(85.7)
        assert usage.is_nearing_limit
        assert usage.recommended_action == RecommendedAction.SUMMARIZE

        advisory = manager.advisory_message(usage)
        assert advisory.role == MessageRole.SYSTEM
        assert advisory.content == (
            "The conversation is getting long (approximately 857 tokens, 85.7% of capacity). "
            "Some older messages have been summarized to maintain context while staying within limits."
        )

    def test_optimize_advisory(self):
        from hrassist.context.budget import ContextBudgetManager, RecommendedAction
        manager = ContextBudgetManager(BudgetConfig(max_context_tokens=100000))
        usage = manager.analyze_token_usage([ChatMessage(role=MessageRole.USER, content="x" * 260000)])

        assert usage.recommended_action == RecommendedAction.OPTIMIZE
        assert manager.advisory_message(usage).content == (
            "The conversation is approaching context limits (approximately 65,007 tokens, 65.0% of capacity). "
            "Some older messages may be optimized in future responses if needed."
        )

    def test_no_advisory_when_small(self):
        from hrassist.context.budget import ContextBudgetManager, RecommendedAction
        manager = ContextBudgetManager()
        usage = manager.analyze_token_usage(conversation(2))
        assert usage.recommended_action == RecommendedAction.NONE
        assert not usage.is_nearing_limit
        assert manager.advisory_message(usage) is None


class TestBudgetManager:
    def test_fit_history_raises_when_over(self):
        from hrassist.common.errors import BudgetExceeded
        from hrassist.context.budget import ContextBudgetManager
        manager = ContextBudgetManager(small_config())

        with pytest.raises(BudgetExceeded) as exc_info:
            manager.fit_history([ChatMessage(role=MessageRole.USER, content="x" * 4000)])

        assert exc_info.value.key == "history"
        assert exc_info.value.overflow == 807

    def test_format_data_without_data(self):
        from hrassist.context.budget import ContextBudgetManager
        from hrassist.retriever.formatter import NO_DATA_TEXT
        assert ContextBudgetManager().format_data(None) == NO_DATA_TEXT

    def test_format_data_is_cut_to_budget(self, collections):
        from hrassist.common.schemas.records import Collection, parse_record
        from hrassist.context.budget import TRUNCATION_MARKER, ContextBudgetManager
        from hrassist.retriever.orchestrator import RetrievedData
        manager = ContextBudgetManager(small_config(data_budget=20))
        data = RetrievedData()
        data.add(parse_record(Collection.EMPLOYEES, row) for row in collections["employees"])

        text = manager.format_data(data)

        assert text.endswith(TRUNCATION_MARKER)
        assert manager.estimate_tokens(text) <= 20

    def test_instructions_are_cut(self):
        from hrassist.context.budget import TRUNCATION_MARKER, ContextBudgetManager
        manager = ContextBudgetManager(small_config())
        fitted = manager.fit_instructions("i" * 1000)
        assert len(fitted) == 400
        assert fitted.endswith(TRUNCATION_MARKER)

    def test_build_context_truncates_oversized_message(self):
        from hrassist.context.budget import ContextBudgetManager
        manager = ContextBudgetManager(small_config())

        context = manager.build_context(
            [ChatMessage(role=MessageRole.USER, content="x" * 4000)], None, "Be helpful.",
        )

        assert context.truncated_message_count == 1
        assert len(context.messages) == 1
        assert len(context.messages[0].content) == 772
        assert manager.count_tokens(context.messages) <= manager.history_budget

    def test_build_context_summarizes_long_history(self):
        from hrassist.context.budget import ContextBudgetManager, RecommendedAction
        manager = ContextBudgetManager(small_config())

        context = manager.build_context(conversation(20), None, "Be helpful.")

        assert context.summarized is True
        assert context.messages[0].role == MessageRole.SYSTEM
        assert context.usage.recommended_action == RecommendedAction.SUMMARIZE
        assert context.advisory is not None
        assert manager.count_tokens(context.messages) <= manager.history_budget

    @pytest.mark.parametrize("count", [1, 9, 16, 40, 120])
    def test_history_never_exceeds_budget(self, count):
        from hrassist.context.budget import ContextBudgetManager
        manager = ContextBudgetManager(small_config())
        context = manager.build_context(conversation(count, chars=90), None, "Be helpful.")
        assert manager.count_tokens(context.messages) <= manager.history_budget

    def test_build_context_accounting(self, collections):
        from hrassist.common.schemas.records import Collection, parse_record
        from hrassist.context.budget import ContextBudgetManager
        from hrassist.retriever.orchestrator import RetrievedData
        manager = ContextBudgetManager()
        data = RetrievedData()
        data.add([parse_record(Collection.JOBS, collections["jobs"][0])])
        history = conversation(3)

        context = manager.build_context(history, data, "You are the Talent Acquisition Assistant.")

        assert context.messages == history
        assert "Senior Software Developer" in context.data_text
        assert context.metadata.message_count == 3
        assert context.total_tokens == (
            manager.estimate_tokens(context.system_text)
            + manager.estimate_tokens(context.data_text)
            + manager.count_tokens(history)
        )
        assert context.advisory is None
        assert context.summarized is False
