"""
Chat Pipeline

Wires every component once per process and runs one conversational turn:
analyze the query, retrieve records, fit everything into the context
budget, call the LLM.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..common.config import AssistConfig, load_config
from ..common.llm_client import LLMClient, LLMResponse
from ..common.schemas.conversation import (
    AssistantType,
    ChatMessage,
    ContextMetadata,
    ConversationState,
    MessageRole,
)
from ..data.cache import TieredCache
from ..data.record_service import CachedRecordService
from ..data.record_store import JsonRecordStore, RecordStore
from ..retriever.analysis import QueryAnalysis
from ..retriever.orchestrator import RetrievalOrchestrator, RetrievedData
from ..retriever.query_analyzer import QueryAnalyzer
from .budget import BoundedContext, ContextBudgetManager

logger = logging.getLogger("hrassist.context.pipeline")

DEFAULT_INSTRUCTIONS = {
    AssistantType.EMPLOYEE: (
        "You are the Employee Assistant for an HR team. Answer questions about employees, "
        "schedules, tasks and recognition using only the data provided. "
        "If the data does not contain the answer, say so."
    ),
    AssistantType.TALENT: (
        "You are the Talent Acquisition Assistant for an HR team. Answer questions about job "
        "requisitions, candidates, interviews and offers using only the data provided. "
        "If the data does not contain the answer, say so."
    ),
    AssistantType.UNIFIED: (
        "You are an HR assistant covering both employee management and talent acquisition. "
        "Answer using only the data provided. If the data does not contain the answer, say so."
    ),
}


@dataclass
class ChatResult:
    """Outcome of one conversational turn"""
    content: str
    assistant_type: AssistantType
    analysis: QueryAnalysis
    retrieved: RetrievedData
    context: BoundedContext
    metadata: ContextMetadata
    response: LLMResponse

    @property
    def truncated_message_count(self) -> int:
        return self.context.truncated_message_count

    @property
    def advisory(self) -> Optional[ChatMessage]:
        return self.context.advisory

    def to_message(self) -> ChatMessage:
        """Assistant reply as a history message"""
        return ChatMessage(role=MessageRole.ASSISTANT, content=self.content, assistant_type=self.assistant_type)


class AppContext:
    """
    Owns one instance of each component for the lifetime of the process.

    Components are built in dependency order: cache, store, record service,
    analyzer, orchestrator, budget manager, LLM client.
    """

    def __init__(
        self,
        config: AssistConfig,
        cache: TieredCache,
        store: RecordStore,
        record_service: CachedRecordService,
        analyzer: QueryAnalyzer,
        orchestrator: RetrievalOrchestrator,
        budget: ContextBudgetManager,
        llm: LLMClient,
    ):
        self.config = config
        self.cache = cache
        self.store = store
        self.record_service = record_service
        self.analyzer = analyzer
        self.orchestrator = orchestrator
        self.budget = budget
        self.llm = llm
        self._started = False
        self._start_lock: Optional[asyncio.Lock] = None

    @classmethod
    def from_config(
        cls,
        config: Optional[AssistConfig] = None,
        store: Optional[RecordStore] = None,
        llm: Optional[LLMClient] = None,
    ) -> "AppContext":
        """
        Build the component graph.

        Args:
            config: Configuration (loaded from file and environment if omitted)
            store: Record source (JSON files under the configured data dir if omitted)
            llm: LLM client (built from the LLM config if omitted)
        """
        config = config or load_config()
        cache = TieredCache(config.cache)
        store = store or JsonRecordStore(config.store.data_dir)
        record_service = CachedRecordService(store, cache, config.coalescer)
        analyzer = QueryAnalyzer(record_service, config.analyzer)
        orchestrator = RetrievalOrchestrator(record_service, analyzer, cache, config.retrieval)
        budget = ContextBudgetManager(config.budget)
        llm = llm or LLMClient.from_config(config.llm)
        return cls(config, cache, store, record_service, analyzer, orchestrator, budget, llm)

    async def start(self) -> None:
        """Warm the cache (if configured) and build the analyzer's name indexes"""
        if self._start_lock is None:
            self._start_lock = asyncio.Lock()
        async with self._start_lock:
            if self._started:
                return
            if self.config.preload:
                await self.record_service.preload()
            await self.analyzer.initialize()
            self._started = True
        logger.info("HR Assist started (llm available: %s)", self.llm.is_available)

    async def close(self) -> None:
        await self.record_service.close()
        self._started = False


class ContextEnhancedChat:
    """
    Runs conversational turns against an AppContext.

    System-role history (summaries, advisories) is folded into the system
    prompt; only user and assistant turns are sent as chat messages.
    """

    def __init__(self, app: AppContext, instructions: Optional[Dict[AssistantType, str]] = None):
        self._app = app
        self._instructions = dict(DEFAULT_INSTRUCTIONS)
        if instructions:
            self._instructions.update(instructions)

    def instructions_for(self, assistant_type: AssistantType) -> str:
        return self._instructions.get(assistant_type, self._instructions[AssistantType.UNIFIED])

    async def send(self, state: ConversationState, query: str) -> ChatResult:
        """
        Answer one user query in the context of a conversation.

        Args:
            state: Conversation so far (not modified)
            query: New user message

        Returns:
            ChatResult with the reply, routing and token accounting

        Raises:
            RuntimeError: if no LLM provider is available
        """
        await self._app.start()

        analysis, retrieved = await self._app.orchestrator.retrieve_for_query(query)
        history = [*state.messages, ChatMessage(role=MessageRole.USER, content=query)]
        context = self._app.budget.build_context(
            history,
            retrieved if analysis.requires_data else None,
            self.instructions_for(analysis.assistant_type),
        )

        llm_config = self._app.config.llm
        response = await asyncio.to_thread(
            self._app.llm.send,
            self.chat_messages(context),
            system=self.system_prompt(context),
            max_tokens=llm_config.max_tokens,
            temperature=llm_config.temperature,
            timeout=llm_config.timeout,
        )
        logger.info(
            "Answered with %s assistant (%d input / %d output tokens)",
            analysis.assistant_type.value, response.input_tokens, response.output_tokens,
        )

        return ChatResult(
            content=response.content,
            assistant_type=analysis.assistant_type,
            analysis=analysis,
            retrieved=retrieved,
            context=context,
            metadata=ContextMetadata(
                total_tokens=response.total_tokens,
                message_count=len(context.messages) + 1,
            ),
            response=response,
        )

    @staticmethod
    def system_prompt(context: BoundedContext) -> str:
        parts = [context.system_text]
        notes = [m.content for m in context.messages if m.role == MessageRole.SYSTEM]
        if notes:
            parts.append("## Conversation Notes\n" + "\n".join(notes))
        parts.append("## Relevant Data\n" + context.data_text)
        return "\n\n".join(parts)

    @staticmethod
    def chat_messages(context: BoundedContext) -> List[Dict[str, str]]:
        messages = [m.to_api() for m in context.messages if m.role != MessageRole.SYSTEM]
        # Providers expect the transcript to open with a user turn
        while messages and messages[0]["role"] != MessageRole.USER.value:
            messages.pop(0)
        return messages
