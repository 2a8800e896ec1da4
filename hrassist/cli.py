"""
HR Assist command line

Usage:
    hrassist analyze "Show me Jordan Williams's shifts this week"
    hrassist retrieve "What's the status of the Software Developer position?"
    hrassist chat [--data-dir DIR]
    hrassist metrics "query" ["another query" ...]
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict

from .common.config import load_config
from .common.schemas.conversation import ChatMessage, ConversationState, MessageRole
from .context.pipeline import AppContext, ContextEnhancedChat
from .retriever.formatter import DataFormatter


def _analysis_dict(analysis) -> dict:
    return {
        "primary_intent": analysis.primary_intent.category.value,
        "confidence": round(analysis.confidence_score, 3),
        "assistant_type": analysis.assistant_type.value,
        "requires_data": analysis.requires_data,
        "degraded": analysis.degraded,
        "intents": [
            {
                "category": i.category.value,
                "confidence": round(i.confidence, 3),
                "sub_intents": list(i.sub_intents),
            }
            for i in analysis.intents
        ],
        "entities": [
            {
                "type": e.entity_type.value,
                "value": e.value,
                "original_text": e.original_text,
                "confidence": e.confidence,
                "record_id": e.record_id,
            }
            for e in analysis.entities
        ],
    }


async def _analyze(app: AppContext, query: str) -> None:
    await app.start()
    print(json.dumps(_analysis_dict(app.analyzer.analyze(query)), indent=2))


async def _retrieve(app: AppContext, query: str) -> None:
    await app.start()
    analysis, data = await app.orchestrator.retrieve_for_query(query)
    print(f"[HRAssist] Intent: {analysis.primary_intent.category.value} ({analysis.assistant_type.value})")
    print(DataFormatter().format(data))


async def _metrics(app: AppContext, queries) -> None:
    await app.start()
    for query in queries:
        await app.orchestrator.retrieve_for_query(query)
    service = app.record_service.get_metrics()
    retrieval = app.orchestrator.get_metrics()
    print(json.dumps({
        "service": {
            "total_requests": service.total_requests,
            "cache_hit_rate": round(service.cache_hit_rate, 3),
            "batched_request_rate": round(service.batched_request_rate, 3),
            "average_latency_ms": round(service.average_latency_ms, 3),
            "p95_latency_ms": round(service.p95_latency_ms, 3),
        },
        "retrieval": asdict(retrieval),
    }, indent=2))


async def _chat(app: AppContext) -> None:
    if not app.llm.is_available:
        print("[HRAssist] ERROR: No LLM provider configured (set ANTHROPIC_API_KEY)")
        sys.exit(1)

    chat = ContextEnhancedChat(app)
    state = ConversationState()
    print("[HRAssist] Type a question, or 'exit' to quit.")
    while True:
        try:
            query = await asyncio.to_thread(input, "> ")
        except EOFError:
            break
        if query.strip().lower() in ("exit", "quit"):
            break
        if not query.strip():
            continue

        result = await chat.send(state, query)
        user_message = ChatMessage(role=MessageRole.USER, content=query)
        state.messages = [*state.messages, user_message, result.to_message()]
        state.active_assistant_type = result.assistant_type
        print(result.content)
        if result.advisory:
            print(f"[HRAssist] {result.advisory.content}")


async def _run(args) -> None:
    config = load_config()
    if args.data_dir:
        config.store.data_dir = args.data_dir
    app = AppContext.from_config(config)
    try:
        if args.command == "analyze":
            await _analyze(app, args.query)
        elif args.command == "retrieve":
            await _retrieve(app, args.query)
        elif args.command == "metrics":
            await _metrics(app, args.queries)
        else:
            await _chat(app)
    finally:
        await app.close()


def main():
    parser = argparse.ArgumentParser(description="HR Assist retrieval and chat")
    parser.add_argument("--data-dir", default=None, help="Directory holding the collection JSON files")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Show the analysis of a query")
    analyze.add_argument("query")
    retrieve = sub.add_parser("retrieve", help="Show the data retrieved for a query")
    retrieve.add_argument("query")
    metrics = sub.add_parser("metrics", help="Run queries and print service metrics")
    metrics.add_argument("queries", nargs="+")
    sub.add_parser("chat", help="Interactive chat")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    asyncio.run(_run(args))


if __name__ == "__main__":
    main()
