"""
Process bootstrap: builds the orchestrator and its collaborators from settings.

Everything here runs once at startup. Any failure is a configuration error and
aborts the process; nothing is retried or degraded.
"""

from typing import Any, Optional, Sequence

import structlog
from langchain_core.embeddings import Embeddings

from botter.domain.context.context_manager import ContextManager
from botter.domain.context.memory.history_store import FileHistoryBackend, HistoryStore, InMemoryHistoryBackend
from botter.domain.context.memory.knowledge_store import KnowledgeRetriever
from botter.domain.context.persona import Persona
from botter.domain.errors import ConfigurationError
from botter.domain.orchestration.core.conversation_orchestrator import ConversationOrchestrator
from botter.domain.tool.tool_registry import ToolRegistry, ToolServer
from botter.infrastructure.ai.gemini import create_chat_model, create_embeddings
from botter.infrastructure.config.settings import Settings
from botter.infrastructure.mcp.mcp_tool_server import McpToolServer

logger = structlog.get_logger(__name__)


def validate_settings(settings: Settings) -> None:
    """Reject settings that can never produce a working orchestrator"""

    if settings.search_enable and settings.mcp_server_urls:
        raise ConfigurationError(
            "tool servers are not supported with search enabled, remove MCP_SERVERS or SEARCH_ENABLE"
        )


async def build_orchestrator(
    settings: Settings,
    chat_model: Optional[Any] = None,
    embeddings: Optional[Embeddings] = None,
    tool_servers: Optional[Sequence[ToolServer]] = None
) -> ConversationOrchestrator:
    """Wire persona, history, knowledge and tools into an orchestrator"""

    validate_settings(settings)

    needs_chat_model = chat_model is None
    needs_embeddings = embeddings is None and settings.knowledge_dir is not None
    if (needs_chat_model or needs_embeddings) and not settings.gemini_api_key:
        raise ConfigurationError("GEMINI_API_KEY is not set")
    if needs_chat_model:
        chat_model = create_chat_model(settings)
    if needs_embeddings:
        embeddings = create_embeddings(settings)

    persona = Persona.from_file(settings.persona_path)

    if tool_servers is None:
        tool_servers = [McpToolServer(url) for url in settings.mcp_server_urls]
    if tool_servers:
        logger.info("Tool server list is not empty, initializing tool servers", count=len(tool_servers))
    tool_registry = await ToolRegistry.build(tool_servers)

    knowledge_retriever = None
    if settings.knowledge_dir is not None:
        logger.info("Loading knowledge corpus", path=str(settings.knowledge_dir))
        knowledge_retriever = await KnowledgeRetriever.from_directory(settings.knowledge_dir, embeddings)

    if settings.history_dir is not None:
        backend = FileHistoryBackend(settings.history_dir)
    else:
        backend = InMemoryHistoryBackend()
    history_store = HistoryStore(
        backend,
        summary_threshold=settings.history_summary,
        summarizer=chat_model
    )

    context_manager = ContextManager(
        persona,
        history_store,
        knowledge_retriever,
        top_k=settings.rag_top_k
    )

    return ConversationOrchestrator(
        chat_model,
        context_manager,
        tool_registry,
        web_search=settings.search_enable,
        max_tool_rounds=settings.max_tool_rounds
    )
