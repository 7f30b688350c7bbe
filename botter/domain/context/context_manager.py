from typing import List, Optional
import structlog
from langchain_core.messages import BaseMessage
from pydantic import BaseModel, Field

from botter.domain.models.conversation import Content, Part, Role, RetrievedDocument, TurnRequest
from botter.domain.models.messages import contents_to_messages, parts_to_human_message
from .persona import Persona
from .memory.history_store import HistoryStore
from .memory.knowledge_store import KnowledgeRetriever, format_context_block

logger = structlog.get_logger(__name__)

USER_REQUEST_TEMPLATE = "User request: {message}"


class TurnContext(BaseModel):
    """Everything the model sees for one turn, plus what gets persisted for it"""
    session_id: str
    history: List[Content] = Field(default_factory=list, description="Prior history snapshot")
    user_content: Content = Field(description="User entry as persisted (no knowledge context)")
    retrieved_documents: List[RetrievedDocument] = Field(default_factory=list)
    messages: List[BaseMessage] = Field(default_factory=list, description="Initial model request")


class ContextManager:
    """Assembles the model request for a turn from persona, history and knowledge"""

    def __init__(
        self,
        persona: Persona,
        history_store: HistoryStore,
        knowledge_retriever: Optional[KnowledgeRetriever] = None,
        top_k: int = 3
    ):
        self.persona = persona
        self.history_store = history_store
        self.knowledge_retriever = knowledge_retriever
        self.top_k = top_k

    async def build_context(self, session_id: str, request: TurnRequest) -> TurnContext:
        """Build the execution context of a turn"""

        logger.info("Building context", session_id=session_id)

        history = await self.history_store.read(session_id)
        documents = await self.retrieve_knowledge(request.message)

        user_parts = [Part(text=USER_REQUEST_TEMPLATE.format(message=request.message))]
        if request.attachment is not None:
            user_parts.append(Part(inline_data=request.attachment))
        user_content = Content(role=Role.USER, parts=user_parts)

        prompt_parts = list(user_parts)
        context_block = format_context_block(documents)
        if context_block is not None:
            logger.info("Knowledge context found, adding to the request", num_results=len(documents))
            prompt_parts.insert(0, Part(text=context_block))

        messages = [self.persona.to_message()]
        messages.extend(contents_to_messages(history))
        messages.append(parts_to_human_message(prompt_parts))

        return TurnContext(
            session_id=session_id,
            history=history,
            user_content=user_content,
            retrieved_documents=documents,
            messages=messages
        )

    async def commit(self, session_id: str, transcript: List[Content]):
        """Persist the post-turn transcript, replacing the session's history"""

        await self.history_store.save(session_id, transcript)

    async def retrieve_knowledge(self, query: str) -> List[RetrievedDocument]:
        """Query the knowledge base, if one is configured"""

        if self.knowledge_retriever is None:
            return []
        return await self.knowledge_retriever.query(query, self.top_k)
