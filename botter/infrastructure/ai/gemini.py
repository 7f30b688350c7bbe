from typing import Dict, Any

from langchain_google_genai import ChatGoogleGenerativeAI, GoogleGenerativeAIEmbeddings

from botter.infrastructure.config.settings import Settings


def create_chat_model(settings: Settings) -> ChatGoogleGenerativeAI:
    """Chat model used for turns and history summaries; thinking is disabled"""

    kwargs: Dict[str, Any] = {}
    if settings.temperature is not None:
        kwargs["temperature"] = settings.temperature

    return ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        google_api_key=settings.gemini_api_key,
        thinking_budget=0,
        **kwargs
    )


def create_embeddings(settings: Settings) -> GoogleGenerativeAIEmbeddings:
    return GoogleGenerativeAIEmbeddings(
        model=settings.embedding_model,
        google_api_key=settings.gemini_api_key
    )
