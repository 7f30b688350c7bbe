"""
Runtime configuration loaded from environment variables / .env file.

Values are read once at process start and handed to the bootstrap; nothing
else in the package reads the environment.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide settings for the bot server"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Model provider
    gemini_api_key: str = Field("", description="Gemini API key; required at bootstrap.")
    gemini_model: str = Field(
        "gemini-flash-latest",
        description="Chat model used for turns and for history summarization.",
    )
    embedding_model: str = Field(
        "models/gemini-embedding-001",
        description="Embedding model used to index the knowledge corpus.",
    )
    temperature: Optional[float] = Field(None, description="Sampling temperature; provider default if unset.")

    # Conversation state
    history_dir: Optional[Path] = Field(
        Path("history"),
        description="Directory holding one history file per session. Empty keeps history in memory.",
    )
    history_summary: int = Field(
        20,
        ge=0,
        description="Compaction threshold: histories this long are summarized on save. 0 disables.",
    )
    persona_path: Path = Field(Path("personality.json"), description="System instruction file.")

    # Knowledge retrieval
    knowledge_dir: Optional[Path] = Field(
        Path("bot-context"),
        description="Corpus directory, one document per file. Empty disables retrieval.",
    )
    rag_top_k: int = Field(3, ge=1, description="Documents retrieved per turn.")

    # Tools
    mcp_servers: str = Field("", description="Comma-separated tool server URLs.")
    search_enable: bool = Field(False, description="Advertise the built-in web search tool.")
    max_tool_rounds: Optional[int] = Field(
        None,
        ge=1,
        description="Optional cap on tool-resolution rounds per turn. Unset means unbounded.",
    )

    # HTTP / logging
    host: str = Field("0.0.0.0")
    port: int = Field(8080)
    log_level: str = Field("INFO")
    log_format: str = Field("json", description="'json' or 'console'.")

    @field_validator("history_dir", "knowledge_dir", mode="before")
    @classmethod
    def _empty_path_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def mcp_server_urls(self) -> List[str]:
        return [url.strip() for url in self.mcp_servers.split(",") if url.strip()]
