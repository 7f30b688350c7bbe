from typing import Dict, List, Any, Optional, Protocol
import asyncio
import json
import os
import tempfile
from pathlib import Path

import structlog
from langchain_core.messages import HumanMessage, SystemMessage

from botter.domain.errors import ConfigurationError, InvalidInputError, SummarizationError
from botter.domain.models.conversation import Content, Role
from botter.domain.models.messages import message_text

logger = structlog.get_logger(__name__)


SUMMARY_SYSTEM_PROMPT = (
    "You are a summarization AI. Your task is to summarize the conversation history into a "
    "single message. Extract all the most important information related to the client like "
    "name, phone number and other parameters. It is possible that the model response contains "
    "user related information. Only respond with the summarization and keep it short just keep "
    "the most important information."
)
SUMMARY_USER_TEMPLATE = "The current history which should be summarized is:\n\n{history}"
SUMMARY_PREFIX = "Summarized history:\n\n"


class HistoryBackend(Protocol):
    """Raw storage of one record per session"""

    async def load(self, session_id: str) -> Optional[Dict[str, Any]]: ...

    async def store(self, session_id: str, record: Dict[str, Any]) -> None: ...


class InMemoryHistoryBackend:
    """Keeps session records in process memory"""

    def __init__(self):
        self.records: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            raw = self.records.get(session_id)
        return json.loads(raw) if raw is not None else None

    async def store(self, session_id: str, record: Dict[str, Any]) -> None:
        # Serialized so callers never share mutable state with the store
        raw = json.dumps(record)
        async with self._lock:
            self.records[session_id] = raw


class FileHistoryBackend:
    """One JSON file per session under a base directory"""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        if session_id in (".", "..") or "/" in session_id or "\\" in session_id or "\x00" in session_id:
            raise InvalidInputError(f"session id cannot be used as a history key: {session_id!r}")
        return self.base_dir / session_id

    async def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        path = self._path(session_id)
        return await asyncio.to_thread(self._read, path)

    async def store(self, session_id: str, record: Dict[str, Any]) -> None:
        path = self._path(session_id)
        await asyncio.to_thread(self._write, path, json.dumps(record))

    @staticmethod
    def _read(path: Path) -> Optional[Dict[str, Any]]:
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None

    @staticmethod
    def _write(path: Path, payload: str) -> None:
        # Write-then-rename so a failed write never truncates the previous record
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class HistoryStore:
    """Reads and saves session histories, compacting long ones into a summary"""

    def __init__(
        self,
        backend: Optional[HistoryBackend] = None,
        summary_threshold: int = 0,
        summarizer: Optional[Any] = None
    ):
        if summary_threshold < 0:
            raise ConfigurationError("history summary threshold cannot be negative")
        if summary_threshold > 0 and summarizer is None:
            raise ConfigurationError("history summarization is enabled but no summarizer is configured")

        self.backend = backend or InMemoryHistoryBackend()
        self.summary_threshold = summary_threshold
        self.summarizer = summarizer

    async def read(self, session_id: str) -> List[Content]:
        """Get the persisted history for a session; empty if none exists"""

        record = await self.backend.load(session_id)
        if not record:
            return []

        return [Content.model_validate(entry) for entry in record.get("history", [])]

    async def save(self, session_id: str, history: List[Content]) -> None:
        """Persist a full history snapshot, compacting it when it reached the threshold"""

        if self.summary_threshold > 0 and len(history) >= self.summary_threshold:
            logger.info("Summarizing history", session_id=session_id, history_length=len(history))
            history = [await self._summarize(history)]
        else:
            logger.info("Saving history", session_id=session_id, history_length=len(history))

        await self.backend.store(session_id, {"history": [entry.to_wire() for entry in history]})

    async def _summarize(self, history: List[Content]) -> Content:
        """Condense a history into a single model entry"""

        messages = [
            SystemMessage(content=SUMMARY_SYSTEM_PROMPT),
            HumanMessage(content=SUMMARY_USER_TEMPLATE.format(history=flatten_history(history))),
        ]
        try:
            response = await self.summarizer.ainvoke(messages)
        except Exception as exc:
            raise SummarizationError(f"failed to generate summary: {exc}") from exc

        return Content.from_text(Role.MODEL, SUMMARY_PREFIX + message_text(response))


def flatten_history(history: List[Content]) -> str:
    """Render a history as one 'Role: ..., Text:...' line per text part"""

    lines = []
    for entry in history:
        for part in entry.parts:
            if part.text is not None:
                lines.append(f"Role: {entry.role.value}, Text:{part.text}\n")
    return "".join(lines)
