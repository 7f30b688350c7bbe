from pathlib import Path
import json

from langchain_core.messages import SystemMessage
from pydantic import ValidationError

from botter.domain.errors import ConfigurationError
from botter.domain.models.conversation import Content


class Persona:
    """The system instruction shared by every turn; immutable after load"""

    def __init__(self, content: Content):
        self._content = content.model_copy(deep=True)

    @classmethod
    def from_file(cls, path: Path) -> "Persona":
        """Load a persona stored in the history entry shape ({"parts": [{"text": ...}]})"""

        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ConfigurationError(f"persona file not found: {path}") from exc
        except ValueError as exc:
            raise ConfigurationError(f"persona file is not valid JSON: {path}") from exc

        if not isinstance(raw, dict):
            raise ConfigurationError(f"persona file must hold a JSON object: {path}")
        raw.setdefault("role", "user")
        try:
            return cls(Content.model_validate(raw))
        except ValidationError as exc:
            raise ConfigurationError(f"persona file has an invalid shape: {path}") from exc

    @classmethod
    def from_text(cls, text: str) -> "Persona":
        return cls(Content.model_validate({"role": "user", "parts": [{"text": text}]}))

    @property
    def text(self) -> str:
        return "\n".join(part.text for part in self._content.parts if part.text)

    def to_message(self) -> SystemMessage:
        return SystemMessage(content=self.text)
