import json

import pytest

from doubles import PERSONA_TEXT


@pytest.fixture
def persona_file(tmp_path):
    path = tmp_path / "personality.json"
    path.write_text(json.dumps({"parts": [{"text": PERSONA_TEXT}]}), encoding="utf-8")
    return path


@pytest.fixture
def corpus_dir(tmp_path):
    corpus = tmp_path / "bot-context"
    corpus.mkdir()
    (corpus / ".gitkeep").write_text("", encoding="utf-8")
    (corpus / "a-geography.txt").write_text("Paris is the capital of France", encoding="utf-8")
    (corpus / "b-salon").mkdir()
    (corpus / "b-salon" / "prices.txt").write_text("A haircut price is 30 euro", encoding="utf-8")
    (corpus / "c-hours.txt").write_text("Opening hours are 9 to 18", encoding="utf-8")
    return corpus
