import pytest
from fastapi.testclient import TestClient

from botter.application.api.api_server import create_app
from botter.application.api.route.message import SESSION_COOKIE_NAME
from botter.domain.context.state.session_locks import SessionLockManager
from botter.domain.errors import InvalidInputError
from botter.infrastructure.config.settings import Settings
from botter.infrastructure.observability.logging import MetricsCollector


class RecordingOrchestrator:
    def __init__(self, reply="ok", error=None):
        self.reply = reply
        self.error = error
        self.turns = []
        self.session_locks = SessionLockManager()
        self.metrics = MetricsCollector()

    async def handle_turn(self, session_id, request):
        self.turns.append((session_id, request))
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def orchestrator():
    return RecordingOrchestrator(reply="Hello from the bot")


@pytest.fixture
def client(orchestrator):
    app = create_app(Settings(_env_file=None), orchestrator=orchestrator)
    return TestClient(app)


def test_message_with_user_header(client, orchestrator):
    response = client.post("/message", data={"message": "hello"}, headers={"X-User-ID": "u1"})

    assert response.status_code == 200
    assert response.json() == {"response": "Hello from the bot"}
    session_id, request = orchestrator.turns[0]
    assert session_id == "u1"
    assert request.message == "hello"
    assert request.attachment is None


def test_message_without_identity_sets_session_cookie(client, orchestrator):
    response = client.post("/message", data={"message": "hello"})

    assert response.status_code == 200
    cookie = response.cookies.get(SESSION_COOKIE_NAME)
    assert cookie
    assert orchestrator.turns[0][0] == cookie


def test_message_with_session_cookie(client, orchestrator):
    client.cookies.set(SESSION_COOKIE_NAME, "cookie-session")

    client.post("/message", data={"message": "hello"})

    assert orchestrator.turns[0][0] == "cookie-session"


def test_attachment_is_forwarded(client, orchestrator):
    response = client.post(
        "/message",
        data={"message": "what is this?"},
        files={"attachment": ("cat.png", b"\x89PNG", "image/png")},
        headers={"X-User-ID": "u1"},
    )

    assert response.status_code == 200
    attachment = orchestrator.turns[0][1].attachment
    assert attachment.mime_type == "image/png"
    assert attachment.data == b"\x89PNG"


def test_image_field_is_forwarded(client, orchestrator):
    response = client.post(
        "/message",
        data={"message": "what is this?"},
        files={"image": ("cat.jpg", b"\xff\xd8\xff", "image/jpeg")},
        headers={"X-User-ID": "u1"},
    )

    assert response.status_code == 200
    attachment = orchestrator.turns[0][1].attachment
    assert attachment.mime_type == "image/jpeg"
    assert attachment.data == b"\xff\xd8\xff"


def test_invalid_input_is_bad_request():
    orchestrator = RecordingOrchestrator(error=InvalidInputError("session id is empty"))
    client = TestClient(create_app(Settings(_env_file=None), orchestrator=orchestrator))

    response = client.post("/message", data={"message": "hello"}, headers={"X-User-ID": "u1"})

    assert response.status_code == 400


def test_turn_failure_is_server_error():
    orchestrator = RecordingOrchestrator(error=RuntimeError("model down"))
    client = TestClient(create_app(Settings(_env_file=None), orchestrator=orchestrator))

    response = client.post("/message", data={"message": "hello"}, headers={"X-User-ID": "u1"})

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to handle message"}


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["active_sessions"] == 0
    assert response.json()["metrics"] == {}
