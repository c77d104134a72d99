import pytest

from tests.fixtures.responses import HI_THERE_BODY


@pytest.fixture
def anyio_backend():
    """The code under test is built on asyncio."""
    return "asyncio"


@pytest.fixture
def endpoint():
    """Fully configured endpoint."""
    from models.api_models import ApiEndpoint
    return ApiEndpoint(name="Moonshot", url="https://llm.example.com/v1/chat/completions", key="sk-test", model="moonshot-v1-8k")


@pytest.fixture
def session():
    """Fresh session on a short selection."""
    from models.chat_models import Session
    return Session(selection="hello", context="greeting line")


@pytest.fixture
def chat_endpoint():
    """Mock chat endpoint answering "Hi there"."""
    from tests.fixtures.mock_clients import ChatEndpointMock
    return ChatEndpointMock(chunks=[HI_THERE_BODY])


@pytest.fixture
def chat_client(chat_endpoint):
    """StreamingChatClient wired to the mock endpoint."""
    from services.chat_client import StreamingChatClient
    return StreamingChatClient(http_client=chat_endpoint.build())


@pytest.fixture
def settings_store(tmp_path, monkeypatch):
    """Settings store writing to a temporary file, also used by the routes."""
    from config import Config
    from services.settings_store import SettingsStore

    path = tmp_path / "settings" / "data.json"
    monkeypatch.setattr(Config, "SETTINGS_PATH", str(path))
    return SettingsStore(str(path))


@pytest.fixture
def session_manager(monkeypatch):
    """Empty session manager used by the routes."""
    from services.session_service import SessionManager
    manager = SessionManager()
    monkeypatch.setattr("services.session_service._session_manager", manager)
    return manager


@pytest.fixture
def auth_headers():
    """Authentication headers for API requests."""
    return {"X-API-Key": "test-key"}


@pytest.fixture
def configured_app(monkeypatch, chat_endpoint, settings_store, session_manager, endpoint):
    """Pre-configured app with the mock chat endpoint and one stored endpoint."""
    from fastapi import FastAPI
    from fastapi.testclient import TestClient
    from auth import APIKeyMiddleware
    from routes import ask_stream, sessions_route, settings_route, text_route
    from services.chat_client import StreamingChatClient

    monkeypatch.setattr(APIKeyMiddleware, "API_KEY", "test-key")
    settings_store.add_endpoint(endpoint)

    app = FastAPI()
    app.add_middleware(APIKeyMiddleware)
    app.include_router(ask_stream.router)
    app.include_router(sessions_route.router)
    app.include_router(settings_route.router)
    app.include_router(text_route.router)

    mock_http_client = chat_endpoint.build()
    monkeypatch.setattr("utils.http_client.HTTPClientManager.get_chat_client", lambda: mock_http_client)
    monkeypatch.setattr("services.chat_client._chat_client", StreamingChatClient())

    with TestClient(app) as client:
        yield client
