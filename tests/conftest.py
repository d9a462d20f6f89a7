import asyncio
import inspect
import os
import re
from datetime import datetime, timedelta
from types import SimpleNamespace

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("JIRA_WEBHOOK_URL", "http://directory.acme.io/jira")
os.environ.setdefault("MONGO_DB_NAME", "agent_portal_test")

import httpx  # noqa: E402
import pytest  # noqa: E402
from bson import ObjectId  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from agent_portal.core.auth import create_access_token  # noqa: E402
from agent_portal.core.http import get_http_client  # noqa: E402
from agent_portal.db.database import get_database  # noqa: E402
from agent_portal.main import app  # noqa: E402
from agent_portal.services.user_services import get_password_hash  # noqa: E402

TEST_PASSWORD = "secret123"
WEBHOOK_URL = "http://agents.acme.io/hooks"


def _sort_key(value):
    return (value is not None, value)


def _matches(document: dict, query: dict) -> bool:
    for key, condition in query.items():
        value = document.get(key)
        if isinstance(condition, dict) and "$regex" in condition:
            if not isinstance(value, str):
                return False
            flags = re.IGNORECASE if "i" in condition.get("$options", "") else 0
            if not re.search(condition["$regex"], value, flags):
                return False
        elif value != condition:
            return False
    return True


class FakeCursor:
    def __init__(self, documents):
        self._documents = documents

    def sort(self, keys):
        for key, direction in reversed(keys):
            self._documents.sort(key=lambda doc: _sort_key(doc.get(key)), reverse=direction < 0)
        return self

    def skip(self, count):
        self._documents = self._documents[count:]
        return self

    def limit(self, count):
        self._documents = self._documents[:count]
        return self

    async def to_list(self, length=None):
        return self._documents[:length] if length else list(self._documents)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for document in self._documents:
            yield document


class FakeCollection:
    """Colección en memoria con el subconjunto de la API de motor que usa la aplicación."""

    def __init__(self):
        self.docs = []
        self.error = None

    def _check(self):
        if self.error is not None:
            raise self.error

    def seed(self, document: dict) -> dict:
        document = dict(document)
        document.setdefault("_id", ObjectId())
        self.docs.append(document)
        return document

    def find(self, query=None):
        self._check()
        return FakeCursor([dict(doc) for doc in self.docs if _matches(doc, query or {})])

    async def find_one(self, query):
        self._check()
        for doc in self.docs:
            if _matches(doc, query):
                return dict(doc)
        return None

    async def insert_one(self, document):
        self._check()
        stored = self.seed(document)
        return SimpleNamespace(inserted_id=stored["_id"])

    async def update_one(self, query, update):
        self._check()
        for doc in self.docs:
            if _matches(doc, query):
                doc.update(update.get("$set", {}))
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def delete_one(self, query):
        self._check()
        for index, doc in enumerate(self.docs):
            if _matches(doc, query):
                del self.docs[index]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


class FakeDatabase:
    def __init__(self):
        self.agents = FakeCollection()
        self.users = FakeCollection()
        self.conversations = FakeCollection()
        self.feedback = FakeCollection()


class Upstream:
    """Servidor externo simulado: registra cada petición y responde con ``handler``."""

    def __init__(self):
        self.requests = []
        self.handler = lambda request: httpx.Response(200, json={"isJiraUser": False})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.handler(request)
        if response.is_stream_consumed:
            # ``content=`` bodies are pre-read by httpx; hand back an unread stream with the same bytes
            response = httpx.Response(
                response.status_code,
                headers=response.headers,
                stream=httpx.ByteStream(response.content),
                extensions=response.extensions,
            )
        return response

    def calls_to(self, prefix: str):
        return [request for request in self.requests if str(request.url).startswith(prefix)]


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def portal_app(db, upstream):
    http = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    app.dependency_overrides[get_database] = lambda: db
    app.dependency_overrides[get_http_client] = lambda: http
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(portal_app):
    return TestClient(portal_app)


def make_user(db, email="ana@acme.io", role="non_client", password=TEST_PASSWORD) -> dict:
    return db.users.seed({
        "email": email,
        "hashed_password": get_password_hash(password),
        "role": role,
        "created_at": datetime.utcnow(),
    })


def make_agent(db, **overrides) -> dict:
    agent = {
        "name": "Support",
        "description": "Answers product questions",
        "webhook_url": WEBHOOK_URL,
        "path": "/support",
        "color": "agent-support",
        "icon": "🤖",
        "access_level": "public",
    }
    agent.update(overrides)
    return db.agents.seed(agent)


def make_conversation(db, email, agent_id, title=None, messages=None, updated_minutes_ago=0, session_id="s-1") -> dict:
    updated_at = datetime(2024, 5, 1, 12, 0) - timedelta(minutes=updated_minutes_ago)
    conversation = {
        "sessionId": session_id,
        "email": email,
        "agentId": agent_id,
        "createdAt": updated_at,
        "updatedAt": updated_at,
        "messages": messages or [],
    }
    if title is not None:
        conversation["conversationTitle"] = title
    return db.conversations.seed(conversation)


def auth_headers(user: dict) -> dict:
    token = create_access_token({"sub": str(user["_id"]), "email": user["email"]}, timedelta(minutes=5))
    return {"Authorization": f"Bearer {token}"}


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**call_kwargs))
        return True
    return None


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as async")
