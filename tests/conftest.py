from __future__ import annotations

import os
import tempfile
from datetime import date
from pathlib import Path

import pytest

# DB e chave isoladas: precisa acontecer antes de importar barbearia.*
_TMP = Path(tempfile.mkdtemp(prefix="barbearia-tests-"))
os.environ["BARBEARIA_DATABASE_URL"] = f"sqlite:///{_TMP / 'test.sqlite'}"
os.environ["BARBEARIA_API_KEY"] = "test-anon-key"

from barbearia.db import Base, engine  # noqa: E402
from barbearia.rest_client import BackendClient  # noqa: E402
from barbearia.seed import seed_base  # noqa: E402
from barbearia.services import init_db  # noqa: E402
from barbearia.session import SessionContext  # noqa: E402

# segunda-feira: seed gera horários de 15 a 19/01
TODAY = date(2024, 1, 15)
PASSWORD = "segredo123"


class RecordingHttp:
    """Repassa as chamadas ao TestClient e guarda (método, path, params, json)."""

    def __init__(self, inner) -> None:
        self.inner = inner
        self.calls: list[tuple[str, str, list[tuple[str, str]], object]] = []

    def request(self, method, url, **kwargs):
        path = url.split("testserver", 1)[-1]
        self.calls.append((method, path, list(kwargs.get("params") or []), kwargs.get("json")))
        return self.inner.request(method, url, **kwargs)

    def count(self, method: str, path: str) -> int:
        return sum(1 for m, p, _, _ in self.calls if m == method and p == path)

    def last(self, method: str, path: str):
        matches = [c for c in self.calls if c[0] == method and c[1] == path]
        return matches[-1] if matches else None

    def reset(self) -> None:
        self.calls.clear()


@pytest.fixture
def db():
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def seeded(db):
    seed_base(today=TODAY)


@pytest.fixture
def http(seeded):
    from fastapi.testclient import TestClient

    from barbearia.api_main import app

    return RecordingHttp(TestClient(app))


@pytest.fixture
def client(http) -> BackendClient:
    return BackendClient(url="http://testserver", api_key="test-anon-key", http=http)


@pytest.fixture
def session(client) -> SessionContext:
    s = SessionContext(client)
    s.start()
    return s


@pytest.fixture
def user_session(session) -> SessionContext:
    err = session.sign_up("joao@example.com", PASSWORD, full_name="João Pereira")
    assert err is None
    return session
