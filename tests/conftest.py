"""Shared fixtures: a controllable clock, a throwaway document and the app."""
from __future__ import annotations

from pathlib import Path

import pytest
from werkzeug.datastructures import MultiDict

from access_gate import AccessGate
from editor import create_app
from settings import Settings


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def document(tmp_path: Path) -> Path:
    path = tmp_path / "programs.json"
    path.write_text("{}", encoding="utf-8")
    return path


@pytest.fixture
def backup_dir(tmp_path: Path) -> Path:
    path = tmp_path / "backup"
    path.mkdir()
    return path


@pytest.fixture
def settings(tmp_path: Path, document: Path, backup_dir: Path) -> Settings:
    public = tmp_path / "public"
    public.mkdir()
    (public / "index.html").write_text("<!doctype html><title>editor</title>", encoding="utf-8")
    return Settings(
        document=document,
        backup_dir=backup_dir,
        public_dir=public,
        timeout=20.0,
    )


@pytest.fixture
def gate(settings: Settings, clock: FakeClock) -> AccessGate:
    return AccessGate(settings.timeout, clock=clock)


@pytest.fixture
def app(settings: Settings, gate: AccessGate):
    app = create_app(settings, gate=gate)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client_for(app):
    """Return a test client whose requests come from ``addr``."""

    def make(addr: str = "10.0.0.1"):
        client = app.test_client()
        client.environ_base["REMOTE_ADDR"] = addr
        return client

    return make


def record_form(*records: dict[str, str]) -> MultiDict:
    """Encode records the way the editor page posts them: one array per field."""
    fields = ("key", "name", "rss", "image", "category", "description")
    form: list[tuple[str, str]] = []
    for field in fields:
        for record in records:
            form.append((f"records[][{field}]", record.get(field, "")))
    return MultiDict(form)
