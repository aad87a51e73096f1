"""Shared test fixtures for srcembed tests."""
from pathlib import Path

import pytest

from srcembed.config import Settings
from srcembed.embed.service import EmbedService

FIXTURES = Path(__file__).parent / "fixtures" / "rust"


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text()


def write_rust(directory: Path, name: str, source: str) -> Path:
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(source.encode("utf-8"))
    return path


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(repo_path=tmp_path)


@pytest.fixture
def service(settings: Settings) -> EmbedService:
    return EmbedService(settings)
