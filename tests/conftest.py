import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from src.livehost.core.engine import build_engine  # noqa: E402
from src.livehost.infrastructure.catalog_store import InMemoryCatalogStore  # noqa: E402
from src.livehost.services.telemetry_sink import clear_recent_events  # noqa: E402
from tests.utils import FakeCompletion, FakeProvider, FakeSpeech  # noqa: E402


@pytest.fixture(autouse=True)
def _clear_telemetry():
    clear_recent_events()
    yield
    clear_recent_events()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture
def speech() -> FakeSpeech:
    return FakeSpeech()


@pytest.fixture
def engine(provider, completion, speech):
    """Engine wired to fakes with a short idle window."""
    return build_engine(
        provider_factory=provider,
        completion=completion,
        speech=speech,
        store=InMemoryCatalogStore(),
        idle_seconds=0.2,
    )
