import pytest

from src.livehost.observability.metrics import sanitize_path


@pytest.mark.parametrize(
    "path,label",
    [
        ("", "/"),
        ("/", "/"),
        ("/health", "/health"),
        ("/api/live/start", "/api/live"),
        ("/live/stream?x=1", "/live"),
        ("/api", "/api"),
    ],
)
def test_sanitize_path(path, label):
    assert sanitize_path(path) == label
