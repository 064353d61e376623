"""Tests for the process entrypoint."""

import constants
import entrypoint
from app import app


class TestMain:
    """Tests for entrypoint.main."""

    def test_runs_uvicorn_with_configured_address(self, monkeypatch) -> None:
        """Test main serves the shared app on the configured host and port."""
        calls = []
        monkeypatch.setattr(entrypoint.uvicorn, "run", lambda *args, **kwargs: calls.append((args, kwargs)))
        monkeypatch.setattr(constants, "HOST", "127.0.0.1")
        monkeypatch.setattr(constants, "PORT", 4321)

        entrypoint.main()

        assert calls == [((app,), {"host": "127.0.0.1", "port": 4321, "log_config": None})]
