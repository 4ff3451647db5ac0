from __future__ import annotations

from fastapi.testclient import TestClient

import chronicle.main as main_module
from chronicle.config import settings


def test_lifespan_configures_logging_from_settings(monkeypatch) -> None:
    calls: list[dict] = []

    def _fake_configure_logging(**kwargs) -> None:
        calls.append(kwargs)

    monkeypatch.setattr(main_module, "configure_logging", _fake_configure_logging)
    monkeypatch.setattr(settings, "log_level", "DEBUG")

    with TestClient(main_module.app) as client:
        assert client.get("/health").status_code == 200

    assert calls == [{"level": "DEBUG"}]
