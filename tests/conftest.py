from __future__ import annotations

import pytest

from chronicle.config import DEFAULT_ARC_EVAL_MODEL, DEFAULT_EXTRACTION_MODEL, settings
from chronicle.modules.scan.inflight import get_inflight_registry


@pytest.fixture(autouse=True)
def _reset_settings_and_registry() -> None:
    settings.llm_api_key = ""
    settings.llm_xai_api_key = ""
    settings.llm_base_url = "https://gateway.example/v1"
    settings.llm_xai_base_url = "https://xai.example/v1"
    settings.llm_extraction_model = DEFAULT_EXTRACTION_MODEL
    settings.llm_arc_eval_model = DEFAULT_ARC_EVAL_MODEL
    settings.extraction_max_attempts = 1
    get_inflight_registry().clear()
    yield
    get_inflight_registry().clear()
