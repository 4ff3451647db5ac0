from __future__ import annotations

import pytest

from chronicle.modules.llm_boundary.errors import (
    GRAMMAR_JSON_PARSE,
    GRAMMAR_SCHEMA_VALIDATE,
    GrammarCheckError,
)
from chronicle.modules.llm_boundary.grammarcheck import extract_json_object, validate_structured_output
from chronicle.modules.llm_boundary.schemas import ARC_EVAL_SCHEMA, EXTRACTION_SCHEMA


def test_plain_json_passes() -> None:
    out = validate_structured_output('{"updates": []}', schema=EXTRACTION_SCHEMA)
    assert out == {"updates": []}


def test_object_is_found_inside_fences_and_prose() -> None:
    raw = 'Sure! Here you go:\n```json\n{"updates": [{"character": "Sarah"}]}\n```\nDone.'
    assert extract_json_object(raw) == {"updates": [{"character": "Sarah"}]}


def test_content_without_object_raises_parse_error() -> None:
    for raw in ("", "no json here", '{"updates": ['):
        with pytest.raises(GrammarCheckError) as exc:
            extract_json_object(raw)
        assert exc.value.error_kind == GRAMMAR_JSON_PARSE


def test_schema_mismatch_raises() -> None:
    with pytest.raises(GrammarCheckError) as exc:
        validate_structured_output('{"updates": "nope"}', schema=EXTRACTION_SCHEMA)
    assert exc.value.error_kind == GRAMMAR_SCHEMA_VALIDATE

    with pytest.raises(GrammarCheckError) as exc:
        validate_structured_output('{"classifications": {"stepId": "a"}}', schema=ARC_EVAL_SCHEMA)
    assert exc.value.error_kind == GRAMMAR_SCHEMA_VALIDATE


def test_malformed_entries_pass_the_envelope_check() -> None:
    out = validate_structured_output('{"updates": ["junk", {"field": 3}]}', schema=EXTRACTION_SCHEMA)
    assert out == {"updates": ["junk", {"field": 3}]}

    out = validate_structured_output('{"classifications": [{"summary": "x"}]}', schema=ARC_EVAL_SCHEMA)
    assert out == {"classifications": [{"summary": "x"}]}


def test_dict_payload_is_accepted_as_is() -> None:
    assert validate_structured_output({"updates": []}, schema=EXTRACTION_SCHEMA) == {"updates": []}


def test_missing_schema_is_reported() -> None:
    with pytest.raises(GrammarCheckError) as exc:
        validate_structured_output("{}", schema={})
    assert exc.value.error_kind == GRAMMAR_SCHEMA_VALIDATE
