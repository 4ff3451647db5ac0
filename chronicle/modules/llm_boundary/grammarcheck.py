from __future__ import annotations

import json
import re

from jsonschema import Draft202012Validator
from jsonschema import ValidationError as JSONSchemaValidationError

from chronicle.modules.llm_boundary.errors import (
    GRAMMAR_JSON_PARSE,
    GRAMMAR_SCHEMA_VALIDATE,
    GrammarCheckError,
)

# Greedy: from the first "{" to the last "}", which also skips ``` fences.
_OBJECT_BLOCK_RE = re.compile(r"\{.*\}", re.DOTALL)


def _snippet(raw: object, limit: int = 240) -> str | None:
    if raw is None:
        return None
    text = raw if isinstance(raw, str) else json.dumps(raw, ensure_ascii=False)
    text = " ".join(str(text).split())
    return text[:limit] or None


def extract_json_object(raw: str | dict) -> dict:
    """Pull the JSON object out of model content that may carry prose around it."""
    if isinstance(raw, dict):
        return raw
    text = str(raw or "").strip()
    if not text:
        raise GrammarCheckError("empty json content", error_kind=GRAMMAR_JSON_PARSE)
    match = _OBJECT_BLOCK_RE.search(text)
    if match is None:
        raise GrammarCheckError(
            "no json object in content",
            error_kind=GRAMMAR_JSON_PARSE,
            raw_snippet=_snippet(text),
        )
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise GrammarCheckError(
            f"json parse failed: {exc}",
            error_kind=GRAMMAR_JSON_PARSE,
            raw_snippet=_snippet(text),
        ) from exc


def validate_schema(payload: object, schema: dict) -> None:
    if not isinstance(schema, dict) or not schema:
        raise GrammarCheckError("schema missing", error_kind=GRAMMAR_SCHEMA_VALIDATE)
    try:
        Draft202012Validator(schema).validate(payload)
    except JSONSchemaValidationError as exc:
        raise GrammarCheckError(
            f"schema validate failed: {exc.message}",
            error_kind=GRAMMAR_SCHEMA_VALIDATE,
            raw_snippet=_snippet(payload),
        ) from exc


def validate_structured_output(raw: str | dict, *, schema: dict) -> dict:
    payload = extract_json_object(raw)
    validate_schema(payload, schema)
    return payload
