from __future__ import annotations


class LLMUnavailableError(RuntimeError):
    """The extraction or arc-evaluation model could not produce a usable reply."""


class ChannelNotConfiguredError(LLMUnavailableError):
    def __init__(self, channel: str):
        super().__init__(f"no api key configured for the {channel} channel")
        self.channel = channel


class GrammarCheckError(RuntimeError):
    """Model content that is not the JSON object we asked for."""

    def __init__(self, message: str, *, error_kind: str, raw_snippet: str | None = None):
        super().__init__(message)
        self.error_kind = error_kind
        self.raw_snippet = raw_snippet


GRAMMAR_JSON_PARSE = "GRAMMAR_JSON_PARSE"
GRAMMAR_SCHEMA_VALIDATE = "GRAMMAR_SCHEMA_VALIDATE"
