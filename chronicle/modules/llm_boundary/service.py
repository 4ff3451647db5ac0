from __future__ import annotations

import logging
from dataclasses import dataclass

from chronicle.config import settings
from chronicle.modules.arc.evaluation import StepClassification, StepEvaluation, evaluate_pending_steps
from chronicle.modules.arc.models import ArcPhase
from chronicle.modules.llm_boundary.client import LLMCallError, call_chat_completions
from chronicle.modules.llm_boundary.errors import ChannelNotConfiguredError, GrammarCheckError, LLMUnavailableError
from chronicle.modules.llm_boundary.grammarcheck import validate_structured_output
from chronicle.modules.llm_boundary.prompts import (
    ARC_EVAL_PROFILE_ID,
    EXTRACTION_PROFILE_ID,
    arc_eval_slots,
    extraction_slots,
    render_prompt,
)
from chronicle.modules.llm_boundary.schemas import (
    ARC_EVAL_SCHEMA,
    EXTRACTION_SCHEMA,
    ArcEvaluationRequest,
    CharacterContext,
    pending_steps_for,
)
from chronicle.modules.reconcile.schemas import ExtractionUpdate

log = logging.getLogger(__name__)

CHANNEL_GATEWAY = "gateway"
CHANNEL_XAI = "xai"
XAI_MODEL_PREFIX = "grok"
_VENDOR_PREFIXES = (("gemini-", "google/"), ("gpt-", "openai/"))


@dataclass(frozen=True)
class _LLMChannelConfig:
    name: str
    api_key: str
    base_url: str
    model: str
    timeout_s: float


def channel_for_model(model_id: str) -> str:
    return CHANNEL_XAI if model_id.strip().lower().startswith(XAI_MODEL_PREFIX) else CHANNEL_GATEWAY


def normalize_model_id(model_id: str) -> str:
    """Qualify bare vendor model ids the way the gateway expects (``gemini-x`` -> ``google/gemini-x``)."""
    text = model_id.strip()
    for prefix, vendor in _VENDOR_PREFIXES:
        if text.startswith(prefix):
            return f"{vendor}{text}"
    return text


def _clean(value: object) -> str:
    return str(value or "").strip()


def _coerce_updates(payload: dict) -> list[ExtractionUpdate]:
    out: list[ExtractionUpdate] = []
    for entry in payload.get("updates") or []:
        if not isinstance(entry, dict):
            continue
        character = entry.get("character")
        field = entry.get("field")
        value = entry.get("value")
        if not all(isinstance(item, str) and item.strip() for item in (character, field, value)):
            continue
        out.append(ExtractionUpdate(character=character, field=field, value=value))
    return out


def _coerce_classifications(payload: dict) -> list[StepClassification]:
    out: list[StepClassification] = []
    for entry in payload.get("classifications") or []:
        if not isinstance(entry, dict):
            continue
        step_id = entry.get("stepId")
        classification = entry.get("classification")
        if not isinstance(step_id, str) or not step_id.strip() or not isinstance(classification, str):
            continue
        out.append(
            StepClassification(
                step_id=step_id.strip(),
                classification=classification.strip().lower(),
                summary=str(entry.get("summary") or ""),
            )
        )
    return out


class ExtractionBoundary:
    """Async gateway to the narration AI: character-update extraction and arc classification.

    With no API key configured the boundary runs in fake mode and reports
    that nothing changed.
    """

    def provider_trace_label(self) -> str:
        return "real_auto" if self._is_real_mode() else "fake_auto"

    async def extract_character_updates(
        self,
        *,
        dialogue_text: str,
        characters: list[CharacterContext],
        model_id: str | None = None,
    ) -> list[ExtractionUpdate]:
        if not _clean(dialogue_text):
            return []
        if not self._is_real_mode():
            return []

        channel = self._resolve_channel(
            model_id=_clean(model_id) or settings.llm_extraction_model,
            timeout_s=settings.extraction_timeout_s,
        )
        system_prompt, user_prompt = render_prompt(
            EXTRACTION_PROFILE_ID,
            slots=extraction_slots(dialogue_text, characters),
        )
        raw = await self._complete(
            channel,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=settings.extraction_temperature,
            max_tokens=None,
        )
        if not raw.strip():
            log.info("extraction reply was empty via %s/%s", channel.name, channel.model)
            return []
        try:
            payload = validate_structured_output(raw, schema=EXTRACTION_SCHEMA)
        except GrammarCheckError as exc:
            log.warning("discarding extraction reply (%s): %s", exc.error_kind, exc.raw_snippet)
            return []
        updates = _coerce_updates(payload)
        log.info("extracted %d updates via %s/%s", len(updates), channel.name, channel.model)
        return updates

    async def evaluate_arc_progress(
        self,
        *,
        phase: ArcPhase,
        user_message: str,
        ai_response: str = "",
    ) -> list[StepEvaluation]:
        request = ArcEvaluationRequest(
            user_message=user_message,
            ai_response=ai_response,
            pending_steps=pending_steps_for(phase),
            flexibility=phase.flexibility,
        )
        if not _clean(request.user_message) or not request.pending_steps:
            return []
        if not self._is_real_mode():
            return []

        channel = self._resolve_channel(
            model_id=settings.llm_arc_eval_model,
            timeout_s=settings.arc_eval_timeout_s,
        )
        system_prompt, user_prompt = render_prompt(ARC_EVAL_PROFILE_ID, slots=arc_eval_slots(request))
        raw = await self._complete(
            channel,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=settings.arc_eval_temperature,
            max_tokens=settings.arc_eval_max_tokens,
        )
        if not raw.strip():
            return []
        try:
            payload = validate_structured_output(raw, schema=ARC_EVAL_SCHEMA)
        except GrammarCheckError as exc:
            log.warning("discarding arc classification reply (%s): %s", exc.error_kind, exc.raw_snippet)
            return []
        return evaluate_pending_steps(phase, _coerce_classifications(payload))

    async def _complete(
        self,
        channel: _LLMChannelConfig,
        *,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int | None,
    ) -> str:
        try:
            return await call_chat_completions(
                api_key=channel.api_key,
                base_url=channel.base_url,
                model=channel.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                timeout_s=channel.timeout_s,
                temperature=temperature,
                max_tokens=max_tokens,
                max_attempts=settings.extraction_max_attempts,
                allow_empty=True,
            )
        except LLMCallError as exc:
            raise LLMUnavailableError(str(exc)) from exc

    def _resolve_channel(self, *, model_id: str, timeout_s: float) -> _LLMChannelConfig:
        if channel_for_model(model_id) == CHANNEL_XAI:
            api_key = _clean(settings.llm_xai_api_key)
            if not api_key:
                raise ChannelNotConfiguredError(CHANNEL_XAI)
            return _LLMChannelConfig(
                name=CHANNEL_XAI,
                api_key=api_key,
                base_url=_clean(settings.llm_xai_base_url),
                model=_clean(model_id),
                timeout_s=float(timeout_s),
            )
        api_key = _clean(settings.llm_api_key)
        if not api_key:
            raise ChannelNotConfiguredError(CHANNEL_GATEWAY)
        return _LLMChannelConfig(
            name=CHANNEL_GATEWAY,
            api_key=api_key,
            base_url=_clean(settings.llm_base_url),
            model=normalize_model_id(model_id),
            timeout_s=float(timeout_s),
        )

    @staticmethod
    def _is_real_mode() -> bool:
        return bool(_clean(settings.llm_api_key) or _clean(settings.llm_xai_api_key))


_extraction_boundary: ExtractionBoundary | None = None


def get_extraction_boundary() -> ExtractionBoundary:
    global _extraction_boundary
    if _extraction_boundary is None:
        _extraction_boundary = ExtractionBoundary()
    return _extraction_boundary
