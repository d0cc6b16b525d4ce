"""Structured field extraction through a JSON-schema constrained LLM call."""

import asyncio
import time
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from policy_intake.core.exceptions import (
    APIClientError,
    APITimeoutError,
    ConfigurationError,
    ExtractionError,
)
from policy_intake.core.openai_client import OpenAIChatClient
from policy_intake.core.ttl_cache import TTLCache
from policy_intake.schemas.extraction import (
    SCHEMA_VERSION,
    DebugInfo,
    Insurer,
    LLMExtractResult,
    PolicyExtractV1,
    Source,
    empty_field,
    format_validation_errors,
    make_field,
)
from policy_intake.services.extraction.insurer_map import to_insurer_hint
from policy_intake.services.extraction.normalizers import coerce_number, to_iso
from policy_intake.services.extraction.prompts import (
    MOTOR_POLICY_JSON_SCHEMA,
    build_system_prompt,
)
from policy_intake.utils.json_parser import parse_json_safely
from policy_intake.utils.logging import get_logger

LOGGER = get_logger(__name__)

MODEL_TIERS = ("primary", "secondary")
_MONEY_KEYS = ("total_premium", "net_od", "idv")

# Confidence assigned to each model-produced value.
LLM_CONFIDENCE = {
    "insurer": 0.9,
    "policy_number": 0.95,
    "vehicle_number": 0.9,
    "issue_date": 0.9,
    "expiry_date": 0.9,
    "total_premium": 0.9,
    "idv": 0.85,
}


class LLMCallResult:
    """Outcome of one structured extraction call.

    Attributes:
        success: Whether a validated result was produced
        data: The validated model output when successful
        model: Concrete model identifier that was called
        error: Structured failure when unsuccessful
        cached: Whether the result came from the TTL cache
        elapsed_ms: Wall-clock time spent in the call
    """

    def __init__(
        self,
        success: bool,
        data: Optional[LLMExtractResult] = None,
        model: Optional[str] = None,
        error: Optional[ExtractionError] = None,
        cached: bool = False,
        elapsed_ms: int = 0,
    ):
        self.success = success
        self.data = data
        self.model = model
        self.error = error
        self.cached = cached
        self.elapsed_ms = elapsed_ms

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"ok": self.success, "model": self.model, "cached": self.cached}
        if self.data is not None:
            result["data"] = self.data.model_dump()
        if self.error is not None:
            result.update(self.error.to_dict())
        return result


class LLMExtractionService:
    """Runs the windowed text through the model of the requested tier.

    Never raises: every failure comes back as an unsuccessful
    ``LLMCallResult`` carrying an ``ExtractionError``. Only successes are
    cached, keyed by ``(model_tier, upload_id)``.
    """

    def __init__(
        self,
        client: OpenAIChatClient,
        model_primary: str,
        model_secondary: str,
        timeout_ms: int = 4000,
        cache: Optional[TTLCache] = None,
    ):
        self.client = client
        self.models = {"primary": model_primary, "secondary": model_secondary}
        self.timeout_ms = timeout_ms
        self.cache = cache if cache is not None else TTLCache(ttl_seconds=120)

    def model_for(self, model_tier: str) -> str:
        return self.models["secondary" if model_tier == "secondary" else "primary"]

    async def extract(
        self,
        upload_id: Optional[str],
        model_tier: str,
        insurer_hint: Optional[Insurer],
        windowed_text: str,
    ) -> LLMCallResult:
        """Extract the strict result set from ``windowed_text``.

        Args:
            upload_id: Cache key component; no caching when absent
            model_tier: ``primary`` or ``secondary``
            insurer_hint: Optional insurer code added to the instructions
            windowed_text: Output of ``build_windows``

        Returns:
            LLMCallResult: success with data, or failure with a coded error
        """
        model = self.model_for(model_tier)
        cache_key = (model_tier, upload_id) if upload_id else None

        if cache_key is not None:
            hit = self.cache.get(cache_key)
            if hit is not None:
                LOGGER.info(
                    "LLM extraction cache hit",
                    extra={"upload_id": upload_id, "model_tier": model_tier},
                )
                return LLMCallResult(success=True, data=hit, model=model, cached=True)

        LOGGER.info(
            "Calling LLM for extraction",
            extra={
                "upload_id": upload_id,
                "model_tier": model_tier,
                "model": model,
                "chars": len(windowed_text or ""),
            },
        )

        started = time.perf_counter()
        try:
            data = await self._call_and_validate(model_tier, model, insurer_hint, windowed_text)
        except ExtractionError as e:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            LOGGER.warning(
                "LLM extraction failed",
                extra={
                    "upload_id": upload_id,
                    "model_tier": model_tier,
                    "code": e.code,
                    "elapsed_ms": elapsed_ms,
                },
            )
            return LLMCallResult(success=False, model=model, error=e, elapsed_ms=elapsed_ms)

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        if cache_key is not None:
            self.cache.set(cache_key, data)
        return LLMCallResult(success=True, data=data, model=model, elapsed_ms=elapsed_ms)

    async def _call_and_validate(
        self,
        model_tier: str,
        model: str,
        insurer_hint: Optional[Insurer],
        windowed_text: str,
    ) -> LLMExtractResult:
        try:
            raw = await asyncio.wait_for(
                self.client.complete(
                    system_prompt=build_system_prompt(insurer_hint),
                    document_text=windowed_text,
                    json_schema=MOTOR_POLICY_JSON_SCHEMA,
                    model=model,
                    temperature=0,
                    timeout_ms=self.timeout_ms,
                ),
                timeout=self.timeout_ms / 1000,
            )
        except (asyncio.TimeoutError, APITimeoutError) as e:
            raise ExtractionError(
                code=f"{model_tier}_timeout",
                hint=f"Model did not answer within {self.timeout_ms} ms; retry or switch model",
                detail={"timeout_ms": self.timeout_ms, "msg": str(e)},
                original_error=e,
            ) from e
        except ConfigurationError as e:
            raise ExtractionError(
                code=f"{model_tier}_not_configured",
                hint="LLM credentials are not configured",
                detail={"msg": str(e)},
                original_error=e,
            ) from e
        except APIClientError as e:
            kind = "http_error" if e.status_code is not None else "network"
            raise ExtractionError(
                code=f"{model_tier}_{kind}",
                hint="LLM request failed",
                detail={"status": e.status_code, "msg": str(e)},
                original_error=e,
            ) from e

        if not raw or not raw.strip():
            raise ExtractionError(
                code=f"{model_tier}_empty_response",
                hint="Model returned no content",
                detail={"model": model},
            )

        parsed = parse_json_safely(raw)
        if not isinstance(parsed, dict):
            raise ExtractionError(
                code=f"{model_tier}_invalid_json",
                hint="Model output was not a JSON object",
                detail={"raw": raw[:500]},
            )

        for key in _MONEY_KEYS:
            if key in parsed:
                parsed[key] = coerce_number(parsed[key])

        try:
            return LLMExtractResult.model_validate(parsed)
        except PydanticValidationError as e:
            raise ExtractionError(
                code=f"{model_tier}_schema_violation",
                hint="Model output did not match the extraction schema",
                detail={"errors": format_validation_errors(e)},
                original_error=e,
            ) from e


def _clean_string(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _clean_money(value: Optional[float]):
    number = coerce_number(value)
    if number is None or number < 0:
        return None
    return number


def adapt_llm_result(
    data: LLMExtractResult,
    debug: Optional[DebugInfo] = None,
) -> PolicyExtractV1:
    """Wrap the model output into the field record, every value sourced ``llm``.

    Dates that are not already ``YYYY-MM-DD`` are converted, or dropped when
    they cannot be.
    """
    values = {
        "insurer": to_insurer_hint(data.insurer),
        "policy_number": _clean_string(data.policy_number),
        "vehicle_number": _clean_string(data.vehicle_number),
        "issue_date": to_iso(data.issue_date),
        "expiry_date": to_iso(data.expiry_date),
        "total_premium": _clean_money(data.total_premium),
        "idv": _clean_money(data.idv),
    }
    fields = {
        name: make_field(value, LLM_CONFIDENCE[name], Source.LLM)
        for name, value in values.items()
    }
    return PolicyExtractV1(
        schema_version=SCHEMA_VERSION,
        make=empty_field(),
        model=empty_field(),
        variant=empty_field(),
        fuel_type=empty_field(),
        debug=debug,
        **fields,
    )
