from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ExtractionMeta(BaseModel):
    """Per-attempt diagnostics, produced fresh for every extraction call.

    Attributes:
        via: Text acquisition method that won
        model_tag: Model tier used for the LLM call
        text_char_count: Length of the acquired document text
        text_acquisition_ms: Time spent acquiring text
        llm_ms: Time spent in the LLM call (0 on a cache hit)
        total_ms: End-to-end latency
    """

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    via: Literal["fast", "ocr"]
    model_tag: Literal["primary", "secondary"] = Field(..., alias="modelTag")
    text_char_count: int = Field(..., ge=0, alias="textCharCount")
    text_acquisition_ms: int = Field(..., ge=0, alias="textAcquisitionMs")
    llm_ms: int = Field(..., ge=0, alias="llmMs")
    total_ms: int = Field(..., ge=0, alias="totalMs")
    model: Optional[str] = Field(default=None, description="Concrete model identifier")
    llm_cached: bool = Field(default=False, alias="llmCached")


class ExtractRequest(BaseModel):
    """Body of the extract endpoint."""

    model: Literal["primary", "secondary"] = Field(
        default="primary", description="Model tier to run"
    )
    mode: Optional[Literal["auto", "fast", "ocr"]] = Field(
        default=None, description="Text acquisition mode; server default when omitted"
    )


class ExtractionResponse(BaseModel):
    ok: bool = True
    data: Dict[str, Any] = Field(..., description="Validated PolicyExtractV1 payload")
    meta: Dict[str, Any]


class ErrorResponse(BaseModel):
    ok: bool = False
    code: str
    hint: str
    detail: Optional[Dict[str, Any]] = None


class FieldErrorResponse(BaseModel):
    ok: bool = False
    message: str
    errors: List[Dict[str, str]] = Field(default_factory=list)


class ConfirmSaveResponse(BaseModel):
    ok: bool = True
    policy_id: int
    status: str
    data: Dict[str, Any]


class HealthCheckResponse(BaseModel):
    """Health check response model.

    Attributes:
        status: Service status
        version: Application version
        service: Service name
    """

    status: str = Field(
        default="healthy",
        description="Service health status",
        examples=["healthy", "unhealthy"],
    )
    version: str = Field(..., description="Application version", examples=["0.1.0"])
    service: str = Field(..., description="Service name", examples=["Policy Intake"])
