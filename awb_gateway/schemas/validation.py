from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional
from datetime import datetime, timezone

from awb_gateway.schemas.message import GeneratedCargoImpMessage

Severity = Literal["error", "warning", "info", "success"]
Regulation = Literal["ICS2", "ACAS", "IATA", "CUSTOMS"]


class ValidationIssue(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        validate_by_name=True,
        validate_by_alias=True,
        frozen=True,
    )

    severity: Severity
    message: str
    segment: Optional[str] = None
    field: Optional[str] = None
    line: Optional[int] = None
    line_content: Optional[str] = None
    rule: Optional[str] = None
    expected: Optional[str] = None
    found: Optional[str] = None
    regulation: Optional[Regulation] = None
    recommendation: Optional[str] = None


class SegmentValidationResult(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    segment: str
    segment_name: str
    is_valid: bool
    issues: List[ValidationIssue]
    error_count: int = 0
    warning_count: int = 0
    info_count: int = 0
    lines: List[str] = []


class CargoImpValidationResult(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    is_valid: bool
    can_send: bool = True
    has_errors: bool
    segment_results: List[SegmentValidationResult]
    all_issues: List[ValidationIssue]
    total_errors: int
    total_warnings: int
    total_info: int
    score: int
    summary: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class XmlValidationSummary(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    message_type: Literal["XFWB", "XFZB"]
    awb_number: Optional[str] = None
    type_code: Optional[str] = None
    ics2_compliant: bool = False
    acas_compliant: bool = False


class XmlValidationResult(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    is_valid: bool
    score: int
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []
    info: List[ValidationIssue] = []
    success: List[ValidationIssue] = []
    summary: XmlValidationSummary


class ValidateTextRequest(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    text: str
    message_type: Literal["FWB", "FHL"] = "FWB"
    awb_prefix: Optional[str] = None


class XmlValidateRequest(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    xml: str
    message_type: Optional[Literal["XFWB", "XFZB"]] = None


class FwbValidationResponse(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    fwb: GeneratedCargoImpMessage
    validation: CargoImpValidationResult
