from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional
from datetime import datetime, timezone

from awb_gateway.schemas.shipment import Shipment


class SendState(str, Enum):
    NOT_SENT = "NotSent"
    SENDING = "Sending"
    SENT = "Sent"
    FAILED = "Failed"


class ParsedAcknowledgement(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    host: Optional[str] = None
    service: Optional[str] = None
    created: Optional[str] = None
    version: Optional[str] = None
    bytes_received: Optional[int] = None
    status: Optional[str] = None
    tid: Optional[str] = None
    error: Optional[str] = None
    error_short: Optional[str] = None
    error_detail: Optional[str] = None
    unhandled_exception: Optional[str] = None
    retry_after: Optional[int] = None

    def has_error(self) -> bool:
        return any(
            [self.error, self.error_short, self.error_detail, self.unhandled_exception]
        )


class TransmissionResult(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    message_type: Literal["FWB", "FHL"]
    reference: str
    success: bool
    state: SendState = SendState.NOT_SENT
    http_status: Optional[int] = None
    response_text: Optional[str] = None
    parsed: Optional[ParsedAcknowledgement] = None
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class BundleTransmissionResult(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    fwb_result: TransmissionResult
    fhl_results: List[TransmissionResult] = []
    total_sent: int
    total_success: int
    total_failed: int
    all_success: bool
    summary: str


class TransmitRequest(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    shipment: Shipment


class TransmissionLogRow(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        validate_by_name=True,
        validate_by_alias=True,
        from_attributes=True,
    )

    id: int
    awb_number: str
    message_type: str
    reference: str
    success: bool
    http_status: Optional[int] = None
    tid: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime


class TransmissionStats(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    total_messages: int
    successful: int
    failed: int
    success_rate: float
