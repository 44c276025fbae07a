from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional
from datetime import datetime, timezone

from awb_gateway.schemas.policy import AirlinePolicy


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GeneratedField(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    name: str
    raw_value: str = ""
    value: str = ""
    max_length: int
    required: bool = False


class GeneratedSegment(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    code: str
    name: str
    order: int
    enabled: bool
    required: bool
    content: str = ""
    max_length: int
    current_length: int = 0
    original_content: Optional[str] = None
    errors: List[str] = []
    warnings: List[str] = []
    fields: List[GeneratedField] = []


class GeneratedCargoImpMessage(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        validate_by_name=True,
        validate_by_alias=True,
        frozen=True,
    )

    type: Literal["FWB", "FHL"]
    version: str
    awb_number: str
    hawb_number: Optional[str] = None
    is_consolidation: bool = False
    segments: List[GeneratedSegment]
    full_message: str
    is_valid: bool = True
    errors: List[str] = []
    policy: AirlinePolicy
    timestamp: datetime = Field(default_factory=_utcnow)


class CargoImpBundle(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    fwb: GeneratedCargoImpMessage
    fhls: List[GeneratedCargoImpMessage] = []
    concatenated_fhl: Optional[str] = None
    policy_case: int
    policy_option: int

    def fhl_texts(self) -> List[str]:
        """Texts to put on the wire for the houses, in send order."""
        if self.concatenated_fhl is not None:
            return [self.concatenated_fhl]
        return [fhl.full_message for fhl in self.fhls]


class CargoXmlDocument(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    type: Literal["XFWB", "XFZB"]
    awb_number: str
    hawb_number: Optional[str] = None
    xml_content: str = ""
    is_valid: bool = True
    errors: List[str] = []
    timestamp: datetime = Field(default_factory=_utcnow)


class CargoXmlBundle(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    xfwb: CargoXmlDocument
    xfzbs: List[CargoXmlDocument] = []
