from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional

from awb_gateway.services.segment_catalog import FHL_SEGMENTS, FHL_VERSIONS, FWB_SEGMENTS, FWB_VERSIONS

TypeBPriority = Literal["QK", "QD", "QP", "QU"]


def check_fwb_version(v):
    if v is not None and v not in FWB_VERSIONS:
        raise ValueError(f"Unsupported FWB version: {v}")
    return v


def check_fhl_version(v):
    if v is not None and v not in FHL_VERSIONS:
        raise ValueError(f"Unsupported FHL version: {v}")
    return v


def check_fwb_segments(codes):
    unknown = [c for c in codes or [] if c not in FWB_SEGMENTS]
    if unknown:
        raise ValueError(f"Unknown FWB segment(s): {', '.join(unknown)}")
    return codes


def check_fhl_segments(codes):
    unknown = [c for c in codes or [] if c not in FHL_SEGMENTS]
    if unknown:
        raise ValueError(f"Unknown FHL segment(s): {', '.join(unknown)}")
    return codes


class AirlinePolicy(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    awb_prefix: str
    name: str
    # case = policy // 10 (FHL bundling), option = policy % 10 (rate detail)
    policy: int = 21
    fwb_version: str = "FWB/16"
    fhl_version: str = "FHL/4"
    enabled_segments: List[str] = []
    disabled_segments: List[str] = []
    enabled_fhl_segments: List[str] = []
    disabled_fhl_segments: List[str] = []
    default_sph_codes: List[str] = ["EAP", "PER", "COL"]
    oci_format: Literal["withPrefix", "withoutPrefix"] = "withPrefix"
    include_unb_unz: bool = True
    airline_address: Optional[str] = None
    sender_country: Optional[str] = None
    use_typeb_header: bool = True
    typeb_priority: TypeBPriority = "QK"
    use_agency_name_for_cer: bool = False
    requires_hts: bool = False
    requires_china_postal_code: bool = False
    use_consolidated_ng: bool = False
    fhl_always_with_header: bool = False
    mbi_only_first_hawb: bool = False
    hawb_prefix_add0: List[str] = ["CM", "SK", "LG"]
    notes: Optional[str] = None

    @field_validator("enabled_segments", "disabled_segments")
    def validate_fwb_segments(cls, v):
        return check_fwb_segments(v)

    @field_validator("enabled_fhl_segments", "disabled_fhl_segments")
    def validate_fhl_segments(cls, v):
        return check_fhl_segments(v)

    @property
    def case(self) -> int:
        return self.policy // 10

    @property
    def option(self) -> int:
        return self.policy % 10


class PolicyUpdate(BaseModel):
    """Partial airline override; unset fields fall through to the defaults."""

    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    name: Optional[str] = None
    policy: Optional[int] = None
    fwb_version: Optional[str] = None
    fhl_version: Optional[str] = None
    enabled_segments: Optional[List[str]] = None
    disabled_segments: Optional[List[str]] = None
    enabled_fhl_segments: Optional[List[str]] = None
    disabled_fhl_segments: Optional[List[str]] = None
    default_sph_codes: Optional[List[str]] = None
    oci_format: Optional[Literal["withPrefix", "withoutPrefix"]] = None
    include_unb_unz: Optional[bool] = None
    airline_address: Optional[str] = None
    use_typeb_header: Optional[bool] = None
    typeb_priority: Optional[TypeBPriority] = None
    use_agency_name_for_cer: Optional[bool] = None
    requires_hts: Optional[bool] = None
    requires_china_postal_code: Optional[bool] = None
    use_consolidated_ng: Optional[bool] = None
    fhl_always_with_header: Optional[bool] = None
    mbi_only_first_hawb: Optional[bool] = None
    notes: Optional[str] = None

    @field_validator("fwb_version")
    def validate_fwb_version(cls, v):
        return check_fwb_version(v)

    @field_validator("fhl_version")
    def validate_fhl_version(cls, v):
        return check_fhl_version(v)

    @field_validator("enabled_segments", "disabled_segments")
    def validate_fwb_segments(cls, v):
        return check_fwb_segments(v)

    @field_validator("enabled_fhl_segments", "disabled_fhl_segments")
    def validate_fhl_segments(cls, v):
        return check_fhl_segments(v)


class GlobalCargoImpConfig(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    fwb_version: Optional[str] = None
    fhl_version: Optional[str] = None
    include_unb_unz: Optional[bool] = None
    use_typeb_header: Optional[bool] = None
    typeb_priority: Optional[TypeBPriority] = None

    @field_validator("fwb_version")
    def validate_fwb_version(cls, v):
        return check_fwb_version(v)

    @field_validator("fhl_version")
    def validate_fhl_version(cls, v):
        return check_fhl_version(v)


class TypeBConfig(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    recipient_address: str
    sender_prefix: str
    origin_address: str
    default_priority: TypeBPriority = "QK"
    include_timestamp: bool = True


class TypeBConfigUpdate(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    recipient_address: Optional[str] = None
    sender_prefix: Optional[str] = None
    origin_address: Optional[str] = None
    default_priority: Optional[TypeBPriority] = None
    include_timestamp: Optional[bool] = None


class PolicyInfo(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    policy: AirlinePolicy
    source: Literal["custom", "configured", "default"]
    airline_name: str
    is_default: bool
    warnings: List[str] = []


class SegmentToggle(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )

    family: Literal["FWB", "FHL"] = "FWB"
    segment: str
    enabled: bool
