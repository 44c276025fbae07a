from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, validate_by_name=True, validate_by_alias=True
    )


class Address(CamelModel):
    street: str = ""
    street2: Optional[str] = None
    place: str = ""
    state: Optional[str] = None
    country_code: str = ""
    postal_code: str = ""


class Contact(CamelModel):
    identifier: str = "TE"
    number: str


class Party(CamelModel):
    name: str = Field(..., description="Legal entity name")
    name2: Optional[str] = None
    account_number: Optional[str] = None
    tax_id: Optional[str] = Field(
        default=None, description="Tax identifier used for OCI customs lines"
    )
    email: Optional[str] = None
    fax: Optional[str] = None
    address: Address = Field(default_factory=Address)
    contact: Optional[Contact] = None


class Agent(CamelModel):
    name: str
    iata_code: str = ""
    cass_code: Optional[str] = None
    place: str = ""
    account_number: Optional[str] = None
    address: Optional[Address] = None


class FlightSegment(CamelModel):
    flight_number: str = Field(..., description="e.g. QT890 or 890")
    date: str = Field(..., description="ISO date, e.g. 2025-03-14")
    time: Optional[str] = None
    origin: str
    destination: str
    carrier_code: str = Field(..., description="2-character IATA carrier code")


class Dimension(CamelModel):
    length: float
    width: float
    height: float
    pieces: int
    unit: Literal["CENTIMETRE", "INCH"] = "CENTIMETRE"


class ULD(CamelModel):
    serial_number: str
    type_code: str
    owner_code: Optional[str] = None


class RateCharge(CamelModel):
    pieces: int
    weight: float
    chargeable_weight: Optional[float] = None
    rate_class_code: str = Field(
        default="Q", description="Short code (Q, N, M) or full name (QUANTITY_RATE)"
    )
    rate_or_charge: float = 0.0
    total: float = 0.0
    description: str = ""
    goods_description_override: Optional[str] = None
    commodity_code: Optional[str] = None
    hs_codes: Optional[List[str]] = None
    hs_code: Optional[str] = None


class OtherCharge(CamelModel):
    code: str
    entitlement: Literal["DueCarrier", "DueAgent"]
    amount: float
    payment_method: Literal["Prepaid", "Collect"] = "Prepaid"


class ChargeSummaryOverride(CamelModel):
    total_weight_charge: Optional[str] = None
    valuation_charge: Optional[str] = None
    taxes: Optional[str] = None
    total_other_charges_due_agent: Optional[str] = None
    total_other_charges_due_carrier: Optional[str] = None
    charge_summary_total: str


class AccountingInfo(CamelModel):
    identifier: str = "GEN"
    accounting_information: str = ""


class SecurityInfo(CamelModel):
    country_code: str
    info_identifier: str
    control_info: str
    additional_control_info: Optional[str] = None
    supplementary_control_info: Optional[str] = None


class RoutingInfo(CamelModel):
    sender_address: Optional[str] = None
    recipient_address: Optional[str] = None


class HouseBill(CamelModel):
    id: str = ""
    message_id: Optional[str] = None
    hawb_number: str
    shipper_name: str = ""
    consignee_name: str = ""
    pieces: int
    weight: float
    volume: Optional[float] = None
    volume_cubic_meters: Optional[float] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    nature_of_goods: str = ""
    common_name: Optional[str] = None
    hts_codes: Optional[List[str]] = None
    dimensions: Optional[List[Dimension]] = None
    shipper: Optional[Party] = None
    consignee: Optional[Party] = None


class Shipment(CamelModel):
    id: str = ""
    message_id: Optional[str] = None
    status: Literal["DRAFT", "TRANSMITTED", "ACKNOWLEDGED", "REJECTED"] = "DRAFT"
    awb_number: str = Field(..., description="11-digit AWB, dashes allowed")
    origin: str
    destination: str
    pieces: int
    weight: float
    weight_unit: Literal["KILOGRAM", "POUND"] = "KILOGRAM"
    volume: Optional[float] = None
    volume_unit: Optional[Literal["CUBIC_CENTIMETRE", "CUBIC_METRE"]] = None
    dimensions: Optional[List[Dimension]] = None
    ulds: Optional[List[ULD]] = None

    description: Optional[str] = None
    goods_description_override: Optional[str] = None
    commodity_code: Optional[str] = None

    currency: str = "USD"
    payment_method: Literal["Prepaid", "Collect"] = "Prepaid"
    declared_value_carriage: Optional[str] = None
    declared_value_customs: Optional[str] = None

    shipper: Party
    consignee: Party
    agent: Agent
    also_notify: Optional[Party] = None
    routing: Optional[RoutingInfo] = None

    flights: List[FlightSegment] = []
    rates: List[RateCharge] = []
    other_charges: Optional[List[OtherCharge]] = None
    charge_summary_override: Optional[ChargeSummaryOverride] = None
    accounting: Optional[List[AccountingInfo]] = None
    oci: Optional[List[SecurityInfo]] = None
    special_handling_codes: Optional[List[str]] = None
    special_service_request: Optional[str] = None

    execution_date: Optional[str] = None
    execution_place: Optional[str] = None
    signature: Optional[str] = None

    has_houses: bool = False
    house_bills: Optional[List[HouseBill]] = None

    @field_validator("origin", "destination")
    def validate_airport(cls, v):
        if not v or len(v.strip()) != 3:
            raise ValueError("Airport codes must be 3 letters")
        return v.strip().upper()
