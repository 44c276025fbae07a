from fastapi import APIRouter, HTTPException
from typing import Optional

from awb_gateway.schemas.message import CargoImpBundle, GeneratedCargoImpMessage
from awb_gateway.schemas.shipment import Shipment
from awb_gateway.schemas.validation import (
    CargoImpValidationResult,
    FwbValidationResponse,
    ValidateTextRequest,
)
from awb_gateway.services import formatting as fmt
from awb_gateway.services.cargo_imp_encoder import cargo_imp_encoder
from awb_gateway.services.cargo_imp_validator import cargo_imp_validator
from awb_gateway.services.policy_store import policy_store

router = APIRouter()


@router.post("/fwb", response_model=GeneratedCargoImpMessage)
async def generate_fwb(shipment: Shipment, version: Optional[str] = None):
    """
    Generates the FWB for a shipment under its airline policy.
    """
    return cargo_imp_encoder.generate_fwb(shipment, version=version)


@router.post("/fhl/{index}", response_model=GeneratedCargoImpMessage)
async def generate_fhl(index: int, shipment: Shipment, version: Optional[str] = None):
    """
    Generates the FHL for one house of the shipment.
    """
    houses = shipment.house_bills or []
    if index < 0 or index >= len(houses):
        raise HTTPException(status_code=404, detail=f"House bill {index} not found")
    return cargo_imp_encoder.generate_fhl(shipment, houses[index], version=version)


@router.post("/bundle", response_model=CargoImpBundle)
async def generate_bundle(shipment: Shipment):
    """
    Generates FWB plus FHL messages bundled the way the airline expects.
    """
    return cargo_imp_encoder.generate_bundle(shipment)


@router.post("/validate", response_model=FwbValidationResponse)
async def validate_fwb(shipment: Shipment):
    """
    Encodes the FWB and returns it together with its validation report.
    """
    fwb = cargo_imp_encoder.generate_fwb(shipment)
    return FwbValidationResponse(fwb=fwb, validation=cargo_imp_validator.validate(fwb))


@router.post("/validate-text", response_model=CargoImpValidationResult)
async def validate_text(request: ValidateTextRequest):
    """
    Validates raw CARGO-IMP text, e.g. an edited or concatenated message.
    """
    policy = None
    if request.awb_prefix:
        policy = policy_store.get_effective_policy(fmt.normalize_awb(request.awb_prefix)[:3])
    return cargo_imp_validator.validate_text(request.text, request.message_type, policy=policy)
