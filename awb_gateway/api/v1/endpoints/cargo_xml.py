from fastapi import APIRouter

from awb_gateway.schemas.message import CargoXmlBundle
from awb_gateway.schemas.shipment import Shipment
from awb_gateway.schemas.validation import XmlValidateRequest, XmlValidationResult
from awb_gateway.services.cargo_xml_encoder import cargo_xml_encoder
from awb_gateway.services.cargo_xml_validator import cargo_xml_validator

router = APIRouter()


@router.post("/", response_model=CargoXmlBundle)
async def generate_cargo_xml(shipment: Shipment):
    """
    Generates the XFWB and, for consolidations, one XFZB per house.
    """
    return cargo_xml_encoder.generate_bundle(shipment)


@router.post("/validate", response_model=XmlValidationResult)
async def validate_cargo_xml(request: XmlValidateRequest):
    """
    Structural, ICS2 and ACAS checks for a Cargo-XML document.
    """
    return cargo_xml_validator.validate(request.xml, request.message_type)
