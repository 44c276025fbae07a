from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from awb_gateway.core.database import get_db
from awb_gateway.models.transmission import TransmissionLog
from awb_gateway.schemas.transmission import (
    BundleTransmissionResult,
    TransmissionLogRow,
    TransmissionStats,
    TransmitRequest,
)
from awb_gateway.services import audit_log
from awb_gateway.services import formatting as fmt
from awb_gateway.services.cargo_imp_encoder import cargo_imp_encoder
from awb_gateway.services.transmitter import CargoImpTransmitter

router = APIRouter()


def get_transmitter() -> CargoImpTransmitter:
    return CargoImpTransmitter()


@router.post("/", response_model=BundleTransmissionResult)
async def transmit_shipment(
    request: TransmitRequest,
    db: Session = Depends(get_db),
    transmitter: CargoImpTransmitter = Depends(get_transmitter),
):
    """
    Encodes the CARGO-IMP bundle, sends it and records every attempt.
    """
    shipment = request.shipment
    bundle = cargo_imp_encoder.generate_bundle(shipment)
    if bundle.concatenated_fhl is not None:
        fhl_items = [(bundle.concatenated_fhl, None)]
    else:
        fhl_items = [(fhl.full_message, fhl.hawb_number) for fhl in bundle.fhls]

    awb = fmt.format_awb_dashed(shipment.awb_number)
    result = await transmitter.send_bundle(bundle.fwb.full_message, fhl_items, awb)
    audit_log.record_bundle(db, result, awb)
    return result


@router.get("/", response_model=List[TransmissionLogRow])
async def get_transmission_history(
    skip: int = 0, limit: int = 50, db: Session = Depends(get_db)
):
    """
    Returns the audit trail of recent sends.
    """
    return (
        db.query(TransmissionLog)
        .order_by(TransmissionLog.created_at.desc(), TransmissionLog.id.desc())
        .offset(skip)
        .limit(min(limit, 100))  # Security cap
        .all()
    )


@router.get("/stats", response_model=TransmissionStats)
async def get_transmission_stats(db: Session = Depends(get_db)):
    return audit_log.summarize(db)
