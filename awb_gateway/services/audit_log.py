"""
Transmission audit trail.
"""
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from awb_gateway.models.transmission import TransmissionLog
from awb_gateway.schemas.transmission import BundleTransmissionResult, TransmissionStats


def record_bundle(db: Session, bundle: BundleTransmissionResult, awb_number: str) -> list:
    """Stores one row per attempted send."""
    rows = []
    for result in [bundle.fwb_result] + list(bundle.fhl_results):
        rows.append(TransmissionLog(
            awb_number=awb_number,
            message_type=result.message_type,
            reference=result.reference,
            success=result.success,
            http_status=result.http_status,
            tid=result.parsed.tid if result.parsed else None,
            error=result.error,
        ))
    db.add_all(rows)
    db.commit()
    return rows


def summarize(db: Session) -> TransmissionStats:
    total, successful = db.query(
        func.count(TransmissionLog.id),
        func.sum(case((TransmissionLog.success.is_(True), 1), else_=0)),
    ).one()
    total = total or 0
    successful = successful or 0
    return TransmissionStats(
        total_messages=total,
        successful=successful,
        failed=total - successful,
        success_rate=round(successful / total * 100, 1) if total else 0.0,
    )
