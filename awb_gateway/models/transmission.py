from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func

from awb_gateway.core.database import Base


class TransmissionLog(Base):
    __tablename__ = "transmission_logs"
    id = Column(Integer, primary_key=True, index=True)
    awb_number = Column(String, index=True)
    message_type = Column(String)  # FWB, FHL
    reference = Column(String)
    success = Column(Boolean, default=False)
    http_status = Column(Integer, nullable=True)
    tid = Column(String, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
