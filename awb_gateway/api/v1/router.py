from fastapi import APIRouter
from awb_gateway.api.v1.endpoints import cargo_imp, cargo_xml, policies, transmissions

api_router = APIRouter()
api_router.include_router(cargo_imp.router, prefix="/cargo-imp", tags=["cargo-imp"])
api_router.include_router(cargo_xml.router, prefix="/cargo-xml", tags=["cargo-xml"])
api_router.include_router(policies.router, prefix="/policies", tags=["policies"])
api_router.include_router(transmissions.router, prefix="/transmissions", tags=["transmissions"])
