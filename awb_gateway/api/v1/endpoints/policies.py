from fastapi import APIRouter, HTTPException
from typing import List

from awb_gateway.schemas.policy import (
    AirlinePolicy,
    GlobalCargoImpConfig,
    PolicyInfo,
    PolicyUpdate,
    SegmentToggle,
    TypeBConfig,
    TypeBConfigUpdate,
)
from awb_gateway.services.policy_store import policy_store

router = APIRouter()


# Settings routes are declared first so "settings" is never read as a prefix
@router.get("/settings/global", response_model=GlobalCargoImpConfig)
async def get_global_settings():
    return policy_store.get_global()


@router.patch("/settings/global", response_model=GlobalCargoImpConfig)
async def update_global_settings(updates: GlobalCargoImpConfig):
    return policy_store.update_global(updates)


@router.get("/settings/type-b", response_model=TypeBConfig)
async def get_typeb_settings():
    return policy_store.get_typeb_config()


@router.patch("/settings/type-b", response_model=TypeBConfig)
async def update_typeb_settings(updates: TypeBConfigUpdate):
    return policy_store.update_typeb_config(updates)


@router.get("/", response_model=List[AirlinePolicy])
async def list_policies():
    """
    Effective policy of every configured airline.
    """
    return policy_store.list_policies()


@router.get("/{prefix}", response_model=PolicyInfo)
async def get_policy(prefix: str):
    return policy_store.get_policy_info(prefix)


@router.patch("/{prefix}", response_model=AirlinePolicy)
async def update_policy(prefix: str, updates: PolicyUpdate):
    """
    Applies a partial runtime override for the airline.
    """
    return policy_store.update_policy(prefix, updates)


@router.delete("/{prefix}", response_model=AirlinePolicy)
async def reset_policy(prefix: str):
    """
    Drops the runtime override and returns the default policy.
    """
    return policy_store.reset_policy(prefix)


@router.post("/{prefix}/segments", response_model=AirlinePolicy)
async def toggle_segment(prefix: str, toggle: SegmentToggle):
    code = toggle.segment.upper()
    try:
        if toggle.family == "FHL":
            return policy_store.toggle_fhl_segment(prefix, code, toggle.enabled)
        return policy_store.toggle_fwb_segment(prefix, code, toggle.enabled)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown {toggle.family} segment: {code}")
