"""
Runtime policy store.

Holds the per-airline CARGO-IMP policies, the runtime overrides applied on top
of them and the Type B header configuration. Encoders read the effective policy
once at the start of every encode call; the configuration API is the only
writer.
"""
import logging
from typing import Callable, Dict, List, Optional

from awb_gateway.core.config import settings
from awb_gateway.schemas.policy import (
    AirlinePolicy,
    GlobalCargoImpConfig,
    PolicyInfo,
    PolicyUpdate,
    TypeBConfig,
    TypeBConfigUpdate,
)
from awb_gateway.services.segment_catalog import (
    FHL_SEGMENT_CODES,
    FHL_SEGMENTS,
    FWB_SEGMENTS,
)

logger = logging.getLogger(__name__)

_CORE = ["FWB", "AWB", "RTG", "SHP", "CNE", "AGT", "CVD", "RTD", "NG", "NH", "NV", "NS"]
_TAIL = ["PPD", "COL", "CER", "ISU", "REF", "SPH", "OCI", "FTR"]


def _policy(prefix, name, policy, enabled, disabled, **extra) -> AirlinePolicy:
    return AirlinePolicy(
        awb_prefix=prefix,
        name=name,
        policy=policy,
        enabled_segments=enabled,
        disabled_segments=disabled,
        **extra,
    )


_STANDARD = _CORE[:3] + ["FLT"] + _CORE[3:6] + ["ACC"] + _CORE[6:] + _TAIL
_WITH_OTH = _STANDARD + ["OTH"]
_WITH_NFY = _STANDARD + ["NFY"]

DEFAULT_AIRLINE_POLICIES: Dict[str, AirlinePolicy] = {
    p.awb_prefix: p
    for p in [
        _policy("075", "Iberia", 20,
                [c for c in _STANDARD if c not in ("FLT", "ACC", "CER")],
                ["FLT", "SSR", "ACC", "OTH", "CER", "NFY"]),
        _policy("145", "LATAM", 21, _STANDARD, ["SSR", "OTH", "NFY"]),
        _policy("074", "KLM", 24, _WITH_OTH, ["SSR", "NFY"],
                notes="KLM requires every segment including OTH"),
        _policy("157", "Qatar Airways", 23,
                [c for c in _WITH_OTH if c != "FLT"], ["SSR", "FLT", "NFY"]),
        _policy("369", "Atlas Air / Ethiopian", 22,
                [c for c in _STANDARD if c != "FTR"], ["SSR", "FTR", "OTH", "NFY"],
                include_unb_unz=False,
                notes="Version line only, no UNB/UNH header and no UNT/UNZ footer"),
        _policy("176", "Emirates", 41, _WITH_OTH, ["SSR", "NFY"],
                use_agency_name_for_cer=True,
                notes="CER carries the agency name"),
        _policy("235", "Turkish Airlines", 41, _WITH_OTH, ["SSR", "NFY"],
                requires_hts=True,
                notes="Requires an HTS code"),
        _policy("992", "DHL Aviation (992)", 71, _WITH_NFY, ["SSR", "OTH"],
                fhl_always_with_header=True,
                notes="FHL always carries the EDIFACT header and footer"),
        _policy("999", "Polar Air Cargo (DHL)", 71, _WITH_NFY, ["SSR", "OTH"],
                fhl_always_with_header=True),
        _policy("155", "ABX Air", 71, _WITH_NFY, ["SSR", "OTH"],
                fhl_always_with_header=True,
                notes="FHL always carries the EDIFACT header and footer"),
        _policy("985", "LATAM Cargo", 21, _STANDARD, ["SSR", "OTH", "NFY"],
                use_consolidated_ng=True,
                notes="NC/CONSOLIDATE FLOWERS for consolidations"),
        _policy("045", "Avianca Cargo", 21, _STANDARD, ["SSR", "OTH", "NFY"]),
        _policy("057", "Air France", 21, _STANDARD, ["SSR", "OTH", "NFY"],
                notes="EU destination, EORI required in OCI"),
        _policy("020", "Lufthansa", 21, _STANDARD, ["SSR", "OTH", "NFY"],
                notes="EU destination, EORI required in OCI"),
        _policy("205", "Emirates", 21, _STANDARD, ["SSR", "OTH", "NFY"]),
        _policy("DEFAULT", "Default (all other airlines)", 21, _STANDARD,
                ["SSR", "OTH", "NFY"]),
    ]
}

Listener = Callable[[], None]


class PolicyStore:
    def __init__(self, defaults: Optional[Dict[str, AirlinePolicy]] = None):
        self._defaults = dict(defaults or DEFAULT_AIRLINE_POLICIES)
        self._overrides: Dict[str, PolicyUpdate] = {}
        self._global = GlobalCargoImpConfig()
        self._typeb_overrides = TypeBConfigUpdate()
        self._listeners: List[Listener] = []

    # --- Subscriptions ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            listener()

    # --- Reads ---

    def _base_policy(self, prefix: str) -> AirlinePolicy:
        return self._defaults.get(prefix) or self._defaults["DEFAULT"]

    def get_effective_policy(self, prefix: str) -> AirlinePolicy:
        """
        Resolves the policy for an AWB prefix.
        Precedence: airline override > global override > airline default.
        """
        base = self._base_policy(prefix)
        override = self._overrides.get(prefix) or PolicyUpdate()
        glob = self._global

        merged = base.model_dump()
        merged.update(override.model_dump(exclude_none=True))
        merged["awb_prefix"] = prefix

        # Lists fall back override -> default -> empty
        for key in ("enabled_segments", "disabled_segments", "disabled_fhl_segments"):
            value = getattr(override, key)
            merged[key] = list(value if value is not None else getattr(base, key) or [])

        enabled_fhl = override.enabled_fhl_segments
        if enabled_fhl is None:
            enabled_fhl = base.enabled_fhl_segments or list(FHL_SEGMENT_CODES)
        merged["enabled_fhl_segments"] = list(enabled_fhl)

        for key in ("fwb_version", "fhl_version", "include_unb_unz", "typeb_priority"):
            value = getattr(override, key)
            if value is None:
                value = getattr(glob, key)
            if value is None:
                value = getattr(base, key)
            merged[key] = value

        use_typeb = override.use_typeb_header
        if use_typeb is None:
            use_typeb = glob.use_typeb_header
        if use_typeb is None:
            use_typeb = settings.USE_TYPEB_HEADER
        merged["use_typeb_header"] = use_typeb

        return AirlinePolicy(**merged)

    def get_policy_info(self, prefix: str) -> PolicyInfo:
        policy = self.get_effective_policy(prefix)
        warnings = []
        if prefix in self._overrides:
            source = "custom"
        elif prefix in self._defaults:
            source = "configured"
        else:
            source = "default"
            warnings.append(f"No specific policy configured for prefix {prefix}")
            warnings.append("Using DEFAULT policy (case 2, option 1)")

        return PolicyInfo(
            policy=policy,
            source=source,
            airline_name=policy.name,
            is_default=source == "default",
            warnings=warnings,
        )

    def list_policies(self) -> List[AirlinePolicy]:
        return [self.get_effective_policy(prefix) for prefix in self._defaults]

    def has_overrides(self, prefix: str) -> bool:
        return prefix in self._overrides

    def airlines_with_overrides(self) -> List[str]:
        return sorted(self._overrides)

    # --- Writes ---

    def update_policy(self, prefix: str, updates: PolicyUpdate) -> AirlinePolicy:
        current = self._overrides.get(prefix) or PolicyUpdate()
        merged = current.model_dump(exclude_none=True)
        merged.update(updates.model_dump(exclude_none=True))
        self._overrides[prefix] = PolicyUpdate(**merged)
        logger.info(f"Policy override updated for {prefix}: {sorted(merged)}")
        self._notify()
        return self.get_effective_policy(prefix)

    def toggle_fwb_segment(self, prefix: str, code: str, enabled: bool) -> AirlinePolicy:
        if code not in FWB_SEGMENTS:
            raise KeyError(f"Unknown FWB segment: {code}")
        current = self.get_effective_policy(prefix)
        enabled_set, disabled_set = _toggle(
            current.enabled_segments, current.disabled_segments, code, enabled
        )
        return self.update_policy(
            prefix,
            PolicyUpdate(enabled_segments=enabled_set, disabled_segments=disabled_set),
        )

    def toggle_fhl_segment(self, prefix: str, code: str, enabled: bool) -> AirlinePolicy:
        if code not in FHL_SEGMENTS:
            raise KeyError(f"Unknown FHL segment: {code}")
        current = self.get_effective_policy(prefix)
        enabled_set, disabled_set = _toggle(
            current.enabled_fhl_segments, current.disabled_fhl_segments, code, enabled
        )
        return self.update_policy(
            prefix,
            PolicyUpdate(
                enabled_fhl_segments=enabled_set, disabled_fhl_segments=disabled_set
            ),
        )

    def reset_policy(self, prefix: str) -> AirlinePolicy:
        self._overrides.pop(prefix, None)
        logger.info(f"Policy override removed for {prefix}")
        self._notify()
        return self.get_effective_policy(prefix)

    def get_global(self) -> GlobalCargoImpConfig:
        return self._global.model_copy()

    def update_global(self, updates: GlobalCargoImpConfig) -> GlobalCargoImpConfig:
        merged = self._global.model_dump(exclude_none=True)
        merged.update(updates.model_dump(exclude_none=True))
        self._global = GlobalCargoImpConfig(**merged)
        self._notify()
        return self.get_global()

    # --- Type B ---

    def get_typeb_config(self) -> TypeBConfig:
        config = TypeBConfig(
            recipient_address=settings.TYPEB_RECIPIENT_ADDRESS,
            sender_prefix=settings.TYPEB_SENDER_PREFIX,
            origin_address=settings.TYPEB_ORIGIN_ADDRESS,
            default_priority=settings.TYPEB_DEFAULT_PRIORITY,
            include_timestamp=settings.TYPEB_INCLUDE_TIMESTAMP,
        )
        return config.model_copy(update=self._typeb_overrides.model_dump(exclude_none=True))

    def update_typeb_config(self, updates: TypeBConfigUpdate) -> TypeBConfig:
        merged = self._typeb_overrides.model_dump(exclude_none=True)
        merged.update(updates.model_dump(exclude_none=True))
        self._typeb_overrides = TypeBConfigUpdate(**merged)
        self._notify()
        return self.get_typeb_config()

    def set_typeb_enabled(self, enabled: bool):
        self.update_global(GlobalCargoImpConfig(use_typeb_header=enabled))

    def is_typeb_enabled(self) -> bool:
        if self._global.use_typeb_header is not None:
            return self._global.use_typeb_header
        return settings.USE_TYPEB_HEADER

    def reset(self):
        self._overrides.clear()
        self._global = GlobalCargoImpConfig()
        self._typeb_overrides = TypeBConfigUpdate()
        logger.info("All policy overrides cleared")
        self._notify()


def _toggle(enabled: List[str], disabled: List[str], code: str, on: bool):
    enabled = [c for c in enabled if c != code]
    disabled = [c for c in disabled if c != code]
    if on:
        enabled.append(code)
    else:
        disabled.append(code)
    return enabled, disabled


policy_store = PolicyStore()
