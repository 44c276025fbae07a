"""
CARGO-IMP encoder.

Builds FWB (master waybill) and FHL (house waybill) messages from a Shipment and
the airline policy resolved for its AWB prefix. Encoding never raises for bad
or missing data: values degrade to placeholders and over-length segments carry
an error that the validator surfaces later.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from awb_gateway.core.config import settings
from awb_gateway.schemas.message import (
    CargoImpBundle,
    GeneratedCargoImpMessage,
    GeneratedField,
    GeneratedSegment,
)
from awb_gateway.schemas.policy import AirlinePolicy, PolicyInfo
from awb_gateway.schemas.shipment import HouseBill, Party, Shipment
from awb_gateway.services import formatting as fmt
from awb_gateway.services.formatting import normalize
from awb_gateway.services.policy_store import PolicyStore, policy_store
from awb_gateway.services.segment_catalog import (
    FHL_SEGMENTS,
    FWB_SEGMENT_CODES,
    FWB_SEGMENTS,
    SegmentSpec,
    is_legal,
)

logger = logging.getLogger(__name__)

RATE_CLASS_CODES = {
    "QUANTITY_RATE": "Q",
    "NORMAL_RATE": "N",
    "MINIMUM_CHARGE": "M",
    "SPECIFIC_COMMODITY_RATE": "C",
    "BASIC_CHARGE": "B",
}

ACCOUNTING_IDENTIFIERS = {
    "GovernmentBillOfLading": "GBL",
    "CreditCardNumber": "CC",
    "CreditCardExpiryDate": "CCE",
    "CreditCardIssuanceName": "CCN",
    "GeneralInformation": "GEN",
    "ModeOfSettlement": "MOS",
    "ShippersReferenceNumber": "SRN",
}

LATAM_PREFIXES = ("985", "145")
CHINA_ROUTE_PREFIXES = ("992", "176")

Fields = Dict[str, str]

_FIELD_UNSAFE = re.compile(r"[^A-Z0-9 ./-]")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_segment(spec: SegmentSpec, content: str, enabled: bool, fields: Optional[Fields] = None) -> GeneratedSegment:
    """Wraps derived content into a GeneratedSegment, flagging over-length content."""
    errors = []
    original_content = None
    if len(content) > spec.max_length:
        original_content = content
        errors.append(
            f"Exceeds limit: {len(content)}/{spec.max_length} characters "
            f"({len(content) - spec.max_length} over)"
        )

    # Required fields are always listed, optional ones only when the builder supplied them
    fields = fields or {}
    generated_fields = []
    for field_spec in spec.fields:
        if not field_spec.required and field_spec.name not in fields:
            continue
        raw = fields.get(field_spec.name, "")
        generated_fields.append(
            GeneratedField(
                name=field_spec.name,
                raw_value=raw,
                value=_FIELD_UNSAFE.sub("", raw.upper())[: field_spec.max_length],
                max_length=field_spec.max_length,
                required=field_spec.required,
            )
        )

    return GeneratedSegment(
        code=spec.code,
        name=spec.name,
        order=spec.order,
        enabled=enabled,
        required=spec.required,
        content=content,
        max_length=spec.max_length,
        current_length=len(content),
        original_content=original_content,
        errors=errors,
        fields=generated_fields,
    )


def assemble(segments: List[GeneratedSegment]) -> str:
    return "\n".join(
        seg.content
        for seg in sorted(segments, key=lambda s: s.order)
        if seg.enabled and seg.content
    )


def _collect_errors(segments: List[GeneratedSegment]) -> List[str]:
    return [f"{seg.code}: {err}" for seg in segments for err in seg.errors]


class CargoImpEncoder:
    def __init__(self, store: PolicyStore = policy_store, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.clock = clock or _utcnow

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def policy_for(self, shipment: Shipment) -> AirlinePolicy:
        return self.store.get_effective_policy(fmt.awb_prefix(shipment.awb_number))

    def policy_info(self, prefix: str) -> PolicyInfo:
        return self.store.get_policy_info(prefix)

    def generate_fwb(self, shipment: Shipment, version: Optional[str] = None,
                     policy: Optional[AirlinePolicy] = None) -> GeneratedCargoImpMessage:
        policy = policy or self.policy_for(shipment)
        fwb_version = version or policy.fwb_version
        segments = self._build_fwb_segments(shipment, policy, fwb_version)
        errors = _collect_errors(segments)
        logger.debug(f"FWB {shipment.awb_number} built with {len(segments)} segments")

        return GeneratedCargoImpMessage(
            type="FWB",
            version=fwb_version,
            awb_number=shipment.awb_number,
            is_consolidation=shipment.has_houses,
            segments=segments,
            full_message=assemble(segments),
            is_valid=not errors,
            errors=errors,
            policy=policy,
            timestamp=self.clock(),
        )

    def generate_fhl(self, shipment: Shipment, house: HouseBill, version: Optional[str] = None,
                     policy: Optional[AirlinePolicy] = None,
                     force_header: bool = False) -> GeneratedCargoImpMessage:
        policy = policy or self.policy_for(shipment)
        fhl_version = version or policy.fhl_version
        segments = self._build_fhl_segments(shipment, house, policy, fhl_version, force_header)
        errors = _collect_errors(segments)

        return GeneratedCargoImpMessage(
            type="FHL",
            version=fhl_version,
            awb_number=shipment.awb_number,
            hawb_number=house.hawb_number,
            is_consolidation=True,
            segments=segments,
            full_message=assemble(segments),
            is_valid=not errors,
            errors=errors,
            policy=policy,
            timestamp=self.clock(),
        )

    def generate_fhl_with_envelope(self, shipment: Shipment, house: HouseBill,
                                   version: Optional[str] = None) -> GeneratedCargoImpMessage:
        """FHL that always carries the interchange header and footer."""
        policy = self.policy_for(shipment).model_copy(
            update={"include_unb_unz": True, "fhl_always_with_header": True}
        )
        fhl = self.generate_fhl(shipment, house, version, policy=policy, force_header=True)
        return fhl.model_copy(
            update={"full_message": fmt.fhl_post_replacements(fhl.full_message, False)}
        )

    def generate_concatenated_fhl(self, shipment: Shipment, version: Optional[str] = None) -> str:
        """Every house as a full FHL, joined with the `&` separator line."""
        houses = shipment.house_bills or []
        if not houses:
            return ""
        policy = self.policy_for(shipment)
        messages = [
            fmt.fhl_post_replacements(
                self.generate_fhl(shipment, house, version, policy=policy).full_message, True
            )
            for house in houses
        ]
        return "&\n".join(messages)

    def generate_single_header_fhl(self, shipment: Shipment, version: Optional[str] = None) -> str:
        """
        One version line followed by every house; MBI only on the first house
        and no separator between houses.
        """
        houses = shipment.house_bills or []
        if not houses:
            return ""
        policy = self.policy_for(shipment)
        fhl_version = version or policy.fhl_version

        result = fhl_version + "\n"
        for index, house in enumerate(houses):
            segments = self._build_fhl_body(shipment, house, policy, fhl_version, include_mbi=index == 0)
            result += fmt.fhl_post_replacements(assemble(segments) + "\n", True)
        return result

    def generate_bundle(self, shipment: Shipment) -> CargoImpBundle:
        policy = self.policy_for(shipment)
        fwb = self.generate_fwb(shipment, policy=policy)
        fwb = fwb.model_copy(update={"full_message": fmt.fwb_post_replacements(fwb.full_message)})

        fhls: List[GeneratedCargoImpMessage] = []
        concatenated = None
        houses = shipment.house_bills or []

        if houses:
            if policy.case == 5:
                concatenated = self.generate_concatenated_fhl(shipment)
            elif policy.case == 7:
                fhls = [self.generate_fhl_with_envelope(shipment, house) for house in houses]
            elif policy.case == 8:
                concatenated = self.generate_single_header_fhl(shipment)
            else:
                # Cases 2 and 4, and anything unknown
                for house in houses:
                    fhl = self.generate_fhl(shipment, house, policy=policy)
                    fhls.append(
                        fhl.model_copy(
                            update={"full_message": fmt.fhl_post_replacements(fhl.full_message, False)}
                        )
                    )

        logger.debug(
            f"Bundle for {shipment.awb_number}: policy {policy.policy}, "
            f"{len(fhls)} FHL, concatenated={concatenated is not None}"
        )
        return CargoImpBundle(
            fwb=fwb,
            fhls=fhls,
            concatenated_fhl=concatenated,
            policy_case=policy.case,
            policy_option=policy.option,
        )

    def regenerate_message(self, segments: List[GeneratedSegment]) -> str:
        return assemble(segments)

    def update_segment(self, segment: GeneratedSegment, content: str) -> GeneratedSegment:
        spec = FWB_SEGMENTS.get(segment.code) or FHL_SEGMENTS.get(segment.code)
        errors = []
        if spec and len(content) > spec.max_length:
            errors.append(
                f"Exceeds limit: {len(content)}/{spec.max_length} characters "
                f"({len(content) - spec.max_length} over)"
            )
        return segment.model_copy(
            update={"content": content, "current_length": len(content), "errors": errors}
        )

    # ------------------------------------------------------------------
    # FWB
    # ------------------------------------------------------------------

    def _is_fwb_segment_enabled(self, code: str, policy: AirlinePolicy, version: str) -> bool:
        if not is_legal(code, version):
            return False
        # An explicit disable wins, even over mandatory segments
        if code in policy.disabled_segments:
            return False
        if FWB_SEGMENTS[code].required:
            return True
        return not policy.enabled_segments or code in policy.enabled_segments

    def _build_fwb_segments(self, shipment: Shipment, policy: AirlinePolicy, version: str) -> List[GeneratedSegment]:
        builders = {
            "FWB": lambda: self._build_header(shipment, policy, version, "FWB"),
            "AWB": lambda: self._build_awb(shipment),
            "FLT": lambda: self._build_flt(shipment),
            "RTG": lambda: self._build_rtg(shipment),
            "SHP": lambda: self._build_shp(shipment, version),
            "CNE": lambda: self._build_cne(shipment),
            "AGT": lambda: self._build_agt(shipment),
            "SSR": lambda: self._build_ssr(shipment),
            "ACC": lambda: self._build_acc(shipment),
            "CVD": lambda: self._build_cvd(shipment),
            "RTD": lambda: self._build_rtd(shipment, policy),
            "NG": lambda: self._build_ng(shipment),
            "NH": lambda: self._build_nh(shipment),
            "NV": lambda: self._build_nv(shipment),
            "NS": lambda: self._build_ns(shipment),
            "OTH": lambda: self._build_oth(shipment),
            "PPD": lambda: self._build_charge_summary(shipment, "PPD"),
            "COL": lambda: self._build_charge_summary(shipment, "COL"),
            "CER": lambda: self._build_cer(shipment, policy),
            "ISU": lambda: self._build_isu(shipment, policy),
            "REF": lambda: self._build_ref(shipment),
            "SPH": lambda: self._build_sph(shipment, policy),
            "OCI": lambda: self._build_oci(shipment),
            "NFY": lambda: self._build_nfy(shipment),
            "FTR": lambda: self._build_footer(policy),
        }

        segments = []
        for code in FWB_SEGMENT_CODES:
            content, fields = builders[code]()
            enabled = self._is_fwb_segment_enabled(code, policy, version)
            # PPD and COL are mutually exclusive by payment method
            if code == "PPD" and shipment.payment_method != "Prepaid":
                enabled = False
            if code == "COL" and shipment.payment_method != "Collect":
                enabled = False
            segments.append(build_segment(FWB_SEGMENTS[code], content, enabled, fields))
        return segments

    def _typeb_header(self, policy: AirlinePolicy, version: str) -> str:
        config = self.store.get_typeb_config()
        priority = policy.typeb_priority or config.default_priority
        origin_line = f".{config.sender_prefix}"
        if config.include_timestamp:
            origin_line += f" {fmt.format_typeb_timestamp(self.clock())}"
        origin_line += f" {config.origin_address}"
        return f"{priority} {config.recipient_address}\n{origin_line}\n{version}"

    def _edifact_header(self, shipment: Shipment, policy: AirlinePolicy, version: str, message_type: str) -> str:
        ctrl = fmt.control_number()
        airline_address = (
            (shipment.routing.recipient_address if shipment.routing else None)
            or policy.airline_address
            or "AIRLINE_ADDRESS"
        )
        version_number = version.split("/")[-1]
        return (
            f"UNB+IATA:1+{settings.SENDER_ID}+{airline_address}:PIMA+"
            f"{fmt.format_unb_datetime(self.clock())}+{ctrl}+0++L'"
            f"UNH+{ctrl}+CIM{message_type}:{version_number}'{version}"
        )

    def _build_header(self, shipment: Shipment, policy: AirlinePolicy, version: str,
                      message_type: str) -> Tuple[str, Fields]:
        fields = {"version": version}
        if policy.use_typeb_header:
            return self._typeb_header(policy, version), fields
        if not policy.include_unb_unz:
            return version, fields
        return self._edifact_header(shipment, policy, version, message_type), fields

    def _edifact_footer(self) -> str:
        ctrl = fmt.control_number()
        return f"UNT+3+{ctrl}'UNZ+1+{ctrl}'"

    def _build_footer(self, policy: AirlinePolicy) -> Tuple[str, Fields]:
        # The footer only closes an EDIFACT header
        if policy.use_typeb_header or not policy.include_unb_unz:
            return "", {}
        return self._edifact_footer(), {}

    def _build_awb(self, shipment: Shipment) -> Tuple[str, Fields]:
        awb = fmt.format_awb_dashed(shipment.awb_number)
        origin = shipment.origin.upper()
        destination = fmt.normalize_destination(shipment.destination)
        weight = fmt.format_number(shipment.weight)
        unit = "L" if shipment.weight_unit == "POUND" else "K"
        content = f"{awb}{origin}{destination}/T{shipment.pieces}{unit}{weight}"
        return content, {
            "awbNumber": fmt.normalize_awb(shipment.awb_number),
            "origin": origin,
            "destination": destination,
            "pieces": str(shipment.pieces),
            "weight": weight,
        }

    def _build_flt(self, shipment: Shipment) -> Tuple[str, Fields]:
        if not shipment.flights:
            return "", {}
        fields = {}
        parts = ["FLT"]
        for i, flight in enumerate(shipment.flights[:2], start=1):
            number = normalize(flight.flight_number, 10)
            day = fmt.flight_day(flight.date) if flight.date else ""
            parts.append(f"/{number}/{day}")
            fields[f"flight{i}"] = number
            fields[f"date{i}"] = day
        return "".join(parts), fields

    def _build_rtg(self, shipment: Shipment) -> Tuple[str, Fields]:
        fields = {}
        if shipment.flights:
            legs = [
                f"{fmt.normalize_destination(f.destination)}{normalize(f.carrier_code, 2)}"
                for f in shipment.flights
            ]
        else:
            legs = [f"{shipment.origin}XX", f"{fmt.normalize_destination(shipment.destination)}XX"]
        for i, leg in enumerate(legs[:3], start=1):
            fields[f"segment{i}"] = leg
        return "RTG/" + "/".join(legs), fields

    def _party_fields(self, party: Party, postal: str) -> Tuple[Fields, str, str, str, str]:
        name = normalize(party.name, 35, True)
        address = normalize(party.address.street, 35, True)
        city = normalize(party.address.place, 17, True)
        country = normalize(party.address.country_code, 2)
        fields = {
            "name": name,
            "address": address,
            "city": city,
            "country": country,
            "postalCode": postal,
        }
        if party.contact:
            fields["phone"] = fmt.phone_digits(party.contact.number)
        return fields, name, address, city, country

    def _agency_postal_code(self, shipment: Shipment) -> Optional[str]:
        return shipment.agent.address.postal_code if shipment.agent.address else None

    def _build_shp(self, shipment: Shipment, version: str) -> Tuple[str, Fields]:
        shipper = shipment.shipper
        country = shipper.address.country_code.upper()
        consignee_country = shipment.consignee.address.country_code.upper()
        postal = fmt.postal_code_for(
            shipper.address.postal_code, country, self._agency_postal_code(shipment)
        )

        # Ecuador to China routes use a fixed postal code
        prefix = fmt.awb_prefix(shipment.awb_number)
        if country == "EC" and (consignee_country == "CN" or prefix in CHINA_ROUTE_PREFIXES):
            postal = settings.CHINA_POSTAL_CODE

        fields, name, address, city, country = self._party_fields(shipper, postal)
        if version == "FWB/17":
            content = f"SHP\nNAM/{name}\nADR/{address}\nLOC/{city}\n/{country}/{postal}"
        else:
            content = f"SHP\n/{name}\n/{address}\n/{city}\n/{country}/{postal}"
        if fields.get("phone"):
            content += f"/TE/{fields['phone']}"
        return content, fields

    def _build_cne(self, shipment: Shipment) -> Tuple[str, Fields]:
        consignee = shipment.consignee
        country = consignee.address.country_code.upper()
        postal = fmt.postal_code_for(
            consignee.address.postal_code, country, self._agency_postal_code(shipment)
        )
        fields, name, address, city, country = self._party_fields(consignee, postal)
        state = normalize(consignee.address.state, 2)
        if state:
            fields["state"] = state

        city_line = f"{city}/{state}" if country == "US" and state else city
        content = f"CNE\n/{name}\n/{address}\n/{city_line}\n/{country}/{postal}"
        if fields.get("phone"):
            content += f"/TE/{fields['phone']}"
        return content, fields

    def _build_agt(self, shipment: Shipment) -> Tuple[str, Fields]:
        agent = shipment.agent
        iata = normalize(agent.iata_code, 7)
        cass = normalize(agent.cass_code, 4)
        name = normalize(agent.name, 35, True)
        city = normalize(agent.place, 17, True)
        content = f"AGT//{iata}/{cass}\n/{name}\n/{city}"
        return content, {"iataCode": iata, "cassCode": cass, "name": name, "city": city}

    def _build_ssr(self, shipment: Shipment) -> Tuple[str, Fields]:
        if not shipment.special_service_request:
            return "", {}
        raw_lines = [l for l in shipment.special_service_request.splitlines() if l.strip()][:3]
        lines = [normalize(l, 65, True, False) for l in raw_lines]
        lines = [l for l in lines if l]
        if not lines:
            return "", {}
        fields = {f"line{i}": line for i, line in enumerate(lines, start=1)}
        return "SSR/" + "\n/".join(lines), fields

    def _build_acc(self, shipment: Shipment) -> Tuple[str, Fields]:
        lines = []
        for acc in shipment.accounting or []:
            identifier = acc.identifier or "GEN"
            code = ACCOUNTING_IDENTIFIERS.get(identifier) or normalize(identifier[:3])
            info = normalize(acc.accounting_information, 34, True)
            if info:
                lines.append(f"ACC/{code}/{info}")
        fields = {"accountingInfo": lines[0].split("/", 2)[-1]} if lines else {}
        return "\n".join(lines), fields

    def _wt_ot(self, shipment: Shipment) -> str:
        methods = {c.payment_method for c in shipment.other_charges or []}
        if shipment.payment_method == "Prepaid":
            return "PC" if methods == {"Collect"} else "PP"
        return "CP" if methods == {"Prepaid"} else "CC"

    def _build_cvd(self, shipment: Shipment) -> Tuple[str, Fields]:
        currency = normalize(shipment.currency, 3)
        wt_ot = self._wt_ot(shipment)
        carriage = normalize(shipment.declared_value_carriage, 15, False, False) or "NVD"
        customs = normalize(shipment.declared_value_customs, 15, False, False) or "NCV"
        content = f"CVD/{currency}//{wt_ot}/{carriage}/{customs}/XXX"
        return content, {
            "currency": currency,
            "wtOt": wt_ot,
            "declaredCarriage": carriage,
            "declaredCustoms": customs,
            "declaredInsurance": "XXX",
        }

    @staticmethod
    def map_rate_class(rate_class: str) -> str:
        rate_class = (rate_class or "").upper()
        if len(rate_class) == 1:
            return rate_class
        return RATE_CLASS_CODES.get(rate_class, "Q")

    def _build_rtd(self, shipment: Shipment, policy: AirlinePolicy) -> Tuple[str, Fields]:
        lines = []
        fields: Fields = {}
        for idx, rate in enumerate(shipment.rates, start=1):
            rate_class = self.map_rate_class(rate.rate_class_code)
            line = f"RTD/{idx}/P{rate.pieces}/K{fmt.format_number(rate.weight)}/C{rate_class}"
            commodity = rate.commodity_code or ""
            if commodity.isdigit():
                line += f"/S{commodity.zfill(4)[:4]}"
            if rate.chargeable_weight:
                line += f"/W{fmt.format_number(rate.chargeable_weight)}"
            if policy.option >= 1:
                rate_value = fmt.format_number(rate.rate_or_charge, 2) if rate.rate_or_charge else "0.0"
                total_value = fmt.format_number(rate.total, 2) if rate.total else "0.0"
                line += f"/R{rate_value}/T{total_value}"
            lines.append(line)

            if idx == 1:
                fields = {
                    "lineNumber": "1",
                    "pieces": str(rate.pieces),
                    "weight": fmt.format_number(rate.weight),
                    "rateClass": rate_class,
                    "rate": fmt.format_number(rate.rate_or_charge, 2),
                    "total": fmt.format_number(rate.total, 2),
                }
                if commodity.isdigit():
                    fields["commodity"] = commodity.zfill(4)[:4]
                if rate.chargeable_weight:
                    fields["chargeableWeight"] = fmt.format_number(rate.chargeable_weight)
        return "\n".join(lines), fields

    def _nature_of_goods(self, shipment: Shipment) -> str:
        if shipment.goods_description_override:
            return normalize(shipment.goods_description_override, 20, True)
        if shipment.description:
            return normalize(shipment.description, 20, True)
        return "FRESHPERISH"

    def _build_ng(self, shipment: Shipment) -> Tuple[str, Fields]:
        prefix = fmt.awb_prefix(shipment.awb_number)

        if prefix in LATAM_PREFIXES:
            commodity = shipment.rates[0].commodity_code if shipment.rates else ""
            if shipment.has_houses:
                if commodity in ("0609", "609"):
                    return "/NC/CONSOLIDATE FLOWERS", {"description": "CONSOLIDATE FLOWERS"}
                description = self._nature_of_goods(shipment)
                return f"/NC/{description}", {"description": description}
            return "/NG/CUT FLOWERS", {"description": "CUT FLOWERS"}

        description = self._nature_of_goods(shipment)
        tag = "NC" if shipment.has_houses else "NG"
        return f"/{tag}/{description}", {"description": description}

    def _hs_codes(self, shipment: Shipment) -> List[str]:
        codes: List[str] = []
        for rate in shipment.rates:
            if rate.hs_codes:
                codes.extend(rate.hs_codes)
            elif rate.hs_code:
                codes.append(rate.hs_code)
        if shipment.has_houses:
            for house in shipment.house_bills or []:
                codes.extend(house.hts_codes or [])

        unique = []
        for code in codes:
            clean = re.sub(r"\D", "", code)
            if clean and clean not in unique:
                unique.append(clean)
        return unique

    def _total_volume(self, shipment: Shipment) -> float:
        total = 0.0
        if shipment.has_houses and shipment.house_bills:
            for house in shipment.house_bills:
                volume = house.volume_cubic_meters if house.volume_cubic_meters is not None else house.volume
                if volume and volume > 0:
                    total += volume
            if total <= 0 and shipment.volume and shipment.volume > 0:
                total = shipment.volume
        else:
            total = shipment.volume or 0.0
        return total

    def _build_nh(self, shipment: Shipment) -> Tuple[str, Fields]:
        codes = self._hs_codes(shipment)
        lines = [f"/{n}/NH/{code}" for n, code in enumerate(codes, start=2)]
        return "\n".join(lines), {"codes": codes[0] if codes else ""}

    def _build_nv(self, shipment: Shipment) -> Tuple[str, Fields]:
        volume = self._total_volume(shipment)
        if volume <= 0:
            return "", {}
        line_number = 2 + len(self._hs_codes(shipment))
        value = fmt.format_number(max(volume, 0.01), 2)
        return f"/{line_number}/NV/MC{value}", {"volume": value}

    def _build_ns(self, shipment: Shipment) -> Tuple[str, Fields]:
        if not shipment.has_houses or shipment.pieces <= 0:
            return "", {}
        line_number = 2 + len(self._hs_codes(shipment))
        if self._total_volume(shipment) > 0:
            line_number += 1
        return f"/{line_number}/NS/{shipment.pieces}", {"pieces": str(shipment.pieces)}

    def _build_oth(self, shipment: Shipment) -> Tuple[str, Fields]:
        if not shipment.other_charges:
            return "", {}
        lines = ["OTH"]
        for charge in shipment.other_charges:
            pc = "P" if charge.payment_method == "Prepaid" else "C"
            lines.append(f"/{pc}/{normalize(charge.code, 3)}{fmt.format_number(charge.amount, 2)}")
        first = shipment.other_charges[0]
        return "\n".join(lines), {
            "prepaidOrCollect": "P" if first.payment_method == "Prepaid" else "C",
            "chargeCode": normalize(first.code, 3),
            "amount": fmt.format_number(first.amount, 2),
        }

    def _build_charge_summary(self, shipment: Shipment, tag: str) -> Tuple[str, Fields]:
        override = shipment.charge_summary_override
        if override:
            clean = lambda v: normalize(v, 15, False, False)
            content = tag
            if override.total_weight_charge:
                content += f"/WT{clean(override.total_weight_charge)}"
            if override.total_other_charges_due_agent:
                content += f"\n/OA{clean(override.total_other_charges_due_agent)}"
            if override.total_other_charges_due_carrier:
                content += f"/OC{clean(override.total_other_charges_due_carrier)}"
            content += f"/CT{clean(override.charge_summary_total)}"
            return content, {
                "weightCharge": clean(override.total_weight_charge),
                "dueAgent": clean(override.total_other_charges_due_agent),
                "dueCarrier": clean(override.total_other_charges_due_carrier),
                "total": clean(override.charge_summary_total),
            }

        weight_total = sum(rate.total or 0 for rate in shipment.rates)
        due_agent = sum(c.amount for c in shipment.other_charges or [] if c.entitlement == "DueAgent")
        due_carrier = sum(c.amount for c in shipment.other_charges or [] if c.entitlement != "DueAgent")
        total = weight_total + due_agent + due_carrier

        content = f"{tag}/WT{fmt.format_number(weight_total, 2)}"
        if due_agent > 0 or due_carrier > 0:
            content += f"\n/OA{fmt.format_number(due_agent, 2)}/OC{fmt.format_number(due_carrier, 2)}"
        content += f"/CT{fmt.format_number(total, 2)}"
        return content, {
            "weightCharge": fmt.format_number(weight_total, 2),
            "dueAgent": fmt.format_number(due_agent, 2),
            "dueCarrier": fmt.format_number(due_carrier, 2),
            "total": fmt.format_number(total, 2),
        }

    def _signature(self, shipment: Shipment, policy: AirlinePolicy) -> str:
        if policy.use_agency_name_for_cer:
            return normalize(shipment.agent.name or settings.DEFAULT_SIGNATURE, 20, True)
        return normalize(shipment.signature or settings.DEFAULT_SIGNATURE, 20, True)

    def _build_cer(self, shipment: Shipment, policy: AirlinePolicy) -> Tuple[str, Fields]:
        signature = self._signature(shipment, policy)
        return f"CER/{signature}", {"signature": signature}

    def _build_isu(self, shipment: Shipment, policy: AirlinePolicy) -> Tuple[str, Fields]:
        issued = fmt.format_date(shipment.execution_date or self.clock())
        place = normalize(shipment.execution_place or shipment.origin, 17, True)
        signature = self._signature(shipment, policy)
        return f"ISU/{issued}/{place}/{signature}", {
            "date": issued,
            "place": place,
            "signature": signature,
        }

    def _build_ref(self, shipment: Shipment) -> Tuple[str, Fields]:
        iata = normalize(shipment.agent.iata_code, 7)
        cass = normalize(shipment.agent.cass_code, 4)
        origin = shipment.origin.upper()
        return f"REF///AGT/{iata}{cass}/{origin}", {"agentRef": f"AGT/{iata}{cass}/{origin}"}

    def sph_codes(self, shipment: Shipment, policy: AirlinePolicy) -> List[str]:
        if shipment.special_handling_codes:
            return [normalize(code, 3) for code in shipment.special_handling_codes]
        return list(policy.default_sph_codes)

    def _build_sph(self, shipment: Shipment, policy: AirlinePolicy) -> Tuple[str, Fields]:
        codes = "/".join(self.sph_codes(shipment, policy))
        return f"SPH/{codes}", {"codes": codes}

    def _oci_line(self, consignee: Party, shipper_country: str, without_prefix: bool) -> Tuple[str, Fields]:
        tin = consignee.tax_id or consignee.account_number or ""
        if not tin.strip():
            return "", {}
        tin = normalize(tin.replace(" ", ""), 31, False, False)
        country = normalize(consignee.address.country_code, 2) or "US"
        no_eori = without_prefix or shipper_country == "EC" or country in ("US", "CA")
        value = tin if no_eori else f"EORI{tin}"
        return f"OCI/{country}/CNE/T/{value}", {
            "countryCode": country,
            "party": "CNE",
            "type": "T",
            "value": value,
        }

    def _build_oci(self, shipment: Shipment) -> Tuple[str, Fields]:
        return self._oci_line(
            shipment.consignee, shipment.shipper.address.country_code.upper(), False
        )

    def _build_nfy(self, shipment: Shipment) -> Tuple[str, Fields]:
        notify = shipment.also_notify
        if not notify:
            return "", {}
        name = normalize(notify.name, 35, True)
        if not name:
            return "", {}

        parts = [f"NFY/{name}"]
        if notify.name2:
            parts.append(f"/{normalize(notify.name2, 35, True)}")

        address = notify.address
        street = normalize(address.street, 35, True)
        if street:
            parts.append(f"/{street}")
        if address.street2:
            parts.append(f"/{normalize(address.street2, 35, True)}")

        city = normalize(address.place, 17, True)
        country = normalize(address.country_code, 2)
        if city or country:
            state = normalize(address.state, 2)
            postal = normalize(address.postal_code, 9)
            parts.append(f"/{city}/{state}/{country}/{postal}")

        phone = ""
        if notify.contact and notify.contact.number:
            identifier = normalize(notify.contact.identifier or "TE", 3)
            phone = fmt.phone_digits(notify.contact.number)
            parts.append(f"/{identifier}{phone}")

        return "\n".join(parts), {
            "name": name,
            "address": street,
            "city": city,
            "country": country,
            "phone": phone,
        }

    # ------------------------------------------------------------------
    # FHL
    # ------------------------------------------------------------------

    def _is_fhl_segment_enabled(self, code: str, policy: AirlinePolicy, version: str) -> bool:
        if not is_legal(code, version):
            return False
        if code in policy.disabled_fhl_segments:
            return False
        if policy.enabled_fhl_segments:
            return code in policy.enabled_fhl_segments
        return True

    def _build_fhl_segments(self, shipment: Shipment, house: HouseBill, policy: AirlinePolicy,
                            version: str, force_header: bool) -> List[GeneratedSegment]:
        include_header = (
            force_header
            or policy.fhl_always_with_header
            or (policy.include_unb_unz and policy.option < 2)
        )
        if include_header:
            if policy.use_typeb_header:
                header = self._typeb_header(policy, version)
            else:
                header = self._edifact_header(shipment, policy, version, "FHL")
        else:
            header = version

        segments = [
            build_segment(
                FHL_SEGMENTS["FHL"], header,
                self._is_fhl_segment_enabled("FHL", policy, version), {"version": version},
            )
        ]
        segments.extend(self._build_fhl_body(shipment, house, policy, version, include_mbi=True))

        footer = ""
        if include_header and not policy.use_typeb_header:
            footer = self._edifact_footer()
        segments.append(
            build_segment(
                FHL_SEGMENTS["FTR"], footer,
                bool(footer) and self._is_fhl_segment_enabled("FTR", policy, version),
            )
        )
        return segments

    def _build_fhl_body(self, shipment: Shipment, house: HouseBill, policy: AirlinePolicy,
                        version: str, include_mbi: bool) -> List[GeneratedSegment]:
        """Cargo segments of one house, MBI through CVD."""
        enabled = lambda code: self._is_fhl_segment_enabled(code, policy, version)
        segments = []

        if include_mbi:
            content, fields = self._build_mbi(shipment)
            segments.append(build_segment(FHL_SEGMENTS["MBI"], content, enabled("MBI"), fields))

        content, fields = self._build_hbs(shipment, house, policy)
        segments.append(build_segment(FHL_SEGMENTS["HBS"], content, enabled("HBS"), fields))

        content, fields = self._build_txt(house)
        segments.append(build_segment(FHL_SEGMENTS["TXT"], content, enabled("TXT") and bool(content), fields))

        codes = [re.sub(r"\D", "", c) for c in house.hts_codes or []]
        codes = [c for c in codes if c]
        content = f"HTS/{codes[0]}" if codes else ""
        segments.append(
            build_segment(FHL_SEGMENTS["HTS"], content, enabled("HTS") and bool(content),
                          {"code": codes[0] if codes else ""})
        )

        consignee = house.consignee or shipment.consignee
        shipper_country = (house.shipper or shipment.shipper).address.country_code.upper() or "CO"
        content, fields = self._oci_line(consignee, shipper_country, policy.oci_format == "withoutPrefix")
        segments.append(build_segment(FHL_SEGMENTS["OCI"], content, enabled("OCI") and bool(content), fields))

        content, fields = self._build_fhl_shp(shipment, house, policy)
        segments.append(build_segment(FHL_SEGMENTS["SHP"], content, enabled("SHP"), fields))

        content, fields = self._build_fhl_cne(shipment, house)
        segments.append(build_segment(FHL_SEGMENTS["CNE"], content, enabled("CNE"), fields))

        currency = normalize(shipment.currency, 3)
        segments.append(
            build_segment(FHL_SEGMENTS["CVD"], f"CVD/{currency}/PP/NVD/NCV/XXX", enabled("CVD"),
                          {"currency": currency, "wtOt": "PP"})
        )
        return segments

    def _build_mbi(self, shipment: Shipment) -> Tuple[str, Fields]:
        awb = fmt.format_awb_dashed(shipment.awb_number)
        origin = shipment.origin.upper()
        destination = fmt.normalize_destination(shipment.destination)
        weight = fmt.format_number(shipment.weight, 0)
        return f"MBI/{awb}{origin}{destination}/T{shipment.pieces}K{weight}", {
            "awbNumber": fmt.normalize_awb(shipment.awb_number),
            "origin": origin,
            "destination": destination,
            "totalPieces": str(shipment.pieces),
            "totalWeight": weight,
        }

    def _build_hbs(self, shipment: Shipment, house: HouseBill, policy: AirlinePolicy) -> Tuple[str, Fields]:
        origin = (house.origin or shipment.origin).upper()
        destination = fmt.normalize_destination(house.destination or shipment.destination)
        hawb = fmt.normalize_hawb(house.hawb_number, policy.hawb_prefix_add0)
        weight = fmt.format_number(house.weight)
        # HBS carries a fixed short description, the full text goes into TXT
        nature = "CUT FLOWERS"
        content = f"HBS/{hawb}/{origin}{destination}/{house.pieces}/K{weight}/{house.pieces}/{nature}"
        return content, {
            "hawbNumber": hawb,
            "origin": origin,
            "destination": destination,
            "pieces": str(house.pieces),
            "weight": weight,
            "natureOfGoods": nature,
        }

    def _build_txt(self, house: HouseBill) -> Tuple[str, Fields]:
        raw = normalize(house.nature_of_goods, 70, True, False)
        nature = re.sub(r"\s*\bHS\b.*", "", raw).strip()
        if not nature:
            return "", {}
        slac = f" SLAC-{house.pieces}" if house.pieces else ""
        text = f"{nature}{slac}"
        return f"TXT/{text}", {"text": text}

    def _build_fhl_shp(self, shipment: Shipment, house: HouseBill, policy: AirlinePolicy) -> Tuple[str, Fields]:
        shipper = house.shipper or Party(
            name=house.shipper_name or shipment.shipper.name, address=shipment.shipper.address
        )
        country = shipper.address.country_code.upper() or "CO"
        postal = fmt.postal_code_for(
            shipper.address.postal_code, country, self._agency_postal_code(shipment)
        )
        if policy.requires_china_postal_code and country == "EC":
            consignee_country = (house.consignee or shipment.consignee).address.country_code.upper()
            prefix = fmt.awb_prefix(shipment.awb_number)
            if consignee_country == "CN" or prefix in CHINA_ROUTE_PREFIXES:
                postal = settings.CHINA_POSTAL_CODE

        fields, name, address, city, country = self._party_fields(shipper, postal)
        country = country or "CO"
        return f"SHP/{name}\n/{address}\n/{city}\n/{country}/{postal}", fields

    def _build_fhl_cne(self, shipment: Shipment, house: HouseBill) -> Tuple[str, Fields]:
        consignee = house.consignee or Party(
            name=house.consignee_name or shipment.consignee.name, address=shipment.consignee.address
        )
        postal = normalize(consignee.address.postal_code, 9) or "10"
        fields, name, address, city, country = self._party_fields(consignee, postal)
        country = country or "US"
        state = normalize(consignee.address.state, 2)
        city_line = f"{city}/{state}" if country == "US" and state else city

        content = f"CNE/{name}\n/{address}\n/{city_line}\n/{country}/{postal}"
        if fields.get("phone"):
            content += f"/TE/{fields['phone']}"
        return content, fields


cargo_imp_encoder = CargoImpEncoder()
