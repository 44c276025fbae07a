"""
CARGO-IMP validator.

Re-walks a generated FWB/FHL (or raw EDI text) and reports syntax issues per
segment. Severities are advisory: `can_send` is always true and the validator
never raises.
"""
import logging
import re
from typing import Dict, List, Optional, Tuple

from awb_gateway.schemas.message import GeneratedCargoImpMessage, GeneratedSegment
from awb_gateway.schemas.policy import AirlinePolicy
from awb_gateway.schemas.validation import (
    CargoImpValidationResult,
    SegmentValidationResult,
    ValidationIssue,
)
from awb_gateway.services.policy_store import PolicyStore, policy_store
from awb_gateway.services.segment_catalog import (
    ENVELOPE_SEGMENTS,
    FHL_SEGMENTS,
    FWB_SEGMENTS,
    segment_name,
    segments_for,
)

logger = logging.getLogger(__name__)

MAX_LINE_LENGTH = 70

ALLOWED_LINE = re.compile(r"^[A-Z0-9 ./-]*$")
DISALLOWED_CHAR = re.compile(r"[^A-Z0-9 ./-]")
ENVELOPE_LINE = re.compile(r"^(UNB\+|UNH\+|UNT\+|UNZ\+|Q[KDPU] |\.)")
VERSION_LINE = re.compile(r"^(FWB|FHL)/\d+$")

AWB_LINE = re.compile(r"^(\d{3})-(\d{8})([A-Z]{3})([A-Z]{3})/T(\d+)([KL])([\d.]+)$")
MBI_LINE = re.compile(r"^MBI/(\d{3})-(\d{8})([A-Z]{3})([A-Z]{3})/T(\d+)K([\d.]+)$")
HBS_LINE = re.compile(r"^HBS/([^/]+)/([A-Z]*)/(\d+)/K([\d.]+)(?:/(\d+))?/(.*)$")
ISO_COUNTRY = re.compile(r"^[A-Z]{2}$")
ISO_CURRENCY = re.compile(r"^[A-Z]{3}$")
IATA_AIRPORT = re.compile(r"^[A-Z]{3}$")
FLIGHT_NUMBER = re.compile(r"^[A-Z0-9]{2}[0-9]{1,5}[A-Z]?$")
DATE_DDMMMYY = re.compile(r"^[0-3][0-9](JAN|FEB|MAR|APR|MAY|JUN|JUL|AUG|SEP|OCT|NOV|DEC)[0-9]{2}$")
SPH_CODE = re.compile(r"^[A-Z]{3}$")
HS_CODE = re.compile(r"^[0-9]{6,10}$")

FWB_MANDATORY = ["AWB", "FLT", "RTG", "SHP", "CNE", "AGT", "CVD", "RTD", "ISU", "SPH"]
FHL_MANDATORY = ["MBI", "HBS"]
# Segments that start a new house in a multi-house FHL text
FHL_HOUSE_START = {"FHL", "MBI", "HBS"}

WTOT_CODES = ("PP", "CC", "PC", "CP")
RATE_CLASSES = set("CMNQBKSRUWEXY")
OCI_PARTIES = ("CNE", "SHP", "AGT", "NFY")
OCI_TYPES = ("T", "RA", "CT", "CP", "SM", "SO", "ACE", "ACI", "ACH", "CB", "RG", "ID")
EAWB_CODES = ("EAW", "EAP")

VAGUE_DESCRIPTIONS = {
    "CONSOLIDATION", "CONSOLIDATED", "PARTS", "GOODS", "GENERAL", "VARIOUS",
    "MISC", "MISCELLANEOUS", "SAMPLES", "PERSONAL EFFECTS", "MERCHANDISE",
    "CARGO", "ITEMS", "STUFF", "THINGS",
}


def is_vague_description(description: str) -> bool:
    text = (description or "").upper().strip()
    return any(text == word or text == word + "S" for word in VAGUE_DESCRIPTIONS)


def awb_check_digit_ok(serial: str) -> bool:
    """IATA mod-7 check: the 8th serial digit is the first seven modulo 7."""
    if len(serial) != 8 or not serial.isdigit():
        return False
    return int(serial[:7]) % 7 == int(serial[7])


def calculate_score(errors: int, warnings: int) -> int:
    return max(0, min(100, 100 - errors * 15 - warnings * 3))


def _issue(severity: str, message: str, segment: Optional[str] = None, **extra) -> ValidationIssue:
    return ValidationIssue(severity=severity, message=message, segment=segment, **extra)


def _lines(content: str) -> List[str]:
    return [line for line in content.split("\n") if line.strip()]


class CargoImpValidator:
    def __init__(self, store: PolicyStore = policy_store):
        self.store = store

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def validate(self, message: GeneratedCargoImpMessage,
                 policy: Optional[AirlinePolicy] = None) -> CargoImpValidationResult:
        policy = policy or message.policy
        enabled = [s for s in message.segments if s.enabled]
        return self._run(message.type, enabled, message.full_message, message.awb_number, policy)

    def validate_text(self, full_message: str, message_type: str,
                      policy: Optional[AirlinePolicy] = None) -> CargoImpValidationResult:
        """Validates raw EDI text, e.g. a concatenated FHL, recovering segments by tag."""
        # `&` closes a message inside a concatenated FHL
        text = "\n".join(line[:-1] if line.endswith("&") else line for line in full_message.split("\n"))
        segments = self.split_segments(text, message_type)

        awb_number = ""
        for seg in segments:
            if seg.code in ("AWB", "MBI"):
                match = re.search(r"(\d{3})-(\d{8})", seg.content)
                if match:
                    awb_number = match.group(1) + match.group(2)
                    break

        if policy is None:
            policy = self.store.get_effective_policy(awb_number[:3] or "DEFAULT")
        return self._run(message_type, segments, text, awb_number, policy)

    def split_segments(self, text: str, message_type: str) -> List[GeneratedSegment]:
        table = segments_for(message_type)
        header_code = "FWB" if message_type == "FWB" else "FHL"
        segments: List[Tuple[str, List[str]]] = []

        for line in text.split("\n"):
            if not line.strip():
                continue
            code = self._tag_of(line, message_type)
            if code is None:
                if segments:
                    segments[-1][1].append(line)
                continue
            if code == header_code and segments and segments[-1][0] == header_code \
                    and not VERSION_LINE.match(segments[-1][1][-1]):
                # Type B and EDIFACT headers span several lines
                segments[-1][1].append(line)
                continue
            segments.append((code, [line]))

        result = []
        for code, lines in segments:
            spec = table[code]
            content = "\n".join(lines)
            result.append(
                GeneratedSegment(
                    code=code,
                    name=spec.name,
                    order=spec.order,
                    enabled=True,
                    required=spec.required,
                    content=content,
                    max_length=spec.max_length,
                    current_length=len(content),
                )
            )
        return result

    def _tag_of(self, line: str, message_type: str) -> Optional[str]:
        header_code = "FWB" if message_type == "FWB" else "FHL"
        if ENVELOPE_LINE.match(line) and not line.startswith(("UNT+", "UNZ+")):
            return header_code
        if line.startswith(("UNT+", "UNZ+")):
            return "FTR"
        if VERSION_LINE.match(line):
            return header_code

        if message_type == "FWB":
            if re.match(r"^\d{3}-\d{8}", line):
                return "AWB"
            if re.match(r"^/(NG|NC)/", line):
                return "NG"
            for code in ("NH", "NV", "NS"):
                if re.match(rf"^/\d+/{code}/", line):
                    return code

        table = segments_for(message_type)
        match = re.match(r"^([A-Z]{2,3})(/|$)", line)
        if match and match.group(1) in table and match.group(1) not in ENVELOPE_SEGMENTS:
            return match.group(1)
        return None

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    def _run(self, message_type: str, segments: List[GeneratedSegment], full_message: str,
             awb_number: str, policy: AirlinePolicy) -> CargoImpValidationResult:
        segment_results = []
        all_issues: List[ValidationIssue] = []

        # 1. Per-segment rules
        for segment in segments:
            if not segment.content.strip():
                continue
            result = self._validate_segment(message_type, segment, policy)
            segment_results.append(result)
            all_issues.extend(result.issues)

        # 2. Rules across the whole segment sequence
        all_issues.extend(self._global_rules(message_type, segments, full_message, awb_number, policy))

        # 3. Line length and character set
        all_issues.extend(self.check_lines(full_message))

        total_errors = sum(1 for i in all_issues if i.severity == "error")
        total_warnings = sum(1 for i in all_issues if i.severity == "warning")
        total_info = sum(1 for i in all_issues if i.severity == "info")
        score = calculate_score(total_errors, total_warnings) if segments else 0

        if total_errors:
            summary = f"{total_errors} error(s) found. Review before sending."
        elif total_warnings:
            summary = f"Valid message with {total_warnings} warning(s)."
        else:
            summary = "Valid message. No errors or warnings."

        logger.debug(f"{message_type} {awb_number}: {total_errors} errors, {total_warnings} warnings")
        return CargoImpValidationResult(
            is_valid=total_errors == 0,
            can_send=True,
            has_errors=total_errors > 0,
            segment_results=segment_results,
            all_issues=all_issues,
            total_errors=total_errors,
            total_warnings=total_warnings,
            total_info=total_info,
            score=score,
            summary=summary,
        )

    def _validate_segment(self, message_type: str, segment: GeneratedSegment,
                          policy: AirlinePolicy) -> SegmentValidationResult:
        issues: List[ValidationIssue] = []
        lines = _lines(segment.content)
        code = segment.code

        if message_type == "FWB":
            checks = {
                "FWB": self._check_header,
                "AWB": self._check_awb,
                "FLT": self._check_flt,
                "RTG": self._check_rtg,
                "SHP": self._check_party,
                "CNE": self._check_party,
                "AGT": self._check_agt,
                "SSR": self._check_ssr,
                "CVD": self._check_cvd,
                "RTD": self._check_rtd,
                "NG": self._check_ng,
                "NH": self._check_nh,
                "SPH": self._check_sph,
                "OCI": self._check_oci,
                "ISU": self._check_isu,
            }
        else:
            checks = {
                "FHL": self._check_header,
                "MBI": self._check_mbi,
                "HBS": self._check_hbs,
                "HTS": self._check_hts,
                "TXT": self._check_txt,
                "SHP": self._check_party,
                "CNE": self._check_party,
                "OCI": self._check_oci,
                "CVD": self._check_cvd,
            }

        check = checks.get(code)
        if check:
            check(code, lines, issues)
        issues.extend(self._check_fields(segment))

        for error in segment.errors:
            issues.append(_issue("error", error, code, rule=f"{code}: maximum {segment.max_length} characters"))

        errors = sum(1 for i in issues if i.severity == "error")
        warnings = sum(1 for i in issues if i.severity == "warning")
        infos = sum(1 for i in issues if i.severity == "info")
        if not issues:
            issues.append(_issue("success", f"{code} segment passed all checks", code))

        return SegmentValidationResult(
            segment=code,
            segment_name=segment.name or segment_name(message_type, code),
            is_valid=errors == 0,
            issues=issues,
            error_count=errors,
            warning_count=warnings,
            info_count=infos,
            lines=lines,
        )

    def _check_fields(self, segment: GeneratedSegment) -> List[ValidationIssue]:
        issues = []
        for field in segment.fields:
            if not field.value:
                if field.required:
                    issues.append(_issue("error", f"Mandatory field {field.name} is missing",
                                         segment.code, field=field.name))
                else:
                    issues.append(_issue("warning", f"Optional field {field.name} is empty",
                                         segment.code, field=field.name))
            elif len(field.raw_value) > field.max_length:
                issues.append(_issue(
                    "warning",
                    f"{field.name} truncated to {field.max_length} characters",
                    segment.code,
                    field=field.name,
                    found=field.raw_value,
                    expected=f"max {field.max_length} characters",
                ))
        return issues

    # ------------------------------------------------------------------
    # Line level
    # ------------------------------------------------------------------

    def check_lines(self, full_message: str) -> List[ValidationIssue]:
        issues = []
        for number, line in enumerate(full_message.split("\n"), start=1):
            if not line or ENVELOPE_LINE.match(line):
                continue
            tag = line.split("/", 1)[0] or "GLOBAL"

            if len(line) > MAX_LINE_LENGTH:
                issues.append(_issue(
                    "error",
                    f"Line {number} exceeds {MAX_LINE_LENGTH} characters ({len(line)})",
                    tag,
                    line=number,
                    line_content=line[:75],
                    rule=f"IATA: maximum {MAX_LINE_LENGTH} characters per line",
                    found=f"{len(line)} characters",
                    regulation="IATA",
                ))

            if not ALLOWED_LINE.match(line):
                bad = sorted(set(DISALLOWED_CHAR.findall(line)))
                shown = ", ".join(f'"{c}"' for c in bad[:3])
                more = f" and {len(bad) - 3} more" if len(bad) > 3 else ""
                issues.append(_issue(
                    "error",
                    f"Characters not allowed on line {number}: {shown}{more}",
                    tag,
                    line=number,
                    line_content=line[:50],
                    rule="IATA: only A-Z, 0-9, space, '.', '-' and '/' are allowed",
                    found="".join(bad),
                    regulation="IATA",
                    recommendation="Uppercase the text and remove special characters",
                ))
        return issues

    # ------------------------------------------------------------------
    # Global rules
    # ------------------------------------------------------------------

    def _global_rules(self, message_type: str, segments: List[GeneratedSegment], full_message: str,
                      awb_number: str, policy: AirlinePolicy) -> List[ValidationIssue]:
        issues = []
        codes = [s.code for s in segments]

        if message_type == "FWB":
            for code in FWB_MANDATORY:
                if code not in codes:
                    issues.append(_issue("error", f"Mandatory segment {code} is missing", "GLOBAL",
                                         rule=f"FWB: {code} is required", regulation="IATA",
                                         recommendation=f"Enable the {code} segment"))
            for seg in segments:
                if seg.code in FWB_MANDATORY and not seg.content.strip():
                    issues.append(_issue("error", f"Segment {seg.code} ({seg.name}) is enabled but empty",
                                         seg.code, rule=f"{seg.code}: content is mandatory"))

            clean = re.sub(r"[\s-]", "", awb_number or "")
            if "AWB" in codes and len(clean) != 11:
                issues.append(_issue("error", f'AWB number "{awb_number}" does not have 11 digits',
                                     "GLOBAL", field="awbNumber", found=clean, expected="11 digits"))

            if policy.requires_hts and not any(s.code == "NH" and s.content.strip() for s in segments):
                issues.append(_issue("error", "Harmonized codes (NH) are required by this airline",
                                     "NH", rule="Airline policy: HTS required", regulation="CUSTOMS"))
        else:
            for code in FHL_MANDATORY:
                if code not in codes:
                    issues.append(_issue("error", f"Mandatory FHL segment {code} is missing", "GLOBAL",
                                         rule=f"FHL: {code} is required", regulation="IATA"))

            mbi_count = sum(1 for line in full_message.split("\n") if line.startswith("MBI/"))
            if policy.mbi_only_first_hawb and mbi_count > 1:
                issues.append(_issue("error", f"MBI appears {mbi_count} times; only the first house may carry it",
                                     "MBI", found=str(mbi_count), expected="1"))

        issues.extend(self._check_order(message_type, segments))
        return issues

    def _check_order(self, message_type: str, segments: List[GeneratedSegment]) -> List[ValidationIssue]:
        issues = []
        table = FWB_SEGMENTS if message_type == "FWB" else FHL_SEGMENTS
        previous = None
        for seg in segments:
            if not seg.content.strip() or seg.code not in table:
                continue
            order = table[seg.code].order
            if message_type == "FHL" and seg.code in FHL_HOUSE_START and previous is not None \
                    and previous[1] >= order:
                previous = (seg.code, order)
                continue
            if previous is not None and order < previous[1]:
                issues.append(_issue(
                    "error",
                    f"Segment {seg.code} appears after {previous[0]}",
                    seg.code,
                    rule="Segments must follow the canonical order",
                    expected=f"{seg.code} before {previous[0]}",
                ))
            previous = (seg.code, order)
        return issues

    # ------------------------------------------------------------------
    # Segment rules
    # ------------------------------------------------------------------

    def _check_header(self, code, lines, issues):
        if not lines or not VERSION_LINE.match(lines[-1].split("'")[-1]):
            issues.append(_issue("error", "Message version tag is missing", code,
                                 expected=f"{code}/<version>"))
        first = lines[0] if lines else ""
        if first.startswith("UNB+"):
            if "IATA:1" not in first:
                issues.append(_issue("error", "UNB header must declare IATA:1", code))
            if "UNH+" not in first:
                issues.append(_issue("error", "UNH message header is missing", code))
        elif re.match(r"^Q[KDPU] ", first):
            if len(lines) < 2:
                issues.append(_issue("error", "Type B header needs a priority and an origin line", code))
            elif not lines[1].startswith("."):
                issues.append(_issue("error", "Type B origin line must start with '.'", code,
                                     found=lines[1][:20]))

    def _check_awb(self, code, lines, issues):
        line = lines[0]
        match = AWB_LINE.match(line)
        if not match:
            issues.append(_issue(
                "error", "AWB line is not PPP-SSSSSSSS{ORIGIN}{DEST}/T{pieces}K{weight}", code,
                expected="e.g. 145-12345675BOGMIA/T10K250.0", found=line[:40], regulation="IATA",
            ))
            return
        _, serial, _, _, pieces, unit, weight = match.groups()
        self._check_serial(code, serial, issues)
        self._check_quantities(code, pieces, weight, issues)
        if unit == "L":
            issues.append(_issue("info", "Weight is declared in pounds", code, field="weight"))

    def _check_serial(self, code, serial, issues):
        if not awb_check_digit_ok(serial):
            issues.append(_issue("error", f"AWB serial {serial} fails the mod-7 check digit", code,
                                 field="awbSerial", found=serial, regulation="IATA"))

    def _check_quantities(self, code, pieces, weight, issues):
        if int(pieces) <= 0:
            issues.append(_issue("error", "Pieces must be greater than 0", code, field="pieces"))
        elif len(pieces) > 4:
            issues.append(_issue("warning", f"Pieces {pieces} exceeds 4 digits", code, field="pieces"))
        try:
            weight_value = float(weight)
        except ValueError:
            weight_value = 0.0
        if weight_value <= 0:
            issues.append(_issue("error", "Weight must be greater than 0", code, field="weight"))
        elif len(weight) > 7:
            issues.append(_issue("warning", f"Weight {weight} exceeds 7 characters", code, field="weight"))

    def _check_flt(self, code, lines, issues):
        parts = lines[0].split("/")[1:]
        for i in range(0, len(parts), 2):
            number = parts[i]
            day = parts[i + 1] if i + 1 < len(parts) else ""
            if not FLIGHT_NUMBER.match(number):
                issues.append(_issue("error", f"Flight number {number} is not valid", code,
                                     field="flight", expected="carrier + 1-5 digits, e.g. QT890",
                                     found=number))
            if not day.isdigit() or not 1 <= int(day) <= 31:
                issues.append(_issue("error", f"Flight day {day or '(empty)'} must be 01-31", code,
                                     field="date", found=day))

    def _check_rtg(self, code, lines, issues):
        legs = [leg for leg in lines[0].split("/")[1:] if leg]
        if len(legs) > 3:
            issues.append(_issue("error", f"Routing has {len(legs)} legs, maximum is 3", code))
        for leg in legs:
            if not IATA_AIRPORT.match(leg[:3]):
                issues.append(_issue("error", f"Routing airport {leg[:3]} is not a 3-letter code", code,
                                     found=leg))

    def _party_values(self, code, lines) -> List[str]:
        values = []
        first = lines[0][len(code):]
        if first:
            values.append(first.lstrip("/"))
        for line in lines[1:]:
            for prefix in ("NAM/", "ADR/", "LOC/"):
                if line.startswith(prefix):
                    line = line[len(prefix):]
                    break
            else:
                line = line[1:] if line.startswith("/") else line
            values.append(line)
        return values

    def _check_party(self, code, lines, issues):
        values = self._party_values(code, lines)
        if len(values) < 4:
            issues.append(_issue("error", f"{code} needs name, address, city and country lines", code,
                                 found=str(len(values))))
            return
        name, address, city_line, location = values[0], values[1], values[2], values[-1]

        if len(name) > 35:
            issues.append(_issue("error", f"Name exceeds 35 characters ({len(name)})", code, field="name"))
        if len(address) > 35:
            issues.append(_issue("error", f"Address exceeds 35 characters ({len(address)})", code,
                                 field="address"))
        city = city_line.split("/")[0]
        if len(city) > 17:
            issues.append(_issue("error", f"City exceeds 17 characters ({len(city)})", code, field="city"))

        parts = location.split("/")
        country = parts[0]
        postal = parts[1] if len(parts) > 1 else ""
        if not ISO_COUNTRY.match(country):
            issues.append(_issue("error", f"Country {country or '(empty)'} is not an ISO-2 code", code,
                                 field="country", found=country))
        if len(postal) > 9:
            issues.append(_issue("error", f"Postal code exceeds 9 characters ({len(postal)})", code,
                                 field="postalCode"))
        if code == "CNE" and not postal:
            issues.append(_issue("error", "Consignee postal code is mandatory", code, field="postalCode"))
        if code == "CNE" and country == "CN" and "TE" not in parts[2:]:
            issues.append(_issue("warning", "Chinese consignees should carry a phone number", code,
                                 field="phone", regulation="CUSTOMS"))

    def _check_agt(self, code, lines, issues):
        parts = lines[0].split("/")
        iata = parts[2] if len(parts) > 2 else ""
        cass = parts[3] if len(parts) > 3 else ""
        if not re.match(r"^\d{7}$", iata):
            issues.append(_issue("warning", f"Agent IATA code {iata or '(empty)'} should be 7 digits", code,
                                 field="iataCode", found=iata))
        if cass and not re.match(r"^\d{4}$", cass):
            issues.append(_issue("warning", f"Agent CASS code {cass} should be 4 digits", code,
                                 field="cassCode", found=cass))

    def _check_ssr(self, code, lines, issues):
        if len(lines) > 3:
            issues.append(_issue("error", f"SSR has {len(lines)} lines, maximum is 3", code))
        for i, line in enumerate(lines, start=1):
            text = line[4:] if line.startswith("SSR/") else line.lstrip("/")
            if len(text) > 65:
                issues.append(_issue("error", f"SSR line {i} exceeds 65 characters ({len(text)})", code,
                                     line=i))

    def _check_cvd(self, code, lines, issues):
        parts = lines[0].split("/")
        currency = parts[1] if len(parts) > 1 else ""
        wt_ot = next((p for p in parts[2:4] if p), "")
        if not ISO_CURRENCY.match(currency):
            issues.append(_issue("error", f"Currency {currency or '(empty)'} is not an ISO-3 code", code,
                                 field="currency", found=currency))
        if wt_ot not in WTOT_CODES:
            issues.append(_issue("error", f"WT/OT indicator {wt_ot or '(empty)'} is not valid", code,
                                 field="wtOt", expected="/".join(WTOT_CODES), found=wt_ot))

    def _check_rtd(self, code, lines, issues):
        if len(lines) > 12:
            issues.append(_issue("error", f"RTD has {len(lines)} lines, maximum is 12", code))
        for i, line in enumerate(lines, start=1):
            if not re.match(r"^RTD/\d+/P\d+/K[\d.]+", line):
                issues.append(_issue("error", f"RTD line {i} is not RTD/n/P{{pieces}}/K{{weight}}", code,
                                     line=i, found=line[:30]))
                continue
            match = re.search(r"/C([A-Z]+)", line)
            rate_class = match.group(1) if match else ""
            if len(rate_class) != 1 or rate_class not in RATE_CLASSES:
                issues.append(_issue("error", f"Rate class {rate_class or '(empty)'} is not valid", code,
                                     line=i, field="rateClass", found=rate_class))

    def _check_ng(self, code, lines, issues):
        match = re.match(r"^/(NG|NC)/(.*)$", lines[0])
        if not match:
            issues.append(_issue("warning", "NG line is not /NG/description", code, found=lines[0][:30]))
            return
        description = match.group(2)
        if not description:
            issues.append(_issue("error", "Goods description is empty", code, field="description"))
        elif len(description) > 20:
            issues.append(_issue("warning", f"Goods description exceeds 20 characters ({len(description)})",
                                 code, field="description"))
        if is_vague_description(description):
            issues.append(_issue(
                "warning",
                f'Goods description "{description}" is too vague for risk screening',
                code,
                field="description",
                regulation="ACAS",
                recommendation="Use a specific description, e.g. AUTOMOTIVE BRAKE PADS instead of PARTS",
            ))

    def _check_nh(self, code, lines, issues):
        for line in lines:
            match = re.match(r"^/\d+/NH/(.*)$", line)
            hs_code = match.group(1) if match else line
            if not HS_CODE.match(hs_code):
                issues.append(_issue("error", f"HS code {hs_code} must be 6-10 digits", code,
                                     field="codes", found=hs_code, regulation="CUSTOMS"))

    def _check_sph(self, code, lines, issues):
        codes = [c for c in lines[0][4:].split("/") if c]
        for c in codes:
            if not SPH_CODE.match(c):
                issues.append(_issue("error", f"SPH code {c} must be 3 letters", code, found=c))
        if len(codes) > 9:
            issues.append(_issue("error", f"SPH has {len(codes)} codes, maximum is 9", code))
        has_eaw, has_eap = "EAW" in codes, "EAP" in codes
        if not (has_eaw or has_eap):
            issues.append(_issue("warning", "e-AWB handling code EAW or EAP is missing", code,
                                 recommendation="Add EAP (with document pouch) or EAW (without)"))
        elif has_eaw and has_eap:
            issues.append(_issue("warning", "EAW and EAP are mutually exclusive", code))

    def _check_oci(self, code, lines, issues):
        for i, line in enumerate(lines, start=1):
            parts = line.split("/")
            if parts[0] == "OCI":
                parts = parts[1:]
            else:
                parts = parts[1:] if line.startswith("/") else parts
            country, party, info_type, value = (parts + ["", "", "", ""])[:4]

            if country and not ISO_COUNTRY.match(country):
                issues.append(_issue("error", f"OCI country {country} is not an ISO-2 code", code, line=i))
            if party and party not in OCI_PARTIES:
                issues.append(_issue("error", f"OCI party {party} is not valid", code, line=i,
                                     expected="/".join(OCI_PARTIES)))
            if info_type and info_type not in OCI_TYPES:
                issues.append(_issue("error", f"OCI type {info_type} is not valid", code, line=i))
            if len(value) > 35:
                issues.append(_issue("error", f"OCI value exceeds 35 characters ({len(value)})", code, line=i))

            if country == "CN":
                issues.append(_issue("info", "China customs uses the consignee tax id", code,
                                     line=i, regulation="CUSTOMS"))
            elif country == "US":
                issues.append(_issue("info", "US destination: ACAS pre-loading screening applies", code,
                                     line=i, regulation="ACAS"))

    def _check_isu(self, code, lines, issues):
        parts = lines[0].split("/")
        issued = parts[1] if len(parts) > 1 else ""
        if not DATE_DDMMMYY.match(issued):
            issues.append(_issue("error", f"Issue date {issued or '(empty)'} is not DDMMMYY", code,
                                 field="date", expected="e.g. 14MAR25", found=issued))

    def _check_mbi(self, code, lines, issues):
        match = MBI_LINE.match(lines[0])
        if not match:
            issues.append(_issue("error", "MBI line is not MBI/PPP-SSSSSSSS{ORIGIN}{DEST}/T{pieces}K{weight}",
                                 code, found=lines[0][:40]))
            return
        _, serial, _, _, pieces, weight = match.groups()
        self._check_serial(code, serial, issues)
        self._check_quantities(code, pieces, weight, issues)

    def _check_hbs(self, code, lines, issues):
        match = HBS_LINE.match(lines[0])
        if not match:
            issues.append(_issue("error", "HBS line is not HBS/{hawb}/{ORIGIN}{DEST}/{pieces}/K{weight}",
                                 code, found=lines[0][:40]))
            return
        hawb, route, pieces, weight, _, description = match.groups()
        if len(hawb) > 12:
            issues.append(_issue("error", f"HAWB {hawb} exceeds 12 characters", code, field="hawbNumber"))
        if len(route) != 6:
            issues.append(_issue("error", f"Origin and destination {route} must be 6 letters", code,
                                 field="origin"))
        self._check_quantities(code, pieces, weight, issues)
        if len(description) > 15:
            issues.append(_issue("error", f"HBS description exceeds 15 characters ({len(description)})",
                                 code, field="natureOfGoods"))

    def _check_hts(self, code, lines, issues):
        value = lines[0][4:]
        if not re.match(r"^\d{6,}$", value):
            issues.append(_issue("error", f"HTS code {value} must have at least 6 digits", code,
                                 field="code", regulation="CUSTOMS"))

    def _check_txt(self, code, lines, issues):
        text = lines[0][4:]
        if len(text) > 65:
            issues.append(_issue("error", f"TXT exceeds 65 characters ({len(text)})", code, field="text"))


cargo_imp_validator = CargoImpValidator()
