"""
Structural and regulatory checks for Cargo-XML documents.

The document is parsed with lxml. Structural problems and ICS2 (EU) gaps are
errors, ACAS (US) gaps are warnings, and every check that passes is kept as a
success issue so clients can render a full checklist.
"""
import logging
import re
from typing import List, Optional

from lxml import etree

from awb_gateway.schemas.validation import (
    ValidationIssue,
    XmlValidationResult,
    XmlValidationSummary,
)
from awb_gateway.services.cargo_imp_validator import calculate_score, is_vague_description
from awb_gateway.services.cargo_xml_encoder import HOUSE_WAYBILL_NS, WAYBILL_NS

logger = logging.getLogger(__name__)

_RAM_URI = "iata:datamodel:3"

AWB_ID = re.compile(r"^\d{3}-\d{8}$")
ICS2_MIN_HS_DIGITS = 6


def _ram(path: str) -> str:
    """Turns `A/B` into a ram-qualified relative path."""
    return "/".join(f"{{{_RAM_URI}}}{part}" for part in path.split("/"))


def _text(element: Optional[etree._Element], path: str) -> str:
    if element is None:
        return ""
    found = element.find(_ram(path))
    if found is None or found.text is None:
        return ""
    return found.text.strip()


class _Checks:
    """Collects issues for a single document."""

    def __init__(self):
        self.errors: List[ValidationIssue] = []
        self.warnings: List[ValidationIssue] = []
        self.info: List[ValidationIssue] = []
        self.success: List[ValidationIssue] = []

    def check(self, passed: bool, message: str, failure: str = "error",
              regulation: Optional[str] = None, field: Optional[str] = None,
              recommendation: Optional[str] = None) -> bool:
        if passed:
            self.success.append(ValidationIssue(
                severity="success", message=message, field=field, regulation=regulation,
            ))
        else:
            issue = ValidationIssue(
                severity=failure, message=message, field=field, regulation=regulation,
                recommendation=recommendation,
            )
            {"error": self.errors, "warning": self.warnings, "info": self.info}[failure].append(issue)
        return passed


class CargoXmlValidator:
    def validate(self, xml: str, message_type: Optional[str] = None) -> XmlValidationResult:
        checks = _Checks()
        text = (xml or "").strip()
        try:
            root = etree.fromstring(text.encode("utf-8"))
        except etree.XMLSyntaxError as exc:
            logger.debug(f"Rejected malformed Cargo-XML: {exc}")
            fatal = ValidationIssue(severity="error", message=f"Malformed XML: {exc}", rule="XML_PARSE")
            return XmlValidationResult(
                is_valid=False,
                score=0,
                errors=[fatal],
                summary=XmlValidationSummary(message_type=message_type or "XFWB"),
            )

        detected = self._detect_type(root, message_type)
        summary = XmlValidationSummary(message_type=detected)
        checks.check(text.startswith("<?xml"), "XML declaration present")

        if detected == "XFZB":
            consignments = self._check_xfzb(root, checks, summary)
        else:
            consignments = self._check_xfwb(root, checks, summary)

        summary.ics2_compliant = self._check_ics2(root, consignments, checks)
        summary.acas_compliant = self._check_acas(root, consignments, checks)

        return XmlValidationResult(
            is_valid=not checks.errors,
            score=calculate_score(len(checks.errors), len(checks.warnings)),
            errors=checks.errors,
            warnings=checks.warnings,
            info=checks.info,
            success=checks.success,
            summary=summary,
        )

    @staticmethod
    def _detect_type(root: etree._Element, message_type: Optional[str]) -> str:
        if message_type in ("XFWB", "XFZB"):
            return message_type
        return "XFZB" if etree.QName(root).localname == "HouseWaybill" else "XFWB"

    # --- Structure ---

    def _check_xfwb(self, root, checks: _Checks, summary: XmlValidationSummary) -> List[etree._Element]:
        qname = etree.QName(root)
        checks.check(qname.localname == "Waybill" and qname.namespace == WAYBILL_NS,
                     f"Root element is Waybill in {WAYBILL_NS}", field="Waybill")

        header = root.find(f"{{{WAYBILL_NS}}}MessageHeaderDocument")
        type_code = _text(header, "TypeCode")
        summary.type_code = type_code or None
        if checks.check(header is not None, "MessageHeaderDocument present", field="MessageHeaderDocument"):
            checks.check(type_code in ("740", "741"), "TypeCode is 740 or 741",
                         field="TypeCode", recommendation="Use 740 for direct AWBs and 741 for masters")

        business = root.find(f"{{{WAYBILL_NS}}}BusinessHeaderDocument")
        awb = _text(business, "ID")
        summary.awb_number = awb or None
        if checks.check(business is not None, "BusinessHeaderDocument present", field="BusinessHeaderDocument"):
            checks.check(bool(AWB_ID.match(awb)), "AWB number has the form PPP-SSSSSSSS", field="ID")

        master = root.find(f"{{{WAYBILL_NS}}}MasterConsignment")
        if not checks.check(master is not None, "MasterConsignment present", field="MasterConsignment"):
            return []

        for path in ("TotalPieceQuantity", "IncludedTareGrossWeightMeasure",
                     "OriginLocation/ID", "FinalDestinationLocation/ID"):
            checks.check(bool(_text(master, path)), f"{path} present", field=path)
        checks.check(master.find(_ram("ConsignorParty")) is not None, "ConsignorParty present", field="ConsignorParty")
        checks.check(master.find(_ram("ConsigneeParty")) is not None, "ConsigneeParty present", field="ConsigneeParty")
        checks.check(master.find(_ram("FreightForwarderParty")) is not None, "FreightForwarderParty present",
                     failure="warning", field="FreightForwarderParty")

        if type_code == "741":
            checks.check(_text(master, "ConsolidationIndicator") == "true",
                         "Master AWB carries ConsolidationIndicator=true", field="ConsolidationIndicator")
            checks.check(bool(_text(master, "ConsignmentItemQuantity")),
                         "Master AWB carries ConsignmentItemQuantity",
                         failure="warning", field="ConsignmentItemQuantity")
        return [master]

    def _check_xfzb(self, root, checks: _Checks, summary: XmlValidationSummary) -> List[etree._Element]:
        qname = etree.QName(root)
        checks.check(qname.localname == "HouseWaybill" and qname.namespace == HOUSE_WAYBILL_NS,
                     f"Root element is HouseWaybill in {HOUSE_WAYBILL_NS}", field="HouseWaybill")

        header = root.find(f"{{{HOUSE_WAYBILL_NS}}}MessageHeaderDocument")
        type_code = _text(header, "TypeCode")
        summary.type_code = type_code or None
        if checks.check(header is not None, "MessageHeaderDocument present", field="MessageHeaderDocument"):
            checks.check(type_code == "703", "TypeCode is 703", failure="warning", field="TypeCode")

        master = root.find(f"{{{HOUSE_WAYBILL_NS}}}MasterConsignment")
        if not checks.check(master is not None, "MasterConsignment present", field="MasterConsignment"):
            return []

        master_awb = _text(master, "TransportContractDocument/ID")
        summary.awb_number = master_awb or None
        checks.check(bool(master_awb), "House is linked to its master AWB",
                     field="TransportContractDocument")

        houses = master.findall(_ram("IncludedHouseConsignment"))
        if checks.check(bool(houses), "IncludedHouseConsignment present", field="IncludedHouseConsignment"):
            for index, house in enumerate(houses, start=1):
                checks.check(bool(_text(house, "TransportContractDocument/ID")),
                             f"House {index} carries a TransportContractDocument",
                             field="TransportContractDocument")
        return houses

    # --- Regulations ---

    def _check_ics2(self, root, consignments: List[etree._Element], checks: _Checks) -> bool:
        type_codes = [el for el in root.iter(f"{{{_RAM_URI}}}TypeCode")
                      if el.getparent() is not None
                      and etree.QName(el.getparent()).localname in ("IncludedMasterConsignmentItem",
                                                                     "IncludedHouseConsignmentItem")]
        with_agency = [el for el in type_codes if el.get("listAgencyID") == "1"]
        without_agency = [el for el in type_codes if el.get("listAgencyID") is None]
        long_enough = [el for el in with_agency
                       if len(re.sub(r"\D", "", el.text or "")) >= ICS2_MIN_HS_DIGITS]

        results = [
            checks.check(bool(long_enough), "HS code with at least 6 digits and listAgencyID=1",
                         regulation="ICS2", field="TypeCode",
                         recommendation="Declare the 6-digit HS code of the goods"),
            checks.check(not without_agency, "Every HS code carries listAgencyID",
                         regulation="ICS2", field="TypeCode"),
        ]
        for tag in ("ConsignorParty", "ConsigneeParty"):
            missing = self._missing_party_fields(consignments, tag, require_postcode=True)
            results.append(checks.check(
                not missing, f"{tag} complete for ICS2", regulation="ICS2", field=tag,
                recommendation=f"Missing: {', '.join(missing)}" if missing else None,
            ))
        return all(results)

    def _check_acas(self, root, consignments: List[etree._Element], checks: _Checks) -> bool:
        results = []
        for tag in ("ConsignorParty", "ConsigneeParty"):
            missing = self._missing_party_fields(consignments, tag, require_postcode=False)
            results.append(checks.check(
                not missing, f"{tag} complete for ACAS", failure="warning", regulation="ACAS", field=tag,
                recommendation=f"Missing: {', '.join(missing)}" if missing else None,
            ))

        descriptions = [
            el.text or "" for el in root.iter(f"{{{_RAM_URI}}}SummaryDescription",
                                              f"{{{_RAM_URI}}}Identification")
        ]
        precise = [d for d in descriptions if d.strip() and not is_vague_description(d)]
        results.append(checks.check(
            bool(precise), "Goods description is specific", failure="warning", regulation="ACAS",
            field="Identification", recommendation="Describe the goods precisely, e.g. FRESH CUT ROSES",
        ))

        has_contact = False
        for consignment in consignments:
            for tag in ("ConsignorParty", "ConsigneeParty"):
                party = consignment.find(_ram(tag))
                if party is not None and (
                    _text(party, "DefinedTradeContact/DirectTelephoneCommunication/CompleteNumber")
                    or _text(party, "DefinedTradeContact/URIEmailCommunication/URIID")
                ):
                    has_contact = True
        results.append(checks.check(
            has_contact, "Shipper or consignee contact present", failure="warning", regulation="ACAS",
            field="DefinedTradeContact",
        ))
        return all(results)

    @staticmethod
    def _missing_party_fields(consignments: List[etree._Element], tag: str, require_postcode: bool) -> List[str]:
        if not consignments:
            return ["Name"]
        missing: List[str] = []
        for consignment in consignments:
            party = consignment.find(_ram(tag))
            if party is None:
                return ["Name"]
            paths = {
                "Name": "Name",
                "StreetName": "PostalStructuredAddress/StreetName",
                "CityName": "PostalStructuredAddress/CityName",
                "CountryID": "PostalStructuredAddress/CountryID",
            }
            if require_postcode:
                paths["PostcodeCode"] = "PostalStructuredAddress/PostcodeCode"
            for name, path in paths.items():
                if not _text(party, path) and name not in missing:
                    missing.append(name)
        return missing


cargo_xml_validator = CargoXmlValidator()
