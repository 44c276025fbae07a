"""
Cargo-XML 3.0 encoder.

Builds XFWB (master waybill) and XFZB (house waybill) documents as lxml trees
straight from the Shipment, without consulting the CARGO-IMP airline policy.
Optional data that is missing simply omits its element.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Callable, List, Optional

from lxml import etree

from awb_gateway.core.config import settings
from awb_gateway.schemas.message import CargoXmlBundle, CargoXmlDocument
from awb_gateway.schemas.shipment import Agent, HouseBill, Party, Shipment
from awb_gateway.services import formatting as fmt

logger = logging.getLogger(__name__)

_XSI_URI = "http://www.w3.org/2001/XMLSchema-instance"
_RAM_URI = "iata:datamodel:3"
_UDT_URI = "urn:un:unece:uncefact:data:standard:UnqualifiedDataType:8"
_CCTS_URI = "urn:un:unece:uncefact:documentation:standard:CoreComponentsTechnicalSpecification:2"
_XSD_URI = "http://www.w3.org/2001/XMLSchema"
WAYBILL_NS = "iata:waybill:1"
HOUSE_WAYBILL_NS = "iata:housewaybill:1"

_RAM = "{" + _RAM_URI + "}"
_CONTAINER = object()
_XSI = "{" + _XSI_URI + "}"

COUNTRY_NAMES = {
    "CO": "COLOMBIA", "US": "UNITED STATES", "EC": "ECUADOR", "MX": "MEXICO",
    "CA": "CANADA", "NL": "NETHERLANDS", "DE": "GERMANY", "ES": "SPAIN",
    "FR": "FRANCE", "GB": "UNITED KINGDOM", "IT": "ITALY", "BE": "BELGIUM",
    "CN": "CHINA", "JP": "JAPAN", "KR": "SOUTH KOREA", "AU": "AUSTRALIA",
    "BR": "BRAZIL", "CL": "CHILE", "PE": "PERU", "AR": "ARGENTINA",
}

STATE_NAMES = {
    "FL": "FLORIDA", "CA": "CALIFORNIA", "NY": "NEW YORK", "TX": "TEXAS",
    "IL": "ILLINOIS", "GA": "GEORGIA", "NC": "NORTH CAROLINA", "NJ": "NEW JERSEY",
    "OH": "OHIO", "PA": "PENNSYLVANIA", "MA": "MASSACHUSETTS", "WA": "WASHINGTON",
    "MD": "MARYLAND", "VA": "VIRGINIA", "KY": "KENTUCKY", "TN": "TENNESSEE",
    "AZ": "ARIZONA", "CO": "COLORADO", "OR": "OREGON", "ON": "ONTARIO",
    "BC": "BRITISH COLUMBIA", "QC": "QUEBEC",
}

RATE_CATEGORIES = {
    "N": "K",
    "Q": "Q",
    "C": "C",
    "M": "M",
    "NORMAL_RATE": "K",
    "QUANTITY_RATE": "Q",
    "SPECIFIC_COMMODITY_RATE": "C",
    "MINIMUM_CHARGE": "M",
}

OTHER_CHARGE_CODES = {"AWC": "AW", "AWA": "DA", "MY": "MY", "FE": "FE", "CG": "CG"}

DEFAULT_SPH_CODES = ["EAP", "PER"]
DEFAULT_COMMODITY = "1421"


def country_name(code: Optional[str]) -> str:
    code = (code or "").upper()
    return COUNTRY_NAMES.get(code, code)


def state_name(code: Optional[str]) -> str:
    code = (code or "").upper()
    return STATE_NAMES.get(code, code)


def rate_category(code: Optional[str]) -> str:
    return RATE_CATEGORIES.get(code or "", "K")


def other_charge_code(code: str) -> str:
    return OTHER_CHARGE_CODES.get(code, code[:2])


def _nsmap(root_ns: str) -> dict:
    return {
        "xsi": _XSI_URI,
        "ram": _RAM_URI,
        "udt": _UDT_URI,
        "ccts": _CCTS_URI,
        "rsm": root_ns,
        "xsd": _XSD_URI,
    }


def _sub(parent: etree._Element, tag: str, text=_CONTAINER, **attrs) -> Optional[etree._Element]:
    """Appends a ram: child. A leaf whose text is None or blank is left out and None is returned."""
    if text is not _CONTAINER and (text is None or not str(text).strip()):
        return None
    element = etree.SubElement(parent, _RAM + tag, attrib={k: str(v) for k, v in attrs.items()})
    if text is not _CONTAINER:
        element.text = str(text)
    return element


def _prune(root: etree._Element) -> None:
    # containers whose leaves were all left out
    for element in reversed(list(root.iter())):
        parent = element.getparent()
        if parent is None or len(element) or element.attrib:
            continue
        if not (element.text or "").strip():
            parent.remove(element)


def _bool(value: bool) -> str:
    return "true" if value else "false"


def _iso(value=None, now: Optional[datetime] = None) -> str:
    """YYYY-MM-DDTHH:MM:SS without zone."""
    if isinstance(value, datetime):
        d = value
    elif value:
        try:
            d = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            d = now or datetime.now(timezone.utc)
    else:
        d = now or datetime.now(timezone.utc)
    return d.strftime("%Y-%m-%dT%H:%M:%S")


def serialize(root: etree._Element) -> str:
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8", pretty_print=True).decode("utf-8")


class CargoXmlEncoder:
    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # --- Public API ---

    def generate_xfwb(self, shipment: Shipment) -> CargoXmlDocument:
        awb = fmt.format_awb_dashed(shipment.awb_number)
        try:
            xml = serialize(self.build_xfwb(shipment))
        except (ValueError, TypeError) as e:
            logger.warning(f"XFWB generation failed for {awb}: {e}")
            return CargoXmlDocument(
                type="XFWB", awb_number=awb, is_valid=False, errors=[f"XFWB generation failed: {e}"]
            )
        return CargoXmlDocument(type="XFWB", awb_number=awb, xml_content=xml, timestamp=self.clock())

    def generate_xfzb(self, shipment: Shipment, house: HouseBill) -> CargoXmlDocument:
        awb = fmt.format_awb_dashed(shipment.awb_number)
        try:
            xml = serialize(self.build_xfzb(shipment, house))
        except (ValueError, TypeError) as e:
            logger.warning(f"XFZB generation failed for {awb}/{house.hawb_number}: {e}")
            return CargoXmlDocument(
                type="XFZB", awb_number=awb, hawb_number=house.hawb_number,
                is_valid=False, errors=[f"XFZB generation failed: {e}"],
            )
        return CargoXmlDocument(
            type="XFZB", awb_number=awb, hawb_number=house.hawb_number,
            xml_content=xml, timestamp=self.clock(),
        )

    def generate_bundle(self, shipment: Shipment) -> CargoXmlBundle:
        xfwb = self.generate_xfwb(shipment)
        xfzbs = []
        if shipment.has_houses and shipment.house_bills:
            xfzbs = [self.generate_xfzb(shipment, house) for house in shipment.house_bills]
        return CargoXmlBundle(xfwb=xfwb, xfzbs=xfzbs)

    # --- Trees ---

    def build_xfwb(self, shipment: Shipment) -> etree._Element:
        awb = fmt.format_awb_dashed(shipment.awb_number)
        consolidation = bool(shipment.has_houses)
        currency = shipment.currency or "USD"
        prepaid = shipment.payment_method == "Prepaid"
        description = self.goods_description(shipment)

        root = etree.Element(f"{{{WAYBILL_NS}}}Waybill", nsmap=_nsmap(WAYBILL_NS))
        root.set(f"{_XSI}schemaLocation", f"{WAYBILL_NS} Waybill_1.xsd")

        self._message_header(
            root, WAYBILL_NS, awb, "Master Air Waybill" if consolidation else "Air Waybill",
            "741" if consolidation else "740", shipment,
        )

        business = etree.SubElement(root, f"{{{WAYBILL_NS}}}BusinessHeaderDocument")
        _sub(business, "ID", awb)
        note = _sub(business, "IncludedHeaderNote")
        _sub(note, "ContentCode", "C" if consolidation else "M")
        _sub(note, "Content", description)
        self._signatures(business, shipment, shipment.agent.name or shipment.shipper.name or "AGENT")

        master = etree.SubElement(root, f"{{{WAYBILL_NS}}}MasterConsignment")
        _sub(master, "NilCarriageValueIndicator", _bool(not shipment.declared_value_carriage))
        _sub(master, "NilCustomsValueIndicator", _bool(not shipment.declared_value_customs))
        _sub(master, "NilInsuranceValueIndicator", "true")
        _sub(master, "TotalChargePrepaidIndicator", _bool(prepaid))
        _sub(master, "TotalDisbursementPrepaidIndicator", _bool(prepaid))
        if consolidation:
            _sub(master, "ConsolidationIndicator", "true")
        _sub(master, "IncludedTareGrossWeightMeasure", fmt.format_number(shipment.weight), unitCode="KGM")
        if shipment.volume:
            _sub(master, "GrossVolumeMeasure", fmt.format_number(shipment.volume, 2), unitCode="MTQ")
        if consolidation:
            _sub(master, "ConsignmentItemQuantity", len(shipment.house_bills or []))
        _sub(master, "TotalPieceQuantity", shipment.pieces)

        self._party(master, "ConsignorParty", shipment.shipper, "CO", with_postal=True)
        self._party(master, "ConsigneeParty", shipment.consignee, "US", with_postal=True)
        if shipment.also_notify:
            self._party(master, "NotifyParty", shipment.also_notify, "", with_postal=True)
        self._freight_forwarder(master, shipment.agent)

        _sub(_sub(master, "OriginLocation"), "ID", shipment.origin)
        _sub(_sub(master, "FinalDestinationLocation"), "ID", shipment.destination)

        self._flights(master, shipment, with_type_codes=True)
        for uld in shipment.ulds or []:
            equipment = _sub(master, "AssociatedUnitLoadTransportEquipment")
            _sub(equipment, "ID", uld.serial_number)
            _sub(equipment, "CharacteristicCode", uld.type_code)
            if uld.owner_code:
                _sub(_sub(equipment, "OperatingParty"), "PrimaryID", uld.owner_code)

        self._handling(master, shipment)
        if shipment.special_service_request:
            osi = _sub(master, "HandlingOSIInstructions")
            _sub(osi, "Description", shipment.special_service_request.strip()[:65])
        for acc in shipment.accounting or []:
            if not (acc.accounting_information or "").strip():
                continue
            note = _sub(master, "IncludedAccountingNote")
            _sub(note, "ContentCode", "GEN")
            _sub(note, "Content", acc.accounting_information)
        for info in shipment.oci or []:
            customs = _sub(master, "IncludedCustomsNote")
            _sub(customs, "ContentCode", info.info_identifier)
            _sub(customs, "Content", info.control_info)
            if info.supplementary_control_info:
                _sub(customs, "SubjectCode", info.supplementary_control_info)
            _sub(customs, "CountryID", info.country_code)

        exchange = _sub(master, "ApplicableOriginCurrencyExchange")
        _sub(exchange, "SourceCurrencyCode", currency)
        service = _sub(master, "ApplicableLogisticsServiceCharge")
        _sub(service, "TransportPaymentMethodCode", "PP" if prepaid else "CC")
        _sub(service, "ServiceTypeCode", "A")

        agent_charges = 0.0
        carrier_charges = 0.0
        for charge in shipment.other_charges or []:
            if charge.entitlement == "DueAgent":
                agent_charges += charge.amount
            else:
                carrier_charges += charge.amount
            allowance = _sub(master, "ApplicableLogisticsAllowanceCharge")
            _sub(allowance, "ID", other_charge_code(charge.code))
            _sub(allowance, "PrepaidIndicator", _bool(charge.payment_method == "Prepaid"))
            _sub(allowance, "PartyTypeCode", "A" if charge.entitlement == "DueAgent" else "C")
            _sub(allowance, "ActualAmount", fmt.format_number(charge.amount, 2), currencyID=currency)

        total_charge = sum(rate.total or 0 for rate in shipment.rates)
        self._rating(master, shipment, total_charge, currency, description)

        total_rating = _sub(master, "ApplicableTotalRating")
        _sub(total_rating, "TypeCode", "A")
        summation = _sub(total_rating, "ApplicablePrepaidCollectMonetarySummation")
        _sub(summation, "PrepaidIndicator", _bool(prepaid))
        _sub(summation, "WeightChargeTotalAmount", fmt.format_number(total_charge, 2), currencyID=currency)
        _sub(summation, "AgentTotalDuePayableAmount", fmt.format_number(agent_charges, 2), currencyID=currency)
        _sub(summation, "CarrierTotalDuePayableAmount", fmt.format_number(carrier_charges, 2), currencyID=currency)
        _sub(summation, "GrandTotalAmount",
             fmt.format_number(total_charge + agent_charges + carrier_charges, 2), currencyID=currency)
        _prune(root)
        return root

    def build_xfzb(self, shipment: Shipment, house: HouseBill) -> etree._Element:
        awb = fmt.format_awb_dashed(shipment.awb_number)
        currency = shipment.currency or "USD"
        prepaid = shipment.payment_method == "Prepaid"
        description = house.nature_of_goods or self.goods_description(shipment)
        shipper = house.shipper or Party(name=house.shipper_name, address=shipment.shipper.address)
        consignee = house.consignee or Party(name=house.consignee_name, address=shipment.consignee.address)

        root = etree.Element(f"{{{HOUSE_WAYBILL_NS}}}HouseWaybill", nsmap=_nsmap(HOUSE_WAYBILL_NS))
        root.set(f"{_XSI}schemaLocation", f"{HOUSE_WAYBILL_NS} HouseWaybill_1.xsd")

        self._message_header(root, HOUSE_WAYBILL_NS, f"{house.hawb_number}_{awb}", "House Waybill", "703", shipment)

        business = etree.SubElement(root, f"{{{HOUSE_WAYBILL_NS}}}BusinessHeaderDocument")
        _sub(business, "ID", house.hawb_number)
        self._signatures(business, shipment, shipment.agent.name or "AGENT")

        master = etree.SubElement(root, f"{{{HOUSE_WAYBILL_NS}}}MasterConsignment")
        _sub(master, "IncludedTareGrossWeightMeasure", fmt.format_number(shipment.weight), unitCode="KGM")
        _sub(master, "TotalPieceQuantity", shipment.pieces)
        _sub(_sub(master, "TransportContractDocument"), "ID", awb)
        _sub(_sub(master, "OriginLocation"), "ID", shipment.origin)
        _sub(_sub(master, "FinalDestinationLocation"), "ID", shipment.destination)

        consignment = _sub(master, "IncludedHouseConsignment")
        _sub(consignment, "ID", house.hawb_number)
        _sub(consignment, "NilCarriageValueIndicator", "true")
        _sub(consignment, "NilCustomsValueIndicator", "true")
        _sub(consignment, "NilInsuranceValueIndicator", "true")
        _sub(consignment, "TotalChargePrepaidIndicator", _bool(prepaid))
        _sub(consignment, "TotalDisbursementPrepaidIndicator", _bool(prepaid))
        _sub(consignment, "IncludedTareGrossWeightMeasure", fmt.format_number(house.weight), unitCode="KGM")
        volume = house.volume_cubic_meters if house.volume_cubic_meters is not None else house.volume
        if volume:
            _sub(consignment, "GrossVolumeMeasure", fmt.format_number(volume, 2), unitCode="MTQ")
        _sub(consignment, "TotalPieceQuantity", house.pieces)
        _sub(consignment, "SummaryDescription", description)
        _sub(_sub(consignment, "TransportContractDocument"), "ID", house.hawb_number)

        self._party(consignment, "ConsignorParty", shipper, "CO", with_postal=True)
        self._party(consignment, "ConsigneeParty", consignee, "US", with_postal=True)
        forwarder = _sub(consignment, "FreightForwarderParty")
        _sub(forwarder, "Name", shipment.agent.name)
        address = _sub(forwarder, "PostalStructuredAddress")
        _sub(address, "CityName", shipment.agent.place)
        _sub(address, "CountryID", shipment.shipper.address.country_code or "CO")

        _sub(_sub(consignment, "OriginLocation"), "ID", house.origin or shipment.origin)
        _sub(_sub(consignment, "FinalDestinationLocation"), "ID", house.destination or shipment.destination)
        self._flights(consignment, shipment, with_type_codes=False)
        self._handling(consignment, shipment)

        reference = _sub(consignment, "AssociatedReferenceDocument")
        _sub(reference, "ID", awb)
        _sub(reference, "TypeCode", "741")
        _sub(reference, "Name", "Master Air Waybill")
        _sub(_sub(consignment, "ApplicableOriginCurrencyExchange"), "SourceCurrencyCode", currency)

        item = _sub(consignment, "IncludedHouseConsignmentItem")
        _sub(item, "SequenceNumeric", 1)
        for code in self._digits(house.hts_codes or []):
            _sub(item, "TypeCode", code, listAgencyID="1")
        _sub(item, "GrossWeightMeasure", fmt.format_number(house.weight), unitCode="KGM")
        _sub(item, "PieceQuantity", house.pieces)
        _sub(_sub(item, "NatureIdentificationTransportCargo"), "Identification", description)
        _sub(_sub(item, "OriginCountry"), "ID", shipper.address.country_code or "CO")
        self._packages(item, house.dimensions, house.pieces, house.weight)
        charge = _sub(item, "ApplicableFreightRateServiceCharge")
        _sub(charge, "CategoryCode", "K")
        _sub(charge, "CommodityItemID", shipment.commodity_code or DEFAULT_COMMODITY)
        _sub(charge, "ChargeableWeightMeasure", fmt.format_number(house.weight), unitCode="KGM")
        _prune(root)
        return root

    # --- Pieces ---

    @staticmethod
    def goods_description(shipment: Shipment) -> str:
        if shipment.description:
            return shipment.description[:200]
        if shipment.has_houses:
            return "CONSOLIDATION COMERCIAL INVOICE ATTACHED FRESH CUT FLOWERS"
        if shipment.rates and shipment.rates[0].description:
            return shipment.rates[0].description
        return "FRESH CUT FLOWERS"

    @staticmethod
    def _digits(codes: List[str]) -> List[str]:
        unique = []
        for code in codes:
            clean = re.sub(r"\D", "", code or "")
            if clean and clean not in unique:
                unique.append(clean)
        return unique

    def hs_codes(self, shipment: Shipment) -> List[str]:
        codes: List[str] = []
        for rate in shipment.rates:
            if rate.hs_codes:
                codes.extend(rate.hs_codes)
            elif rate.hs_code:
                codes.append(rate.hs_code)
        for house in shipment.house_bills or []:
            codes.extend(house.hts_codes or [])
        return self._digits(codes)

    def _message_header(self, root, root_ns: str, document_id: str, name: str, type_code: str,
                        shipment: Shipment):
        now = self.clock()
        header = etree.SubElement(root, f"{{{root_ns}}}MessageHeaderDocument")
        _sub(header, "ID", document_id)
        _sub(header, "Name", name)
        _sub(header, "TypeCode", type_code)
        _sub(header, "IssueDateTime", _iso(now=now))
        _sub(header, "PurposeCode", "Creation")
        _sub(header, "VersionID", "3.00")
        _sub(header, "ConversationID", now.strftime("%Y%m%d%H%M%S"))
        routing = shipment.routing
        sender = (routing.sender_address if routing else None) or settings.XML_SENDER_ADDRESS
        recipient = (routing.recipient_address if routing else None) or settings.XML_RECIPIENT_ADDRESS
        _sub(_sub(header, "SenderParty"), "PrimaryID", sender, schemeID="C")
        _sub(_sub(header, "RecipientParty"), "PrimaryID", recipient, schemeID="C")

    def _signatures(self, business, shipment: Shipment, consignor_signatory: str):
        consignor = _sub(business, "SignatoryConsignorAuthentication")
        _sub(consignor, "Signatory", consignor_signatory)
        carrier = _sub(business, "SignatoryCarrierAuthentication")
        _sub(carrier, "ActualDateTime", _iso(shipment.execution_date, now=self.clock()))
        _sub(carrier, "Signatory", shipment.signature or "OPERATOR")
        location = _sub(carrier, "IssueAuthenticationLocation")
        _sub(location, "Name", shipment.execution_place or shipment.origin)

    def _party(self, parent, tag: str, party: Party, default_country: str, with_postal: bool):
        element = _sub(parent, tag)
        _sub(element, "Name", party.name)
        address = party.address
        country = (address.country_code or default_country).upper()
        postal = _sub(element, "PostalStructuredAddress")
        if with_postal and address.postal_code:
            _sub(postal, "PostcodeCode", address.postal_code)
        _sub(postal, "StreetName", address.street)
        _sub(postal, "CityName", address.place)
        _sub(postal, "CountryID", country)
        _sub(postal, "CountryName", country_name(country))
        if address.state:
            _sub(postal, "CountrySubDivisionName", state_name(address.state))

        if (party.contact and party.contact.number) or party.email:
            contact = _sub(element, "DefinedTradeContact")
            if party.contact and party.contact.number:
                _sub(_sub(contact, "DirectTelephoneCommunication"), "CompleteNumber", party.contact.number)
            if party.email:
                _sub(_sub(contact, "URIEmailCommunication"), "URIID", party.email)
        return element

    def _freight_forwarder(self, parent, agent: Agent):
        forwarder = _sub(parent, "FreightForwarderParty")
        _sub(forwarder, "Name", agent.name)
        _sub(forwarder, "CargoAgentID", agent.iata_code)
        _sub(_sub(forwarder, "FreightForwarderAddress"), "CityName", agent.place)
        if agent.cass_code:
            _sub(_sub(forwarder, "SpecifiedCargoAgentLocation"), "ID", agent.cass_code)

    def _flights(self, parent, shipment: Shipment, with_type_codes: bool):
        for index, flight in enumerate(shipment.flights, start=1):
            movement = _sub(parent, "SpecifiedLogisticsTransportMovement")
            _sub(movement, "StageCode", "Main-Carriage")
            _sub(movement, "ModeCode", "4")
            _sub(movement, "Mode", "AIR TRANSPORT")
            _sub(movement, "ID", flight.flight_number)
            _sub(movement, "SequenceNumeric", index)
            _sub(_sub(movement, "UsedLogisticsTransportMeans"), "Name", flight.carrier_code)
            arrival = _sub(_sub(movement, "ArrivalEvent"), "OccurrenceArrivalLocation")
            _sub(arrival, "ID", flight.destination)
            if with_type_codes:
                _sub(arrival, "TypeCode", "Airport")
            departure_event = _sub(movement, "DepartureEvent")
            _sub(departure_event, "ScheduledOccurrenceDateTime", _iso(flight.date, now=self.clock()))
            departure = _sub(departure_event, "OccurrenceDepartureLocation")
            _sub(departure, "ID", flight.origin)
            if with_type_codes:
                _sub(departure, "TypeCode", "Airport")

    def _handling(self, parent, shipment: Shipment):
        for code in shipment.special_handling_codes or DEFAULT_SPH_CODES:
            _sub(_sub(parent, "HandlingSPHInstructions"), "DescriptionCode", code)

    def _packages(self, item, dimensions, pieces: int, weight: float):
        if not dimensions:
            package = _sub(item, "TransportLogisticsPackage")
            _sub(package, "ItemQuantity", pieces)
            _sub(package, "GrossWeightMeasure", fmt.format_number(weight), unitCode="KGM")
            return
        for dim in dimensions:
            unit = "INH" if dim.unit == "INCH" else "CMT"
            package = _sub(item, "TransportLogisticsPackage")
            _sub(package, "ItemQuantity", dim.pieces)
            spatial = _sub(package, "LinearSpatialDimension")
            _sub(spatial, "WidthMeasure", dim.width, unitCode=unit)
            _sub(spatial, "LengthMeasure", dim.length, unitCode=unit)
            _sub(spatial, "HeightMeasure", dim.height, unitCode=unit)

    def _rating(self, master, shipment: Shipment, total_charge: float, currency: str, description: str):
        rating = _sub(master, "ApplicableRating")
        _sub(rating, "TypeCode", "A")
        _sub(rating, "TotalChargeAmount", fmt.format_number(total_charge, 2))

        item = _sub(rating, "IncludedMasterConsignmentItem")
        _sub(item, "SequenceNumeric", 1)
        for code in self.hs_codes(shipment):
            _sub(item, "TypeCode", code, listAgencyID="1")
        _sub(item, "GrossWeightMeasure", fmt.format_number(shipment.weight), unitCode="KGM")
        if shipment.volume:
            _sub(item, "GrossVolumeMeasure", fmt.format_number(shipment.volume, 2), unitCode="MTQ")
        _sub(item, "PieceQuantity", shipment.pieces)
        _sub(_sub(item, "NatureIdentificationTransportCargo"), "Identification", description)
        _sub(_sub(item, "OriginCountry"), "ID", shipment.shipper.address.country_code or "CO")
        self._packages(item, shipment.dimensions, shipment.pieces, shipment.weight)

        first = shipment.rates[0] if shipment.rates else None
        chargeable = (first.chargeable_weight if first else None) or shipment.weight
        charge = _sub(item, "ApplicableFreightRateServiceCharge")
        _sub(charge, "CategoryCode", rate_category(first.rate_class_code if first else None))
        _sub(charge, "CommodityItemID", shipment.commodity_code or DEFAULT_COMMODITY)
        _sub(charge, "ChargeableWeightMeasure", fmt.format_number(chargeable), unitCode="KGM")
        _sub(charge, "AppliedRate", fmt.format_number(first.rate_or_charge if first else 0, 2))
        _sub(charge, "AppliedAmount", fmt.format_number(total_charge, 2), currencyID=currency)


cargo_xml_encoder = CargoXmlEncoder()
