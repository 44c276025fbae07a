from lxml import etree

from awb_gateway.schemas.shipment import Shipment
from awb_gateway.services.cargo_xml_encoder import (
    HOUSE_WAYBILL_NS,
    WAYBILL_NS,
    CargoXmlEncoder,
    country_name,
    rate_category,
)
from awb_gateway.services.cargo_imp_validator import calculate_score
from awb_gateway.services.cargo_xml_validator import CargoXmlValidator

from conftest import fixed_clock

RAM = "{iata:datamodel:3}"

encoder = CargoXmlEncoder(clock=fixed_clock)
validator = CargoXmlValidator()


def _parse(document):
    return etree.fromstring(document.xml_content.encode("utf-8"))


def _find_text(root, path):
    return root.findtext("/".join(RAM + part for part in path.split("/")))


def test_xfwb_direct(direct_shipment):
    """
    Test Case 1: Direct XFWB
    Scenario: Shipment without houses.
    Expected: Waybill root, TypeCode 740, no consolidation indicator, HS codes tagged.
    """
    document = encoder.generate_xfwb(direct_shipment)
    assert document.is_valid
    assert document.awb_number == "145-12345675"
    assert document.xml_content.startswith("<?xml")

    root = _parse(document)
    assert root.tag == f"{{{WAYBILL_NS}}}Waybill"
    header = root.find(f"{{{WAYBILL_NS}}}MessageHeaderDocument")
    assert header.findtext(RAM + "TypeCode") == "740"
    assert header.findtext(RAM + "IssueDateTime") == "2025-03-14T12:30:00"

    master = root.find(f"{{{WAYBILL_NS}}}MasterConsignment")
    assert master.find(RAM + "ConsolidationIndicator") is None
    assert _find_text(master, "ConsigneeParty/PostalStructuredAddress/CountrySubDivisionName") == "FLORIDA"
    assert _find_text(master, "ConsignorParty/PostalStructuredAddress/CountryName") == "COLOMBIA"

    hs = master.findall(f"{RAM}ApplicableRating/{RAM}IncludedMasterConsignmentItem/{RAM}TypeCode")
    assert [(el.text, el.get("listAgencyID")) for el in hs] == [("060311", "1")]
    charge = f"{RAM}ApplicableRating/{RAM}IncludedMasterConsignmentItem/{RAM}ApplicableFreightRateServiceCharge"
    assert master.findtext(f"{charge}/{RAM}CategoryCode") == "Q"


def test_xfwb_master_for_consolidation(consolidated_shipment):
    root = _parse(encoder.generate_xfwb(consolidated_shipment))
    header = root.find(f"{{{WAYBILL_NS}}}MessageHeaderDocument")
    master = root.find(f"{{{WAYBILL_NS}}}MasterConsignment")

    assert header.findtext(RAM + "TypeCode") == "741"
    assert header.findtext(RAM + "Name") == "Master Air Waybill"
    assert master.findtext(RAM + "ConsolidationIndicator") == "true"
    assert master.findtext(RAM + "ConsignmentItemQuantity") == "2"
    codes = [el.text for el in master.iter(RAM + "TypeCode") if el.get("listAgencyID") == "1"]
    assert codes == ["060311", "0603110060", "060312"]


def test_xfzb_links_to_master(consolidated_shipment):
    """
    Test Case 2: House waybill
    Scenario: First house of a consolidation.
    Expected: HouseWaybill root, TypeCode 703, ID hawb_awb, reference to the 741 master.
    """
    house = consolidated_shipment.house_bills[0]
    document = encoder.generate_xfzb(consolidated_shipment, house)
    assert document.hawb_number == "CM12345"

    root = _parse(document)
    assert root.tag == f"{{{HOUSE_WAYBILL_NS}}}HouseWaybill"
    header = root.find(f"{{{HOUSE_WAYBILL_NS}}}MessageHeaderDocument")
    assert header.findtext(RAM + "ID") == "CM12345_145-12345675"
    assert header.findtext(RAM + "TypeCode") == "703"

    consignment = root.find(f"{{{HOUSE_WAYBILL_NS}}}MasterConsignment/{RAM}IncludedHouseConsignment")
    assert _find_text(consignment, "AssociatedReferenceDocument/TypeCode") == "741"
    assert _find_text(consignment, "AssociatedReferenceDocument/ID") == "145-12345675"
    assert _find_text(consignment, "ConsignorParty/Name") == "FINCA LA ESPERANZA"
    assert _find_text(consignment, "IncludedHouseConsignmentItem/TypeCode") == "0603110060"


def test_bundle(direct_shipment, consolidated_shipment):
    assert encoder.generate_bundle(direct_shipment).xfzbs == []
    bundle = encoder.generate_bundle(consolidated_shipment)
    assert [d.hawb_number for d in bundle.xfzbs] == ["CM12345", "HAWB0002"]


def test_generated_documents_pass_validation(consolidated_shipment):
    """
    Test Case 3: Regulatory checks on generated XML
    Scenario: Validate the master and one house produced by the encoder.
    Expected: Valid, ICS2 and ACAS compliant, full score.
    """
    xfwb = validator.validate(encoder.generate_xfwb(consolidated_shipment).xml_content)
    assert xfwb.is_valid, [e.message for e in xfwb.errors]
    assert xfwb.summary.message_type == "XFWB"
    assert xfwb.summary.type_code == "741"
    assert xfwb.summary.awb_number == "145-12345675"
    assert xfwb.summary.ics2_compliant
    assert xfwb.summary.acas_compliant
    assert xfwb.score == 100
    assert xfwb.success

    house = consolidated_shipment.house_bills[1]
    xfzb = validator.validate(encoder.generate_xfzb(consolidated_shipment, house).xml_content)
    assert xfzb.is_valid, [e.message for e in xfzb.errors]
    assert xfzb.summary.message_type == "XFZB"
    assert xfzb.summary.ics2_compliant


def test_missing_postcode_fails_ics2(direct_payload):
    direct_payload["consignee"]["address"]["postalCode"] = ""

    result = validator.validate(encoder.generate_xfwb(Shipment.model_validate(direct_payload)).xml_content)

    assert not result.is_valid
    assert not result.summary.ics2_compliant
    assert result.summary.acas_compliant
    failure = next(e for e in result.errors if e.field == "ConsigneeParty")
    assert failure.regulation == "ICS2"
    assert "PostcodeCode" in failure.recommendation


def test_vague_description_is_an_acas_warning(direct_payload):
    direct_payload["description"] = "GOODS"
    result = validator.validate(encoder.generate_xfwb(Shipment.model_validate(direct_payload)).xml_content)

    assert result.is_valid
    assert not result.summary.acas_compliant
    assert [w.regulation for w in result.warnings] == ["ACAS"]
    assert result.score == 97


def test_hs_code_without_agency_is_an_error(direct_shipment):
    xml = encoder.generate_xfwb(direct_shipment).xml_content.replace(' listAgencyID="1"', "")
    result = validator.validate(xml)
    assert not result.summary.ics2_compliant
    assert len(result.errors) == 2


def test_malformed_xml():
    result = validator.validate("<Waybill><unclosed></Waybill>")
    assert not result.is_valid
    assert result.score == 0
    assert len(result.errors) == 1
    assert result.errors[0].message.startswith("Malformed XML")
    assert not result.summary.ics2_compliant
    assert not result.summary.acas_compliant


def test_lookup_tables():
    assert country_name("ec") == "ECUADOR"
    assert country_name("ZZ") == "ZZ"
    assert rate_category("N") == "K"
    assert rate_category(None) == "K"
    assert rate_category("SPECIFIC_COMMODITY_RATE") == "C"


def test_blank_optional_values_leave_no_empty_elements(direct_payload):
    """
    Test Case 4: Blank optional values
    Scenario: Shipper street, agent IATA code and accounting text are blank.
    Expected: No element is written without text or children.
    """
    direct_payload["shipper"]["address"]["street"] = "   "
    direct_payload["agent"]["iataCode"] = ""
    direct_payload["accounting"] = [{"identifier": "GEN", "accountingInformation": " "}]

    root = _parse(encoder.generate_xfwb(Shipment.model_validate(direct_payload)))

    empty = [
        etree.QName(el).localname for el in root.iter()
        if len(el) == 0 and not el.attrib and not (el.text or "").strip()
    ]
    assert empty == []
    master = root.find(f"{{{WAYBILL_NS}}}MasterConsignment")
    assert master.find(f"{RAM}ConsignorParty/{RAM}PostalStructuredAddress/{RAM}StreetName") is None
    assert master.find(f"{RAM}FreightForwarderParty/{RAM}CargoAgentID") is None
    assert master.find(f"{RAM}IncludedAccountingNote") is None
    assert _find_text(master, "FreightForwarderParty/Name") == "CARGO MASTER"


def test_house_forwarder_without_city(consolidated_payload):
    consolidated_payload["agent"]["place"] = ""
    shipment = Shipment.model_validate(consolidated_payload)

    root = _parse(encoder.generate_xfzb(shipment, shipment.house_bills[0]))
    consignment = root.find(f"{{{HOUSE_WAYBILL_NS}}}MasterConsignment/{RAM}IncludedHouseConsignment")
    assert consignment.find(f"{RAM}FreightForwarderParty/{RAM}PostalStructuredAddress/{RAM}CityName") is None
    assert _find_text(consignment, "FreightForwarderParty/PostalStructuredAddress/CountryID") == "CO"


def test_score_never_rises_with_more_errors():
    for warnings in range(6):
        for errors in range(10):
            assert calculate_score(errors + 1, warnings) <= calculate_score(errors, warnings)
            assert 0 <= calculate_score(errors, warnings) <= 100


def test_validation_degrades_as_damage_accumulates(direct_payload):
    """
    Test Case 5: Accumulating defects
    Scenario: Validate a clean XFWB, then drop the consignee postcode, then also the HS agency IDs.
    Expected: Error count grows, score never rises, isValid tracks the error count.
    """
    clean = encoder.generate_xfwb(Shipment.model_validate(direct_payload)).xml_content
    direct_payload["consignee"]["address"]["postalCode"] = ""
    no_postcode = encoder.generate_xfwb(Shipment.model_validate(direct_payload)).xml_content
    no_agency = no_postcode.replace(' listAgencyID="1"', "")

    results = [validator.validate(xml) for xml in (clean, no_postcode, no_agency)]

    for result in results:
        assert result.is_valid == (len(result.errors) == 0)
    error_counts = [len(r.errors) for r in results]
    assert error_counts == sorted(error_counts)
    assert error_counts[0] < error_counts[-1]
    scores = [r.score for r in results]
    assert scores == sorted(scores, reverse=True)
