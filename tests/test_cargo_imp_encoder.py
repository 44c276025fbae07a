import re

import pytest

from awb_gateway.schemas.policy import PolicyUpdate
from awb_gateway.schemas.shipment import Shipment
from awb_gateway.services.cargo_imp_encoder import CargoImpEncoder
from awb_gateway.services.cargo_imp_validator import ENVELOPE_LINE
from awb_gateway.services.segment_catalog import FWB_SEGMENT_CODES, FWB_SEGMENTS

from conftest import fixed_clock


@pytest.fixture
def encoder(store):
    return CargoImpEncoder(store=store, clock=fixed_clock)


def _segment(message, code):
    return next(s for s in message.segments if s.code == code)


def test_fwb_direct_shipment(encoder, direct_shipment):
    """
    Test Case 1: Direct FWB under the LATAM policy
    Scenario: Prepaid direct shipment with one flight and one rate line.
    Expected: Type B header, AWB/RTD/NG lines in canonical order, no COL.
    """
    fwb = encoder.generate_fwb(direct_shipment)
    lines = fwb.full_message.split("\n")

    assert fwb.type == "FWB"
    assert fwb.version == "FWB/16"
    assert fwb.is_valid
    assert lines[:3] == ["QK DSGUNXA", ".DSGTPXA 141230 TDVAGT03OPERFLOR/BOG1", "FWB/16"]
    assert lines[3] == "145-12345675BOGMIA/T10K250.5"
    assert "FLT/LA1234/14" in lines
    assert "RTG/MIALA" in lines
    assert "AGT//1234567/0001" in lines
    assert "CVD/USD//PP/NVD/NCV/XXX" in lines
    assert "RTD/1/P10/K250.5/CQ/S0603/W260.0/R1.50/T390.00" in lines
    assert "/NG/CUT FLOWERS" in lines
    assert "/2/NH/060311" in lines
    assert "PPD/WT390.00/CT390.00" in lines
    assert "ISU/14MAR25/BOGOTA/JOHN DOE" in lines
    assert "REF///AGT/12345670001/BOG" in lines
    assert "SPH/EAP/PER/COL" in lines
    assert "OCI/US/CNE/T/123456789" in lines
    assert not any(line.startswith("COL/") for line in lines)
    assert not any(line.startswith("UNT+") for line in lines)


def test_fwb_parties(encoder, direct_shipment):
    fwb = encoder.generate_fwb(direct_shipment)
    shp = _segment(fwb, "SHP")
    cne = _segment(fwb, "CNE")

    assert shp.content == (
        "SHP\n/FLORES DEL CAMPO SAS\n/CALLE 80 NO 45 10\n/BOGOTA\n/CO/110111/TE/5715551234"
    )
    assert cne.content == (
        "CNE\n/MIAMI FLOWER IMPORTS LLC\n/1200 NW 72ND AVE\n/MIAMI/FL\n/US/33126/TE/3055550100"
    )
    state = next(f for f in cne.fields if f.name == "state")
    assert state.value == "FL"


def test_fwb17_uses_tagged_shipper_lines(encoder, direct_shipment):
    fwb = encoder.generate_fwb(direct_shipment, version="FWB/17")
    assert _segment(fwb, "SHP").content.startswith("SHP\nNAM/FLORES DEL CAMPO SAS\nADR/")


def test_fwb9_drops_modern_segments(encoder, direct_shipment):
    fwb = encoder.generate_fwb(direct_shipment, version="FWB/9")
    assert not _segment(fwb, "NH").enabled
    assert "/2/NH/060311" not in fwb.full_message


def test_edifact_envelope(encoder, store, direct_shipment):
    """
    Test Case 2: EDIFACT envelope
    Scenario: Type B disabled for the airline.
    Expected: UNB/UNH header on the first line and UNT/UNZ footer at the end.
    """
    store.update_policy("145", PolicyUpdate(use_typeb_header=False))
    fwb = encoder.generate_fwb(direct_shipment)
    lines = fwb.full_message.split("\n")

    assert lines[0] == (
        "UNB+IATA:1+REUAGT89COCRGMASTER/BOG01:PIMA+AIRLINE_ADDRESS:PIMA+250314:1230"
        "+96728316614806+0++L'UNH+96728316614806+CIMFWB:16'FWB/16"
    )
    assert lines[-1] == "UNT+3+96728316614806'UNZ+1+96728316614806'"


def test_version_line_only_policy(encoder, store, direct_shipment):
    store.update_policy("145", PolicyUpdate(use_typeb_header=False, include_unb_unz=False))
    fwb = encoder.generate_fwb(direct_shipment)
    assert fwb.full_message.startswith("FWB/16\n145-12345675")
    assert "UNT+" not in fwb.full_message


def test_disabled_segment_wins(encoder, store, direct_shipment):
    store.update_policy("145", PolicyUpdate(disabled_segments=["SPH", "OCI"]))
    fwb = encoder.generate_fwb(direct_shipment)
    assert not _segment(fwb, "SPH").enabled
    assert "SPH/" not in fwb.full_message
    assert "OCI/" not in fwb.full_message


def test_collect_shipment_uses_col(encoder, direct_payload):
    direct_payload["paymentMethod"] = "Collect"
    direct_payload["otherCharges"] = [
        {"code": "AWC", "entitlement": "DueAgent", "amount": 25, "paymentMethod": "Collect"},
        {"code": "MYC", "entitlement": "DueCarrier", "amount": 10, "paymentMethod": "Collect"},
    ]
    fwb = encoder.generate_fwb(Shipment.model_validate(direct_payload))

    assert "CVD/USD//CC/NVD/NCV/XXX" in fwb.full_message
    assert "COL/WT390.00\n/OA25.00/OC10.00/CT425.00" in fwb.full_message
    assert "PPD/" not in fwb.full_message


def test_over_length_segment_is_flagged(encoder, direct_payload):
    direct_payload["rates"] = direct_payload["rates"] * 12
    fwb = encoder.generate_fwb(Shipment.model_validate(direct_payload))
    rtd = _segment(fwb, "RTD")

    assert rtd.current_length > FWB_SEGMENTS["RTD"].max_length
    assert rtd.original_content == rtd.content
    assert rtd.errors and rtd.errors[0].startswith("Exceeds limit:")
    assert not fwb.is_valid
    assert fwb.errors[0].startswith("RTD: Exceeds limit")


def test_consolidated_fwb(encoder, consolidated_shipment):
    fwb = encoder.generate_fwb(consolidated_shipment)
    lines = fwb.full_message.split("\n")

    assert fwb.is_consolidation
    assert "/NC/FRESH CUT ROSES" in lines
    assert lines.count("/2/NH/060311") == 1
    assert "/3/NH/0603110060" in lines
    assert "/4/NH/060312" in lines
    assert "/5/NS/10" in lines


def test_fhl_for_one_house(encoder, consolidated_shipment):
    """
    Test Case 3: FHL per house
    Scenario: First house of a LATAM consolidation with a CM prefixed HAWB.
    Expected: MBI/HBS/TXT/HTS/OCI/SHP/CNE/CVD with the zero-prefixed HAWB.
    """
    house = consolidated_shipment.house_bills[0]
    fhl = encoder.generate_fhl(consolidated_shipment, house)
    lines = fhl.full_message.split("\n")

    assert fhl.type == "FHL"
    assert fhl.hawb_number == "CM12345"
    assert lines[2] == "FHL/4"
    assert lines[3].startswith("MBI/145-12345675BOGMIA/T10K")
    assert "HBS/0CM12345/BOGMIA/4/K100.0/4/CUT FLOWERS" in lines
    assert "TXT/FRESH CUT ROSES SLAC-4" in lines
    assert "HTS/0603110060" in lines
    assert "OCI/US/CNE/T/123456789" in lines
    assert "SHP/FINCA LA ESPERANZA" in lines
    assert "CNE/ROSES USA INC" in lines
    assert lines[-1] == "CVD/USD/PP/NVD/NCV/XXX"


def test_fhl_disabled_segment(encoder, store, consolidated_shipment):
    store.toggle_fhl_segment("145", "TXT", False)
    fhl = encoder.generate_fhl(consolidated_shipment, consolidated_shipment.house_bills[0])
    assert "TXT/" not in fhl.full_message


def test_bundle_separate_fhls(encoder, consolidated_shipment):
    bundle = encoder.generate_bundle(consolidated_shipment)

    assert (bundle.policy_case, bundle.policy_option) == (2, 1)
    assert len(bundle.fhls) == 2
    assert bundle.concatenated_fhl is None
    assert bundle.fhl_texts() == [f.full_message for f in bundle.fhls]


def test_bundle_direct_has_no_fhl(encoder, direct_shipment):
    bundle = encoder.generate_bundle(direct_shipment)
    assert bundle.fhls == []
    assert bundle.fhl_texts() == []


def test_bundle_concatenated_fhl(encoder, store, consolidated_shipment):
    """
    Test Case 4: Concatenated FHL (case 5)
    Scenario: Airline wants every house in one transmission.
    Expected: One text, full FHL per house joined by the & separator.
    """
    store.update_policy("145", PolicyUpdate(policy=51))
    bundle = encoder.generate_bundle(consolidated_shipment)
    text = bundle.concatenated_fhl

    assert bundle.fhls == []
    assert bundle.fhl_texts() == [text]
    assert text.count("MBI/") == 2
    assert text.count("HBS/") == 2
    assert "&\n" in text


def test_bundle_single_header_fhl(encoder, store, consolidated_shipment):
    """
    Test Case 5: Single header FHL (case 8)
    Scenario: One version line for all houses.
    Expected: MBI only once, both HBS present, no separator.
    """
    store.update_policy("145", PolicyUpdate(policy=81))
    text = encoder.generate_bundle(consolidated_shipment).concatenated_fhl

    assert text.startswith("FHL/4\nMBI/145-12345675")
    assert text.count("MBI/") == 1
    assert text.count("HBS/") == 2
    assert "&" not in text


def test_bundle_enveloped_fhl(encoder, store, consolidated_shipment):
    store.update_policy("145", PolicyUpdate(policy=71, use_typeb_header=False))
    bundle = encoder.generate_bundle(consolidated_shipment)

    assert len(bundle.fhls) == 2
    for fhl in bundle.fhls:
        assert fhl.full_message.startswith("UNB+IATA:1+")
        assert "CIMFHL:4'FHL/4" in fhl.full_message
        assert fhl.full_message.endswith("UNZ+1+96728316614806'")


def test_bundle_keeps_envelope_colons(encoder, store, direct_shipment):
    store.update_policy("145", PolicyUpdate(use_typeb_header=False))
    bundle = encoder.generate_bundle(direct_shipment)
    assert bundle.fwb.full_message.startswith("UNB+IATA:1+REUAGT89COCRGMASTER/BOG01:PIMA+")
    assert "CIMFWB:16'FWB/16" in bundle.fwb.full_message


def test_update_and_regenerate(encoder, direct_shipment):
    fwb = encoder.generate_fwb(direct_shipment)
    ng = _segment(fwb, "NG")

    edited = encoder.update_segment(ng, "/NG/FRESH CUT ROSES")
    assert edited.current_length == len("/NG/FRESH CUT ROSES")
    assert edited.errors == []

    too_long = encoder.update_segment(ng, "/NG/" + "X" * 40)
    assert too_long.errors

    segments = [edited if s.code == "NG" else s for s in fwb.segments]
    assert "/NG/FRESH CUT ROSES" in encoder.regenerate_message(segments)


def test_rate_class_mapping():
    assert CargoImpEncoder.map_rate_class("QUANTITY_RATE") == "Q"
    assert CargoImpEncoder.map_rate_class("MINIMUM_CHARGE") == "M"
    assert CargoImpEncoder.map_rate_class("n") == "N"
    assert CargoImpEncoder.map_rate_class("UNKNOWN_RATE") == "Q"


def test_hawb_is_reduced_to_letters_and_digits(encoder, consolidated_payload):
    """
    Test Case 4: HAWB with punctuation
    Scenario: The house number arrives as "ab_12#x".
    Expected: HBS line and hawbNumber field carry only AB12X.
    """
    consolidated_payload["houseBills"][0]["hawbNumber"] = "ab_12#x"
    shipment = Shipment.model_validate(consolidated_payload)

    fhl = encoder.generate_fhl(shipment, shipment.house_bills[0])
    hbs = _segment(fhl, "HBS")

    assert hbs.content.startswith("HBS/AB12X/BOGMIA/")
    assert next(f for f in hbs.fields if f.name == "hawbNumber").value == "AB12X"


def test_field_values_keep_to_the_line_charset(encoder, direct_payload):
    direct_payload["consignee"]["address"]["state"] = "fl;"
    fwb = encoder.generate_fwb(Shipment.model_validate(direct_payload))

    for segment in fwb.segments:
        for field in segment.fields:
            assert re.fullmatch(r"[A-Z0-9 ./-]*", field.value), (segment.code, field.name, field.value)


def _bundle_texts(bundle):
    return [bundle.fwb.full_message] + bundle.fhl_texts()


def test_encoding_is_deterministic(encoder, direct_shipment, consolidated_shipment):
    for shipment in (direct_shipment, consolidated_shipment):
        first = encoder.generate_bundle(shipment)
        second = encoder.generate_bundle(shipment)
        assert first.model_dump() == second.model_dump()


def test_disabling_a_segment_never_adds_lines(encoder, store, direct_shipment):
    baseline = encoder.generate_fwb(direct_shipment).full_message.split("\n")

    for code in FWB_SEGMENT_CODES:
        store.update_policy("145", PolicyUpdate(disabled_segments=[code]))
        lines = encoder.generate_fwb(direct_shipment).full_message.split("\n")
        assert len(lines) <= len(baseline), code
        assert set(lines) <= set(baseline), code


def test_generated_lines_fit_the_line_rules(encoder, store, direct_shipment, consolidated_shipment):
    """
    Test Case 5: Line rules across messages
    Scenario: Bundles for a direct and a consolidated shipment, with and without the EDIFACT envelope.
    Expected: Every body line is at most 70 characters of A-Z, 0-9, space, dot, slash and dash.
    """
    texts = []
    for include_unb_unz in (False, True):
        store.update_policy("145", PolicyUpdate(include_unb_unz=include_unb_unz))
        for shipment in (direct_shipment, consolidated_shipment):
            texts.extend(_bundle_texts(encoder.generate_bundle(shipment)))

    for text in texts:
        for line in text.split("\n"):
            if not line or ENVELOPE_LINE.match(line):
                continue
            assert len(line) <= 70, line
            assert re.fullmatch(r"[A-Z0-9 ./-]*", line), line
