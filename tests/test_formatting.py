from datetime import datetime, timezone

from awb_gateway.services import formatting as fmt


def test_normalize_strips_accents_and_separators():
    """
    Test Case 1: Free text cleanup
    Scenario: Accented shipper name with punctuation.
    Expected: Uppercase ASCII, separators (Ñ included) become spaces, single spaces.
    """
    assert fmt.normalize("Flores Ñandú S.A.S.", with_spaces=True) == "FLORES ANDU S A S"
    assert fmt.normalize("Niño", with_spaces=False) == "NIO"
    assert fmt.normalize("Calle 80 #45-10", with_spaces=True) == "CALLE 80 45 10"
    assert fmt.normalize("") == ""
    assert fmt.normalize(None) == ""


def test_normalize_respects_length_and_decimals():
    assert fmt.normalize("ABCDEFGHIJ", 4) == "ABCD"
    # Dots survive when evalpoint is off, e.g. declared values
    assert fmt.normalize("12.50", 15, False, False) == "12.50"


def test_normalize_is_idempotent_on_plain_text():
    once = fmt.normalize("miami flower imports llc", 35, True)
    assert fmt.normalize(once, 35, True) == once


def test_post_replacements():
    """
    Test Case 2: Wire cleanup
    Scenario: FWB body with forbidden characters and an EDIFACT header.
    Expected: Body characters blanked, the UNB line keeps its colons.
    """
    message = "UNB+IATA:1+A+B'UNH+1+CIMFWB:16'FWB/16\nNG/ROSES:RED"
    result = fmt.fwb_post_replacements(message)
    assert result.startswith("UNB+IATA:1")
    assert result.endswith("NG/ROSES RED")

    assert fmt.fhl_post_replacements("TXT/ROSES (RED), & MORE?", True) == "TXT/ROSES RED  MORE"
    assert fmt.fhl_post_replacements("TXT/WHAT?", False) == "TXT/WHAT?"


def test_number_and_date_formats():
    assert fmt.format_number(250) == "250.0"
    assert fmt.format_number("1.5", 2) == "1.50"
    assert fmt.format_number(None) == "0.0"
    assert fmt.format_date("2025-03-14") == "14MAR25"
    assert fmt.flight_day("2025-03-04") == "04"

    now = datetime(2025, 3, 14, 9, 5, tzinfo=timezone.utc)
    assert fmt.format_unb_datetime(now) == "250314:0905"
    assert fmt.format_typeb_timestamp(now) == "140905"


def test_awb_and_hawb_helpers():
    assert fmt.normalize_awb("145 1234-5675") == "14512345675"
    assert fmt.format_awb_dashed("14512345675") == "145-12345675"
    assert fmt.awb_prefix("145-12345675") == "145"
    assert fmt.normalize_destination("lon") == "LHR"
    assert fmt.normalize_hawb("cm-123") == "0CM123"
    assert fmt.normalize_hawb("AB123") == "AB123"
    assert fmt.normalize_hawb("ab_12#x") == "AB12X"
    assert fmt.normalize_hawb("sk 9.8/7") == "0SK987"


def test_postal_code_fallbacks():
    assert fmt.postal_code_for("33126", "US") == "33126"
    assert fmt.postal_code_for("", "CO") == "110111"
    assert fmt.postal_code_for("", "EC") == "00000"
    assert fmt.postal_code_for("", "US") == "10"
    assert fmt.postal_code_for(None, "US", "110221") == "110221"


def test_phone_digits():
    assert fmt.phone_digits("+57 (1) 555-1234") == "5715551234"
    assert fmt.phone_digits(None) == ""
