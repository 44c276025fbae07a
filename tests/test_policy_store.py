import pytest

from awb_gateway.schemas.policy import AirlinePolicy, GlobalCargoImpConfig, PolicyUpdate, TypeBConfigUpdate
from awb_gateway.services.segment_catalog import FHL_SEGMENT_CODES


def test_configured_airline_policy(store):
    """
    Test Case 1: Configured airline
    Scenario: LATAM prefix 145 without overrides.
    Expected: Policy 21 (case 2, option 1) with the full FHL segment set.
    """
    policy = store.get_effective_policy("145")
    assert policy.name == "LATAM"
    assert policy.policy == 21
    assert (policy.case, policy.option) == (2, 1)
    assert "SSR" in policy.disabled_segments
    assert policy.enabled_fhl_segments == list(FHL_SEGMENT_CODES)

    info = store.get_policy_info("145")
    assert info.source == "configured"
    assert not info.is_default


def test_unknown_prefix_falls_back_to_default(store):
    info = store.get_policy_info("123")
    assert info.is_default
    assert info.source == "default"
    assert info.policy.awb_prefix == "123"
    assert info.policy.name == "Default (all other airlines)"
    assert any("No specific policy" in w for w in info.warnings)


def test_override_applies_immediately_and_resets(store):
    """
    Test Case 2: Runtime override
    Scenario: Switch LATAM to concatenated FHL (policy 51), then reset.
    Expected: The next read sees case 5; after reset the default returns.
    """
    store.update_policy("145", PolicyUpdate(policy=51, requires_hts=True))
    policy = store.get_effective_policy("145")
    assert policy.case == 5
    assert policy.requires_hts
    assert store.has_overrides("145")
    assert store.get_policy_info("145").source == "custom"

    # Later partial updates merge with the earlier ones
    store.update_policy("145", PolicyUpdate(notes="temporary"))
    assert store.get_effective_policy("145").policy == 51

    store.reset_policy("145")
    policy = store.get_effective_policy("145")
    assert policy.policy == 21
    assert not policy.requires_hts
    assert store.airlines_with_overrides() == []


def test_precedence_airline_over_global_over_default(store):
    assert store.get_effective_policy("145").fwb_version == "FWB/16"

    store.update_global(GlobalCargoImpConfig(fwb_version="FWB/17", use_typeb_header=False))
    policy = store.get_effective_policy("145")
    assert policy.fwb_version == "FWB/17"
    assert policy.use_typeb_header is False

    store.update_policy("145", PolicyUpdate(fwb_version="FWB/9", use_typeb_header=True))
    policy = store.get_effective_policy("145")
    assert policy.fwb_version == "FWB/9"
    assert policy.use_typeb_header is True

    # Other airlines still see the global value
    assert store.get_effective_policy("074").fwb_version == "FWB/17"


def test_invalid_version_is_rejected():
    with pytest.raises(ValueError):
        PolicyUpdate(fwb_version="FWB/99")
    with pytest.raises(ValueError):
        GlobalCargoImpConfig(fwb_version="FWB/99")
    with pytest.raises(ValueError):
        GlobalCargoImpConfig(fhl_version="FHL/9")
    assert GlobalCargoImpConfig(fwb_version="FWB/17").fwb_version == "FWB/17"


def test_unknown_segment_codes_are_rejected():
    """
    Test Case 3: Segment lists outside the catalog
    Scenario: Overrides name a segment code that does not exist.
    Expected: Validation error for FWB and FHL lists; known codes still pass.
    """
    with pytest.raises(ValueError, match="BOGUS"):
        PolicyUpdate(enabled_segments=["BOGUS", "AWB"])
    with pytest.raises(ValueError):
        PolicyUpdate(disabled_fhl_segments=["RTD"])
    with pytest.raises(ValueError):
        AirlinePolicy(awb_prefix="999", name="Test", disabled_segments=["XYZ"])

    assert PolicyUpdate(enabled_segments=["AWB", "OTH"]).enabled_segments == ["AWB", "OTH"]
    assert PolicyUpdate(disabled_fhl_segments=["TXT"]).disabled_fhl_segments == ["TXT"]


def test_toggle_segments(store):
    policy = store.toggle_fwb_segment("145", "OTH", True)
    assert "OTH" in policy.enabled_segments
    assert "OTH" not in policy.disabled_segments

    policy = store.toggle_fwb_segment("145", "OTH", False)
    assert "OTH" in policy.disabled_segments
    assert "OTH" not in policy.enabled_segments

    policy = store.toggle_fhl_segment("145", "TXT", False)
    assert "TXT" in policy.disabled_fhl_segments
    assert "TXT" not in policy.enabled_fhl_segments

    with pytest.raises(KeyError):
        store.toggle_fwb_segment("145", "XYZ", True)


def test_listeners_are_notified(store):
    calls = []
    unsubscribe = store.subscribe(lambda: calls.append(1))

    store.update_policy("145", PolicyUpdate(policy=41))
    store.reset_policy("145")
    assert len(calls) == 2

    unsubscribe()
    store.update_policy("145", PolicyUpdate(policy=41))
    assert len(calls) == 2


def test_typeb_config(store):
    config = store.get_typeb_config()
    assert config.recipient_address == "DSGUNXA"
    assert config.default_priority == "QK"

    config = store.update_typeb_config(TypeBConfigUpdate(recipient_address="BOGFMLA"))
    assert config.recipient_address == "BOGFMLA"
    assert config.sender_prefix == "DSGTPXA"

    assert store.is_typeb_enabled()
    store.set_typeb_enabled(False)
    assert not store.is_typeb_enabled()

    store.reset()
    assert store.get_typeb_config().recipient_address == "DSGUNXA"
    assert store.is_typeb_enabled()
