import httpx

from awb_gateway.api.v1.endpoints.transmissions import get_transmitter
from awb_gateway.main import app
from awb_gateway.services.transmitter import CargoImpTransmitter

from test_cargo_imp_validator import FWB_TEXT

API = "/api/v1"

ACK_OK = "<Response><status>RECEIVED</status><tid>T-2001</tid></Response>"


def _mock_transmitter(handler):
    def factory():
        return CargoImpTransmitter(
            endpoint="https://cargo.example/api/transmit",
            username="agent",
            password="secret",
            delay_ms=0,
            transport=httpx.MockTransport(handler),
        )
    return factory


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "transmissionConfigured" in data


def test_generate_fwb(client, direct_payload):
    """
    Test Case 1: FWB endpoint
    Scenario: Post a direct shipment in camelCase.
    Expected: 200 with the FWB text and camelCase message fields.
    """
    response = client.post(f"{API}/cargo-imp/fwb", json=direct_payload)
    assert response.status_code == 200
    data = response.json()
    assert data["type"] == "FWB"
    assert data["awbNumber"]
    assert "145-12345675BOGMIA/T10K250.5" in data["fullMessage"]
    assert data["isValid"] is True


def test_generate_fwb_rejects_bad_payload(client, direct_payload):
    del direct_payload["shipper"]
    response = client.post(f"{API}/cargo-imp/fwb", json=direct_payload)
    assert response.status_code == 422


def test_generate_fhl(client, consolidated_payload):
    response = client.post(f"{API}/cargo-imp/fhl/1", json=consolidated_payload)
    assert response.status_code == 200
    assert response.json()["hawbNumber"] == "HAWB0002"

    response = client.post(f"{API}/cargo-imp/fhl/5", json=consolidated_payload)
    assert response.status_code == 404


def test_generate_bundle(client, consolidated_payload):
    response = client.post(f"{API}/cargo-imp/bundle", json=consolidated_payload)
    assert response.status_code == 200
    data = response.json()
    assert data["policyCase"] == 2
    assert len(data["fhls"]) == 2
    assert data["concatenatedFhl"] is None


def test_validate_fwb(client, direct_payload):
    response = client.post(f"{API}/cargo-imp/validate", json=direct_payload)
    assert response.status_code == 200
    data = response.json()
    assert data["fwb"]["type"] == "FWB"
    assert data["validation"]["totalErrors"] == 0
    assert data["validation"]["canSend"] is True


def test_validate_text(client):
    response = client.post(
        f"{API}/cargo-imp/validate-text",
        json={"text": FWB_TEXT.replace("12345675", "12345670"), "messageType": "FWB"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["isValid"] is False
    assert data["canSend"] is True
    assert any("mod-7" in issue["message"] for issue in data["allIssues"])


def test_cargo_xml(client, consolidated_payload):
    """
    Test Case 2: Cargo-XML round trip over HTTP
    Scenario: Generate the XML bundle, then post the XFWB back for validation.
    Expected: Master plus two houses; the master passes ICS2 and ACAS.
    """
    response = client.post(f"{API}/cargo-xml/", json=consolidated_payload)
    assert response.status_code == 200
    bundle = response.json()
    assert bundle["xfwb"]["type"] == "XFWB"
    assert len(bundle["xfzbs"]) == 2

    response = client.post(f"{API}/cargo-xml/validate", json={"xml": bundle["xfwb"]["xmlContent"]})
    assert response.status_code == 200
    summary = response.json()["summary"]
    assert summary["typeCode"] == "741"
    assert summary["ics2Compliant"] is True
    assert summary["acasCompliant"] is True

    response = client.post(f"{API}/cargo-xml/validate", json={"xml": "<broken"})
    assert response.json()["score"] == 0


def test_policies(client):
    """
    Test Case 3: Runtime policy management
    Scenario: Read, override, toggle and reset the LATAM policy.
    Expected: Each change is visible on the next read; reset restores defaults.
    """
    response = client.get(f"{API}/policies/")
    assert response.status_code == 200
    assert any(p["awbPrefix"] == "145" for p in response.json())

    response = client.get(f"{API}/policies/145")
    assert response.json()["source"] == "configured"

    response = client.patch(f"{API}/policies/145", json={"policy": 51, "requiresHts": True})
    assert response.status_code == 200
    assert response.json()["policy"] == 51
    assert client.get(f"{API}/policies/145").json()["source"] == "custom"

    response = client.post(f"{API}/policies/145/segments", json={"segment": "oth", "enabled": True})
    assert response.status_code == 200
    assert "OTH" in response.json()["enabledSegments"]

    response = client.post(f"{API}/policies/145/segments", json={"family": "FHL", "segment": "XYZ", "enabled": True})
    assert response.status_code == 404

    response = client.delete(f"{API}/policies/145")
    assert response.json()["policy"] == 21

    response = client.get(f"{API}/policies/999")
    assert response.json()["isDefault"] is True


def test_invalid_policy_update(client):
    response = client.patch(f"{API}/policies/145", json={"fwbVersion": "FWB/99"})
    assert response.status_code == 422


def test_invalid_global_settings(client):
    response = client.patch(f"{API}/policies/settings/global", json={"fwbVersion": "FWB/99"})
    assert response.status_code == 422
    response = client.patch(f"{API}/policies/settings/global", json={"fhlVersion": "FHL/7"})
    assert response.status_code == 422
    assert client.get(f"{API}/policies/settings/global").json()["fwbVersion"] != "FWB/99"


def test_unknown_segment_in_policy_update(client):
    response = client.patch(f"{API}/policies/145", json={"enabledSegments": ["BOGUS", "AWB"]})
    assert response.status_code == 422
    response = client.patch(f"{API}/policies/145", json={"disabledFhlSegments": ["NOPE"]})
    assert response.status_code == 422
    assert client.get(f"{API}/policies/145").json()["source"] == "configured"


def test_policy_settings(client):
    response = client.patch(f"{API}/policies/settings/global", json={"fwbVersion": "FWB/17"})
    assert response.status_code == 200
    assert client.get(f"{API}/policies/settings/global").json()["fwbVersion"] == "FWB/17"

    response = client.patch(f"{API}/policies/settings/type-b", json={"recipientAddress": "BOGFMLA"})
    assert response.json()["recipientAddress"] == "BOGFMLA"
    assert client.get(f"{API}/policies/settings/type-b").json()["senderPrefix"] == "DSGTPXA"


def test_transmit_not_configured(client, clean_log, direct_payload):
    app.dependency_overrides[get_transmitter] = lambda: CargoImpTransmitter(endpoint="", username="", password="")
    try:
        response = client.post(f"{API}/transmissions/", json={"shipment": direct_payload})
    finally:
        del app.dependency_overrides[get_transmitter]

    assert response.status_code == 200
    data = response.json()
    assert data["allSuccess"] is False
    assert "not configured" in data["fwbResult"]["error"]

    history = client.get(f"{API}/transmissions/").json()
    assert len(history) == 1
    assert history[0]["success"] is False


def test_transmit_and_audit(client, clean_log, consolidated_payload):
    """
    Test Case 4: Transmission with audit trail
    Scenario: Endpoint accepts the FWB and the first house, rejects the second.
    Expected: Partial result; three rows in the history; stats match.
    """
    def handler(request):
        if b"HAWB0002" in request.content:
            return httpx.Response(200, text="<Response><error>Duplicate house</error></Response>")
        return httpx.Response(200, text=ACK_OK)

    app.dependency_overrides[get_transmitter] = _mock_transmitter(handler)
    try:
        response = client.post(f"{API}/transmissions/", json={"shipment": consolidated_payload})
    finally:
        del app.dependency_overrides[get_transmitter]

    assert response.status_code == 200
    data = response.json()
    assert data["totalSent"] == 3
    assert data["totalSuccess"] == 2
    assert data["summary"] == "Partial transmission: 2/3 messages sent (1 failed)"

    history = client.get(f"{API}/transmissions/").json()
    assert len(history) == 3
    assert {row["reference"] for row in history} == {"145-12345675", "CM12345", "HAWB0002"}
    assert any(row["tid"] == "T-2001" for row in history)

    stats = client.get(f"{API}/transmissions/stats").json()
    assert stats == {"totalMessages": 3, "successful": 2, "failed": 1, "successRate": 66.7}
