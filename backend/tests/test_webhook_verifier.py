from __future__ import annotations

import json

import pytest

from draftwise.core.exceptions import ConfigurationMissing, MalformedPayload, SignatureInvalid
from draftwise.services.webhook_verifier import WebhookVerifier

SECRET = "whsec_test_primary"


def _payload(event_type: str = "customer.subscription.updated") -> bytes:
    return json.dumps({"id": "evt_1", "type": event_type, "data": {"object": {"id": "sub_1"}}}).encode("utf-8")


def test_valid_signature_returns_parsed_event(signer):
    payload = _payload()
    event = WebhookVerifier([SECRET]).verify(payload, signer(payload, SECRET))
    assert event["type"] == "customer.subscription.updated"
    assert event["data"]["object"]["id"] == "sub_1"


def test_any_payload_byte_change_is_rejected(signer):
    payload = _payload()
    header = signer(payload, SECRET)
    verifier = WebhookVerifier([SECRET])
    # Flip a handful of single bytes across the payload
    for index in (0, 5, len(payload) // 2, len(payload) - 1):
        mutated = bytearray(payload)
        mutated[index] = ord("x") if mutated[index] != ord("x") else ord("y")
        with pytest.raises(SignatureInvalid):
            verifier.verify(bytes(mutated), header)


def test_signature_byte_change_is_rejected(signer):
    payload = _payload()
    header = signer(payload, SECRET)
    last = header[-1]
    tampered = header[:-1] + ("0" if last != "0" else "1")
    with pytest.raises(SignatureInvalid):
        WebhookVerifier([SECRET]).verify(payload, tampered)


def test_wrong_secret_is_rejected(signer):
    payload = _payload()
    with pytest.raises(SignatureInvalid):
        WebhookVerifier([SECRET]).verify(payload, signer(payload, "whsec_other"))


def test_stale_timestamp_is_rejected(signer):
    payload = _payload()
    header = signer(payload, SECRET, timestamp=1_000_000_000)
    with pytest.raises(SignatureInvalid):
        WebhookVerifier([SECRET]).verify(payload, header)


def test_missing_secret_is_configuration_error(signer):
    payload = _payload()
    with pytest.raises(ConfigurationMissing):
        WebhookVerifier([]).verify(payload, signer(payload, SECRET))


def test_missing_header_is_configuration_error():
    with pytest.raises(ConfigurationMissing):
        WebhookVerifier([SECRET]).verify(_payload(), None)


def test_rotation_accepts_any_configured_secret(signer):
    payload = _payload()
    verifier = WebhookVerifier(["whsec_old", SECRET])
    assert verifier.verify(payload, signer(payload, SECRET))["id"] == "evt_1"
    assert verifier.verify(payload, signer(payload, "whsec_old"))["id"] == "evt_1"


def test_signed_non_event_payload_is_malformed(signer):
    payload = b'["not", "an", "event"]'
    with pytest.raises(MalformedPayload):
        WebhookVerifier([SECRET]).verify(payload, signer(payload, SECRET))


def test_signed_invalid_json_is_malformed(signer):
    payload = b"{not json"
    with pytest.raises(MalformedPayload):
        WebhookVerifier([SECRET]).verify(payload, signer(payload, SECRET))


def test_errors_map_to_bad_request():
    assert SignatureInvalid.status_code == 400
    assert ConfigurationMissing.status_code == 400
    assert MalformedPayload.status_code == 400
