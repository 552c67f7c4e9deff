"""
Tests for the OAuth flow-state codec.
"""
import base64
import json

import pytest

from seo_sync.errors import MalformedState
from seo_sync.providers import Provider
from seo_sync.services.state_codec import FlowState, decode_state, encode_state


def _raw_token(payload) -> str:
    return base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip("=")


class TestRoundTrip:
    def test_gsc_state_round_trips(self):
        state = FlowState(provider=Provider.GSC, project_id=27, nonce="abc123")
        assert decode_state(encode_state(state)) == state

    def test_ga4_state_round_trips_with_generated_nonce(self):
        state = FlowState(provider=Provider.GA4, project_id=4)
        decoded = decode_state(encode_state(state))
        assert decoded == state
        assert len(decoded.nonce) == 32

    def test_token_is_url_safe(self):
        for project_id in range(0, 200, 7):
            token = encode_state(FlowState(provider=Provider.GA4, project_id=project_id))
            assert not set(token) & {"+", "/", "=", "&", "?"}

    def test_nonces_differ_between_flows(self):
        a = FlowState(provider=Provider.GSC, project_id=1)
        b = FlowState(provider=Provider.GSC, project_id=1)
        assert encode_state(a) != encode_state(b)


class TestDecoding:
    def test_missing_integration_defaults_to_gsc(self):
        state = decode_state(_raw_token({"projectId": 5, "random": "n"}))
        assert state.provider == Provider.GSC
        assert state.project_id == 5

    def test_numeric_string_project_id_is_accepted(self):
        state = decode_state(_raw_token({"integration": "ga4", "projectId": "27"}))
        assert state.project_id == 27
        assert state.nonce == ""

    def test_standard_padded_base64_is_accepted(self):
        raw = json.dumps({"integration": "gsc", "projectId": 9, "random": "x"}).encode()
        token = base64.b64encode(raw).decode()
        assert decode_state(token).project_id == 9

    def test_unknown_integration_is_rejected(self):
        with pytest.raises(MalformedState):
            decode_state(_raw_token({"integration": "bing", "projectId": 1}))

    @pytest.mark.parametrize("project_id", [None, "abc", 1.5, True, [1]])
    def test_bad_project_id_is_rejected(self, project_id):
        with pytest.raises(MalformedState):
            decode_state(_raw_token({"integration": "gsc", "projectId": project_id}))

    def test_missing_project_id_is_rejected(self):
        with pytest.raises(MalformedState):
            decode_state(_raw_token({"integration": "gsc"}))

    @pytest.mark.parametrize("token", ["", "%%%", "bm90LWpzb24", "////"])
    def test_garbage_is_rejected(self, token):
        with pytest.raises(MalformedState):
            decode_state(token)

    def test_non_object_payload_is_rejected(self):
        with pytest.raises(MalformedState) as exc_info:
            decode_state(_raw_token([1, 2, 3]))
        assert exc_info.value.code == "malformed_state"
