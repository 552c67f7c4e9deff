"""
OAuth flow-state codec.

The flow state rides through the provider's consent redirect as the single
``state`` query parameter: compact JSON, then URL-safe base64 without padding.
Nothing is signed, so the decoded project id only selects which credential
row a callback writes. The callback handler binds it to the browser session
through the ``nonce`` (see ``OAuthCallbackHandler``).
"""
import base64
import json
import secrets
from dataclasses import dataclass, field

from seo_sync.errors import MalformedState
from seo_sync.providers import Provider

DEFAULT_PROVIDER = Provider.GSC


def new_nonce() -> str:
    return secrets.token_hex(16)


@dataclass(frozen=True)
class FlowState:
    provider: Provider
    project_id: int
    nonce: str = field(default_factory=new_nonce)


def encode_state(state: FlowState) -> str:
    payload = {
        "integration": state.provider.value,
        "projectId": state.project_id,
        "random": state.nonce,
    }
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_state(token: str) -> FlowState:
    """
    Decode a state token.

    The integration kind defaults to gsc only when the field is absent. An
    unknown integration, a missing or non-integer project id, or anything that
    is not a base64 JSON object raises MalformedState.
    """
    if not token:
        raise MalformedState("Empty state")

    try:
        # Accept standard base64 and restored padding as well
        normalized = token.strip().replace("+", "-").replace("/", "_")
        normalized += "=" * (-len(normalized) % 4)
        raw = base64.urlsafe_b64decode(normalized.encode("ascii"))
        payload = json.loads(raw.decode("utf-8"))
    except ValueError as e:
        raise MalformedState(f"State is not valid encoded JSON: {type(e).__name__}")

    if not isinstance(payload, dict):
        raise MalformedState("State payload is not an object")

    integration = payload.get("integration", payload.get("provider"))
    if integration is None:
        provider = DEFAULT_PROVIDER
    else:
        try:
            provider = Provider(integration)
        except ValueError:
            raise MalformedState("Unknown integration in state")

    return FlowState(
        provider=provider,
        project_id=_parse_project_id(payload.get("projectId")),
        nonce=str(payload.get("random") or ""),
    )


def _parse_project_id(value) -> int:
    if isinstance(value, bool):
        raise MalformedState("Invalid projectId in state")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise MalformedState("Missing or invalid projectId in state")
