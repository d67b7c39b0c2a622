"""OAuth ``state`` token codec.

The state token round-trips through the provider's consent screen and comes
back on the redirect callback as an untrusted query parameter. It binds the
identity key being authorized to an optional context reference::

    <identity key>            default application
    <identity key>|<ref>      non-default application stored in the ContextStore

Identity keys use ``#`` internally, so the state delimiter is ``|``.
"""

from dataclasses import dataclass
from typing import Optional

from gmail_connector.errors import InvalidState, MalformedIdentity

STATE_DELIMITER = "|"


@dataclass(frozen=True)
class AuthorizationState:
    """Decoded state token.

    Attributes:
        identity_key: Identity being authorized
        context_ref: ContextStore reference, or None for the default application
    """

    identity_key: str
    context_ref: Optional[str] = None


def encode_state(identity_key: str, context_ref: Optional[str] = None) -> str:
    """
    Encode an identity key and optional context reference into a state token.

    Args:
        identity_key: Identity being authorized
        context_ref: Optional ContextStore reference

    Returns:
        Opaque state token

    Raises:
        MalformedIdentity: If the identity key is blank, or either part
            contains the delimiter
    """
    if not identity_key or not identity_key.strip():
        raise MalformedIdentity("Identity key cannot be empty")

    if STATE_DELIMITER in identity_key:
        raise MalformedIdentity(
            f"Identity key cannot contain the state delimiter {STATE_DELIMITER!r}"
        )

    if context_ref is None:
        return identity_key

    if not context_ref.strip() or STATE_DELIMITER in context_ref:
        raise MalformedIdentity("Context reference is empty or contains the state delimiter")

    return f"{identity_key}{STATE_DELIMITER}{context_ref}"


def decode_state(state: Optional[str]) -> AuthorizationState:
    """
    Decode a state token returned on the redirect callback.

    Args:
        state: Raw ``state`` query parameter

    Returns:
        AuthorizationState

    Raises:
        InvalidState: If the identity segment is blank, a context segment is
            empty, or more than two segments are present
    """
    if state is None:
        raise InvalidState("Invalid state parameters!")

    parts = state.split(STATE_DELIMITER)

    if len(parts) > 2 or not parts[0].strip():
        raise InvalidState("Invalid state parameters!")

    if len(parts) == 1:
        return AuthorizationState(identity_key=parts[0])

    if not parts[1].strip():
        raise InvalidState("Invalid state parameters!")

    return AuthorizationState(identity_key=parts[0], context_ref=parts[1])
