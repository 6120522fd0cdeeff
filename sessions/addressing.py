"""
Identifier and address helpers.

- Session ids double as credential directory names, so they are restricted.
- Destinations are reduced to digits and suffixed with the user domain.
"""

import re

USER_DOMAIN = "s.whatsapp.net"

_SESSION_ID_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]{0,127}")
_NON_DIGITS = re.compile(r"[^0-9]")


def is_valid_session_id(session_id: str) -> bool:
    """True if the id is safe to use as a directory name."""
    return bool(session_id) and bool(_SESSION_ID_PATTERN.fullmatch(session_id))


def to_user_jid(destination: str) -> str:
    """
    Normalize a phone number to the protocol's user address.

    "+1 (555) 123-4567" -> "15551234567@s.whatsapp.net"

    Raises:
        ValueError: destination contains no digits
    """
    digits = _NON_DIGITS.sub("", destination or "")
    if not digits:
        raise ValueError(f"Destination {destination!r} contains no digits")
    return f"{digits}@{USER_DOMAIN}"
