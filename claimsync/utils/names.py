"""Name derivation for newly created profiles."""

from __future__ import annotations

from typing import Optional

__all__ = ["DEFAULT_FIRST_NAME", "DEFAULT_LAST_NAME", "derive_names"]

DEFAULT_FIRST_NAME: str = "New"
DEFAULT_LAST_NAME: str = "User"


def derive_names(display_name: Optional[str], email: Optional[str]) -> tuple[str, str]:
    """Split an identity's display name into ``(first_name, last_name)``.

    The display name is split on whitespace.  The first token becomes the
    first name; the rest, joined by single spaces, the last name.  Without
    any token the first name falls back to the email local-part, then to
    ``"New"``.  Fewer than two tokens leaves the last name as ``"User"``.

    >>> derive_names("Jane Q Doe", None)
    ('Jane', 'Q Doe')
    >>> derive_names("  ", "jane.doe@co.com")
    ('jane.doe', 'User')
    """
    tokens: list[str] = (display_name or "").split()

    if tokens:
        first_name = tokens[0]
    else:
        local_part = (email or "").split("@", 1)[0].strip()
        first_name = local_part or DEFAULT_FIRST_NAME

    last_name = " ".join(tokens[1:]) if len(tokens) > 1 else DEFAULT_LAST_NAME
    return first_name, last_name
