from __future__ import annotations

from collections.abc import Mapping


# Fixed precedence, independent of which provider filled the profile.
DISPLAY_NAME_FIELDS = ("full_name", "name", "display_name")


def resolve_display_name(profile: Mapping[str, object] | None) -> str | None:
    if not profile:
        return None
    for key in DISPLAY_NAME_FIELDS:
        value = profile.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None
