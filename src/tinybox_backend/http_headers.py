from __future__ import annotations

from urllib.parse import quote


def sanitize_filename(filename: str | None, *, fallback: str = "download") -> str:
    v = (filename or "").strip()
    # Defend against client-supplied paths.
    v = v.split("/")[-1].split("\\")[-1]
    # Defend against header injection.
    v = v.replace("\r", "").replace("\n", "").replace("\x00", "")
    if not v:
        v = fallback
    if len(v) > 150:
        v = v[:150]
    return v


def build_content_disposition_attachment(filename: str) -> str:
    """Content-Disposition with an ASCII `filename=` and an RFC 5987 `filename*=`."""

    name = sanitize_filename(filename)
    ascii_name = name.encode("ascii", errors="ignore").decode("ascii") or "download"
    ascii_name = ascii_name.replace('"', "'")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(name, safe='')}"


def format_bytes(size: object) -> str:
    try:
        value = float(size)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return "Unknown size"
    if value < 0 or value != value:
        return "Unknown size"
    units = ["B", "KB", "MB", "GB", "TB"]
    idx = 0
    while value >= 1024 and idx < len(units) - 1:
        value /= 1024
        idx += 1
    if idx == 0:
        return f"{int(value)} {units[idx]}"
    return f"{value:.1f} {units[idx]}"
