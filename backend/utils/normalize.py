"""
Response normalization for the rental REST backend.

The backend's serializer is inconsistent: the same list may arrive as a bare
array, as {"$values": [...]}, nested under "data", or under "items"; success
is sometimes signalled by {"isSuccess": false}; license status is emitted as
1, "1" or "Approved". Everything is flattened here, once, so services never
branch on response shape.
"""
from typing import Any, Iterable, Mapping, Optional

from domain.enums import LicenseStatus

_LICENSE_NAMES = {
    "pending": LicenseStatus.PENDING,
    "approved": LicenseStatus.APPROVED,
    "rejected": LicenseStatus.REJECTED,
}


def pick_first(params: Mapping[str, Any], keys: Iterable[str]) -> Optional[str]:
    """Return the first non-empty value among `keys`, stripped, or None."""
    for key in keys:
        value = params.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def get_field(record: Mapping[str, Any], name: str, default: Any = None) -> Any:
    """Read a camelCase field, falling back to its PascalCase spelling."""
    if name in record:
        return record[name]
    pascal = name[:1].upper() + name[1:]
    return record.get(pascal, default)


def unwrap_envelope(payload: Any) -> tuple[bool, Any, Optional[str]]:
    """
    Split a backend reply into (ok, data, message).

    Handles:
        {"isSuccess": false, "message": "..."}     → (False, data, message)
        {"isSuccess": true, "data": {...}}          → (True, {...}, message)
        {"message": "...", "data": {"$values": []}} → (True, {"$values": []}, message)
        [...] or any other bare value               → (True, value, None)
    """
    if not isinstance(payload, dict):
        return True, payload, None

    message = get_field(payload, "message")
    if get_field(payload, "isSuccess") is False:
        return False, get_field(payload, "data"), message or "Request failed"

    if "data" in payload:
        return True, payload["data"], message
    return True, payload, message


def normalize_collection(data: Any) -> list:
    """
    Flatten any of the backend's list encodings into a plain list.

    Raises:
        ValueError if the payload is not a recognizable collection
    """
    if data is None:
        return []
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        if isinstance(data.get("$values"), list):
            return data["$values"]
        if "data" in data:
            return normalize_collection(data["data"])
        if isinstance(data.get("items"), list):
            return data["items"]
    raise ValueError(f"Unrecognized collection payload: {type(data).__name__}")


def parse_license_status(value: Any) -> Optional[LicenseStatus]:
    """
    Parse a driver license status in any of its backend encodings.

    1, "1" and "Approved" (any case) all mean APPROVED; likewise for
    PENDING (0) and REJECTED (2). Unknown values return None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, LicenseStatus):
        return value
    if isinstance(value, int):
        try:
            return LicenseStatus(value)
        except ValueError:
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return parse_license_status(int(text))
        return _LICENSE_NAMES.get(text.lower())
    return None


def is_license_approved(value: Any) -> bool:
    return parse_license_status(value) == LicenseStatus.APPROVED
