"""
Input validation helpers shared by the services
"""

import colorsys
import re
from typing import Iterable, List, Optional, Union

from email_validator import EmailNotValidError, validate_email

from app.core.exceptions import ValidationError

EVENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9]{8}$")
HEX_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")
SHORT_HEX_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{3}$")
RGB_COLOR_PATTERN = re.compile(r"^rgb\s*\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*\)$", re.IGNORECASE)
HSL_COLOR_PATTERN = re.compile(r"^hsl\s*\(\s*(\d+)\s*,\s*(\d+)%\s*,\s*(\d+)%\s*\)$", re.IGNORECASE)


def normalize_email(email: Optional[str]) -> str:
    """Trim and lower-case; email identity is case-insensitive"""
    if not email or not isinstance(email, str):
        return ""
    return email.strip().lower()


def validate_email_address(email: Optional[str]) -> str:
    """Return the normalized email or raise ValidationError"""
    normalized = normalize_email(email)
    if not normalized:
        raise ValidationError("Email address is required")
    try:
        validate_email(normalized, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email address: {normalized}", details=str(e))
    return normalized


def validate_event_id(event_id: str) -> str:
    if not isinstance(event_id, str) or not EVENT_ID_PATTERN.match(event_id):
        raise ValidationError("Invalid event ID format. Event ID must be exactly 8 alphanumeric characters.")
    return event_id


def require_int(value, field_name: str) -> int:
    # bool is an int subclass; "true" is never a valid item id or rating
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field_name} must be an integer")
    return value


def validate_text(value: Optional[str], field_name: str, max_length: int, min_length: int = 0) -> str:
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    text = (value or "").strip()
    if len(text) < min_length:
        raise ValidationError(f"{field_name} is required")
    if len(text) > max_length:
        raise ValidationError(f"{field_name} must not exceed {max_length} characters")
    return text


def parse_item_ids(value: Union[str, Iterable, None]) -> List[int]:
    """Accept a list of ids or a comma-separated string ("1, 02,3")"""
    if value is None:
        return []
    parts = value.split(",") if isinstance(value, str) else list(value)
    ids: List[int] = []
    for part in parts:
        if isinstance(part, bool):
            raise ValidationError(f"Invalid item ID: {part}")
        if isinstance(part, int):
            ids.append(part)
            continue
        text = str(part).strip()
        if not text:
            continue
        if not text.isdigit():
            raise ValidationError(f"Invalid item ID: {text}")
        ids.append(int(text))
    return ids


def _hex(r: int, g: int, b: int) -> str:
    return f"#{r:02X}{g:02X}{b:02X}"


def normalize_color(value) -> str:
    """Convert #RRGGBB, #RGB, rgb(r,g,b) or hsl(h,s%,l%) to upper-case #RRGGBB"""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Color is required and must be a string")
    text = value.strip()

    if HEX_COLOR_PATTERN.match(text):
        return text.upper()

    if SHORT_HEX_COLOR_PATTERN.match(text):
        return "#" + "".join(c * 2 for c in text[1:]).upper()

    match = RGB_COLOR_PATTERN.match(text)
    if match:
        r, g, b = (int(v) for v in match.groups())
        if max(r, g, b) > 255:
            raise ValidationError("RGB values must be between 0 and 255")
        return _hex(r, g, b)

    match = HSL_COLOR_PATTERN.match(text)
    if match:
        h, s, light = (int(v) for v in match.groups())
        if h > 360 or s > 100 or light > 100:
            raise ValidationError(f"Invalid HSL color: {text}")
        r, g, b = colorsys.hls_to_rgb((h % 360) / 360, light / 100, s / 100)
        return _hex(*(int(c * 255 + 0.5) for c in (r, g, b)))

    raise ValidationError(f"Invalid color format: {text}. Supported formats: #RRGGBB, #RGB, rgb(r,g,b), hsl(h,s%,l%)")
