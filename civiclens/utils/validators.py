import math
import uuid
from datetime import datetime, timezone
from typing import Optional

from civiclens.geo.point import BoundingBox, SpatialPoint
from civiclens.models.issue import PRIORITIES, STATUSES, VOTE_TYPES
from civiclens.utils.exceptions import InvalidCoordinate, InvalidParameter, ValidationError


def parse_float_param(value, fallback=None) -> Optional[float]:
    """Parse a float query parameter; blank or unparsable values give ``fallback``."""
    if value is None or value == '':
        return fallback
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if math.isnan(number):
        return fallback
    return number


def clamp_limit(value, bounds) -> int:
    """Clamp a limit into ``[min, max]``; garbage falls back to the default."""
    minimum, maximum, default = bounds
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return default
    return min(max(limit, minimum), maximum)


def validate_coordinates(latitude, longitude) -> SpatialPoint:
    """Validate GPS coordinates."""
    if latitude in (None, '') or longitude in (None, ''):
        raise InvalidCoordinate("Latitude and longitude are required")
    return SpatialPoint(longitude=longitude, latitude=latitude)


def validate_radius_km(radius, minimum, maximum) -> float:
    """Validate search radius in kilometres; out-of-range values are rejected."""
    try:
        radius = float(radius)
    except (ValueError, TypeError):
        raise InvalidParameter("Radius must be a valid number")

    if math.isnan(radius) or radius <= 0:
        raise InvalidParameter("Radius must be greater than zero")

    if radius < minimum:
        raise InvalidParameter(f"Radius must be at least {minimum} km")

    if radius > maximum:
        raise InvalidParameter(f"Radius must not exceed {maximum} km")

    return radius


def validate_bounds(sw_lat, sw_lng, ne_lat, ne_lng, required=True) -> Optional[BoundingBox]:
    """Validate a viewport given as southwest/northeast corners."""
    corners = [sw_lat, sw_lng, ne_lat, ne_lng]
    if all(value in (None, '') for value in corners) and not required:
        return None
    if any(value in (None, '') for value in corners):
        raise InvalidCoordinate("Bounding box coordinates are required")
    return BoundingBox.from_corners(sw_lat, sw_lng, ne_lat, ne_lng)


def validate_status(status) -> Optional[str]:
    if not status:
        return None
    if status not in STATUSES:
        raise InvalidParameter(f"Invalid status. Must be one of: {', '.join(STATUSES)}")
    return status


def validate_priority(priority) -> Optional[str]:
    if not priority:
        return None
    if priority not in PRIORITIES:
        raise InvalidParameter(f"Invalid priority. Must be one of: {', '.join(PRIORITIES)}")
    return priority


def validate_vote_type(vote_type) -> str:
    if vote_type not in VOTE_TYPES:
        raise InvalidParameter('Invalid vote type. Must be "upvote" or "downvote"')
    return vote_type


def validate_uuid(value, label='ID') -> uuid.UUID:
    """Validate UUID format."""
    if isinstance(value, uuid.UUID):
        return value
    if not value:
        raise InvalidParameter(f"{label} is required")
    try:
        return uuid.UUID(str(value))
    except (ValueError, AttributeError):
        raise InvalidParameter(f"Invalid {label} format")


def validate_optional_uuid(value, label='ID') -> Optional[uuid.UUID]:
    if value in (None, ''):
        return None
    return validate_uuid(value, label)


def parse_datetime(value, label) -> Optional[datetime]:
    """Parse an ISO-8601 date or datetime; blank means open-ended."""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise InvalidParameter(f"{label} must be an ISO-8601 date")
    # Stored timestamps are naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def validate_date_range(start, end):
    start = parse_datetime(start, 'Start date')
    end = parse_datetime(end, 'End date')
    if start and end and start > end:
        raise InvalidParameter("Start date must not be after end date")
    return start, end


def sanitize_input(text: str) -> str:
    """Sanitize user input by removing dangerous characters."""
    if not text:
        return ""

    # Remove null bytes and other control characters
    text = ''.join(char for char in text if ord(char) >= 32 or char in '\n\r\t')

    # Strip leading/trailing whitespace
    return text.strip()


def validate_comment_content(content):
    """Validate comment content."""
    if not content or not isinstance(content, str):
        raise ValidationError("Comment text is required")

    content = sanitize_input(content)

    if len(content) < 1:
        raise ValidationError("Comment cannot be empty")

    if len(content) > 1000:
        raise ValidationError("Comment must not exceed 1000 characters")

    return content
