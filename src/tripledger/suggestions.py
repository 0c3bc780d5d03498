from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, List, Mapping, Optional

from .errors import FormatError, ValidationError
from .models import EventDraft, Suggestion
from .store import DEFAULT_CURRENCY

logger = logging.getLogger(__name__)

MAX_TRIP_DAYS = 14


def _parse_hhmm(s: str) -> time:
    try:
        return time.fromisoformat(s.strip())
    except (AttributeError, ValueError):
        raise ValidationError(f"Suggestion time {s!r} is not HH:MM") from None


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError(f"{value!r} is not a calendar date") from None


def trip_length_days(start: Any, end: Any) -> int:
    return abs((_as_date(end) - _as_date(start)).days) + 1


def check_trip_length(start: Any, end: Any, max_days: int = MAX_TRIP_DAYS) -> int:
    days = trip_length_days(start, end)
    if days > max_days:
        raise ValidationError(f"Please limit planning to {max_days} days or less.")
    return days


def suggestion_from_dict(data: Mapping[str, Any]) -> Suggestion:
    title = str(data.get("title") or "").strip()
    if not title:
        raise ValidationError("Suggestion has no title")
    try:
        day_offset = int(data.get("dayOffset") or 0)
    except (TypeError, ValueError):
        raise ValidationError(f"dayOffset {data.get('dayOffset')!r} is not a whole number") from None
    try:
        cost = float(data.get("cost") or 0)
    except (TypeError, ValueError):
        cost = 0.0
    currency = str(data.get("currency") or "").strip().upper() or None
    return Suggestion(
        title=title,
        start_time=str(data.get("startTime") or "09:00").strip(),
        day_offset=day_offset,
        location=str(data.get("location") or "").strip(),
        type=str(data.get("type") or "activity").strip().lower(),
        cost=cost,
        currency=currency,
        notes=str(data.get("notes") or "").strip(),
        reason=str(data.get("reason") or "").strip(),
    )


def parse_suggestions(value: Any) -> List[Suggestion]:
    """Turn an extracted day-plan payload into suggestions, skipping bad entries."""
    if isinstance(value, dict):
        value = value.get("suggestions", value.get("plan"))
    if not isinstance(value, list):
        raise FormatError("Expected a list of suggestions.")

    out: List[Suggestion] = []
    for i, item in enumerate(value):
        if not isinstance(item, dict):
            logger.warning("Skipping suggestion #%d: not an object", i)
            continue
        try:
            out.append(suggestion_from_dict(item))
        except ValidationError as exc:
            logger.warning("Skipping suggestion #%d: %s", i, exc)
    return out


def suggestion_to_draft(
    suggestion: Suggestion,
    trip_start: Any,
    default_currency: str = DEFAULT_CURRENCY,
) -> EventDraft:
    """Anchor a suggestion to the trip calendar.

    Start is ``trip_start + day_offset`` days at the suggestion's time of day;
    no end time is set. The store registers a new currency when the draft is
    committed, so this function has no side effects.
    """
    if suggestion.day_offset < 0:
        raise ValidationError("dayOffset cannot be negative")
    day = _as_date(trip_start) + timedelta(days=suggestion.day_offset)
    start = datetime.combine(day, _parse_hhmm(suggestion.start_time))
    return EventDraft(
        title=suggestion.title,
        location=suggestion.location,
        start_time=start,
        end_time=None,
        type=suggestion.type,
        cost=suggestion.cost,
        currency=(suggestion.currency or default_currency).upper(),
        notes=suggestion.notes,
        is_cash_only=False,
    )
