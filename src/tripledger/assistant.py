from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

import requests

from .errors import ExtractionError
from .extract import extract
from .models import EventDraft, Suggestion, TravelEvent, parse_timestamp
from .suggestions import check_trip_length, parse_suggestions

logger = logging.getLogger(__name__)


class GeminiClient:
    """Thin wrapper around the Generative Language ``generateContent`` endpoint.

    Returns the first candidate's text, or "" on any failure (the failure is
    logged). Callers run the text through ``extract``, which turns "" into an
    ExtractionError.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-2.5-flash",
        api_base: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: int = 30,
    ) -> None:
        self.api_key = api_key if api_key is not None else os.environ.get("GEMINI_API_KEY", "")
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._session = requests.Session()

    def generate(self, prompt: str) -> str:
        if not self.api_key:
            logger.warning("GEMINI_API_KEY is not set; skipping generation")
            return ""
        try:
            resp = self._session.post(
                f"{self.api_base}/models/{self.model}:generateContent",
                params={"key": self.api_key},
                json={"contents": [{"parts": [{"text": prompt}]}]},
                timeout=self.timeout,
            )
            payload = resp.json()
            if not resp.ok:
                message = (payload.get("error") or {}).get("message") or f"HTTP {resp.status_code}"
                logger.warning("Generation failed: %s", message)
                return ""
            candidates = payload.get("candidates") or []
            parts = ((candidates[0].get("content") or {}).get("parts") or []) if candidates else []
            return str(parts[0].get("text") or "") if parts else ""
        except Exception as exc:  # noqa: BLE001
            logger.warning("Generation request failed: %s", exc)
            return ""


@dataclass(frozen=True)
class CostEstimate:
    cost: float
    currency: Optional[str]


@dataclass(frozen=True)
class PlaceGuide:
    must_dos: List[str]
    warnings: List[str]
    image_search_term: Optional[str]


def _mapping(value: Any, text: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ExtractionError("Expected a JSON object in the response.", text=text)
    return value


def _strings(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


class TripAssistant:
    """Prompt-level operations over a text generator.

    Service output is parsed with the strict extractor only.
    """

    def __init__(self, client: GeminiClient, max_trip_days: int = 14) -> None:
        self.client = client
        self.max_trip_days = max_trip_days

    def _ask(self, prompt: str) -> tuple[Any, str]:
        text = self.client.generate(prompt)
        return extract(text), text

    def smart_paste(self, text: str, year: Optional[int] = None) -> EventDraft:
        """Read a ticket email or free-form note into an event draft."""
        year = year or date.today().year
        prompt = (
            "Extract travel event details from text into JSON.\n"
            f'Text: "{text}"\n\n'
            "Required JSON format:\n"
            "{\n"
            '  "title": "string",\n'
            '  "location": "string",\n'
            f'  "startTime": "ISO datetime yyyy-MM-ddThh:mm (guess year {year})",\n'
            '  "endTime": "ISO datetime (optional)",\n'
            '  "type": "activity|transport|dining|lodging",\n'
            '  "cost": number (value only),\n'
            '  "currency": "ISO currency code (e.g. EUR, USD, JPY) based on location/symbol",\n'
            '  "seatInfo": "string (optional)",\n'
            '  "platform": "string (optional)",\n'
            '  "transportMode": "train|bus|flight (optional)"\n'
            "}\n"
            "Return ONLY raw JSON."
        )
        value, raw = self._ask(prompt)
        draft = EventDraft.from_dict(_mapping(value, raw))
        if parse_timestamp(draft.start_time) is None:
            draft.start_time = None
        if parse_timestamp(draft.end_time) is None:
            draft.end_time = None
        draft.is_cash_only = False
        return draft

    def estimate_cost(self, title: str, location: str) -> Optional[CostEstimate]:
        prompt = (
            f'Estimate cost for 1 person: "{title}" at "{location}".\n'
            'Return JSON: { "cost": number, "currency": "ISO code (e.g. EUR, GBP, JPY)" }.\n'
            "If free return 0 cost. Guess the local currency based on location."
        )
        value, raw = self._ask(prompt)
        data = _mapping(value, raw)
        cost = data.get("cost")
        if isinstance(cost, bool) or not isinstance(cost, (int, float)):
            return None
        currency = str(data.get("currency") or "").strip().upper() or None
        return CostEstimate(cost=float(cost), currency=currency)

    def describe_place(self, event: TravelEvent) -> PlaceGuide:
        prompt = (
            f'Analyze location: "{event.location}" and title: "{event.title}".\n'
            "Return JSON:\n"
            "{\n"
            '  "mustDo": ["short phrase 1", "short phrase 2"],\n'
            '  "warnings": ["short warning 1"],\n'
            '  "wikiSearchTerm": "Wikipedia exact title for image search"\n'
            "}"
        )
        value, raw = self._ask(prompt)
        data = _mapping(value, raw)
        term = str(data.get("wikiSearchTerm") or "").strip() or None
        return PlaceGuide(
            must_dos=_strings(data.get("mustDo", data.get("mustDos"))),
            warnings=_strings(data.get("warnings")),
            image_search_term=term,
        )

    def suggest_day_plan(
        self,
        location: str,
        start_date: date,
        end_date: date,
        preferences: str = "",
        existing: Iterable[TravelEvent] = (),
    ) -> List[Suggestion]:
        days = check_trip_length(start_date, end_date, self.max_trip_days)
        exclude = ", ".join(f"{e.title} ({e.location})" for e in existing)
        prompt = (
            f"Plan {days}-day trip to {location}.\n"
            f"Start: {start_date.isoformat()}. End: {end_date.isoformat()}.\n"
            f"Prefs: {json.dumps(preferences, ensure_ascii=False)}.\n"
            f"Exclude: [{exclude}].\n\n"
            "Return JSON array of objects:\n"
            "{\n"
            '  "title": "string",\n'
            '  "location": "string",\n'
            '  "startTime": "HH:mm",\n'
            '  "dayOffset": int (0 based),\n'
            '  "type": "activity|dining",\n'
            '  "cost": number,\n'
            '  "currency": "ISO code",\n'
            '  "notes": "string",\n'
            '  "reason": "string"\n'
            "}"
        )
        value, _raw = self._ask(prompt)
        return parse_suggestions(value)
