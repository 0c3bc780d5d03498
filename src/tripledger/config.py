from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import math
import yaml

from .errors import ValidationError
from .expenses import BASE_CURRENCY, DEFAULT_RATES
from .store import normalize_currency

@dataclass
class AssistantConfig:
    model: str
    api_base: str
    timeout_seconds: int

@dataclass
class ImageConfig:
    enabled: bool
    thumbnail_size: int
    timeout_seconds: int

@dataclass
class AppConfig:
    default_currency: str
    base_currency: str
    state_dir: str
    save_debounce_seconds: float
    max_trip_days: int
    assistant: AssistantConfig
    images: ImageConfig
    rates: Dict[str, float] = field(default_factory=dict)

def _rate(code: Any, value: Any) -> float:
    try:
        rate = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Config rate for {code} must be a number, got {value!r}") from None
    if not math.isfinite(rate) or rate <= 0:
        raise ValidationError(f"Config rate for {code} must be positive, got {value!r}")
    return rate

def load_config(path: Optional[str] = None) -> AppConfig:
    data: Dict[str, Any] = {}
    if path:
        p = Path(path).expanduser()
        if p.exists():
            data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}

    assistant = data.get("assistant", {})
    images = data.get("images", {})

    rates = dict(DEFAULT_RATES)
    for code, value in (data.get("rates") or {}).items():
        rates[normalize_currency(code)] = _rate(code, value)

    return AppConfig(
        default_currency=str(data.get("default_currency", "EUR")).upper(),
        base_currency=str(data.get("base_currency", BASE_CURRENCY)).upper(),
        state_dir=str(data.get("state_dir", "~/.local/share/tripledger")),
        save_debounce_seconds=float(data.get("save_debounce_seconds", 0.8)),
        max_trip_days=int(data.get("max_trip_days", 14)),
        assistant=AssistantConfig(
            model=str(assistant.get("model", "gemini-2.5-flash")),
            api_base=str(assistant.get("api_base", "https://generativelanguage.googleapis.com/v1beta")),
            timeout_seconds=int(assistant.get("timeout_seconds", 30)),
        ),
        images=ImageConfig(
            enabled=bool(images.get("enabled", True)),
            thumbnail_size=int(images.get("thumbnail_size", 600)),
            timeout_seconds=int(images.get("timeout_seconds", 8)),
        ),
        rates=rates,
    )
