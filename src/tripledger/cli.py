from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .assistant import GeminiClient, TripAssistant
from .backup import backup_filename, deserialize, serialize
from .calendar_export import ics_filename, to_ics
from .config import AppConfig, load_config
from .enrich import EnrichmentCoordinator
from .errors import ExtractionError, NotFoundError, TripLedgerError
from .expenses import convert, summarize
from .images import WikiImageResolver
from .models import EventDraft
from .persistence import JsonFileRepository
from .store import EventStore
from .suggestions import suggestion_to_draft

CONFIG_PATH_DEFAULT = "~/.config/tripledger/config.yaml"


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Cannot serialize {type(value).__name__}")


def _print(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=_json_default))


def _open_store(cfg: AppConfig, state_dir: Optional[str]) -> EventStore:
    repo = JsonFileRepository(state_dir or cfg.state_dir, default_currency=cfg.default_currency)
    store = EventStore(
        repository=repo,
        default_currency=cfg.default_currency,
        rates=cfg.rates,
        save_delay_seconds=cfg.save_debounce_seconds,
    )
    store.load()
    return store


def _assistant(cfg: AppConfig) -> TripAssistant:
    client = GeminiClient(
        model=cfg.assistant.model,
        api_base=cfg.assistant.api_base,
        timeout=cfg.assistant.timeout_seconds,
    )
    return TripAssistant(client, max_trip_days=cfg.max_trip_days)


def _draft_from_args(args: argparse.Namespace, base: Optional[EventDraft] = None) -> EventDraft:
    draft = base or EventDraft()
    for attr in ("title", "location", "type", "cost", "currency", "notes"):
        value = getattr(args, attr, None)
        if value is not None:
            setattr(draft, attr, value)
    if args.start is not None:
        draft.start_time = args.start
    if args.end is not None:
        draft.end_time = args.end
    if args.cash_only:
        draft.is_cash_only = True
    return draft


def _apply_estimate(cfg: AppConfig, args: argparse.Namespace, draft: EventDraft) -> None:
    if not args.estimate or args.cost is not None:
        return
    try:
        estimate = _assistant(cfg).estimate_cost(str(draft.title or ""), str(draft.location or ""))
    except ExtractionError as exc:
        print(f"Cost estimate unavailable: {exc}", file=sys.stderr)
        return
    if estimate is None:
        print("Cost estimate unavailable; keeping the entered cost.", file=sys.stderr)
        return
    draft.cost = estimate.cost
    if estimate.currency and args.currency is None:
        draft.currency = estimate.currency


def _add_event_arguments(p: argparse.ArgumentParser, title_required: bool) -> None:
    p.add_argument("--title", required=title_required)
    p.add_argument("--start", required=title_required, help="ISO timestamp, e.g. 2025-06-01T10:00")
    p.add_argument("--end")
    p.add_argument("--location")
    p.add_argument("--type", choices=["activity", "transport", "dining", "lodging"])
    p.add_argument("--cost", type=float)
    p.add_argument("--currency")
    p.add_argument("--notes")
    p.add_argument("--cash-only", action="store_true")
    p.add_argument("--estimate", action="store_true", help="ask the assistant for cost and currency when --cost is not given")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="tripledger", description="Trip itinerary and expense ledger")
    ap.add_argument("--config", default=CONFIG_PATH_DEFAULT)
    ap.add_argument("--state-dir")
    sub = ap.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list")
    list_cmd.add_argument("--today", action="store_true")

    _add_event_arguments(sub.add_parser("add"), title_required=True)

    edit = sub.add_parser("edit")
    edit.add_argument("id")
    _add_event_arguments(edit, title_required=False)

    delete = sub.add_parser("delete")
    delete.add_argument("id")

    sub.add_parser("expenses")

    rate = sub.add_parser("set-rate")
    rate.add_argument("code")
    rate.add_argument("value", type=float)

    backup = sub.add_parser("backup")
    backup.add_argument("--output")

    restore = sub.add_parser("restore")
    restore.add_argument("file")

    ics = sub.add_parser("ics")
    ics.add_argument("id")
    ics.add_argument("--output")

    enrich = sub.add_parser("enrich")
    enrich.add_argument("id")

    suggest = sub.add_parser("suggest")
    suggest.add_argument("--location", required=True)
    suggest.add_argument("--start", required=True, type=date.fromisoformat)
    suggest.add_argument("--end", required=True, type=date.fromisoformat)
    suggest.add_argument("--preferences", default="")
    suggest.add_argument("--add", type=int, action="append", default=[], help="index of a suggestion to add")

    paste = sub.add_parser("paste")
    paste.add_argument("text")
    paste.add_argument("--save", action="store_true")

    return ap


def run(args: argparse.Namespace) -> None:
    cfg = load_config(args.config)
    store = _open_store(cfg, args.state_dir)

    if args.command == "list":
        groups = store.grouped(today_only=args.today)
        _print([{"date": g.date, "events": [e.to_dict() for e in g.events]} for g in groups])
        return

    if args.command == "add":
        draft = _draft_from_args(args)
        _apply_estimate(cfg, args, draft)
        event = store.create(draft)
        store.flush()
        _print(event.to_dict())
        return

    if args.command == "edit":
        current = store.get(args.id)
        if current is None:
            raise NotFoundError(args.id)
        draft = _draft_from_args(args, EventDraft.from_event(current))
        _apply_estimate(cfg, args, draft)
        event = store.update(args.id, draft)
        store.flush()
        _print(event.to_dict())
        return

    if args.command == "delete":
        store.delete(args.id)
        store.flush()
        _print({"ok": True})
        return

    if args.command == "expenses":
        events = store.list_events()
        rates = store.rates
        summary = summarize(events, rates, cfg.base_currency)
        _print(
            {
                "base_currency": summary.base_currency,
                "total": round(summary.total_in_base, 2),
                "per_currency": summary.per_currency,
                "rates": {code: rates.get(code) for code in summary.per_currency},
                "items": [
                    {
                        "title": e.title,
                        "cost": e.cost,
                        "currency": e.currency,
                        "converted": round(convert(e.cost, e.currency, rates), 2),
                    }
                    for e in events
                    if e.cost > 0
                ],
            }
        )
        return

    if args.command == "set-rate":
        store.set_rate(args.code, args.value)
        store.flush()
        _print({"ok": True, "rates": store.rates})
        return

    if args.command == "backup":
        path = Path(args.output or backup_filename())
        path.write_text(serialize(store.snapshot()), encoding="utf-8")
        _print({"path": str(path), "events": len(store.list_events())})
        return

    if args.command == "restore":
        text = Path(args.file).read_text(encoding="utf-8")
        result = deserialize(text, default_currency=cfg.default_currency)
        store.restore(result.snapshot)
        store.flush()
        _print({"ok": True, "events": len(result.snapshot.events), "warnings": result.warnings})
        return

    if args.command == "ics":
        event = store.get(args.id)
        if event is None:
            raise NotFoundError(args.id)
        path = Path(args.output or ics_filename(event))
        path.write_bytes(to_ics(event))
        _print({"path": str(path)})
        return

    if args.command == "enrich":
        images = None
        if cfg.images.enabled:
            images = WikiImageResolver(cfg.images.thumbnail_size, cfg.images.timeout_seconds)
        coordinator = EnrichmentCoordinator(store, _assistant(cfg), images)
        if store.get(args.id) is None:
            raise NotFoundError(args.id)
        event = coordinator.enrich(args.id)
        store.flush()
        _print(event.to_dict() if event else {"ok": False})
        return

    if args.command == "suggest":
        suggestions = _assistant(cfg).suggest_day_plan(
            args.location, args.start, args.end, args.preferences, store.list_events()
        )
        added: List[Dict[str, Any]] = []
        for index in args.add:
            if not 0 <= index < len(suggestions):
                print(f"No suggestion #{index}; skipping.", file=sys.stderr)
                continue
            draft = suggestion_to_draft(suggestions[index], args.start, cfg.default_currency)
            added.append(store.create(draft).to_dict())
        store.flush()
        _print(
            {
                "suggestions": [dict(asdict(s), index=i) for i, s in enumerate(suggestions)],
                "added": added,
            }
        )
        return

    if args.command == "paste":
        draft = _assistant(cfg).smart_paste(args.text)
        if args.save:
            event = store.create(draft)
            store.flush()
            _print(event.to_dict())
        else:
            _print({k: v for k, v in asdict(draft).items() if v is not None})
        return


def main(argv: Optional[List[str]] = None) -> None:
    load_dotenv()
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    args = build_parser().parse_args(argv)
    try:
        run(args)
    except TripLedgerError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1)
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
