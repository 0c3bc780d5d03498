import pytest

from tripledger.expenses import DEFAULT_RATES, convert, summarize
from tripledger.models import EventDraft
from tripledger.store import EventStore


def _store_with(*items):
    store = EventStore()
    for title, cost, currency in items:
        store.create(EventDraft(title=title, start_time="2025-06-01T10:00", cost=cost, currency=currency))
    return store


def test_louvre_scenario_converts_to_base_currency():
    store = _store_with(("Louvre", 17, "eur"))

    summary = summarize(store.list_events(), {"EUR": 8.5})

    assert summary.total_in_base == 144.5
    assert summary.per_currency == {"EUR": 17.0}
    assert summary.base_currency == "HKD"


def test_empty_event_list_totals_zero():
    summary = summarize([], DEFAULT_RATES)

    assert summary.total_in_base == 0
    assert summary.per_currency == {}


def test_free_events_are_skipped_and_order_follows_first_appearance():
    store = _store_with(("Walk", 0, "GBP"), ("Sushi", 4000, "JPY"), ("Taxi", 20, "EUR"), ("Ramen", 1200, "JPY"))

    summary = summarize(store.list_events(), DEFAULT_RATES)

    assert list(summary.per_currency) == ["JPY", "EUR"]
    assert summary.per_currency["JPY"] == 5200


def test_unknown_currency_counts_at_one():
    store = _store_with(("Fondue", 50, "CHF"))

    summary = summarize(store.list_events(), {"EUR": 8.5})

    assert summary.total_in_base == 50


def test_total_matches_per_currency_subtotals():
    store = _store_with(("A", 12.5, "EUR"), ("B", 3000, "JPY"), ("C", 9.99, "USD"), ("D", 7, "EUR"), ("E", 1, "XYZ"))
    rates = {"EUR": 8.5, "JPY": 0.052, "USD": 7.8}

    summary = summarize(store.list_events(), rates)

    expected = sum(total * rates.get(code, 1.0) for code, total in summary.per_currency.items())
    assert summary.total_in_base == pytest.approx(expected)


def test_summarize_is_pure_and_repeatable():
    store = _store_with(("A", 12.5, "EUR"), ("B", 3000, "JPY"))
    events = store.list_events()
    rates = {"EUR": 8.5}

    first = summarize(events, rates)
    second = summarize(events, rates)

    assert first == second
    assert rates == {"EUR": 8.5}
    assert events == store.list_events()


def test_convert_uses_fallback_for_zero_rate():
    assert convert(10, "EUR", {"EUR": 0}) == 10
    assert convert(10, "EUR", {"EUR": 8.5}) == 85
