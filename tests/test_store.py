from datetime import date, datetime

from tripledger.errors import NotFoundError, ValidationError
from tripledger.models import EventDraft
from tripledger.store import EventStore, group_by_date


def _draft(title: str = "Louvre", start: str = "2025-06-01T10:00", **kwargs) -> EventDraft:
    return EventDraft(title=title, start_time=start, **kwargs)


def test_create_normalizes_currency_and_assigns_id():
    store = EventStore()

    event = store.create(_draft(cost=17, currency="eur"))

    assert event.currency == "EUR"
    assert event.cost == 17.0
    assert event.id
    assert store.list_events() == [event]


def test_create_defaults_currency_and_coerces_bad_cost():
    store = EventStore(default_currency="EUR")

    event = store.create(_draft(cost="about twenty"))

    assert event.currency == "EUR"
    assert event.cost == 0.0
    assert event.type == "activity"


def test_create_registers_new_currency_at_one():
    store = EventStore(rates={"EUR": 8.5})

    store.create(_draft(currency="chf"))

    assert store.rates == {"EUR": 8.5, "CHF": 1.0}


def test_create_requires_title_and_start_time():
    store = EventStore()

    for draft in (EventDraft(start_time="2025-06-01T10:00"), EventDraft(title="  "), _draft(start="tomorrow")):
        try:
            store.create(draft)
        except ValidationError:
            pass
        else:
            raise AssertionError(f"Expected ValidationError for {draft}")

    assert store.list_events() == []


def test_create_rejects_negative_cost_and_unknown_type():
    store = EventStore()

    for draft in (_draft(cost=-5), _draft(type="party"), _draft(currency="EURO")):
        try:
            store.create(draft)
        except ValidationError:
            continue
        raise AssertionError(f"Expected ValidationError for {draft}")


def test_transport_mode_checked_only_on_transport_events():
    store = EventStore()

    kept = store.create(_draft(type="dining", transport_mode="boat"))
    assert kept.transport_mode == "boat"

    try:
        store.create(_draft(type="transport", transport_mode="boat"))
    except ValidationError as exc:
        assert "train" in str(exc)
    else:
        raise AssertionError("Expected ValidationError for unknown transport mode")


def test_ids_are_unique_across_creates_and_deletes():
    store = EventStore()
    ids = set()
    for i in range(20):
        event = store.create(_draft(title=f"Stop {i}"))
        ids.add(event.id)
        if i % 3 == 0:
            store.delete(event.id)

    assert len(ids) == 20


def test_update_preserves_id_and_reorders():
    store = EventStore()
    first = store.create(_draft(title="Museum", start="2025-06-01T10:00"))
    second = store.create(_draft(title="Lunch", start="2025-06-01T12:00"))

    updated = store.update(first.id, _draft(title="Museum (late)", start="2025-06-01T15:00", cost=12))

    assert updated.id == first.id
    assert updated.title == "Museum (late)"
    assert [e.id for e in store.list_events()] == [second.id, first.id]


def test_update_replaces_all_fields():
    store = EventStore()
    event = store.create(_draft(location="Paris", notes="bring ID", is_cash_only=True))

    updated = store.update(event.id, _draft(title="Louvre"))

    assert updated.location == ""
    assert updated.notes == ""
    assert updated.is_cash_only is False


def test_update_unknown_id_raises_not_found():
    store = EventStore()

    try:
        store.update("missing", _draft())
    except NotFoundError as exc:
        assert exc.event_id == "missing"
    else:
        raise AssertionError("Expected NotFoundError")


def test_update_validation_failure_leaves_event_untouched():
    store = EventStore()
    event = store.create(_draft())

    try:
        store.update(event.id, EventDraft(title="", start_time="2025-06-01T10:00"))
    except ValidationError:
        pass

    assert store.get(event.id) == event


def test_delete_is_idempotent():
    store = EventStore()
    keep = store.create(_draft(title="Keep"))
    gone = store.create(_draft(title="Gone"))

    store.delete(gone.id)
    once = store.list_events()
    store.delete(gone.id)
    store.delete("never-existed")

    assert store.list_events() == once == [keep]


def test_equal_start_times_keep_insertion_order():
    store = EventStore()
    a = store.create(_draft(title="A", start="2025-06-01T09:00"))
    b = store.create(_draft(title="B", start="2025-06-01T09:00"))
    early = store.create(_draft(title="Early", start="2025-06-01T07:00"))

    assert [e.id for e in store.list_events()] == [early.id, a.id, b.id]


def test_today_filter_strips_time_of_day():
    store = EventStore()
    morning = store.create(_draft(title="Breakfast", start="2025-06-02T07:30"))
    store.create(_draft(title="Yesterday", start="2025-06-01T23:59"))
    night = store.create(_draft(title="Night train", start="2025-06-02T23:10", type="transport"))

    today = store.list_events(today_only=True, today=date(2025, 6, 2))

    assert [e.id for e in today] == [morning.id, night.id]
    assert len(store.list_events()) == 3


def test_enrich_only_touches_enrichment_fields():
    store = EventStore()
    event = store.create(_draft(cost=17, currency="EUR", notes="tickets online"))

    enriched = store.enrich(event.id, image_url="https://img/louvre.jpg", must_dos=["Mona Lisa"], warnings=["Queues"])

    assert enriched.image_url == "https://img/louvre.jpg"
    assert enriched.must_dos == ["Mona Lisa"]
    assert enriched.warnings == ["Queues"]
    assert enriched.cost == 17
    assert enriched.notes == "tickets online"
    assert store.enrich("missing", image_url="x") is None


def test_group_by_date_breaks_runs_on_date_change():
    store = EventStore()
    for title, start in [
        ("Flight", "2025-06-01T08:00"),
        ("Hotel", "2025-06-01T15:00"),
        ("Louvre", "2025-06-02T10:00"),
        ("Dinner", "2025-06-03T19:00"),
        ("Bar", "2025-06-03T22:00"),
    ]:
        store.create(_draft(title=title, start=start))

    groups = group_by_date(store.list_events())

    assert [g.date for g in groups] == [date(2025, 6, 1), date(2025, 6, 2), date(2025, 6, 3)]
    assert [[e.title for e in g.events] for g in groups] == [["Flight", "Hotel"], ["Louvre"], ["Dinner", "Bar"]]


def test_set_rate_rejects_non_positive_values():
    store = EventStore()

    store.set_rate("eur", "8.4")
    assert store.rates["EUR"] == 8.4

    for bad in (0, -1, "abc"):
        try:
            store.set_rate("EUR", bad)
        except ValidationError:
            continue
        raise AssertionError(f"Expected ValidationError for rate {bad!r}")
    assert store.rates["EUR"] == 8.4


def test_accepts_datetime_objects_for_times():
    store = EventStore()

    event = store.create(EventDraft(title="Train", start_time=datetime(2025, 6, 1, 8, 15), end_time="2025-06-01T11:40"))

    assert event.start_time == datetime(2025, 6, 1, 8, 15)
    assert event.end_time == datetime(2025, 6, 1, 11, 40)
