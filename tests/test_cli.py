import json

import pytest

from tripledger.cli import main


@pytest.fixture
def cli(tmp_path, capsys):
    config = tmp_path / "config.yaml"
    config.write_text("rates:\n  EUR: 8.5\n", encoding="utf-8")
    state = tmp_path / "state"

    def invoke(*argv):
        main(["--config", str(config), "--state-dir", str(state), *argv])
        captured = capsys.readouterr()
        invoke.err = captured.err
        return json.loads(captured.out)

    return invoke


def test_add_list_and_expenses(cli):
    louvre = cli("add", "--title", "Louvre", "--start", "2025-06-01T10:00", "--cost", "17", "--currency", "eur")
    cli("add", "--title", "Flight", "--start", "2025-06-01T07:00", "--type", "transport")

    listing = cli("list")
    expenses = cli("expenses")

    assert louvre["currency"] == "EUR"
    assert listing[0]["date"] == "2025-06-01"
    assert [e["title"] for e in listing[0]["events"]] == ["Flight", "Louvre"]
    assert expenses["total"] == 144.5
    assert expenses["per_currency"] == {"EUR": 17.0}
    assert expenses["base_currency"] == "HKD"


def test_edit_keeps_untouched_fields(cli):
    event = cli("add", "--title", "Louvre", "--start", "2025-06-01T10:00", "--location", "Paris")

    edited = cli("edit", event["id"], "--start", "2025-06-01T15:00")

    assert edited["id"] == event["id"]
    assert edited["location"] == "Paris"
    assert edited["startTime"] == "2025-06-01T15:00"


def test_unknown_id_exits_with_message(cli, capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli("edit", "missing", "--title", "x")

    assert excinfo.value.code == 1
    assert "No event with id 'missing'" in capsys.readouterr().err


def test_backup_then_restore_round_trips(cli, tmp_path):
    cli("add", "--title", "Ramen", "--start", "2025-06-02T19:00", "--cost", "1200", "--currency", "JPY")
    backup_path = tmp_path / "backup.txt"

    written = cli("backup", "--output", str(backup_path))
    cli("delete", cli("list")[0]["events"][0]["id"])
    assert cli("list") == []

    restored = cli("restore", str(backup_path))

    assert written["events"] == 1
    assert restored == {"ok": True, "events": 1, "warnings": []}
    assert cli("list")[0]["events"][0]["title"] == "Ramen"


def test_set_rate_persists(cli):
    cli("set-rate", "jpy", "0.05")

    assert cli("set-rate", "usd", "7.8")["rates"]["JPY"] == 0.05


def test_ics_export_writes_file(cli, tmp_path):
    event = cli("add", "--title", "TGV to Lyon", "--start", "2025-06-02T08:07")
    out = tmp_path / "trip.ics"

    result = cli("ics", event["id"], "--output", str(out))

    assert result["path"] == str(out)
    assert b"SUMMARY:TGV to Lyon" in out.read_bytes()


def test_paste_uses_assistant_reply(cli, monkeypatch):
    reply = '{"title": "Dinner", "startTime": "2025-06-02T19:30", "type": "dining", "cost": 40, "currency": "EUR"}'
    monkeypatch.setattr("tripledger.cli.GeminiClient.generate", lambda self, prompt: reply)

    preview = cli("paste", "Dinner at Chez Nous 7:30pm, about 40 euros")
    saved = cli("paste", "same again", "--save")

    assert preview["title"] == "Dinner"
    assert cli("list")[0]["events"] == [saved]


def test_suggest_adds_selected_entries(cli, monkeypatch):
    reply = json.dumps(
        [
            {"title": "Senso-ji", "startTime": "09:00", "dayOffset": 0},
            {"title": "Ramen", "startTime": "19:00", "dayOffset": 1, "type": "dining", "cost": 1200, "currency": "JPY"},
        ]
    )
    monkeypatch.setattr("tripledger.cli.GeminiClient.generate", lambda self, prompt: reply)

    result = cli("suggest", "--location", "Tokyo", "--start", "2025-06-01", "--end", "2025-06-03", "--add", "1")

    assert [s["title"] for s in result["suggestions"]] == ["Senso-ji", "Ramen"]
    assert result["added"][0]["startTime"] == "2025-06-02T19:00"
    assert result["added"][0]["currency"] == "JPY"


def test_enrich_merges_place_guide(cli, monkeypatch):
    reply = '{"mustDo": ["Mona Lisa"], "warnings": ["Closed Tuesdays"], "wikiSearchTerm": "Louvre"}'
    monkeypatch.setattr("tripledger.cli.GeminiClient.generate", lambda self, prompt: reply)
    monkeypatch.setattr("tripledger.cli.WikiImageResolver.lookup", lambda self, term: f"https://img/{term}.jpg")
    event = cli("add", "--title", "Louvre", "--start", "2025-06-01T10:00", "--location", "Paris")

    enriched = cli("enrich", event["id"])

    assert enriched["mustDos"] == ["Mona Lisa"]
    assert enriched["warnings"] == ["Closed Tuesdays"]
    assert enriched["imageUrl"] == "https://img/Louvre.jpg"
    assert cli("list")[0]["events"][0]["imageUrl"] == "https://img/Louvre.jpg"


def test_add_with_estimate_fills_cost_and_currency(cli, monkeypatch):
    prompts = []

    def fake_generate(self, prompt):
        prompts.append(prompt)
        return '{"cost": 22, "currency": "eur"}'

    monkeypatch.setattr("tripledger.cli.GeminiClient.generate", fake_generate)

    event = cli("add", "--title", "Louvre", "--start", "2025-06-01T10:00", "--location", "Paris", "--estimate")
    explicit = cli("add", "--title", "Orsay", "--start", "2025-06-02T10:00", "--cost", "16", "--estimate")

    assert event["cost"] == 22.0
    assert event["currency"] == "EUR"
    assert explicit["cost"] == 16.0
    assert len(prompts) == 1
    assert '"Louvre" at "Paris"' in prompts[0]


def test_estimate_failure_keeps_event(cli, monkeypatch):
    monkeypatch.setattr("tripledger.cli.GeminiClient.generate", lambda self, prompt: "no idea")

    event = cli("add", "--title", "Picnic", "--start", "2025-06-03T12:00", "--estimate")

    assert event["cost"] == 0.0
    assert "Cost estimate unavailable" in cli.err


def test_bad_config_rate_exits_with_message(tmp_path, capsys):
    config = tmp_path / "config.yaml"
    config.write_text("rates:\n  EUR: lots\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(config), "--state-dir", str(tmp_path / "state"), "list"])

    assert excinfo.value.code == 1
    assert "Config rate for EUR" in capsys.readouterr().err
