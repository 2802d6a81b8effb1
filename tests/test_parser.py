from __future__ import annotations

import json

import pytest

from gridscout.core.errors import ReportRejected
from gridscout.core.models import PilotEntry
from gridscout.core.parser import (
    ReportParser,
    is_valid_platform_id,
    parse_free_text,
    parse_pilot_line,
    resolve_tenant,
)

REPORTER_ID = "123456789012345678"


def _parse(payload, tenant_id: str = "guild-1", reporter: str = REPORTER_ID):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    return ReportParser().parse(body, tenant_id, reporter)


def test_wormhole_line_sets_class() -> None:
    wormhole_class, entries = parse_free_text("Wormhole C3\nNothing Found")
    assert wormhole_class == "C3"
    assert entries == []


def test_pilot_line_with_corp_and_alliance() -> None:
    entry = parse_pilot_line("Loki [TEST] [NULL] Jane Q Doe")
    assert entry == PilotEntry(name="Jane Q Doe", ship_type="Loki", corporation="TEST", alliance="NULL")


def test_pilot_line_multi_word_ship_without_alliance() -> None:
    entry = parse_pilot_line("Capsule Pod [CORP] Some Pilot")
    assert entry.ship_type == "Capsule Pod"
    assert entry.corporation == "CORP"
    assert entry.alliance == ""
    assert entry.name == "Some Pilot"


def test_pilot_line_without_brackets_is_ship_type() -> None:
    entry = parse_pilot_line("Sisters Core Scanner Probe")
    assert entry == PilotEntry(ship_type="Sisters Core Scanner Probe")


def test_free_text_skips_header_and_short_lines() -> None:
    message = "\n".join(
        [
            "Wormhole C5",
            "Type Corporation Alliance Name",
            "Gila Pilot",
            "",
            "Nothing Found",
            "Gila [TEST] [NULL] Jane Doe",
        ]
    )
    wormhole_class, entries = parse_free_text(message)
    assert wormhole_class == "C5"
    assert entries == [PilotEntry(name="Jane Doe", ship_type="Gila", corporation="TEST", alliance="NULL")]


def test_row_with_two_header_words_is_still_a_pilot() -> None:
    _, entries = parse_free_text("Name Type [ABC] Someone")
    assert len(entries) == 1
    assert entries[0].ship_type == "Name Type"


def test_structured_report_uses_message_text() -> None:
    report = _parse(
        {
            "Scout": "Scoutie",
            "System": "J100001",
            "Message": "Wormhole C5\r\nGila [TEST] [NULL] Jane Doe\r\nNothing Found",
            "Version": "1.4.0",
        }
    )
    assert report.reporter_name == "Scoutie"
    assert report.system == "J100001"
    assert report.wormhole_class == "C5"
    assert report.wormhole_label == "C5"
    assert report.version == "1.4.0"
    assert report.entries == (PilotEntry(name="Jane Doe", ship_type="Gila", corporation="TEST", alliance="NULL"),)


def test_structured_entries_skip_free_text_and_supply_wormhole() -> None:
    report = _parse(
        {
            "Scout": "Scoutie",
            "Wormhole": "Hoth",
            "Message": "Drake [IGNORED] Nobody",
            "Entries": [
                {"Type": "Wormhole C2"},
                {"Name": "Jane Doe", "Type": "Gila", "Corporation": "TEST", "Alliance": None},
                "not an entry",
            ],
        }
    )
    assert report.wormhole_class == "C2"
    assert report.wormhole_label == "Hoth"
    assert report.entries == (PilotEntry(name="Jane Doe", ship_type="Gila", corporation="TEST"),)


def test_activation_bypasses_pilot_parsing() -> None:
    report = _parse({"Scout": "Watcher", "System": "J123456", "Message": "Possible activation detected!"})
    assert report.is_activation_event
    assert report.entries == ()
    assert report.system == "J123456"


def test_disconnect_flag() -> None:
    report = _parse({"Scout": "Watcher", "Wormhole": "C3", "Disconnected": True})
    assert report.is_disconnect_event
    assert report.wormhole_label == "C3"


@pytest.mark.parametrize(
    "flag, disconnected",
    [(True, True), ("true", True), (" TRUE ", True), ("1", True), (False, False), ("false", False),
     ("0", False), ("yes", False), (1, False), (None, False)],
)
def test_disconnect_flag_requires_explicit_true(flag, disconnected: bool) -> None:
    report = _parse({"Scout": "Watcher", "Wormhole": "C3", "Disconnected": flag})
    assert report.is_disconnect_event is disconnected


def test_non_json_body_falls_back_to_free_text() -> None:
    report = _parse(b"Wormhole C4\nTengu [AAA] [BBB] Pilot One")
    assert report.reporter_name == ""
    assert report.system == ""
    assert report.wormhole_class == "C4"
    assert report.entries[0].name == "Pilot One"


def test_json_array_is_treated_as_text() -> None:
    report = _parse(b"[1, 2]")
    assert report.reporter_name == ""
    assert report.entries == ()
    assert report.raw_message == "[1, 2]"


def test_undecodable_bytes_do_not_raise() -> None:
    report = _parse(b"\xff\xfe garbage \x00")
    assert report.reporter_name == ""
    assert report.raw_message.endswith("garbage \x00")


def test_deeply_nested_json_falls_back_to_free_text() -> None:
    report = _parse(b"[" * 5000)
    assert report.reporter_name == ""
    assert report.entries == ()


@pytest.mark.parametrize(
    "reporter",
    ["", "   ", "12345", "abcdefghijklmnopqr", "1" * 21, "\u0661" * 18],
)
def test_invalid_reporter_identity_is_rejected(reporter: str) -> None:
    with pytest.raises(ReportRejected):
        _parse({"Scout": "S", "Message": "Wormhole C1"}, reporter=reporter)


@pytest.mark.parametrize("value", [REPORTER_ID + "\n", " " + REPORTER_ID, "\u0661" * 18, "\uff11" * 18])
def test_platform_id_must_be_ascii_digits_only(value: str) -> None:
    assert not is_valid_platform_id(value)
    assert is_valid_platform_id(REPORTER_ID)


def test_resolve_tenant() -> None:
    assert resolve_tenant(["guild-1", "guild-1"]) == "guild-1"
    with pytest.raises(ReportRejected) as missing:
        resolve_tenant([])
    assert missing.value.reason == "missing tenant"
    with pytest.raises(ReportRejected) as ambiguous:
        resolve_tenant(["guild-1", "guild-2"])
    assert ambiguous.value.reason == "ambiguous tenant membership"
