from __future__ import annotations

from datetime import datetime, timezone

import pytest

from gridscout.core.migrations import (
    EPOCH,
    decode_local_reports,
    decode_sightings,
    encode_sighting,
    parse_timestamp,
)

NOV_14 = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "value",
    [1700000000, 1700000000000, "1700000000000", "2023-11-14T22:13:20Z", "2023-11-14T22:13:20+00:00", NOV_14],
)
def test_parse_timestamp_formats(value) -> None:
    assert parse_timestamp(value) == NOV_14


@pytest.mark.parametrize("value", [None, "", "yesterday", True, {}])
def test_parse_timestamp_rejects_garbage(value) -> None:
    with pytest.raises(ValueError):
        parse_timestamp(value)


def test_current_rows_load_unchanged() -> None:
    [legacy] = decode_sightings(["Jane Doe/Gila"])
    row = encode_sighting(legacy)

    [decoded] = decode_sightings([row])
    assert decoded == legacy
    assert decoded.first_seen_at == EPOCH


def test_scan_line_string_is_parsed() -> None:
    [sighting] = decode_sightings(["Loki [TEST] [NULL] Jane Doe"])
    assert sighting.key == "Jane Doe/Loki"
    assert sighting.corp == "TEST"
    assert sighting.alliance == "NULL"


def test_camel_case_row_with_bad_timestamp_keeps_record() -> None:
    [sighting] = decode_sightings([{"name": "Jane", "ship": "Gila", "firstSeenOnGrid": "whenever", "system": None}])
    assert sighting.key == "Jane/Gila"
    assert sighting.first_seen_at == EPOCH
    assert sighting.last_seen_at == EPOCH
    assert sighting.system == ""


def test_malformed_rows_are_dropped() -> None:
    assert decode_sightings([42, {}, "", ["nested"], None]) == []
    assert decode_sightings({"not": "a list"}) == []
    assert decode_sightings(None) == []


def test_legacy_local_reports() -> None:
    reports = decode_local_reports(
        [
            {"system": "J1", "scout_name": "A", "status": "Docked", "time": 3, "locals": [], "on_grid": []},
            {"System": "J2", "ScoutName": "B", "Locals": [{"Name": "X"}]},
            "garbage",
        ]
    )
    assert [(r.system, r.scout_name) for r in reports] == [("J1", "A"), ("J2", "B")]
    assert reports[1].locals[0].name == "X"
