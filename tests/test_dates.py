from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from gestion_commandes.core.dates import local_now_input, to_absolute_iso, to_local_input

PARIS = ZoneInfo("Europe/Paris")


@pytest.mark.parametrize("value", [None, "", "   "])
def test_blank_values(value) -> None:
    assert to_absolute_iso(value, PARIS) is None
    assert to_local_input(value, PARIS) == ""


def test_local_input_is_sent_as_utc() -> None:
    assert to_absolute_iso("2024-07-01T14:30", PARIS) == "2024-07-01T12:30:00Z"
    assert to_absolute_iso("2024-01-15T09:00", PARIS) == "2024-01-15T08:00:00Z"


def test_absolute_values_are_only_normalised() -> None:
    assert to_absolute_iso("2024-07-01T12:30:00Z", PARIS) == "2024-07-01T12:30:00Z"
    assert to_absolute_iso(datetime(2024, 7, 1, 14, 30, tzinfo=PARIS)) == "2024-07-01T12:30:00Z"


def test_absolute_values_are_shown_in_local_time() -> None:
    assert to_local_input("2024-07-01T12:30:00Z", PARIS) == "2024-07-01T14:30"
    assert to_local_input(datetime(2024, 7, 1, 12, 30, tzinfo=timezone.utc), PARIS) == "2024-07-01T14:30"


def test_round_trip_keeps_the_local_value() -> None:
    assert to_local_input(to_absolute_iso("2024-03-31T03:15", PARIS), PARIS) == "2024-03-31T03:15"


def test_local_now_has_input_format() -> None:
    value = local_now_input(PARIS)

    assert datetime.strptime(value, "%Y-%m-%dT%H:%M")
