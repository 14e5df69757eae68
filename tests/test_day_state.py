"""
Tests for the subscription-day state machine and the client status mapping.
"""

import pytest

from domain.day_state import TERMINAL_STATUSES, can_transition, client_status, is_terminal
from domain.enums import DayStatus


@pytest.mark.parametrize(
    "src,dst",
    [
        ("open", "locked"),
        ("open", "skipped"),
        ("locked", "in_preparation"),
        ("locked", "out_for_delivery"),
        ("locked", "ready_for_pickup"),
        ("in_preparation", "out_for_delivery"),
        ("in_preparation", "ready_for_pickup"),
        ("out_for_delivery", "fulfilled"),
        ("ready_for_pickup", "fulfilled"),
    ],
)
def test_allowed_edges(src, dst):
    assert can_transition(src, dst)
    assert can_transition(DayStatus(src), DayStatus(dst))


@pytest.mark.parametrize(
    "src,dst",
    [
        ("open", "fulfilled"),
        ("open", "in_preparation"),
        ("locked", "skipped"),
        ("locked", "open"),
        ("out_for_delivery", "ready_for_pickup"),
        ("fulfilled", "open"),
        ("skipped", "open"),
        ("open", "open"),
    ],
)
def test_denied_edges(src, dst):
    assert not can_transition(src, dst)


def test_unknown_states_are_denied():
    assert not can_transition("open", "delivered")
    assert not can_transition("archived", "locked")


def test_terminal_states():
    assert TERMINAL_STATUSES == {DayStatus.FULFILLED, DayStatus.SKIPPED}
    assert is_terminal("fulfilled")
    assert is_terminal(DayStatus.SKIPPED)
    assert not is_terminal("locked")
    assert not is_terminal("nonsense")


def test_client_status_vocabulary():
    assert client_status("locked") == "preparing"
    assert client_status("in_preparation") == "preparing"
    assert client_status("out_for_delivery") == "on_the_way"
    assert client_status("ready_for_pickup") == "ready_for_pickup"
    assert client_status("open") == "open"
    assert client_status("fulfilled") == "fulfilled"
    assert client_status("skipped") == "skipped"
    assert client_status("legacy_status") == "legacy_status"
