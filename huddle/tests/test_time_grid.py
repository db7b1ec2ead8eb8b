import pytest

from huddle.services import time_grid
from huddle.services.errors import InvalidSlotError


def test_grid_has_145_slots_in_day_then_time_order():
    slots = list(time_grid.all_slots())

    assert len(slots) == time_grid.SLOT_COUNT == 145
    assert len(time_grid.all_slots()) == 145
    assert slots[0] == "0-9-0"
    assert slots[1] == "0-9-30"
    assert slots[28] == "0-23-0"
    assert slots[29] == "1-9-0"
    assert slots[-1] == "4-23-0"


def test_all_slots_is_restartable():
    sequence = time_grid.all_slots()

    assert list(sequence) == list(sequence)


@pytest.mark.parametrize("slot_id", ["0-9-0", "2-14-30", "4-23-0"])
def test_valid_slot_ids(slot_id):
    assert time_grid.is_valid_slot(slot_id)
    assert slot_id in time_grid.all_slots()


@pytest.mark.parametrize(
    "slot_id",
    [
        "5-9-0",  # Saturday
        "0-8-30",  # before the grid opens
        "0-23-30",  # after the last bucket
        "0-9-15",  # not a 30-minute bucket
        "0-09-0",  # non-canonical spelling
        "0-9",
        "a-b-c",
        "",
    ],
)
def test_invalid_slot_ids_are_rejected(slot_id):
    assert not time_grid.is_valid_slot(slot_id)
    with pytest.raises(InvalidSlotError):
        time_grid.require_slot(slot_id)


def test_slot_labels_and_index():
    slot = time_grid.require_slot("1-13-30")

    assert slot.label == "Tue 13:30"
    assert time_grid.slot_index("1-13-30") == list(time_grid.all_slots()).index("1-13-30")


def test_require_slots_rejects_the_whole_set_on_one_bad_id():
    assert time_grid.require_slots(["0-9-0", "0-9-0", "0-9-30"]) == frozenset(
        {"0-9-0", "0-9-30"}
    )
    with pytest.raises(InvalidSlotError):
        time_grid.require_slots(["0-9-0", "7-9-0"])
