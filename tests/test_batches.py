"""Tests for batch id composition and per-supplier sequence allocation."""

from __future__ import annotations

from greenstock.services.batches import (
    allocate_batch_ids,
    compose_batch_id,
    max_sequence,
    next_sequence,
)


class TestSequence:
    def test_first_batch_of_a_supplier(self):
        assert next_sequence("001", []) == "001"

    def test_counts_only_the_suppliers_entries(self, make_entry):
        movements = [
            make_entry(batch_id="001/004/010", id="a"),
            make_entry(batch_id="002/009/010", supplier=("002", "Other"), id="b"),
        ]
        assert next_sequence("001", movements) == "005"
        assert next_sequence("002", movements) == "010"

    def test_exits_do_not_advance_the_sequence(self, make_entry, make_exit):
        movements = [
            make_entry(batch_id="001/002/010", id="a"),
            make_exit("001/002/010", 1.0, client=("001", "Same code"), id="b"),
        ]
        assert max_sequence("001", movements) == 2

    def test_malformed_batch_ids_are_ignored(self, make_entry):
        movements = [make_entry(batch_id="legacy", id="a"), make_entry(batch_id="001/xx/010", id="b")]
        assert next_sequence("001", movements) == "001"

    def test_grows_past_three_digits(self, make_entry):
        movements = [make_entry(batch_id="001/999/010", id="a")]
        assert next_sequence("001", movements) == "1000"


def test_compose_batch_id():
    assert compose_batch_id("001", "014", "002") == "001/014/002"


def test_allocate_consecutive_ids(make_entry):
    movements = [make_entry(batch_id="001/003/010", id="a")]
    assert allocate_batch_ids("001", ["011", "020"], movements) == ["001/004/011", "001/005/020"]
