"""Tests for movement validation, batch numbering and labour returns through the ledger."""

from __future__ import annotations

import json

import pytest

from greenstock.errors import ConfirmationRequired, InsufficientQuantityError, ValidationError
from greenstock.models import BatchKind, Movement, RegistryEntity

CLIENT = ("101", "Agro Beta")
OTHER_CLIENT = ("102", "Fazenda Gama")
SULPHATE = ("011", "Sulfato de Zinco")
GRINDING = ("900", "Moagem")


# =============================================================================
# Entries
# =============================================================================


class TestEntries:
    def test_batch_ids_follow_supplier_sequence(self, seeded_ledger, make_entry):
        first = seeded_ledger.add_movement(make_entry(100.0))
        second = seeded_ledger.add_movement(make_entry(50.0, product=SULPHATE))
        assert first.batch_id == "001/001/010"
        assert second.batch_id == "001/002/011"
        assert first.id and second.id and first.id != second.id

    def test_entry_is_persisted(self, seeded_ledger, store, make_entry):
        m = seeded_ledger.add_movement(make_entry(100.0))
        stored = json.loads(store.values["movements"])
        assert [r["id"] for r in stored] == [m.id]
        assert stored[0]["kind"] == "physical"

    def test_second_entry_on_same_batch_is_rejected(self, seeded_ledger, make_entry):
        seeded_ledger.add_movement(make_entry(100.0, batch_id="001/007/010"))
        with pytest.raises(ValidationError) as exc:
            seeded_ledger.add_movement(make_entry(5.0, batch_id="001/007/010"))
        assert exc.value.field == "batch_id"

    @pytest.mark.parametrize(
        "changes, field",
        [
            ({"quantity": 0.0}, "quantity"),
            ({"quantity": -3.0}, "quantity"),
            ({"unit_cost": -1.0}, "unit_cost"),
            ({"supplier": ""}, "supplier"),
            ({"product_code": ""}, "product_code"),
            ({"supplier_code": "01"}, "supplier_code"),
            ({"product_code": "1234"}, "product_code"),
            ({"exit_date": "2024-01-06"}, "date"),
        ],
    )
    def test_invalid_entries(self, seeded_ledger, make_entry, changes, field):
        m = make_entry(10.0)
        for k, v in changes.items():
            setattr(m, k, v)
        with pytest.raises(ValidationError) as exc:
            seeded_ledger.add_movement(m)
        assert exc.value.field == field
        assert seeded_ledger.movements == []


# =============================================================================
# Exits
# =============================================================================


class TestExits:
    def test_exit_draws_down_batch(self, seeded_ledger, make_entry, make_exit):
        e = seeded_ledger.add_movement(make_entry(100.0))
        seeded_ledger.add_movement(make_exit(e.batch_id, 30.0))
        (b,) = seeded_ledger.stock()
        assert b.remaining_quantity == pytest.approx(70.0)

    def test_exit_without_cost_inherits_batch_cost(self, seeded_ledger, make_entry, make_exit):
        e = seeded_ledger.add_movement(make_entry(100.0, unit_cost=7.5))
        x = seeded_ledger.add_movement(make_exit(e.batch_id, 10.0))
        assert x.unit_cost == 7.5

    def test_exit_keeps_explicit_cost(self, seeded_ledger, make_entry, make_exit):
        e = seeded_ledger.add_movement(make_entry(100.0, unit_cost=7.5))
        x = seeded_ledger.add_movement(make_exit(e.batch_id, 10.0, unit_cost=9.0))
        assert x.unit_cost == 9.0

    def test_full_exit_empties_the_batch(self, seeded_ledger, make_entry, make_exit):
        e = seeded_ledger.add_movement(make_entry(100.0))
        seeded_ledger.add_movement(make_exit(e.batch_id, 100.0))
        assert seeded_ledger.stock() == []

    def test_over_withdrawal_is_rejected_and_nothing_changes(self, seeded_ledger, store, make_entry, make_exit):
        e = seeded_ledger.add_movement(make_entry(100.0))
        before = store.values["movements"]
        with pytest.raises(InsufficientQuantityError) as exc:
            seeded_ledger.add_movement(make_exit(e.batch_id, 100.5))
        assert exc.value.available == pytest.approx(100.0)
        assert exc.value.requested == pytest.approx(100.5)
        assert len(seeded_ledger.movements) == 1
        assert store.values["movements"] == before

    def test_exit_within_tolerance_is_accepted(self, seeded_ledger, make_entry, make_exit):
        e = seeded_ledger.add_movement(make_entry(100.0))
        seeded_ledger.add_movement(make_exit(e.batch_id, 100.00005))
        assert seeded_ledger.stock() == []

    def test_exit_needs_a_batch(self, seeded_ledger, make_exit):
        with pytest.raises(ValidationError) as exc:
            seeded_ledger.add_movement(make_exit("", 1.0))
        assert exc.value.field == "batch_id"

    def test_exit_from_unknown_batch(self, seeded_ledger, make_exit):
        with pytest.raises(ValidationError) as exc:
            seeded_ledger.add_movement(make_exit("001/099/010", 1.0))
        assert exc.value.field == "batch_id"

    def test_service_exit_cannot_hit_physical_batch(self, seeded_ledger, make_entry, make_exit):
        e = seeded_ledger.add_movement(make_entry(100.0))
        with pytest.raises(ValidationError) as exc:
            seeded_ledger.add_movement(make_exit(e.batch_id, 1.0, kind=BatchKind.SERVICE))
        assert exc.value.field == "kind"

    def test_exit_must_name_the_batch_product(self, seeded_ledger, make_entry, make_exit):
        e = seeded_ledger.add_movement(make_entry(100.0))
        with pytest.raises(ValidationError) as exc:
            seeded_ledger.add_movement(make_exit(e.batch_id, 1.0, product=SULPHATE))
        assert exc.value.field == "product_code"


# =============================================================================
# Deletion
# =============================================================================


class TestDeleteMovement:
    def test_requires_confirmation(self, seeded_ledger, make_entry):
        m = seeded_ledger.add_movement(make_entry(10.0))
        with pytest.raises(ConfirmationRequired):
            seeded_ledger.delete_movement(m.id)
        assert len(seeded_ledger.movements) == 1

    def test_unknown_id(self, seeded_ledger):
        with pytest.raises(ValidationError):
            seeded_ledger.delete_movement("missing", confirm=True)

    def test_deleting_an_entry_leaves_its_exits(self, seeded_ledger, make_entry, make_exit):
        e = seeded_ledger.add_movement(make_entry(10.0))
        seeded_ledger.add_movement(make_exit(e.batch_id, 4.0))
        seeded_ledger.delete_movement(e.id, confirm=True)
        assert len(seeded_ledger.movements) == 1
        assert seeded_ledger.stock() == []
        (b,) = seeded_ledger.overdrawn_batches()
        assert b.remaining_quantity == pytest.approx(-4.0)

    def test_deleted_number_is_reused(self, seeded_ledger, make_entry):
        seeded_ledger.add_movement(make_entry(10.0))
        last = seeded_ledger.add_movement(make_entry(10.0))
        seeded_ledger.delete_movement(last.id, confirm=True)
        again = seeded_ledger.add_movement(make_entry(10.0))
        assert again.batch_id == last.batch_id == "001/002/010"


# =============================================================================
# Labour (M.O.) returns
# =============================================================================


def _client(code_name) -> RegistryEntity:
    return RegistryEntity(id="c", code=code_name[0], name=code_name[1])


@pytest.fixture
def labor_batch(seeded_ledger, make_entry):
    m = make_entry(500.0, unit_cost=0.5, supplier=CLIENT, product=GRINDING, kind=BatchKind.SERVICE)
    return seeded_ledger.add_movement(m)


class TestLaborReturns:
    def test_service_batch_is_numbered_by_client(self, labor_batch):
        assert labor_batch.batch_id == "101/001/900"
        assert labor_batch.kind == BatchKind.SERVICE

    def test_return_creates_priced_exits(self, seeded_ledger, labor_batch):
        out = seeded_ledger.return_labor(
            date="2024-02-01", client=_client(CLIENT), returns=[(labor_batch.batch_id, 200.0)]
        )
        (m,) = out
        assert m.is_exit and m.is_service
        assert m.unit_cost == 0.5
        assert m.supplier == CLIENT[1]
        (b,) = seeded_ledger.stock(BatchKind.SERVICE)
        assert b.remaining_quantity == pytest.approx(300.0)

    def test_repeated_batch_counts_against_the_same_balance(self, seeded_ledger, labor_batch):
        with pytest.raises(InsufficientQuantityError):
            seeded_ledger.return_labor(
                date="2024-02-01",
                client=_client(CLIENT),
                returns=[(labor_batch.batch_id, 300.0), (labor_batch.batch_id, 300.0)],
            )
        assert len(seeded_ledger.movements) == 1

    def test_other_clients_batches_are_not_eligible(self, seeded_ledger, labor_batch):
        with pytest.raises(ValidationError) as exc:
            seeded_ledger.return_labor(
                date="2024-02-01", client=_client(OTHER_CLIENT), returns=[(labor_batch.batch_id, 10.0)]
            )
        assert exc.value.field == "batch_id"

    @pytest.mark.parametrize("returns", [[], [("101/001/900", 0.0)]])
    def test_empty_or_zero_returns(self, seeded_ledger, labor_batch, returns):
        with pytest.raises(ValidationError):
            seeded_ledger.return_labor(date="2024-02-01", client=_client(CLIENT), returns=returns)

    def test_date_is_required(self, seeded_ledger, labor_batch):
        with pytest.raises(ValidationError) as exc:
            seeded_ledger.return_labor(date="", client=_client(CLIENT), returns=[(labor_batch.batch_id, 1.0)])
        assert exc.value.field == "date"


def test_movement_from_legacy_dict():
    m = Movement.from_dict(
        {"id": "x", "batchId": "001/001/010", "entryDate": "2024-01-01", "quantity": "12,5", "isService": True}
    )
    assert m.batch_id == "001/001/010"
    assert m.quantity == 12.5
    assert m.kind == BatchKind.SERVICE
