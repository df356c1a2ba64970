import pytest

from clinic_stock.app.db.models.core_types import ApprovalStatus, FlowKind, UnitState
from clinic_stock.app.schemas.forms import RefreshStock, SetApprovalStatus, SetField, StockLoaded
from clinic_stock.app.schemas.stock import LocationStockEntry
from clinic_stock.app.schemas.units import ProductUnitRead
from clinic_stock.services.forms import (
    INSUFFICIENT_STOCK_MESSAGE,
    NOTHING_AVAILABLE_MESSAGE,
    SubmissionBlocked,
    pending_lookups,
    reduce,
)
from clinic_stock.services.reconciliation import (
    NOT_EDITABLE_MESSAGE,
    load_request_form,
    load_withdrawal_form,
    run_lookups,
    submit_request_approval,
    submit_withdrawal,
)


def test_load_request_form(inventory_client, source):
    state = load_request_form(inventory_client, source, "R1")

    assert state.flow == FlowKind.approval
    assert state.document_no == "REQ-100001"
    assert state.approval_status == ApprovalStatus.pending
    item = state.items[0]
    assert item.id == "I1"
    assert item.product_name == "Gloves"
    assert item.batch_number == "LOT-001"
    assert item.unit_state == UnitState.resolved
    assert item.batch_available_base == 10
    # 10 unités de base / boîtes de 5
    assert item.available_quantity == pytest.approx(2)
    # la quantité approuvée enregistrée est conservée
    assert item.approved_quantity == 0


def test_load_withdrawal_form(inventory_client, source):
    state = load_withdrawal_form(inventory_client, source, "W1")

    assert state.flow == FlowKind.withdrawal
    assert state.stock_loaded is True
    item = state.items[0]
    assert item.product_unit_id == "U5"
    assert item.error == ""
    assert item.is_available is True


def test_saved_unit_outside_product_list_is_fetched(inventory_client, make_source, entries):
    source = make_source(
        units={
            "P1": [ProductUnitRead(id="U1", product_id="P1", name="Piece", conversion_to_base=1, is_default=True)],
            "legacy": [ProductUnitRead(id="U5", product_id="P1", name="Old box", conversion_to_base=5)],
        },
        entries=entries,
    )
    state = load_withdrawal_form(inventory_client, source, "W1")

    assert ("unit", "U5") in source.calls
    assert state.items[0].unit_state == UnitState.resolved
    assert state.items[0].conversion_to_base == 5


def test_unit_lookup_failure_blocks_item(inventory_client, make_source, entries):
    source = make_source(entries=entries, failing_products=["P1"])
    state = load_withdrawal_form(inventory_client, source, "W1")

    item = state.items[0]
    assert item.unit_state == UnitState.failed
    assert item.quantity_disabled is True
    assert item.error.startswith("Unit conversion could not be resolved")


def test_submit_withdrawal(inventory_client, source):
    state = load_withdrawal_form(inventory_client, source, "W1")
    state, result = submit_withdrawal(inventory_client, source, "W1", state)

    assert result == {"success": True}
    [(kind, doc_id, payload)] = inventory_client.sent
    assert (kind, doc_id) == ("withdrawal", "W1")
    assert payload["items"][0]["requestedQuantity"] == 2


def test_blocked_withdrawal_sends_nothing(inventory_client, source):
    state = load_withdrawal_form(inventory_client, source, "W1")
    state = reduce(state, SetField(index=0, field="requested_quantity", value=3))

    with pytest.raises(SubmissionBlocked):
        submit_withdrawal(inventory_client, source, "W1", state)
    assert inventory_client.sent == []


def test_client_side_stock_is_not_trusted(inventory_client, source):
    """
    GIVEN
    - un état client qui prétend 100 unités en L1

    THEN
    - le stock est relu avant envoi : 3 boîtes (15) > 10 => refus
    """
    state = load_withdrawal_form(inventory_client, source, "W1")
    forged = [LocationStockEntry(batch_id="B1", location_id="L1", quantity=100, location_name="Main Store")]
    state = reduce(state, StockLoaded(entries=forged))
    state = reduce(state, SetField(index=0, field="requested_quantity", value=3))
    assert state.items[0].error == ""

    with pytest.raises(SubmissionBlocked):
        submit_withdrawal(inventory_client, source, "W1", state)
    assert inventory_client.sent == []


def test_approval_over_stock_is_blocked(inventory_client, source):
    state = load_request_form(inventory_client, source, "R1")
    state = reduce(state, SetApprovalStatus(status=ApprovalStatus.approved))
    state = reduce(state, SetField(index=0, field="approved_quantity", value=3))

    with pytest.raises(SubmissionBlocked) as exc:
        submit_request_approval(inventory_client, source, "R1", state)
    assert exc.value.message == INSUFFICIENT_STOCK_MESSAGE
    assert inventory_client.sent == []


def test_approval_submit(inventory_client, source):
    state = load_request_form(inventory_client, source, "R1")
    state = reduce(state, SetApprovalStatus(status=ApprovalStatus.approved))
    state = reduce(state, SetField(index=0, field="approved_quantity", value=2))

    submit_request_approval(inventory_client, source, "R1", state)

    assert inventory_client.sent == [
        ("approve", "R1", {"approvalStatus": "APPROVED", "items": [{"_id": "I1", "approvedQuantity": 2.0}]})
    ]


def test_flow_mismatch_is_rejected(inventory_client, source):
    state = load_withdrawal_form(inventory_client, source, "W1")
    with pytest.raises(ValueError):
        submit_request_approval(inventory_client, source, "R1", state)


def test_batch_stock_failure_keeps_input_and_blocks(inventory_client, units, make_source):
    """
    GIVEN
    - demande APPROVED, 2 boîtes approuvées
    - le stock du lot B1 ne répond pas (504)

    THEN
    - stock inconnu, pas nul : la quantité saisie est conservée
    - aucune relance automatique
    - soumission refusée, rien envoyé
    """
    down = make_source(units=units, failing_batches=["B1"])
    state = load_request_form(inventory_client, down, "R1")
    state = reduce(state, SetApprovalStatus(status=ApprovalStatus.approved))
    state = reduce(state, SetField(index=0, field="approved_quantity", value=2))
    state = run_lookups(state, down)

    item = state.items[0]
    assert item.approved_quantity == 2
    assert item.batch_available_base is None
    assert item.batch_stock_error == "Failed to fetch available stock"
    assert item.error == "Failed to fetch available stock"
    assert item.quantity_disabled is True
    assert pending_lookups(state) == []

    with pytest.raises(SubmissionBlocked) as exc:
        submit_request_approval(inventory_client, down, "R1", state)
    assert exc.value.message == "Failed to fetch available stock"
    assert inventory_client.sent == []


def test_batch_stock_recovers_after_refresh(inventory_client, units, make_source):
    down = make_source(units=units, failing_batches=["B1"])
    state = load_request_form(inventory_client, down, "R1")
    state = reduce(state, SetApprovalStatus(status=ApprovalStatus.approved))
    state = reduce(state, SetField(index=0, field="approved_quantity", value=2))

    up = make_source(units=units, batches={"B1": 10})
    state = run_lookups(reduce(state, RefreshStock()), up)

    assert state.items[0].batch_stock_error == ""
    assert state.items[0].approved_quantity == 2
    submit_request_approval(inventory_client, up, "R1", state)
    assert inventory_client.sent[0][2]["items"] == [{"_id": "I1", "approvedQuantity": 2.0}]


def test_approval_with_nothing_in_stock_is_blocked(inventory_client, units, make_source):
    empty = make_source(units=units, batches={"B1": 0})
    state = load_request_form(inventory_client, empty, "R1")
    state = reduce(state, SetApprovalStatus(status=ApprovalStatus.approved))
    state = reduce(state, SetField(index=0, field="approved_quantity", value=3))

    with pytest.raises(SubmissionBlocked) as exc:
        submit_request_approval(inventory_client, empty, "R1", state)
    assert exc.value.message == NOTHING_AVAILABLE_MESSAGE
    assert inventory_client.sent == []


@pytest.mark.parametrize("status", ["ISSUED", "REJECTED", "APPROVED", None])
def test_only_pending_withdrawals_can_be_updated(inventory_client, source, status):
    state = load_withdrawal_form(inventory_client, source, "W1")
    inventory_client.withdrawals["W1"]["status"] = status

    with pytest.raises(SubmissionBlocked) as exc:
        submit_withdrawal(inventory_client, source, "W1", state)
    assert exc.value.message == NOT_EDITABLE_MESSAGE
    assert inventory_client.sent == []


def test_draft_withdrawal_can_be_updated(inventory_client, source):
    inventory_client.withdrawals["W1"]["status"] = "draft"
    state = load_withdrawal_form(inventory_client, source, "W1")

    submit_withdrawal(inventory_client, source, "W1", state)

    assert [s[0] for s in inventory_client.sent] == ["withdrawal"]
