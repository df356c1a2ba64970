from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from clinic_stock.app.db.models.core_types import UnitState
from clinic_stock.app.schemas.forms import FormItem
from clinic_stock.app.schemas.stock import LocationStockEntry
from clinic_stock.app.schemas.units import ProductUnitRead
from clinic_stock.services.location_stock import available_base_quantity, find_entry
from clinic_stock.services.units import auto_select_unit, pick_default_unit, resolve_unit


def test_default_unit_is_the_flagged_one(units):
    assert pick_default_unit(units["P1"]).id == "U1"


def test_first_unit_is_default_when_none_flagged(units):
    assert pick_default_unit(units["P2"]).id == "U2"
    assert pick_default_unit([]) is None


def test_auto_select_keeps_explicit_choice(units):
    assert auto_select_unit(units["P1"], "U5") == "U5"
    assert auto_select_unit(units["P1"], "") == "U1"
    assert auto_select_unit([], "") == ""


def test_resolve_known_unit(units):
    res = resolve_unit(units["P1"], "U5")
    assert res.state == UnitState.resolved
    assert res.conversion_to_base == 5
    assert res.is_default is False


def test_unresolved_unit_blocks_instead_of_defaulting_to_one(units):
    pending = resolve_unit([], "U5", loaded=False)
    assert pending.state == UnitState.unresolved
    assert pending.resolved is False
    assert pending.conversion_to_base is None

    missing = resolve_unit(units["P1"], "U-unknown")
    assert missing.state == UnitState.failed
    assert missing.error


def test_failed_load_and_bad_factor_are_failures():
    assert resolve_unit([], "U1", load_error="timeout").state == UnitState.failed
    zero = [ProductUnitRead(id="UZ", conversion_to_base=0)]
    assert resolve_unit(zero, "UZ").state == UnitState.failed


def test_no_unit_selected():
    assert resolve_unit([], "").state == UnitState.unselected


def test_location_lookup_reads_first_match():
    entries = [
        LocationStockEntry(batch_id="B1", location_id="L1", quantity=7, location_name="first"),
        LocationStockEntry(batch_id="B1", location_id="L1", quantity=99, location_name="second"),
    ]
    assert available_base_quantity(entries, "B1", "L1") == 7
    assert find_entry(entries, "B1", "L1").location_name == "first"


def test_location_lookup_miss_is_zero(entries):
    assert available_base_quantity(entries, "B1", "L9") == 0
    assert available_base_quantity(entries, "", "L1") == 0
    assert available_base_quantity(entries, "B1", "") == 0
    assert find_entry(entries, "B1", "") is None


def test_read_models_from_attributes_and_frozen_form_items():
    row = SimpleNamespace(id="U5", product_id="P1", name="Box", abbreviation="bx", conversion_to_base=5, is_default=False)
    unit = ProductUnitRead.model_validate(row)
    assert (unit.id, unit.conversion_to_base) == ("U5", 5)

    item = FormItem(product_id="P1")
    with pytest.raises(ValidationError):
        item.product_id = "P2"
