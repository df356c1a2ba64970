import pytest

from clinic_stock.services.availability import ABS_TOLERANCE, evaluate


@pytest.mark.parametrize("conversion", [0.3, 1, 2.5, 3, 7, 12.5, 1000])
@pytest.mark.parametrize("available_base", [0, 1, 10, 33.3, 1_000_000])
def test_boundary_quantity_is_always_available(conversion, available_base):
    """Demander exactement le stock disponible converti reste disponible."""
    result = evaluate(available_base / conversion, conversion, available_base)
    assert result.is_available is True


def test_availability_never_comes_back_when_quantity_grows():
    flags = [evaluate(q / 4, 5, 10).is_available for q in range(0, 25)]
    first_false = flags.index(False)
    assert all(flags[:first_false])
    assert not any(flags[first_false:])


def test_two_boxes_of_five_fit_ten_base_units():
    result = evaluate(2, 5, 10)
    assert result.is_available is True
    assert result.available_quantity == pytest.approx(2.0)
    assert result.required_base_quantity == pytest.approx(10)


def test_three_boxes_of_five_exceed_ten_base_units():
    result = evaluate(3, 5, 10)
    assert result.is_available is False
    assert result.required_base_quantity == pytest.approx(15)


@pytest.mark.parametrize("conversion", [0, None, -2])
def test_missing_or_invalid_conversion_is_treated_as_one(conversion):
    result = evaluate(4, conversion, 8)
    assert result.available_quantity == pytest.approx(8)
    assert result.required_base_quantity == pytest.approx(4)


def test_zero_stock_signals_reset_only_for_non_zero_quantity():
    assert evaluate(5, 1, 0).must_reset is True
    assert evaluate(0, 1, 0).must_reset is False
    assert evaluate(5, 1, 3).must_reset is False


def test_tolerance_absorbs_rounding_but_not_real_excess():
    assert evaluate(10 + ABS_TOLERANCE / 2, 1, 10).is_available is True
    assert evaluate(10.01, 1, 10).is_available is False


def test_evaluate_is_idempotent():
    assert evaluate(1.7, 3, 9) == evaluate(1.7, 3, 9)
