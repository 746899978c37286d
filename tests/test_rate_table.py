import math

import pytest

from cost_manager.core.errors import ValidationError
from cost_manager.models.rates import RateTable
from tests.conftest import RATES, rates


def test_valid_table_keeps_all_four_codes():
    table = RateTable(RATES)
    assert table.as_dict() == {"USD": 1.0, "GBP": 1.8, "EURO": 0.7, "ILS": 3.4}
    assert table["ILS"] == 3.4
    assert len(table) == 4


def test_extra_keys_are_dropped():
    table = RateTable({**RATES, "JPY": 150})
    assert "JPY" not in table


@pytest.mark.parametrize("code", ["USD", "GBP", "EURO", "ILS"])
def test_missing_code_is_named(code):
    data = dict(RATES)
    del data[code]
    with pytest.raises(ValidationError) as exc:
        RateTable(data)
    assert exc.value.field == code
    assert code in exc.value.message


@pytest.mark.parametrize(
    "bad", [0, -1.5, math.nan, math.inf, "abc", None, True, [1], 10**400, -(10**400)]
)
def test_unusable_values_reject_whole_table(bad):
    with pytest.raises(ValidationError) as exc:
        RateTable(rates(EURO=bad))
    assert exc.value.field == "EURO"


def test_first_failing_code_in_fixed_order_is_reported():
    with pytest.raises(ValidationError) as exc:
        RateTable({"USD": 1, "GBP": 0, "EURO": 0, "ILS": 3.4})
    assert exc.value.field == "GBP"


def test_numeric_strings_are_coerced():
    table = RateTable({"USD": "1", "GBP": "1.8", "EURO": "0.7", "ILS": " 3.4 "})
    assert table["GBP"] == 1.8


def test_non_mapping_rejected():
    with pytest.raises(ValidationError):
        RateTable([1, 2, 3, 4])  # type: ignore[arg-type]


def test_equality_with_plain_dict():
    assert RateTable(RATES) == {"USD": 1.0, "GBP": 1.8, "EURO": 0.7, "ILS": 3.4}


def test_integer_beyond_float_range_names_currency():
    with pytest.raises(ValidationError) as exc:
        RateTable({"USD": 1, "GBP": 10**400, "EURO": 0.7, "ILS": 3.4})
    assert exc.value.field == "GBP"
