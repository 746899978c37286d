from decimal import Decimal

import pytest

from cost_manager.core.errors import ConversionError
from cost_manager.models.constants import Currency
from cost_manager.models.rates import RateTable
from cost_manager.services.money import round2
from cost_manager.services.rates.conversion import convert
from tests.conftest import RATES

TABLE = RateTable(RATES)


@pytest.mark.parametrize("code", ["USD", "GBP", "EURO", "ILS"])
@pytest.mark.parametrize("amount", [0, 1, 12.34, -7.5, 1e9, 0.005])
def test_identity_conversion_returns_amount(code, amount):
    assert convert(amount, code, code, TABLE) == Decimal(str(amount))


def test_usd_to_ils():
    assert round2(convert(200, "USD", "ILS", TABLE)) == 680.00


def test_ils_to_usd_rounds_half_away_from_zero():
    assert round2(convert(100, "ILS", "USD", TABLE)) == 29.41


def test_cross_rate_goes_through_base():
    # 1.8 GBP -> 1 USD -> 0.7 EURO
    assert convert(1.8, Currency.GBP, Currency.EURO, TABLE) == Decimal("0.7")


def test_missing_source_rate_fails():
    with pytest.raises(ConversionError) as exc:
        convert(10, "GBP", "USD", {"USD": 1})
    assert exc.value.field == "GBP"


def test_missing_target_rate_fails_even_for_identity():
    with pytest.raises(ConversionError):
        convert(10, "ILS", "ILS", {"USD": 1})


def test_non_positive_rate_fails():
    with pytest.raises(ConversionError):
        convert(10, "USD", "ILS", {"USD": 1, "ILS": 0})


def test_round2_half_away_from_zero():
    assert round2(1.005) == 1.01
    assert round2(-1.005) == -1.01
    assert round2(Decimal("2.675")) == 2.68
