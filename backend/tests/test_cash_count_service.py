import pytest

from cashdesk.services.cash_count_service import count_denominations, denomination_to_cents
from cashdesk.validation import InvalidAmountError, ValidationError


@pytest.mark.parametrize("value,cents", [
    ("200", 20000),
    ("0.25", 25),
    ("0,10", 10),
    ("0.01", 1),
    (5, 500),
])
def test_denomination_to_cents(value, cents):
    assert denomination_to_cents(value) == cents


@pytest.mark.parametrize("value", [0.25, True, "abc", "0", "-5", "0.001"])
def test_invalid_denominations(value):
    with pytest.raises(ValidationError):
        denomination_to_cents(value)


def test_count_total_and_lines():
    result = count_denominations({"0.25": 4, "50": 2, "2": 3, "0.05": 1})

    assert result["total"] == 10000 + 600 + 100 + 5
    assert [line["denomination"] for line in result["lines"]] == ["50.00", "2.00", "0.25", "0.05"]
    assert result["lines"][0] == {
        "denomination": "50.00",
        "denomination_cents": 5000,
        "quantity": 2,
        "subtotal": 10000,
    }


def test_equivalent_keys_are_merged():
    result = count_denominations({"0.5": 1, "0.50": 3})
    assert result["lines"] == [
        {"denomination": "0.50", "denomination_cents": 50, "quantity": 4, "subtotal": 200},
    ]


def test_zero_quantities_count_as_zero():
    assert count_denominations({"100": 0})["total"] == 0


def test_unknown_denomination_strict():
    with pytest.raises(ValidationError):
        count_denominations({"3": 1})

    assert count_denominations({"3": 1}, strict=False)["total"] == 300


@pytest.mark.parametrize("counts", [
    {},
    None,
    {"10": -1},
    {"10": 1.5},
    {"10": "2"},
])
def test_invalid_counts(counts):
    with pytest.raises(ValidationError):
        count_denominations(counts)


def test_total_over_maximum():
    with pytest.raises(InvalidAmountError):
        count_denominations({"200": 10_000_000})
