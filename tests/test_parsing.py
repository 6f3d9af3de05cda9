# tests/test_parsing.py
import pytest

from rentcrunch.domain.errors import InputError
from rentcrunch.domain.parsing import build_filters, looks_like_address, normalize_location, parse_money_input


def test_money_input_normalization():
    assert parse_money_input("$250,000") == 250_000.0
    assert parse_money_input(" 1,299.50 ") == 1_299.5
    assert parse_money_input(75_000) == 75_000.0
    assert parse_money_input("") is None
    assert parse_money_input(None) is None


@pytest.mark.parametrize("bad", ["ten", "-100", "$-5", "1.2.3"])
def test_money_input_rejects_garbage(bad):
    with pytest.raises(InputError):
        parse_money_input(bad)


def test_location_normalization():
    assert normalize_location("  Detroit,   MI ") == "Detroit, MI"
    for bad in ("", "   ", None, "?!", "x" * 201):
        with pytest.raises(InputError):
            normalize_location(bad)


def test_address_detection():
    assert looks_like_address("123 Main St, Detroit, MI")
    assert looks_like_address("4103 Buckingham Ave")
    assert not looks_like_address("Detroit, MI")
    assert not looks_like_address("48224")


def test_build_filters():
    f = build_filters(min_price="$50,000", max_price="0", bedrooms=["3", 5], bathrooms=[1, "1.5"], min_ratio="0.008")
    assert f.min_price == 50_000.0
    assert f.max_price is None
    assert f.bedrooms == (3, 5)
    assert f.bathrooms == (1.0, 1.5)
    assert f.min_ratio == 0.008
    assert f.property_type == "Houses"

    with pytest.raises(InputError):
        build_filters(min_price="300000", max_price="200000")
    with pytest.raises(InputError):
        build_filters(bedrooms=["many"])


def test_filters_match(make_property):
    f = build_filters(min_price=50_000, max_price=150_000, bedrooms=[5], min_ratio=0.007)
    assert f.matches(make_property("a", price=100_000.0, rent=900.0, bedrooms=6))
    assert not f.matches(make_property("b", price=100_000.0, rent=900.0, bedrooms=4))
    assert not f.matches(make_property("c", price=100_000.0, rent=600.0, bedrooms=5))
    assert not f.matches(make_property("d", price=200_000.0, rent=2_000.0, bedrooms=5))
    assert not f.matches(make_property("e", price=100_000.0, rent=900.0))
