import pytest

from ledgerpos.errors import PriceMismatch, ValidationError
from ledgerpos.services.pricing_service import (
    PricingResolver,
    expected_unit_price_cents,
    normalize_customer_type,
    validate_submitted_price,
)


@pytest.mark.parametrize("raw,expected", [
    (None, "retail"),
    ("", "retail"),
    ("retail", "retail"),
    ("Walk-In", "retail"),
    ("long-term", "long-term"),
    ("longterm", "long-term"),
    ("WHOLESALE", "long-term"),
])
def test_normalize_customer_type(raw, expected):
    assert normalize_customer_type(raw) == expected


def test_normalize_customer_type_rejects_unknown():
    with pytest.raises(ValidationError):
        normalize_customer_type("vip")


def test_expected_price_follows_tier(make_product):
    product = make_product(retail=10000, wholesale=9000)
    assert expected_unit_price_cents(product, "retail") == 10000
    assert expected_unit_price_cents(product, "long-term") == 9000
    assert expected_unit_price_cents(product, "wholesale") == 9000


def test_price_within_tolerance_passes(make_product):
    product = make_product(retail=10000, wholesale=9000)
    assert validate_submitted_price(product, "retail", 10001) == 10000
    assert validate_submitted_price(product, "retail", 9999) == 10000


def test_long_term_customer_submitting_retail_price_is_rejected(make_product):
    product = make_product(retail=10000, wholesale=9000)

    with pytest.raises(PriceMismatch) as exc_info:
        validate_submitted_price(product, "long-term", 10000)

    err = exc_info.value
    assert err.status_code == 400
    assert err.details["expected_price"] == 90.0
    assert err.details["submitted_price"] == 100.0
    assert err.details["customer_type"] == "long-term"
    assert "Expected wholesale price: 90.00" in err.message


def test_resolver_skips_lines_without_a_resolvable_product(db_session, make_product):
    make_product("P-1")
    resolver = PricingResolver(db_session)

    assert resolver.check_line(None, "retail", 1) is None
    assert resolver.check_line("GONE", "retail", 1) is None
    assert resolver.check_line("P-1", "retail", 10000).id == "P-1"

    with pytest.raises(PriceMismatch):
        resolver.check_line("P-1", "retail", 5000)
