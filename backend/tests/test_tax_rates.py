# Overview: Pytest coverage for tax rates, the default rate and rate resolution at checkout.

"""
Tax Rate Tests

Test Coverage:
- Exactly one default rate; the first rate created takes it
- Deleting the default hands the flag to the next rate
- Sales resolve tax from taxRateId, an explicit taxRate, or the default
- Finalized sales and their refunds keep the rate that was applied
"""

import pytest

from shopledger.services import inventory_service, sales_service, tax_rate_service
from shopledger.services.errors import NotFoundError
from shopledger.validation import ConflictError, ValidationError


def _cart(store, product, qty, **extra):
    data = {"store_id": store.id, "items": [{"product_id": product.id, "quantity": qty}]}
    data.update(extra)
    return data


@pytest.fixture
def standard(db_session):
    return tax_rate_service.create_tax_rate({"name": "Standard Tax", "rate": 0.08})


@pytest.fixture
def reduced(db_session, standard):
    return tax_rate_service.create_tax_rate({"name": "Reduced Tax", "rate": 0.05})


def _defaults():
    return [r.name for r in tax_rate_service.list_tax_rates() if r.is_default]


class TestTaxRates:
    def test_first_rate_becomes_default(self, db_session, standard, reduced):
        assert _defaults() == ["Standard Tax"]
        assert tax_rate_service.get_default_tax_rate().id == standard.id

    def test_new_default_takes_the_flag(self, db_session, standard):
        tax_rate_service.create_tax_rate({"name": "Luxury Tax", "rate": 0.2, "is_default": True})
        assert _defaults() == ["Luxury Tax"]

    def test_set_default(self, db_session, standard, reduced):
        tax_rate_service.set_default_tax_rate(reduced.id)
        assert _defaults() == ["Reduced Tax"]

    @pytest.mark.parametrize("rate", [-0.01, 1.5, "abc", None, True])
    def test_rate_must_be_a_fraction(self, db_session, rate):
        with pytest.raises(ValidationError):
            tax_rate_service.create_tax_rate({"name": "Odd", "rate": rate})

    def test_duplicate_name(self, db_session, standard, reduced):
        with pytest.raises(ConflictError):
            tax_rate_service.create_tax_rate({"name": "Standard Tax", "rate": 0.1})
        with pytest.raises(ConflictError):
            tax_rate_service.update_tax_rate(reduced.id, {"name": "Standard Tax"})

    def test_deleting_default_promotes_next(self, db_session, standard, reduced):
        tax_rate_service.delete_tax_rate(standard.id)
        assert _defaults() == ["Reduced Tax"]

    def test_deleting_last_rate_means_no_tax(self, db_session, standard):
        tax_rate_service.delete_tax_rate(standard.id)
        assert tax_rate_service.get_default_tax_rate() is None
        assert tax_rate_service.resolve_tax_rate({}) == (None, 0.0)

    def test_used_rate_cannot_be_deleted(self, db_session, standard, store_product, store_a):
        sales_service.finalize_sale(_cart(store_a, store_product, 1, tax_rate_id=standard.id))
        with pytest.raises(ConflictError):
            tax_rate_service.delete_tax_rate(standard.id)

    def test_seed_only_when_empty(self, db_session):
        seeded = tax_rate_service.seed_default_tax_rate()
        assert seeded.name == "Standard Tax"
        assert seeded.rate == 0.08
        assert seeded.is_default is True
        assert tax_rate_service.seed_default_tax_rate() is None

    def test_unknown_rate(self, db_session):
        with pytest.raises(NotFoundError):
            tax_rate_service.get_tax_rate("missing")


class TestSaleTaxResolution:
    def test_named_rate(self, db_session, standard, reduced, store_product, store_a):
        sale = sales_service.finalize_sale(_cart(store_a, store_product, 3, tax_rate_id=reduced.id))
        assert sale.tax == 1.5
        assert sale.total == 31.5
        assert sale.tax_rate_applied == 0.05
        assert sale.tax_rate_id == reduced.id

    def test_default_rate_when_none_given(self, db_session, standard, reduced, store_product, store_a):
        sale = sales_service.finalize_sale(_cart(store_a, store_product, 3))
        assert sale.tax == 2.4
        assert sale.tax_rate_applied == 0.08
        assert sale.tax_rate_id == standard.id

    def test_no_rates_means_no_tax(self, db_session, store_product, store_a):
        sale = sales_service.finalize_sale(_cart(store_a, store_product, 3))
        assert sale.tax == 0.0
        assert sale.tax_rate_applied == 0.0
        assert sale.tax_rate_id is None

    def test_explicit_rate_overrides_default(self, db_session, standard, store_product, store_a):
        sale = sales_service.finalize_sale(_cart(store_a, store_product, 3, tax_rate=0.1))
        assert sale.tax == 3.0
        assert sale.tax_rate_id is None

    def test_named_rate_wins_over_explicit(self, db_session, reduced, store_product, store_a):
        sale = sales_service.finalize_sale(_cart(store_a, store_product, 3, tax_rate_id=reduced.id, tax_rate=0.5))
        assert sale.tax_rate_applied == 0.05

    def test_unknown_rate_moves_no_stock(self, db_session, store_product, store_a):
        with pytest.raises(NotFoundError):
            sales_service.finalize_sale(_cart(store_a, store_product, 3, tax_rate_id="missing"))
        assert inventory_service.get_effective_stock(store_product.id, store_a.id) == 10
        assert sales_service.list_sales() == []

    def test_held_sale_keeps_named_rate(self, db_session, standard, reduced, store_product, store_a):
        held = sales_service.hold_sale(_cart(store_a, store_product, 2, tax_rate_id=reduced.id))
        assert held.tax == 1.0
        assert held.tax_rate_id == reduced.id

        sale = sales_service.finalize_sale(_cart(store_a, store_product, 2, id=held.id, tax_rate_id=reduced.id))
        assert sale.id == held.id
        assert sale.status == sales_service.SALE_STATUS_COMPLETED
        assert sale.tax_rate_applied == 0.05

    def test_rate_edit_does_not_touch_recorded_sales(self, db_session, standard, store_product, store_a):
        sale = sales_service.finalize_sale(_cart(store_a, store_product, 1))
        tax_rate_service.update_tax_rate(standard.id, {"rate": 0.2})

        assert sales_service.get_sale(sale.id).tax_rate_applied == 0.08
        refund = sales_service.refund_sale(sale.id, [{"product_id": store_product.id, "quantity": 1}])
        assert refund.tax == -0.8
        assert refund.total == -10.8
        assert refund.tax_rate_id == standard.id


class TestTaxRatesApi:
    def test_create_and_list(self, client, db_session):
        resp = client.post("/api/tax-rates", json={"name": "Standard Tax", "rate": 0.08})
        assert resp.status_code == 201
        assert resp.get_json()["isDefault"] is True

        resp = client.post("/api/tax-rates", json={"name": "Zero Rated", "rate": 0, "isDefault": True})
        assert resp.status_code == 201

        body = client.get("/api/tax-rates").get_json()
        assert {r["name"]: r["isDefault"] for r in body} == {"Standard Tax": False, "Zero Rated": True}

    def test_default_without_rates(self, client, db_session):
        resp = client.get("/api/tax-rates/default")
        assert resp.status_code == 200
        assert resp.get_json()["rate"] == 0.0

    def test_bad_rate(self, client, db_session):
        resp = client.post("/api/tax-rates", json={"name": "Odd", "rate": 2})
        assert resp.status_code == 400

    def test_sale_with_tax_rate_id(self, client, db_session, standard, store_product, store_a):
        resp = client.post("/api/sales", json={
            "storeId": store_a.id,
            "taxRateId": standard.id,
            "items": [{"productId": store_product.id, "quantity": 1}],
        })
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["taxRateApplied"] == 0.08
        assert body["taxRateId"] == standard.id
        assert body["total"] == 10.8

    def test_delete(self, client, db_session, standard, reduced):
        assert client.delete(f"/api/tax-rates/{standard.id}").status_code == 200
        assert client.get(f"/api/tax-rates/{standard.id}").status_code == 404
        assert client.get("/api/tax-rates/default").get_json()["name"] == "Reduced Tax"
