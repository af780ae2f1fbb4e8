# Overview: Pytest coverage for row/entity mapping and payload validation helpers.

"""
Mapping and Validation Tests

Stored rows use snake_case columns, 0/1 flags and JSON text; API
entities use camelCase, booleans and structured values.
"""

import pytest

from shopledger.mappers import (
    camel_to_snake,
    document_to_fields,
    entity_to_row,
    items_to_fields,
    row_to_entity,
    snake_to_camel,
    stock_map_total,
)
from shopledger.models import Product
from shopledger.routes.products import PRODUCT_POLICY
from shopledger.validation import (
    ValidationError,
    enforce_rules_product,
    require_money,
    validate_line_items,
    validate_payload,
    validate_stock_by_store,
)


class TestNameMapping:
    @pytest.mark.parametrize("snake,camel", [
        ("stock_by_store", "stockByStore"),
        ("transfer_from_store_id", "transferFromStoreId"),
        ("sku", "sku"),
    ])
    def test_case_conversion(self, snake, camel):
        assert snake_to_camel(snake) == camel
        assert camel_to_snake(camel) == snake


class TestRowEntity:
    def test_entity_to_row_flattens_flags_and_json(self):
        row = entity_to_row({"trackStock": True, "availableForSale": False, "stockByStore": {"s1": 3}, "name": "Cola"})
        assert row == {
            "track_stock": 1,
            "available_for_sale": 0,
            "stock_by_store": '{"s1":3}',
            "name": "Cola",
        }

    def test_row_to_entity_restores_types(self):
        entity = row_to_entity({"track_stock": 0, "stock_by_store": '{"s1":3}', "items": None, "sku": "A-1"})
        assert entity == {"trackStock": False, "stockByStore": {"s1": 3}, "items": None, "sku": "A-1"}

    def test_field_filter(self):
        row = entity_to_row({"name": "Cola", "secret": "x"}, fields={"name"})
        assert row == {"name": "Cola"}

    def test_model_entity(self, db_session, store_product, store_a):
        entity = store_product.to_dict()
        assert entity["stockByStore"][store_a.id] == 10
        assert entity["trackStock"] is True
        assert "versionId" not in entity


class TestRequestBodies:
    def test_document_items_are_converted(self):
        fields = document_to_fields({"storeId": "s1", "items": [{"productId": "p1", "quantityReceived": 2}]})
        assert fields == {"store_id": "s1", "items": [{"product_id": "p1", "quantity_received": 2}]}

    def test_non_object_items_pass_through(self):
        assert items_to_fields([{"productId": "p"}, 5]) == [{"product_id": "p"}, 5]

    def test_stock_map_total(self):
        assert stock_map_total({"a": 2, "b": 3}) == 5
        assert stock_map_total(None) == 0


class TestValidatePayload:
    def test_create_requires_sku_and_name(self):
        with pytest.raises(ValidationError, match="Missing required fields"):
            validate_payload(model=Product, payload={"name": "Cola"}, policy=PRODUCT_POLICY, partial=False)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError, match="Field not allowed"):
            validate_payload(model=Product, payload={"version_id": 3}, policy=PRODUCT_POLICY, partial=True)

    def test_coercion(self):
        patch = validate_payload(
            model=Product,
            payload={"price": "2.50", "stock": "7", "track_stock": 1, "name": "  Cola  "},
            policy=PRODUCT_POLICY,
            partial=True,
        )
        assert patch == {"price": 2.5, "stock": 7, "track_stock": True, "name": "Cola"}

    @pytest.mark.parametrize("value", ["1.5", "1e3", 2.0, "abc"])
    def test_integer_fields_reject_non_integers(self, value):
        with pytest.raises(ValidationError):
            validate_payload(model=Product, payload={"stock": value}, policy=PRODUCT_POLICY, partial=True)

    def test_money_bounds(self):
        with pytest.raises(ValidationError):
            enforce_rules_product({"price": -1.0})
        with pytest.raises(ValidationError):
            enforce_rules_product({"cost": 10_000_000.0})
        assert require_money("3.25", "price") == 3.25


class TestLineItems:
    def test_empty_list_rejected(self):
        with pytest.raises(ValidationError):
            validate_line_items([], quantity_field="quantity")

    def test_zero_quantity_rejected(self):
        with pytest.raises(ValidationError):
            validate_line_items([{"product_id": "p", "quantity": 0}], quantity_field="quantity")

    def test_missing_product_rejected(self):
        with pytest.raises(ValidationError, match="product_id"):
            validate_line_items([{"quantity": 1}], quantity_field="quantity")

    def test_quantities_are_coerced(self):
        items = validate_line_items([{"product_id": "p", "quantity": "4"}], quantity_field="quantity")
        assert items == [{"product_id": "p", "quantity": 4}]

    def test_stock_map_values(self):
        assert validate_stock_by_store({"s1": "3"}) == {"s1": 3}
        with pytest.raises(ValidationError):
            validate_stock_by_store({"s1": -2})
        with pytest.raises(ValidationError):
            validate_stock_by_store([1, 2])
