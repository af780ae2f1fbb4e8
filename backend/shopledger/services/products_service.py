# backend/shopledger/services/products_service.py
"""
Product catalog and categories.

STOCK: the catalog writes stock directly only on create, edit and delete,
and records each as one history entry (INITIAL_STOCK, PRODUCT_EDIT,
PRODUCT_DELETED) without a store. Workflow stock changes go through
inventory_service.
"""
from __future__ import annotations

from typing import Optional

from flask import current_app

from ..extensions import db
from ..identity import Actor
from ..mappers import stock_map_total
from ..models import Category, Product, Store
from ..validation import ConflictError, ValidationError, validate_stock_by_store
from . import history_service, inventory_service
from .concurrency import lock_for_update, run_in_transaction
from .errors import InvalidStateError, NotFoundError, ProductNotFoundError

PRODUCT_MUTABLE_FIELDS = {
    "name", "category_id", "price", "cost", "wholesale_price", "sku", "image_url",
    "track_stock", "available_for_sale", "stock", "stock_by_store",
}

UNCATEGORIZED_NAME = "Uncategorized"


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_category(category_id: Optional[str]) -> None:
    if category_id is None:
        return
    if db.session.get(Category, category_id) is None:
        raise NotFoundError(f"Category {category_id} not found", {"category_id": category_id})


def _require_stores(stock_by_store: Optional[dict]) -> None:
    if not stock_by_store:
        return
    known = {
        sid for (sid,) in db.session.query(Store.id).filter(Store.id.in_(list(stock_by_store))).all()
    }
    unknown = sorted(set(stock_by_store) - known)
    if unknown:
        raise NotFoundError(f"Store {unknown[0]} not found", {"store_ids": unknown})


def _require_unique_sku(sku: str, *, exclude_id: Optional[str] = None) -> None:
    q = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first():
        raise ConflictError("SKU already exists.")


def get_product(product_id: str) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def list_products(
    *,
    category_id: Optional[str] = None,
    store_id: Optional[str] = None,
    available_only: bool = False,
    page: Optional[int] = None,
    per_page: Optional[int] = None,
) -> dict:
    """
    Product listing with optional pagination.

    If store_id is given, each item carries `effectiveStock` for that store.
    """
    base_query = db.session.query(Product)
    if category_id is not None:
        base_query = base_query.filter(Product.category_id == category_id)
    if available_only:
        base_query = base_query.filter(Product.available_for_sale.is_(True))
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    def _serialize(p: Product) -> dict:
        d = p.to_dict()
        if store_id is not None:
            d["effectiveStock"] = inventory_service.get_effective_stock(p.id, store_id)
        return d

    # If no pagination requested, return all items
    if page is None:
        products = base_query.all()
        return {
            "items": [_serialize(p) for p in products],
            "count": len(products),
        }

    # Pagination logic
    per_page = min(per_page or 20, 100)  # Default 20, max 100
    page = max(page, 1)  # Ensure page >= 1

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [_serialize(p) for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_effective_stock(product_id: str, store_id: Optional[str] = None) -> int:
    return inventory_service.get_effective_stock(product_id, store_id)


def add_product(patch: dict, actor: Optional[Actor] = None, *, commit: bool = True) -> Product:
    """
    Create a product with its initial stock.

    Initial stock is sum(stock_by_store) when a per-store map is given,
    else `stock`; it is recorded as one INITIAL_STOCK entry (no store).

    Raises:
        ValidationError: missing sku/name, bad stock values
        ConflictError: SKU already exists
        NotFoundError: unknown category or store in stock_by_store
    """
    sku = patch.get("sku")
    if not sku:
        raise ValidationError("sku is required")
    if not patch.get("name"):
        raise ValidationError("name is required")

    stock_by_store = validate_stock_by_store(patch.get("stock_by_store"))

    def _op():
        _require_unique_sku(sku)
        _require_category(patch.get("category_id"))
        _require_stores(stock_by_store)

        p = Product(id=patch["id"]) if patch.get("id") else Product()
        apply_product_patch(p, patch)
        p.stock_by_store = stock_by_store
        p.stock = stock_map_total(stock_by_store) if stock_by_store is not None else int(patch.get("stock") or 0)
        if p.stock < 0:
            raise ValidationError("stock must be >= 0")

        db.session.add(p)
        db.session.flush()  # ensure p.id exists before history append

        history_service.append_history_entry(
            history_type=history_service.HISTORY_TYPE_INITIAL_STOCK,
            reference_id=p.id,
            description="Initial stock on product creation",
            product_id=p.id,
            product_name=p.name,
            quantity_change=p.stock,
            current_stock=p.stock,
            user_id=actor.user_id if actor else None,
            user_name=actor.user_name if actor else None,
        )

        current_app.logger.info("Product created: %s (sku=%s, stock=%s)", p.id, p.sku, p.stock)
        return p

    return run_in_transaction(_op, commit=commit)


def update_product(product_id: str, patch: dict, actor: Optional[Actor] = None, *, commit: bool = True) -> Product:
    """
    Apply arbitrary field changes. A change in TOTAL stock (aggregate or
    summed per-store) is recorded as one PRODUCT_EDIT entry with the net
    change; this is the manual-correction path, not a workflow movement.
    """
    if "stock_by_store" in patch:
        patch = {**patch, "stock_by_store": validate_stock_by_store(patch["stock_by_store"])}

    def _op():
        p = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if p is None:
            raise ProductNotFoundError(product_id)

        if "sku" in patch and patch["sku"] != p.sku:
            if not patch["sku"]:
                raise ValidationError("sku cannot be blank")
            _require_unique_sku(patch["sku"], exclude_id=p.id)
        if "category_id" in patch:
            _require_category(patch["category_id"])
        if patch.get("stock_by_store"):
            _require_stores(patch["stock_by_store"])

        previous_total = p.total_stock()
        apply_product_patch(p, patch)

        if p.stock_by_store is not None:
            p.stock_by_store = dict(p.stock_by_store)
            p.stock = stock_map_total(p.stock_by_store)
        elif p.stock is None or p.stock < 0:
            raise ValidationError("stock must be >= 0")

        new_total = p.total_stock()
        db.session.flush()

        if new_total != previous_total:
            history_service.append_history_entry(
                history_type=history_service.HISTORY_TYPE_PRODUCT_EDIT,
                reference_id=p.id,
                description="Stock edited on product record",
                product_id=p.id,
                product_name=p.name,
                quantity_change=new_total - previous_total,
                current_stock=new_total,
                user_id=actor.user_id if actor else None,
                user_name=actor.user_name if actor else None,
            )
        return p

    return run_in_transaction(_op, commit=commit)


def delete_product(product_id: str, actor: Optional[Actor] = None, *, commit: bool = True) -> None:
    """
    Remove a product. A PRODUCT_DELETED entry removing all counted stock
    (quantity_change = -total, current_stock = 0) is written first.
    """
    def _op():
        p = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if p is None:
            raise ProductNotFoundError(product_id)

        total = p.total_stock()
        history_service.append_history_entry(
            history_type=history_service.HISTORY_TYPE_PRODUCT_DELETED,
            reference_id=p.id,
            description=f"Product deleted (sku={p.sku})",
            product_id=p.id,
            product_name=p.name,
            quantity_change=-total,
            current_stock=0,
            user_id=actor.user_id if actor else None,
            user_name=actor.user_name if actor else None,
        )
        db.session.delete(p)
        db.session.flush()
        current_app.logger.info("Product deleted: %s (removed stock %s)", product_id, total)

    run_in_transaction(_op, commit=commit)


def reassign_products_to_category(old_category_id: str, new_category_id: str, *, commit: bool = True) -> int:
    """Bulk category move; no stock or history effect. Returns rows updated."""
    _require_category(new_category_id)

    def _op():
        products = db.session.query(Product).filter(Product.category_id == old_category_id).all()
        for p in products:
            p.category_id = new_category_id
        db.session.flush()
        return len(products)

    return run_in_transaction(_op, commit=commit)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

def list_categories() -> list[Category]:
    return db.session.query(Category).order_by(Category.name.asc()).all()


def get_category(category_id: str) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} not found", {"category_id": category_id})
    return category


def create_category(name: str, *, commit: bool = True) -> Category:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if db.session.query(Category.id).filter(Category.name == name).first():
        raise ConflictError("Category name already exists.")
    category = Category(name=name, is_uncategorized=False)
    db.session.add(category)
    db.session.flush()
    if commit:
        db.session.commit()
    return category


def ensure_uncategorized_category(*, commit: bool = True) -> Category:
    category = db.session.query(Category).filter_by(is_uncategorized=True).first()
    if category is None:
        category = Category(name=UNCATEGORIZED_NAME, is_uncategorized=True)
        db.session.add(category)
        db.session.flush()
        if commit:
            db.session.commit()
    return category


def delete_category(category_id: str, *, commit: bool = True) -> int:
    """
    Delete a category after moving its products to the Uncategorized
    category. Returns how many products were moved.
    """
    def _op():
        category = get_category(category_id)
        if category.is_uncategorized:
            raise InvalidStateError("The Uncategorized category cannot be deleted")
        fallback = ensure_uncategorized_category(commit=False)
        moved = reassign_products_to_category(category.id, fallback.id, commit=False)
        db.session.delete(category)
        db.session.flush()
        return moved

    return run_in_transaction(_op, commit=commit)
