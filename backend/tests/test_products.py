"""
Catalogue tests.

Verifies:
- Public listing, search and detail (read-through cached)
- Writes invalidate cached reads
- ADMIN-only writes with allow-list validation
- Bulk price change scope and bounds
- Bulk delete by filters, keeping order line snapshots
- Search is rate limited per client address (429)
- Categories with product counts; in-use categories cannot be deleted
"""

import pytest

from storefront.extensions import db
from storefront.models import Category, OrderItem, Product
from storefront.services import throttle_service


def _ids(resp):
    return [p["id"] for p in resp.get_json()["items"]]


# =============================================================================
# PUBLIC READS
# =============================================================================


class TestProductReads:

    def test_lists_available_products_newest_first(self, client, make_product):
        first = make_product(name="First")
        second = make_product(name="Second")
        make_product(name="Hidden", available=False)

        resp = client.get("/api/products")

        assert resp.status_code == 200
        body = resp.get_json()
        assert _ids(resp) == [second.id, first.id]
        assert body["pagination"]["total"] == 2
        assert body["pagination"]["has_next"] is False

    def test_pagination(self, client, make_product):
        for i in range(5):
            make_product(name=f"P{i}")

        resp = client.get("/api/products?page=2&per_page=2")

        body = resp.get_json()
        assert body["count"] == 2
        assert body["pagination"] == {
            "page": 2, "per_page": 2, "total": 5, "total_pages": 3,
            "has_next": True, "has_prev": True,
        }

    def test_filter_by_category(self, client, category, make_product):
        drink = make_product(name="Cola", category_id=category.id)
        make_product(name="Soap")

        resp = client.get(f"/api/products?category_id={category.id}")
        assert _ids(resp) == [drink.id]

    def test_search_name_and_description(self, client, make_product):
        tea = make_product(name="Green Tea")
        mug = make_product(name="Mug")
        mug.description = "Perfect for tea"
        db.session.commit()
        make_product(name="Coffee")

        resp = client.get("/api/products?q=TEA")

        assert resp.status_code == 200
        assert sorted(_ids(resp)) == sorted([tea.id, mug.id])

    def test_detail_includes_final_price(self, client, make_product):
        p = make_product(price=1000, discount_percentage=15)
        resp = client.get(f"/api/products/{p.id}")
        assert resp.status_code == 200
        assert resp.get_json()["final_price"] == 850

    def test_detail_missing(self, client, db_session):
        resp = client.get("/api/products/9999")
        assert resp.status_code == 404


class TestProductCache:

    def test_list_is_cached_until_a_write(self, client, admin_headers, make_product):
        p = make_product(name="Old name")
        assert client.get("/api/products").get_json()["items"][0]["name"] == "Old name"

        # Direct DB edits bypass invalidation
        p.name = "Sneaky"
        db.session.commit()
        assert client.get("/api/products").get_json()["items"][0]["name"] == "Old name"

        client.put(f"/api/products/{p.id}", json={"name": "New name"}, headers=admin_headers)
        assert client.get("/api/products").get_json()["items"][0]["name"] == "New name"

    def test_detail_and_search_invalidated_on_update(self, client, admin_headers, make_product):
        p = make_product(name="Lemonade", price=1000)
        client.get(f"/api/products/{p.id}")
        client.get("/api/products?q=lemon")

        client.put(f"/api/products/{p.id}", json={"price": 1500}, headers=admin_headers)

        assert client.get(f"/api/products/{p.id}").get_json()["price"] == 1500
        assert client.get("/api/products?q=lemon").get_json()["items"][0]["price"] == 1500

    def test_deleted_product_is_not_served_from_cache(self, client, admin_headers, make_product):
        p = make_product()
        client.get(f"/api/products/{p.id}")

        client.delete(f"/api/products/{p.id}", headers=admin_headers)

        assert client.get(f"/api/products/{p.id}").status_code == 404


# =============================================================================
# ADMIN WRITES
# =============================================================================


class TestProductWrites:

    def test_admin_creates_product(self, client, admin_headers, category):
        resp = client.post("/api/products", json={
            "name": "Orange Juice", "price": 2500, "stock": 12,
            "discount_percentage": 20, "category_id": category.id,
        }, headers=admin_headers)

        assert resp.status_code == 201, resp.get_json()
        body = resp.get_json()
        assert body["final_price"] == 2000
        assert body["available"] is True

    @pytest.mark.parametrize("headers_fixture", ["customer_headers", "worker_headers"])
    def test_non_admin_forbidden(self, request, client, headers_fixture):
        headers = request.getfixturevalue(headers_fixture)
        resp = client.post("/api/products", json={"name": "X", "price": 1}, headers=headers)
        assert resp.status_code == 403
        assert db.session.query(Product).count() == 0

    def test_anonymous_unauthorized(self, client, db_session):
        resp = client.post("/api/products", json={"name": "X", "price": 1})
        assert resp.status_code == 401

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "X"},
            {"price": 100},
            {"name": "X", "price": -1},
            {"name": "X", "price": 10.5},
            {"name": "X", "price": 100, "discount_percentage": 101},
            {"name": "X", "price": 100, "stock": -3},
            {"name": "X", "price": 100, "available": "yes"},
            {"name": "X", "price": 100, "id": 7},
            {"name": "X", "price": 100, "category_id": 9999},
            {"name": "   ", "price": 100},
        ],
    )
    def test_invalid_payloads(self, client, admin_headers, payload):
        resp = client.post("/api/products", json=payload, headers=admin_headers)
        assert resp.status_code == 400
        assert "error" in resp.get_json()

    def test_partial_update(self, client, admin_headers, make_product):
        p = make_product(name="Keep", price=1000, stock=5)
        resp = client.put(f"/api/products/{p.id}", json={"stock": 0, "available": False},
                          headers=admin_headers)

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["name"] == "Keep"
        assert body["stock"] == 0
        assert body["available"] is False
        assert body["updated_at"] is not None

    def test_update_missing(self, client, admin_headers):
        resp = client.put("/api/products/9999", json={"stock": 1}, headers=admin_headers)
        assert resp.status_code == 404

    def test_delete_keeps_order_line_snapshot(self, client, customer, admin_headers,
                                              make_product, make_order):
        p = make_product(name="Gone", price=700)
        order = make_order(customer, [(p, 2)])
        line_id = order.items[0].id

        resp = client.delete(f"/api/products/{p.id}", headers=admin_headers)

        assert resp.status_code == 200
        db.session.expire_all()
        line = db.session.get(OrderItem, line_id)
        assert line.product_id is None
        assert line.product_name == "Gone"
        assert line.price == 700


class TestBulkPriceUpdate:

    def test_by_category(self, client, admin_headers, category, make_product):
        a = make_product(name="A", price=1000, category_id=category.id)
        b = make_product(name="B", price=999, category_id=category.id)
        other = make_product(name="C", price=1000)

        resp = client.post("/api/products/bulk-update-price",
                           json={"percent": 10, "category_id": category.id}, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.get_json() == {"updated": 2, "product_ids": [a.id, b.id]}
        db.session.expire_all()
        assert db.session.get(Product, a.id).price == 1100
        assert db.session.get(Product, b.id).price == 1099
        assert db.session.get(Product, other.id).price == 1000

    def test_by_product_ids_decrease(self, client, admin_headers, make_product):
        p = make_product(price=1000, discount_percentage=10)

        resp = client.post("/api/products/bulk-update-price",
                           json={"percent": -25, "product_ids": [p.id]}, headers=admin_headers)

        assert resp.get_json()["updated"] == 1
        db.session.expire_all()
        product = db.session.get(Product, p.id)
        assert product.price == 750
        assert product.discount_percentage == 10

    def test_invalidates_listing(self, client, admin_headers, make_product):
        p = make_product(price=1000)
        client.get("/api/products")

        client.post("/api/products/bulk-update-price",
                    json={"percent": 50, "product_ids": [p.id]}, headers=admin_headers)

        assert client.get("/api/products").get_json()["items"][0]["price"] == 1500

    @pytest.mark.parametrize(
        "payload",
        [
            {"percent": 0, "product_ids": [1]},
            {"percent": -100, "product_ids": [1]},
            {"percent": 1001, "product_ids": [1]},
            {"percent": 5.5, "product_ids": [1]},
            {"percent": 10},
            {"percent": 10, "category_id": 1, "product_ids": [1]},
            {"percent": 10, "product_ids": []},
            {"product_ids": [1]},
        ],
    )
    def test_rejected(self, client, admin_headers, payload):
        resp = client.post("/api/products/bulk-update-price", json=payload, headers=admin_headers)
        assert resp.status_code == 400

    def test_customer_forbidden(self, client, customer_headers):
        resp = client.post("/api/products/bulk-update-price",
                           json={"percent": 10, "product_ids": [1]}, headers=customer_headers)
        assert resp.status_code == 403


class TestBulkDelete:

    def test_by_ids_keeps_order_snapshots(self, client, customer, admin_headers, make_product, make_order):
        gone = make_product(name="Gone", price=700)
        also_gone = make_product(name="Also gone")
        kept = make_product(name="Kept")
        order = make_order(customer, [(gone, 1)])
        line_id = order.items[0].id

        resp = client.post("/api/products/bulk-delete",
                           json={"product_ids": [gone.id, also_gone.id]}, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.get_json() == {"deleted": 2, "product_ids": [gone.id, also_gone.id]}
        db.session.expire_all()
        assert [p.id for p in db.session.query(Product).all()] == [kept.id]
        line = db.session.get(OrderItem, line_id)
        assert line.product_id is None
        assert line.product_name == "Gone"

    def test_filters_combine(self, client, admin_headers, category, make_product):
        hidden = make_product(name="Hidden", available=False, category_id=category.id)
        make_product(name="Shown", category_id=category.id)
        make_product(name="Hidden elsewhere", available=False)

        resp = client.post("/api/products/bulk-delete",
                           json={"category_id": category.id, "available": False}, headers=admin_headers)

        assert resp.get_json() == {"deleted": 1, "product_ids": [hidden.id]}
        assert db.session.query(Product).count() == 2

    def test_invalidates_listing(self, client, admin_headers, make_product):
        p = make_product()
        assert _ids(client.get("/api/products")) == [p.id]

        client.post("/api/products/bulk-delete", json={"product_ids": [p.id]}, headers=admin_headers)

        assert _ids(client.get("/api/products")) == []

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"product_ids": []},
            {"product_ids": "1,2"},
            {"category_id": 9999},
            {"available": "no"},
        ],
    )
    def test_rejected(self, client, admin_headers, make_product, payload):
        make_product()
        resp = client.post("/api/products/bulk-delete", json=payload, headers=admin_headers)
        assert resp.status_code == 400
        assert db.session.query(Product).count() == 1

    def test_customer_forbidden(self, client, customer_headers, make_product):
        p = make_product()
        resp = client.post("/api/products/bulk-delete", json={"product_ids": [p.id]}, headers=customer_headers)
        assert resp.status_code == 403


# =============================================================================
# SEARCH RATE LIMIT
# =============================================================================


class TestSearchRateLimit:

    @pytest.fixture(autouse=True)
    def low_limit(self, monkeypatch):
        monkeypatch.setattr(throttle_service, "SEARCH_RATE_LIMIT", 2)

    def test_search_limited_per_client(self, client, make_product):
        make_product(name="Green tea")

        statuses = [client.get("/api/products?q=tea").status_code for _ in range(3)]

        assert statuses == [200, 200, 429]
        limited = client.get("/api/products?q=tea")
        assert limited.get_json()["retry_after"] > 0
        assert int(limited.headers["Retry-After"]) > 0

    def test_other_clients_unaffected(self, client, make_product):
        for _ in range(3):
            client.get("/api/products?q=tea")

        resp = client.get("/api/products?q=tea", environ_overrides={"REMOTE_ADDR": "10.0.0.9"})
        assert resp.status_code == 200

    def test_plain_listing_not_limited(self, client, make_product):
        make_product()
        statuses = {client.get("/api/products").status_code for _ in range(5)}
        assert statuses == {200}


# =============================================================================
# CATEGORIES
# =============================================================================


class TestCategories:

    def test_list_with_product_counts(self, client, category, make_product):
        make_product(category_id=category.id)
        make_product(category_id=category.id)
        db.session.add(Category(name="Cleaning"))
        db.session.commit()

        resp = client.get("/api/categories")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["count"] == 2
        assert [(c["name"], c["product_count"]) for c in body["categories"]] == [
            ("Beverages", 2),
            ("Cleaning", 0),
        ]

    def test_create_invalidates_list(self, client, admin_headers, category):
        client.get("/api/categories")
        resp = client.post("/api/categories", json={"name": "Snacks"}, headers=admin_headers)

        assert resp.status_code == 201
        names = [c["name"] for c in client.get("/api/categories").get_json()["categories"]]
        assert names == ["Beverages", "Snacks"]

    def test_duplicate_name_conflicts(self, client, admin_headers, category):
        resp = client.post("/api/categories", json={"name": "beverages"}, headers=admin_headers)
        assert resp.status_code == 409

    def test_rename(self, client, admin_headers, category):
        resp = client.put(f"/api/categories/{category.id}", json={"name": "Drinks"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["name"] == "Drinks"

    def test_delete_in_use_conflicts(self, client, admin_headers, category, make_product):
        make_product(category_id=category.id)

        resp = client.delete(f"/api/categories/{category.id}", headers=admin_headers)

        assert resp.status_code == 409
        assert resp.get_json()["product_count"] == 1
        assert db.session.get(Category, category.id) is not None

    def test_delete_empty(self, client, admin_headers, category):
        resp = client.delete(f"/api/categories/{category.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert client.get("/api/categories").get_json()["categories"] == []

    def test_customer_cannot_create(self, client, customer_headers):
        resp = client.post("/api/categories", json={"name": "Snacks"}, headers=customer_headers)
        assert resp.status_code == 403
