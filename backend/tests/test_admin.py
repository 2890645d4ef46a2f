"""
Admin back-office tests.

Verifies:
- Dashboard aggregates and their invalidation on writes
- Cross-customer order listing with status filter and pagination
- User edits through the allow-list; role change and deactivation revoke sessions
- Store credit adjustments never drive a balance negative
"""

import pytest

from storefront.extensions import db
from storefront.models import SessionToken, User
from storefront.services import order_service

from conftest import TEST_PASSWORD


def _reload_user(user_id):
    db.session.expire_all()
    return db.session.get(User, user_id)


# =============================================================================
# DASHBOARD
# =============================================================================


class TestDashboard:

    def test_aggregates(self, client, customer, other_customer, admin_headers, make_product, make_order):
        low = make_product(name="Low", stock=3)
        p = make_product(name="Plenty", price=1000, stock=50)
        make_order(customer, [(p, 2)], use_credit=True)  # fully paid by credit
        make_order(other_customer, [(p, 1)])

        resp = client.get("/api/admin/dashboard", headers=admin_headers)

        assert resp.status_code == 200
        stats = resp.get_json()
        assert stats["orders_total"] == 2
        assert stats["orders_by_status"]["PENDING"] == 2
        assert stats["orders_by_status"]["DELIVERED"] == 0
        assert stats["paid_revenue"] == 2000
        assert stats["pending_return_requests"] == 0
        assert stats["customer_count"] == 2
        assert [item["id"] for item in stats["low_stock_products"]] == [low.id]

    def test_refreshed_after_order_write(self, client, customer, admin, admin_headers, make_product, make_order):
        order = make_order(customer, [(make_product(), 1)])
        assert client.get("/api/admin/dashboard", headers=admin_headers).get_json()["orders_total"] == 1

        order_service.set_status(order.id, "CONFIRMED", admin)

        stats = client.get("/api/admin/dashboard", headers=admin_headers).get_json()
        assert stats["orders_by_status"]["CONFIRMED"] == 1
        assert stats["orders_by_status"]["PENDING"] == 0

    def test_refreshed_after_return_request(self, client, customer, admin, customer_headers, admin_headers,
                                            make_product, make_order):
        order = make_order(customer, [(make_product(), 2)])
        for status in ("CONFIRMED", "SHIPPED", "DELIVERED"):
            order_service.set_status(order.id, status, admin)
        client.get("/api/admin/dashboard", headers=admin_headers)

        client.post("/api/returns", json={
            "order_id": order.id,
            "items": [{"orderItemId": order.items[0].id, "quantity": 1}],
        }, headers=customer_headers)

        stats = client.get("/api/admin/dashboard", headers=admin_headers).get_json()
        assert stats["pending_return_requests"] == 1

    @pytest.mark.parametrize("headers_fixture", ["customer_headers", "worker_headers"])
    def test_admin_only(self, request, client, headers_fixture):
        headers = request.getfixturevalue(headers_fixture)
        assert client.get("/api/admin/dashboard", headers=headers).status_code == 403


# =============================================================================
# ORDERS
# =============================================================================


class TestAdminOrders:

    def test_lists_all_customers_orders(self, client, customer, other_customer, worker_headers,
                                        make_product, make_order):
        p = make_product()
        make_order(customer, [(p, 1)])
        make_order(other_customer, [(p, 1)])

        resp = client.get("/api/admin/orders", headers=worker_headers)

        assert resp.status_code == 200
        assert resp.get_json()["count"] == 2

    def test_status_filter_and_pagination(self, client, customer, admin, admin_headers,
                                          make_product, make_order):
        p = make_product()
        orders = [make_order(customer, [(p, 1)]) for _ in range(3)]
        order_service.set_status(orders[0].id, "CONFIRMED", admin)

        confirmed = client.get("/api/admin/orders?status=CONFIRMED", headers=admin_headers).get_json()
        assert [o["id"] for o in confirmed["items"]] == [orders[0].id]

        paged = client.get("/api/admin/orders?page=1&per_page=2", headers=admin_headers).get_json()
        assert paged["count"] == 2
        assert paged["pagination"]["total"] == 3
        assert paged["pagination"]["has_next"] is True

    def test_unknown_status(self, client, admin_headers):
        resp = client.get("/api/admin/orders?status=LOST", headers=admin_headers)
        assert resp.status_code == 400

    def test_customer_forbidden(self, client, customer_headers):
        assert client.get("/api/admin/orders", headers=customer_headers).status_code == 403


# =============================================================================
# USERS
# =============================================================================


class TestUserManagement:

    def test_list_by_role(self, client, customer, other_customer, worker, admin_headers):
        resp = client.get("/api/admin/users?role=CUSTOMER", headers=admin_headers)
        body = resp.get_json()
        assert body["count"] == 2
        assert {u["username"] for u in body["users"]} == {"shop_one", "shop_two"}
        assert all("password_hash" not in u for u in body["users"])

    def test_list_hides_inactive_by_default(self, client, customer, admin, admin_headers):
        client.patch(f"/api/admin/users/{customer.id}", json={"is_active": False}, headers=admin_headers)

        active = client.get("/api/admin/users", headers=admin_headers).get_json()
        everyone = client.get("/api/admin/users?include_inactive=true", headers=admin_headers).get_json()

        assert customer.id not in [u["id"] for u in active["users"]]
        assert customer.id in [u["id"] for u in everyone["users"]]

    def test_create_user(self, client, admin_headers):
        resp = client.post("/api/admin/users", json={
            "username": "shop_three", "password": TEST_PASSWORD, "phone": "09120000003",
            "shop_name": "Shop Three", "latitude": 35.71, "longitude": 51.42,
        }, headers=admin_headers)

        assert resp.status_code == 201, resp.get_json()
        user = resp.get_json()["user"]
        assert user["role"] == "CUSTOMER"
        assert user["shop_name"] == "Shop Three"
        assert user["balance"] == 0

    def test_create_duplicate_username(self, client, customer, admin_headers):
        resp = client.post("/api/admin/users", json={
            "username": "shop_one", "password": TEST_PASSWORD,
        }, headers=admin_headers)
        assert resp.status_code == 409

    def test_create_weak_password(self, client, admin_headers):
        resp = client.post("/api/admin/users", json={
            "username": "weak", "password": "password",
        }, headers=admin_headers)
        assert resp.status_code == 400

    def test_update_profile(self, client, customer, admin_headers):
        resp = client.patch(f"/api/admin/users/{customer.id}", json={
            "shop_address": "2 Side St", "latitude": 35.72,
        }, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.get_json()["user"]["shop_address"] == "2 Side St"
        assert resp.get_json()["user"]["latitude"] == pytest.approx(35.72)

    @pytest.mark.parametrize(
        "payload",
        [
            {"balance": 1000000},
            {"password_hash": "x"},
            {"username": "renamed"},
            {"role": "OWNER"},
            {"latitude": 120},
            {"is_active": "no"},
        ],
    )
    def test_rejected_fields(self, client, customer, admin_headers, payload):
        resp = client.patch(f"/api/admin/users/{customer.id}", json=payload, headers=admin_headers)
        assert resp.status_code == 400
        assert _reload_user(customer.id).balance == 5000

    def test_role_change_revokes_sessions(self, client, customer, customer_headers, admin_headers):
        assert client.get("/api/auth/me", headers=customer_headers).status_code == 200

        resp = client.patch(f"/api/admin/users/{customer.id}", json={"role": "WORKER"}, headers=admin_headers)

        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=customer_headers).status_code == 401
        assert db.session.query(SessionToken).filter_by(user_id=customer.id, is_revoked=False).count() == 0

    def test_deactivation_revokes_sessions(self, client, customer, customer_headers, admin_headers):
        client.patch(f"/api/admin/users/{customer.id}", json={"is_active": False}, headers=admin_headers)
        assert client.get("/api/auth/me", headers=customer_headers).status_code == 401

    def test_profile_edit_keeps_sessions(self, client, customer, customer_headers, admin_headers):
        client.patch(f"/api/admin/users/{customer.id}", json={"name": "Reza"}, headers=admin_headers)
        assert client.get("/api/auth/me", headers=customer_headers).status_code == 200

    @pytest.mark.parametrize("payload", [{"is_active": False}, {"role": "WORKER"}])
    def test_admin_cannot_lock_themselves_out(self, client, admin, admin_headers, payload):
        resp = client.patch(f"/api/admin/users/{admin.id}", json=payload, headers=admin_headers)
        assert resp.status_code == 400
        user = _reload_user(admin.id)
        assert user.is_active is True
        assert user.role == "ADMIN"

    def test_missing_user(self, client, admin_headers):
        resp = client.patch("/api/admin/users/9999", json={"name": "x"}, headers=admin_headers)
        assert resp.status_code == 404


# =============================================================================
# WALLET
# =============================================================================


class TestWallet:

    def test_credit_and_debit(self, client, customer, admin_headers):
        resp = client.post(f"/api/admin/users/{customer.id}/wallet", json={"amount": 2500}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["user"]["balance"] == 7500

        resp = client.post(f"/api/admin/users/{customer.id}/wallet", json={"amount": -7500}, headers=admin_headers)
        assert resp.get_json()["user"]["balance"] == 0

    def test_cannot_go_negative(self, client, customer, admin_headers):
        resp = client.post(f"/api/admin/users/{customer.id}/wallet", json={"amount": -5001}, headers=admin_headers)
        assert resp.status_code == 400
        assert _reload_user(customer.id).balance == 5000

    @pytest.mark.parametrize("amount", [0, 10.5, "ten", True])
    def test_invalid_amount(self, client, customer, admin_headers, amount):
        resp = client.post(f"/api/admin/users/{customer.id}/wallet", json={"amount": amount}, headers=admin_headers)
        assert resp.status_code == 400

    def test_amount_required(self, client, customer, admin_headers):
        resp = client.post(f"/api/admin/users/{customer.id}/wallet", json={}, headers=admin_headers)
        assert resp.status_code == 400

    def test_customer_cannot_top_up(self, client, customer, customer_headers):
        resp = client.post(f"/api/admin/users/{customer.id}/wallet", json={"amount": 100}, headers=customer_headers)
        assert resp.status_code == 403
