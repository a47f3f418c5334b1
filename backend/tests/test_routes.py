"""
HTTP surface tests.

Verifies:
- Protected endpoints return 401 without a signed-in employee
- Employees are denied admin operations (403)
- Cart, checkout and refund flows through the JSON API
"""

import pytest

from conftest import PASSWORD, nxm_offer


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("GET", "/api/products/search?q=a"),
            ("GET", "/api/promotions"),
            ("GET", "/api/cart"),
            ("POST", "/api/cart/lines"),
            ("POST", "/api/sales/checkout"),
            ("POST", "/api/returns"),
            ("POST", "/api/auth/logout"),
            ("GET", "/api/auth/users"),
            ("GET", "/api/system/state"),
        ],
    )
    def test_requires_auth(self, client, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_health_is_public(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"


# =============================================================================
# AUTH
# =============================================================================


class TestAuthRoutes:
    def test_login_and_session(self, client):
        resp = client.post("/api/auth/login", json={"code": "E001", "password": PASSWORD})
        assert resp.status_code == 200
        assert resp.json["user"]["code"] == "E001"
        assert "password_hash" not in resp.json["user"]
        assert resp.json["seconds_left"] == 1200

        resp = client.get("/api/auth/session")
        assert resp.json["authenticated"] is True

    def test_invalid_credentials(self, client):
        resp = client.post("/api/auth/login", json={"code": "E001", "password": "wrong"})
        assert resp.status_code == 401

    def test_missing_fields(self, client):
        resp = client.post("/api/auth/login", json={"code": "E001"})
        assert resp.status_code == 400

    def test_inactive_account(self, app, client):
        app.extensions["cashdesk"].users.deactivate_user("u1")
        resp = client.post("/api/auth/login", json={"code": "E001", "password": PASSWORD})
        assert resp.status_code == 403

    def test_idle_timeout_closes_session(self, employee_client, clock):
        clock.advance(1200)
        resp = employee_client.get("/api/cart")
        assert resp.status_code == 401
        assert resp.json["error"] == "Session closed due to inactivity"

        resp = employee_client.get("/api/auth/session")
        assert resp.json["authenticated"] is False

    def test_activity_heartbeat(self, employee_client, clock):
        clock.advance(600)
        resp = employee_client.post("/api/auth/activity")
        assert resp.status_code == 200
        assert resp.json["seconds_left"] == 1200

    def test_logout(self, employee_client):
        assert employee_client.post("/api/auth/logout").status_code == 200
        assert employee_client.get("/api/cart").status_code == 401

    def test_employee_cannot_manage_users(self, employee_client):
        assert employee_client.get("/api/auth/users").status_code == 403

    def test_admin_creates_user(self, admin_client):
        resp = admin_client.post("/api/auth/users", json={"code": "E003", "name": "Rosa", "password": "abcd"})
        assert resp.status_code == 201
        resp = admin_client.post("/api/auth/users", json={"code": "E003", "name": "Rosa", "password": "abcd"})
        assert resp.status_code == 409
        resp = admin_client.post("/api/auth/users", json={"code": "E004", "name": "Rosa", "password": "ab"})
        assert resp.status_code == 400


# =============================================================================
# PRODUCTS / PROMOTIONS
# =============================================================================


class TestProductRoutes:
    def test_lookup_by_barcode(self, employee_client):
        resp = employee_client.get("/api/products/lookup?q=775B")
        assert resp.status_code == 200
        assert resp.json["product"]["id"] == "b"
        assert employee_client.get("/api/products/lookup?q=zzz").status_code == 404

    def test_low_stock(self, employee_client):
        resp = employee_client.get("/api/products/low-stock")
        assert resp.json["threshold"] == 10
        assert [p["id"] for p in resp.json["products"]] == ["b"]

    def test_employee_cannot_edit_catalog(self, employee_client):
        resp = employee_client.post("/api/products", json={"code": "C", "sale_price": "1.00"})
        assert resp.status_code == 403

    def test_admin_catalog_edits(self, admin_client):
        resp = admin_client.post("/api/products", json={"code": "C", "sale_price": "1.00", "stock": 3})
        assert resp.status_code == 201
        product_id = resp.json["product"]["id"]

        assert admin_client.post("/api/products", json={"code": "C", "sale_price": "1.00"}).status_code == 409
        assert admin_client.post("/api/products", json={"code": "D", "sale_price": "-1"}).status_code == 400

        resp = admin_client.patch(f"/api/products/{product_id}", json={"sale_price": "1.50"})
        assert resp.json["product"]["sale_price"] == "1.50"

        resp = admin_client.delete(f"/api/products/{product_id}")
        assert resp.json["product"]["is_active"] is False
        assert admin_client.delete("/api/products/missing").status_code == 404


class TestPromotionRoutes:
    def test_admin_creates_offer_and_cart_reprices(self, admin_client):
        admin_client.post("/api/cart/lines", json={"product_id": "a", "quantity": 3})

        resp = admin_client.post("/api/promotions", json=nxm_offer(["a"]))
        assert resp.status_code == 201

        cart = admin_client.get("/api/cart").json["cart"]
        assert cart["discount_amount"] == "2.50"

        offer_id = resp.json["offer"]["id"]
        assert admin_client.delete(f"/api/promotions/{offer_id}").status_code == 200
        cart = admin_client.get("/api/cart").json["cart"]
        assert cart["discount_amount"] == "0"

    def test_invalid_offer(self, admin_client):
        resp = admin_client.post("/api/promotions", json=nxm_offer(["a"], buy=2, pay=2))
        assert resp.status_code == 400

    def test_missing_fields(self, admin_client):
        resp = admin_client.post("/api/promotions", json={"name": "x"})
        assert resp.status_code == 400

    def test_active_list(self, app, employee_client):
        app.extensions["cashdesk"].offers.add(nxm_offer(["a"]))
        resp = employee_client.get("/api/promotions/active")
        assert len(resp.json["offers"]) == 1


# =============================================================================
# CART / CHECKOUT / RETURNS
# =============================================================================


class TestCartRoutes:
    def test_add_by_code_and_totals(self, employee_client):
        resp = employee_client.post("/api/cart/lines", json={"code": "775A", "quantity": 2})
        assert resp.status_code == 201
        cart = resp.json["cart"]
        assert cart["subtotal"] == "5.00"
        assert cart["total"] == "5.9000"
        assert cart["total_rounded"] == "5.90"

    def test_insufficient_stock(self, employee_client):
        resp = employee_client.post("/api/cart/lines", json={"product_id": "b", "quantity": 11})
        assert resp.status_code == 409
        assert resp.json["available"] == 10
        assert employee_client.get("/api/cart").json["cart"]["lines"] == []

    def test_invalid_quantity(self, employee_client):
        resp = employee_client.post("/api/cart/lines", json={"product_id": "a", "quantity": "1.5"})
        assert resp.status_code == 400

    def test_unknown_product(self, employee_client):
        resp = employee_client.post("/api/cart/lines", json={"product_id": "zzz"})
        assert resp.status_code == 404

    def test_set_quantity_remove_and_clear(self, employee_client):
        employee_client.post("/api/cart/lines", json={"product_id": "a"})
        employee_client.post("/api/cart/lines", json={"product_id": "b"})

        resp = employee_client.patch("/api/cart/lines/a", json={"quantity": 4})
        assert [l["quantity"] for l in resp.json["cart"]["lines"] if l["product_id"] == "a"] == [4]

        resp = employee_client.delete("/api/cart/lines/b")
        assert [l["product_id"] for l in resp.json["cart"]["lines"]] == ["a"]

        resp = employee_client.post("/api/cart/clear")
        assert resp.json["cart"]["lines"] == []

    def test_totals_endpoint(self, employee_client):
        employee_client.post("/api/cart/lines", json={"product_id": "b"})
        resp = employee_client.get("/api/cart/totals")
        assert resp.json["line_count"] == 1
        assert resp.json["total_rounded"] == "5.00"


class TestCheckoutAndReturns:
    def _sell(self, client, **payment):
        client.post("/api/cart/lines", json={"product_id": "a", "quantity": 2})
        return client.post("/api/sales/checkout", json=payment)

    def test_cash_checkout_gives_change(self, employee_client):
        resp = self._sell(employee_client, payment_method="cash", amount_received="10.00")
        assert resp.status_code == 201
        assert resp.json["payment"]["change"] == "4.10"
        assert resp.json["sale"]["total"] == "5.9000"

    def test_short_cash(self, employee_client):
        resp = self._sell(employee_client, payment_method="cash", amount_received="1.00")
        assert resp.status_code == 400
        assert employee_client.get("/api/cart").json["cart"]["lines"] != []

    def test_empty_cart_checkout(self, employee_client):
        resp = employee_client.post("/api/sales/checkout", json={"payment_method": "card"})
        assert resp.status_code == 400

    def test_ticket_lookup_and_refund(self, employee_client):
        ticket = self._sell(employee_client, payment_method="card").json["sale"]["ticket_number"]

        resp = employee_client.get(f"/api/sales/ticket/{ticket}")
        assert resp.status_code == 200
        assert resp.json["refundable"] == {"a": 2}

        resp = employee_client.post("/api/returns", json={
            "ticket_number": ticket,
            "items": [{"product_id": "a", "quantity": 1}],
            "reason": "Customer changed mind",
        })
        assert resp.status_code == 201
        assert resp.json["sale_status"] == "partial_refund"

        resp = employee_client.post("/api/returns", json={
            "ticket_number": ticket,
            "items": [{"product_id": "a", "quantity": 5}],
            "reason": "Again",
        })
        assert resp.status_code == 400

        resp = employee_client.get(f"/api/returns/ticket/{ticket}")
        assert resp.json["refundable"] == {"a": 1}

    def test_refund_requires_reason(self, employee_client):
        ticket = self._sell(employee_client, payment_method="card").json["sale"]["ticket_number"]
        resp = employee_client.post("/api/returns", json={
            "ticket_number": ticket,
            "items": [{"product_id": "a", "quantity": 1}],
            "reason": "",
        })
        assert resp.status_code == 400

    def test_unknown_ticket(self, employee_client):
        assert employee_client.get("/api/sales/ticket/T1").status_code == 404
        resp = employee_client.post("/api/returns", json={
            "ticket_number": "T1",
            "items": [{"product_id": "a", "quantity": 1}],
            "reason": "Damaged",
        })
        assert resp.status_code == 404


class TestReports:
    def test_daily_report_is_admin_only(self, employee_client):
        assert employee_client.get("/api/sales/reports/daily").status_code == 403

    def test_daily_report(self, admin_client):
        admin_client.post("/api/cart/lines", json={"product_id": "a", "quantity": 2})
        admin_client.post("/api/sales/checkout", json={"payment_method": "card"})
        resp = admin_client.get("/api/sales/reports/daily?date=2026-06-15")
        assert resp.status_code == 200
        assert resp.json["sale_count"] == 1
        assert admin_client.get("/api/sales/reports/daily?date=junk").status_code == 400

    def test_own_employee_report(self, employee_client):
        assert employee_client.get("/api/sales/reports/employee/u1").status_code == 200
        assert employee_client.get("/api/sales/reports/employee/admin").status_code == 403


def test_autosave_writes_state(app, employee_client):
    app.config["AUTOSAVE_STATE"] = True
    employee_client.post("/api/cart/lines", json={"product_id": "a"})
    resp = employee_client.get("/api/auth/session")
    assert resp.status_code == 200

    from cashdesk.services.state_service import StateStore
    assert StateStore().load("cart")["current_user_id"] == "u1"
