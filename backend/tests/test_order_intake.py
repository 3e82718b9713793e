"""
Tests for staff order intake: validation, coalescing, authoritative pricing,
discounts and all-or-nothing stock reservation.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from restopos.db import menu_access
from restopos.db.models import Order, OrderItem
from restopos.errors import (
    ErrorKind,
    ValidationError,
    MenuItemNotFoundError,
    UnavailableError,
    InsufficientStockError,
)
from restopos.services import ordering


def _count(storage, model):
    session = storage._get_session()
    try:
        return session.execute(select(func.count(model.id))).scalar_one()
    finally:
        session.close()


def _stock(storage, menu_item_id):
    session = storage._get_session()
    try:
        return menu_access.get_stock(session, menu_item_id)
    finally:
        session.close()


def _place(storage, waiter, items, table_number=4, discount_id=None):
    with storage.transaction() as session:
        order = ordering.place_staff_order(
            session, waiter, table_number=table_number, items=items, discount_id=discount_id
        )
        return order.id, order.subtotal, order.discount_amount, order.total_price


class TestNormalizeLines:

    def test_duplicate_lines_are_coalesced_in_first_seen_order(self):
        lines = [
            {"menuItemId": 3, "quantity": 1},
            {"menuItemId": 1, "quantity": 2},
            {"menuItemId": 3, "quantity": 4},
        ]
        assert list(ordering.normalize_lines(lines).items()) == [(3, 5), (1, 2)]

    def test_numeric_strings_and_integral_floats_accepted(self):
        assert ordering.normalize_lines([{"menuItemId": "7", "quantity": 2.0}]) == {7: 2}

    @pytest.mark.parametrize("items", [
        None,
        [],
        "not a list",
        [{"menuItemId": 1}],
        [{"quantity": 1}],
        [{"menuItemId": 1, "quantity": 0}],
        [{"menuItemId": 1, "quantity": -2}],
        [{"menuItemId": 1, "quantity": 1.5}],
        [{"menuItemId": 0, "quantity": 1}],
        [{"menuItemId": True, "quantity": 1}],
        [{"menuItemId": "abc", "quantity": 1}],
        [5],
        [{"menuItemId": 10**20, "quantity": 1}],
        [{"menuItemId": 1, "quantity": 2**31}],
        [{"menuItemId": 1, "quantity": 2**31 - 1}, {"menuItemId": 1, "quantity": 1}],
    ])
    def test_malformed_lines_rejected(self, items):
        with pytest.raises(ValidationError):
            ordering.normalize_lines(items)

    @pytest.mark.parametrize("table_number", [None, 0, -1, "x", 2.5, True, 2**31, 10**20])
    def test_table_number_must_be_positive_integer(self, table_number):
        with pytest.raises(ValidationError):
            ordering.validate_table_number(table_number)


class TestStaffOrderIntake:

    def test_duplicate_lines_summed_and_priced_from_menu(self, storage, waiter_user, make_menu_item):
        """Cart [1 x2, 1 x3] at 50.00 with stock 10 -> qty 5, subtotal 250.00, stock 5."""
        item = make_menu_item(name="Thali", price="50", stock=10)

        order_id, subtotal, discount_amount, total = _place(storage, waiter_user, [
            {"menuItemId": item.id, "quantity": 2},
            {"menuItemId": item.id, "quantity": 3},
        ])

        assert subtotal == 25000
        assert discount_amount == 0
        assert total == 25000
        assert _stock(storage, item.id) == 5

        session = storage._get_session()
        try:
            lines = session.execute(select(OrderItem).where(OrderItem.order_id == order_id)).scalars().all()
            assert [(l.menu_item_id, l.name, l.quantity, l.price) for l in lines] == [
                (item.id, "Thali", 5, 5000)
            ]
            order = session.get(Order, order_id)
            assert order.status == "Pending"
            assert order.waiter_id == waiter_user.id
            assert order.waiter_name == "Wendy Waiter"
        finally:
            session.close()

    def test_client_prices_are_ignored(self, storage, waiter_user, make_menu_item):
        item = make_menu_item(price="12.50", stock=5)
        _, subtotal, _, _ = _place(storage, waiter_user, [
            {"menuItemId": item.id, "quantity": 2, "price": "0.01"},
        ])
        assert subtotal == 2500

    def test_unavailable_item_rejected_without_side_effects(self, storage, waiter_user, make_menu_item):
        item = make_menu_item(name="Seasonal Soup", stock=8, available=False)

        with pytest.raises(UnavailableError) as exc_info:
            _place(storage, waiter_user, [{"menuItemId": item.id, "quantity": 1}])

        assert exc_info.value.kind is ErrorKind.UNAVAILABLE
        assert _stock(storage, item.id) == 8
        assert _count(storage, Order) == 0

    def test_over_stock_rejected_without_side_effects(self, storage, waiter_user, make_menu_item):
        item = make_menu_item(stock=5)

        with pytest.raises(InsufficientStockError) as exc_info:
            _place(storage, waiter_user, [{"menuItemId": item.id, "quantity": 20}])

        assert exc_info.value.public_message() == "Insufficient stock for one or more items"
        assert _stock(storage, item.id) == 5
        assert _count(storage, Order) == 0
        assert _count(storage, OrderItem) == 0

    def test_one_bad_line_rejects_whole_order(self, storage, waiter_user, make_menu_item):
        plenty = make_menu_item(name="Naan", stock=100)
        scarce = make_menu_item(name="Lobster", stock=1)

        with pytest.raises(InsufficientStockError):
            _place(storage, waiter_user, [
                {"menuItemId": plenty.id, "quantity": 3},
                {"menuItemId": scarce.id, "quantity": 2},
            ])

        assert _stock(storage, plenty.id) == 100
        assert _stock(storage, scarce.id) == 1
        assert _count(storage, Order) == 0

    def test_unknown_item_is_not_found(self, storage, waiter_user, make_menu_item):
        item = make_menu_item(stock=3)

        with pytest.raises(MenuItemNotFoundError) as exc_info:
            _place(storage, waiter_user, [
                {"menuItemId": item.id, "quantity": 1},
                {"menuItemId": 9999, "quantity": 1},
            ])

        assert exc_info.value.kind is ErrorKind.NOT_FOUND
        assert _stock(storage, item.id) == 3
        assert _count(storage, Order) == 0

    def test_lost_race_on_reservation_rolls_back(self, storage, waiter_user, make_menu_item, monkeypatch):
        """If the conditional update finds the stock gone, nothing is kept."""
        first = make_menu_item(name="Tea", stock=10)
        second = make_menu_item(name="Cake", stock=10)
        real_reserve = menu_access.reserve_stock

        def reserve_then_lose(session, menu_item_id, quantity):
            if menu_item_id == second.id:
                return False
            return real_reserve(session, menu_item_id, quantity)

        monkeypatch.setattr(menu_access, "reserve_stock", reserve_then_lose)

        with pytest.raises(InsufficientStockError):
            _place(storage, waiter_user, [
                {"menuItemId": first.id, "quantity": 2},
                {"menuItemId": second.id, "quantity": 2},
            ])

        assert _stock(storage, first.id) == 10
        assert _count(storage, Order) == 0

    def test_percentage_discount(self, storage, waiter_user, make_menu_item, make_discount):
        """Subtotal 1000.00 with 10% off -> 100.00 off, 900.00 total."""
        item = make_menu_item(price="500", stock=10)
        discount = make_discount(type="Percentage", value="10")

        _, subtotal, discount_amount, total = _place(
            storage, waiter_user, [{"menuItemId": item.id, "quantity": 2}], discount_id=discount.id
        )

        assert (subtotal, discount_amount, total) == (100000, 10000, 90000)

    def test_fixed_discount_clamps_to_subtotal(self, storage, waiter_user, make_menu_item, make_discount):
        """Subtotal 50.00 with 200.00 off -> 50.00 off, 0.00 total."""
        item = make_menu_item(price="50", stock=10)
        discount = make_discount(name="Comp", type="Fixed", value="200")

        _, subtotal, discount_amount, total = _place(
            storage, waiter_user, [{"menuItemId": item.id, "quantity": 1}], discount_id=discount.id
        )

        assert (subtotal, discount_amount, total) == (5000, 5000, 0)

    def test_inactive_discount_rejected(self, storage, waiter_user, make_menu_item, make_discount):
        item = make_menu_item(stock=10)
        discount = make_discount(active=False)

        with pytest.raises(ValidationError):
            _place(storage, waiter_user, [{"menuItemId": item.id, "quantity": 1}], discount_id=discount.id)

        assert _stock(storage, item.id) == 10

    def test_totals_invariant_holds_for_stored_orders(self, storage, waiter_user, make_menu_item, make_discount):
        a = make_menu_item(name="A", price="3.33", stock=50)
        b = make_menu_item(name="B", price="7.01", stock=50)
        discount = make_discount(type="Percentage", value="12.5")

        order_id, _, _, _ = _place(storage, waiter_user, [
            {"menuItemId": a.id, "quantity": 3},
            {"menuItemId": b.id, "quantity": 1},
            {"menuItemId": a.id, "quantity": 1},
        ], discount_id=discount.id)

        session = storage._get_session()
        try:
            order = session.get(Order, order_id)
            assert order.total_price == order.subtotal - order.discount_amount
            assert order.subtotal == sum(i.price * i.quantity for i in order.items)
            assert order.subtotal == 4 * 333 + 701
        finally:
            session.close()


class TestOrderEditsAndStatus:

    def test_edit_lines_moves_stock(self, storage, waiter_user, make_menu_item):
        tea = make_menu_item(name="Tea", price="2", stock=10)
        cake = make_menu_item(name="Cake", price="4", stock=10)
        order_id, _, _, _ = _place(storage, waiter_user, [{"menuItemId": tea.id, "quantity": 4}])

        with storage.transaction() as session:
            order = ordering.update_order_lines(session, order_id, [
                {"menuItemId": tea.id, "quantity": 1},
                {"menuItemId": cake.id, "quantity": 2},
            ])
            assert order.subtotal == 200 + 800

        assert _stock(storage, tea.id) == 9
        assert _stock(storage, cake.id) == 8

    def test_edit_can_reuse_units_the_order_already_holds(self, storage, waiter_user, make_menu_item):
        item = make_menu_item(stock=3)
        order_id, _, _, _ = _place(storage, waiter_user, [{"menuItemId": item.id, "quantity": 3}])

        with storage.transaction() as session:
            ordering.update_order_lines(session, order_id, [{"menuItemId": item.id, "quantity": 2}])

        assert _stock(storage, item.id) == 1

    def test_cancel_returns_stock(self, storage, waiter_user, make_menu_item):
        item = make_menu_item(stock=10)
        order_id, _, _, _ = _place(storage, waiter_user, [{"menuItemId": item.id, "quantity": 6}])
        assert _stock(storage, item.id) == 4

        with storage.transaction() as session:
            ordering.change_order_status(session, order_id, "Cancelled")

        assert _stock(storage, item.id) == 10

    def test_cancelled_order_is_terminal(self, storage, waiter_user, make_menu_item):
        from restopos.errors import InvalidStateError

        item = make_menu_item(stock=10)
        order_id, _, _, _ = _place(storage, waiter_user, [{"menuItemId": item.id, "quantity": 1}])
        with storage.transaction() as session:
            ordering.change_order_status(session, order_id, "Cancelled")

        with pytest.raises(InvalidStateError):
            with storage.transaction() as session:
                ordering.change_order_status(session, order_id, "Served")

        with pytest.raises(InvalidStateError):
            with storage.transaction() as session:
                ordering.update_order_lines(session, order_id, [{"menuItemId": item.id, "quantity": 1}])

        assert _stock(storage, item.id) == 10

    def test_paid_only_through_checkout(self, storage, waiter_user, make_menu_item):
        from restopos.errors import InvalidStateError

        item = make_menu_item(stock=10)
        order_id, _, _, _ = _place(storage, waiter_user, [{"menuItemId": item.id, "quantity": 1}])

        with pytest.raises(InvalidStateError):
            with storage.transaction() as session:
                ordering.change_order_status(session, order_id, "Paid")


@pytest.mark.asyncio
class TestOrdersApi:

    async def test_create_order_over_http(self, client, waiter_headers, make_menu_item):
        item = make_menu_item(name="Thali", price="50", stock=10)

        response = await client.post("/api/orders", headers=waiter_headers, json={
            "tableNumber": 3,
            "items": [
                {"menuItemId": item.id, "quantity": 2},
                {"menuItemId": item.id, "quantity": 3},
            ],
        })

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "Pending"
        assert data["tableNumber"] == 3
        assert Decimal(data["subtotal"]) == Decimal("250")
        assert Decimal(data["totalPrice"]) == Decimal("250")
        assert len(data["items"]) == 1
        assert data["items"][0]["quantity"] == 5

    async def test_business_errors_map_to_400_with_kind(self, client, waiter_headers, make_menu_item):
        item = make_menu_item(stock=5)

        response = await client.post("/api/orders", headers=waiter_headers, json={
            "tableNumber": 3,
            "items": [{"menuItemId": item.id, "quantity": 20}],
        })

        assert response.status_code == 400
        assert response.json() == {
            "detail": "Insufficient stock for one or more items",
            "kind": "insufficient_stock",
        }

    async def test_malformed_body_is_a_validation_error(self, client, waiter_headers):
        response = await client.post("/api/orders", headers=waiter_headers, json={
            "tableNumber": "nope",
            "items": [],
        })
        assert response.status_code == 400
        assert response.json()["kind"] == "validation"

    @pytest.mark.parametrize("field", ["tableNumber", "menuItemId", "quantity", "discountId"])
    async def test_out_of_range_numbers_are_validation_errors(
        self, client, storage, waiter_headers, make_menu_item, field
    ):
        item = make_menu_item(stock=10)
        line = {"menuItemId": item.id, "quantity": 1}
        body = {"tableNumber": 1, "items": [line]}
        if field in line:
            line[field] = 10**20
        else:
            body[field] = 10**20

        response = await client.post("/api/orders", headers=waiter_headers, json=body)

        assert response.status_code == 400
        assert response.json()["kind"] == "validation"
        assert _count(storage, Order) == 0

    async def test_body_that_is_not_an_object(self, client, waiter_headers):
        as_list = await client.post("/api/orders", headers=waiter_headers, json=[{"tableNumber": 1}])
        not_json = await client.post(
            "/api/orders",
            headers={**waiter_headers, "Content-Type": "application/json"},
            content=b"{\"tableNumber\": 1,"
        )

        for response in (as_list, not_json):
            assert response.status_code == 400
            assert response.json()["kind"] == "validation"

    async def test_out_of_range_order_id(self, client, waiter_headers):
        response = await client.get(f"/api/orders/{10**20}", headers=waiter_headers)
        assert response.status_code == 400
        assert response.json()["kind"] == "validation"

    async def test_requires_login(self, client):
        response = await client.post("/api/orders", json={"tableNumber": 1, "items": []})
        assert response.status_code == 401

    async def test_unknown_order_is_404(self, client, waiter_headers):
        response = await client.get("/api/orders/12345", headers=waiter_headers)
        assert response.status_code == 404
        assert response.json()["kind"] == "order_not_found"

    async def test_list_filters_by_status(self, client, waiter_headers, make_menu_item):
        item = make_menu_item(stock=10)
        for table in (1, 2):
            await client.post("/api/orders", headers=waiter_headers, json={
                "tableNumber": table, "items": [{"menuItemId": item.id, "quantity": 1}],
            })
        orders = (await client.get("/api/orders", headers=waiter_headers)).json()
        await client.put(f"/api/orders/{orders[0]['id']}/status", headers=waiter_headers, json={"status": "Served"})

        served = await client.get("/api/orders", headers=waiter_headers, params={"status": "Served"})
        assert [o["id"] for o in served.json()] == [orders[0]["id"]]

        bad = await client.get("/api/orders", headers=waiter_headers, params={"status": "Lost"})
        assert bad.status_code == 400

    async def test_illegal_transition_is_409(self, client, waiter_headers, make_menu_item):
        item = make_menu_item(stock=10)
        created = (await client.post("/api/orders", headers=waiter_headers, json={
            "tableNumber": 1, "items": [{"menuItemId": item.id, "quantity": 1}],
        })).json()

        await client.put(f"/api/orders/{created['id']}/status", headers=waiter_headers, json={"status": "Cancelled"})
        response = await client.put(
            f"/api/orders/{created['id']}/status", headers=waiter_headers, json={"status": "Served"}
        )

        assert response.status_code == 409
        assert response.json()["kind"] == "invalid_state"

    async def test_admin_delete_cascades_and_restocks(self, client, admin_headers, waiter_headers, storage, make_menu_item):
        item = make_menu_item(stock=10)
        created = (await client.post("/api/orders", headers=waiter_headers, json={
            "tableNumber": 1, "items": [{"menuItemId": item.id, "quantity": 4}],
        })).json()

        forbidden = await client.delete(f"/api/orders/{created['id']}", headers=waiter_headers)
        assert forbidden.status_code == 403

        response = await client.delete(f"/api/orders/{created['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert _count(storage, Order) == 0
        assert _count(storage, OrderItem) == 0
        assert _stock(storage, item.id) == 10
