"""Tests for the public (customer) menu, order submission and call-waiter."""

import threading

import pytest
from sqlalchemy import func, select

from restopos.db.models import Order, User
from restopos.db.user_utils import ONLINE_WAITER_USERNAME, get_or_create_system_user


def _order_count(storage):
    session = storage._get_session()
    try:
        return session.execute(select(func.count(Order.id))).scalar_one()
    finally:
        session.close()


@pytest.mark.asyncio
class TestPublicOrders:

    async def test_public_menu_lists_only_orderable_items(self, client, make_menu_item):
        make_menu_item(name="Spring Rolls", stock=50)
        make_menu_item(name="Sold Out Soup", stock=0)
        make_menu_item(name="Hidden Special", stock=5, available=False)

        response = await client.get("/api/public/menu")

        assert response.status_code == 200
        names = [item["name"] for item in response.json()]
        assert names == ["Spring Rolls"]
        assert "stock" not in response.json()[0]

    async def test_submit_order_attributed_to_system_user(self, client, storage, make_menu_item, notification_hub):
        item = make_menu_item(price="4.99", stock=40)
        queue = notification_hub.subscribe()

        response = await client.post("/api/public/orders", json={
            "customerName": "  Priya ",
            "tableNumber": 7,
            "items": [{"menuItemId": item.id, "quantity": 2}],
        })

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "Pending"

        session = storage._get_session()
        try:
            order = session.get(Order, body["orderId"])
            assert order.customer_name == "Priya"
            assert order.waiter_name == "Online Orders"
            assert order.waiter.username == ONLINE_WAITER_USERNAME
            assert order.total_price == 998
            assert order.discount_amount == 0
        finally:
            session.close()

        event = queue.get_nowait()
        assert event["type"] == "new_order"
        assert event["tableNumber"] == 7
        assert event["customerName"] == "Priya"

    async def test_empty_customer_name_rejected(self, client, storage, make_menu_item):
        item = make_menu_item(stock=10)

        response = await client.post("/api/public/orders", json={
            "customerName": "   ",
            "tableNumber": 2,
            "items": [{"menuItemId": item.id, "quantity": 1}],
        })

        assert response.status_code == 400
        assert response.json()["kind"] == "validation"
        assert _order_count(storage) == 0

        session = storage._get_session()
        try:
            system_user = session.execute(
                select(User).where(User.username == ONLINE_WAITER_USERNAME)
            ).scalar_one_or_none()
            assert system_user is None
        finally:
            session.close()

    @pytest.mark.parametrize("field", ["tableNumber", "menuItemId"])
    async def test_oversized_numbers_rejected_before_any_write(self, client, storage, make_menu_item, field):
        item = make_menu_item(stock=10)
        line = {"menuItemId": item.id, "quantity": 1}
        body = {"customerName": "Sam", "tableNumber": 3, "items": [line]}
        if field in line:
            line[field] = 10**20
        else:
            body[field] = 10**20

        response = await client.post("/api/public/orders", json=body)

        assert response.status_code == 400
        assert response.json()["kind"] == "validation"
        assert _order_count(storage) == 0

    async def test_malformed_body_is_a_validation_error(self, client, storage):
        as_list = await client.post("/api/public/orders", json=[{"customerName": "Sam"}])
        not_json = await client.post(
            "/api/public/orders", headers={"Content-Type": "application/json"}, content=b"not json"
        )

        for response in (as_list, not_json):
            assert response.status_code == 400
            assert response.json()["kind"] == "validation"
        assert _order_count(storage) == 0

    async def test_unavailable_and_missing_items(self, client, make_menu_item):
        off = make_menu_item(name="Off Menu", stock=10, available=False)

        unavailable = await client.post("/api/public/orders", json={
            "customerName": "Sam", "tableNumber": 1, "items": [{"menuItemId": off.id, "quantity": 1}],
        })
        missing = await client.post("/api/public/orders", json={
            "customerName": "Sam", "tableNumber": 1, "items": [{"menuItemId": 424242, "quantity": 1}],
        })

        assert unavailable.status_code == 400
        assert unavailable.json() == {"detail": "Menu item is unavailable", "kind": "unavailable"}
        assert missing.status_code == 400
        assert missing.json() == {"detail": "Menu item not found", "kind": "not_found"}

    async def test_system_user_cannot_log_in(self, client, storage, make_menu_item):
        item = make_menu_item(stock=10)
        await client.post("/api/public/orders", json={
            "customerName": "Sam", "tableNumber": 1, "items": [{"menuItemId": item.id, "quantity": 1}],
        })

        response = await client.post("/api/auth/login", json={
            "username": ONLINE_WAITER_USERNAME, "password": "",
        })
        assert response.status_code == 401

    async def test_call_waiter_broadcasts(self, client, notification_hub):
        queue = notification_hub.subscribe()

        response = await client.post("/api/public/call-waiter", json={"tableNumber": 5, "customerName": "Ana"})

        assert response.status_code == 202
        assert response.json()["type"] == "call_waiter"
        event = queue.get_nowait()
        assert event["tableNumber"] == 5
        assert event["customerName"] == "Ana"

    async def test_call_waiter_needs_a_table(self, client):
        response = await client.post("/api/public/call-waiter", json={"tableNumber": 0})
        assert response.status_code == 400


class TestSystemUser:

    def test_find_or_create_is_idempotent(self, storage):
        first = get_or_create_system_user(storage)
        second = get_or_create_system_user(storage)
        assert first == second

    def test_concurrent_first_orders_share_one_user(self, storage):
        results = []
        errors = []
        lock = threading.Lock()

        def resolve():
            try:
                user_id = get_or_create_system_user(storage)
                with lock:
                    results.append(user_id)
            except Exception as exc:
                with lock:
                    errors.append(exc)

        threads = [threading.Thread(target=resolve) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert not errors
        assert len(set(results)) == 1

        session = storage._get_session()
        try:
            count = session.execute(
                select(func.count(User.id)).where(User.username == ONLINE_WAITER_USERNAME)
            ).scalar_one()
            assert count == 1
        finally:
            session.close()
