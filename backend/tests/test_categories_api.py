"""Tests for menu categories."""

import pytest

from restopos.db.models import MenuItem


@pytest.mark.asyncio
async def test_create_and_list(client, admin_headers, waiter_headers):
    for name in ("Desserts", "Appetizers"):
        response = await client.post("/api/categories", headers=admin_headers, json={"name": name})
        assert response.status_code == 201

    listing = await client.get("/api/categories", headers=waiter_headers)
    assert [c["name"] for c in listing.json()] == ["Appetizers", "Desserts"]


@pytest.mark.asyncio
async def test_duplicate_name_conflicts(client, admin_headers):
    await client.post("/api/categories", headers=admin_headers, json={"name": "Beverages"})
    response = await client.post("/api/categories", headers=admin_headers, json={"name": " Beverages "})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_waiter_cannot_create(client, waiter_headers):
    response = await client.post("/api/categories", headers=waiter_headers, json={"name": "Specials"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_delete_leaves_items_uncategorized(client, storage, admin_headers, make_menu_item):
    item = make_menu_item(name="Gulab Jamun", category="Desserts")

    session = storage._get_session()
    try:
        category_id = session.get(MenuItem, item.id).category_id
    finally:
        session.close()
    assert category_id is not None

    response = await client.delete(f"/api/categories/{category_id}", headers=admin_headers)
    assert response.status_code == 200

    session = storage._get_session()
    try:
        survivor = session.get(MenuItem, item.id)
        assert survivor is not None
        assert survivor.category_id is None
    finally:
        session.close()

    missing = await client.delete(f"/api/categories/{category_id}", headers=admin_headers)
    assert missing.status_code == 404
