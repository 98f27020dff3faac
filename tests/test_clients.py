"""Tests for client management."""
import pytest
from httpx import AsyncClient

from tests.conftest import make_client, make_invoice


@pytest.mark.asyncio
async def test_create_and_list_clients(authed_client: AsyncClient):
    created = await authed_client.post("/api/v1/clients", json={
        "company_name": "Acme Corp",
        "email": "billing@acme.com",
        "contact_name": "Wile E.",
    })
    assert created.status_code == 201
    assert created.json()["company_name"] == "Acme Corp"

    listed = await authed_client.get("/api/v1/clients")
    assert listed.status_code == 200
    assert [c["id"] for c in listed.json()] == [created.json()["id"]]


@pytest.mark.asyncio
async def test_create_requires_company_and_email(authed_client: AsyncClient):
    no_email = await authed_client.post("/api/v1/clients", json={"company_name": "Acme Corp"})
    bad_email = await authed_client.post("/api/v1/clients", json={"company_name": "Acme", "email": "nope"})
    empty_name = await authed_client.post("/api/v1/clients", json={"company_name": "", "email": "a@acme.com"})

    assert no_email.status_code == 422
    assert bad_email.status_code == 422
    assert empty_name.status_code == 422


@pytest.mark.asyncio
async def test_partial_update(authed_client: AsyncClient, acme):
    response = await authed_client.put(f"/api/v1/clients/{acme.id}", json={"phone": "+1 555 0100"})

    assert response.status_code == 200
    data = response.json()
    assert data["phone"] == "+1 555 0100"
    assert data["company_name"] == "Acme Corp"


@pytest.mark.asyncio
async def test_update_cannot_clear_required_fields(authed_client: AsyncClient, acme):
    response = await authed_client.put(f"/api/v1/clients/{acme.id}", json={"email": None})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_foreign_client_is_not_found(authed_client: AsyncClient, db, other_user):
    theirs = await make_client(db, other_user, company_name="Their Client")

    assert (await authed_client.get(f"/api/v1/clients/{theirs.id}")).status_code == 404
    assert (await authed_client.put(f"/api/v1/clients/{theirs.id}", json={"phone": "1"})).status_code == 404
    assert (await authed_client.delete(f"/api/v1/clients/{theirs.id}")).status_code == 404
    assert (await authed_client.get("/api/v1/clients")).json() == []


@pytest.mark.asyncio
async def test_client_with_invoices_cannot_be_deleted(authed_client: AsyncClient, db, acme):
    await make_invoice(db, acme, "INV-00001")

    response = await authed_client.delete(f"/api/v1/clients/{acme.id}")

    assert response.status_code == 409
    assert "existing invoices" in response.json()["detail"]
    assert (await authed_client.get(f"/api/v1/clients/{acme.id}")).status_code == 200


@pytest.mark.asyncio
async def test_client_without_invoices_can_be_deleted(authed_client: AsyncClient, acme):
    response = await authed_client.delete(f"/api/v1/clients/{acme.id}")

    assert response.status_code == 200
    assert (await authed_client.get(f"/api/v1/clients/{acme.id}")).status_code == 404
