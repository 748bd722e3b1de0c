from __future__ import annotations

import httpx
import pytest
from fake_backend import make_order

from gestion_commandes.core.config import Settings
from gestion_commandes.services.api_client import ApiError, OrdersApiClient
from gestion_commandes.services.reference_data import load_reference_data


@pytest.mark.asyncio
async def test_reference_lists_are_parsed(backend) -> None:
    async with backend.client() as api:
        products = await api.fetch_products()
        users = await api.fetch_users(role="atelier")
        suppliers = await api.fetch_suppliers()

    assert [product.name for product in products] == ["Flyer A5", "Bâche 3x1", "Stylos gravés"]
    assert products[0].finitions[0].additional_cost == 12.5
    assert [user.username for user in users] == ["damien", "emma"]
    assert [supplier.id for supplier in suppliers] == [1, 2]
    assert backend.requests_for("products")[0].params == {"page": "1", "limit": "500"}
    assert backend.requests_for("suppliers")[0].params == {"active": "true"}
    assert backend.requests_for("users")[0].authorization == "Bearer jeton-de-test"


@pytest.mark.asyncio
async def test_inactive_suppliers_are_dropped_client_side() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"suppliers": [{"id": 1, "name": "Actif"}, {"id": 2, "name": "Inactif", "is_active": False}]},
        )

    async with OrdersApiClient(Settings(), transport=httpx.MockTransport(handler)) as api:
        suppliers = await api.fetch_suppliers()

    assert [supplier.name for supplier in suppliers] == ["Actif"]


@pytest.mark.asyncio
async def test_fetch_order_returns_the_full_order(backend) -> None:
    backend.orders.append(make_order(7, products=[{"id": 70}, {"id": 71, "quantity": 4}]))

    async with backend.client() as api:
        order = await api.fetch_order(7)

    assert order.id == 7
    assert [item.id for item in order.order_products] == [70, 71]
    assert order.order_products[1].quantity == 4
    assert backend.requests_for("get_order")[0].path == "/api/orders/7"


@pytest.mark.asyncio
async def test_fetch_missing_order_raises(backend) -> None:
    async with backend.client() as api:
        with pytest.raises(ApiError) as excinfo:
            await api.fetch_order(404)

    assert excinfo.value.status_code == 404
    assert excinfo.value.message == "Commande introuvable"


@pytest.mark.asyncio
async def test_backend_error_carries_message_and_status(backend) -> None:
    backend.fail("history", 403, "Accès refusé")

    async with backend.client() as api:
        with pytest.raises(ApiError) as excinfo:
            await api.fetch_history_orders({"page": 1, "limit": 10})

    assert excinfo.value.message == "Accès refusé"
    assert excinfo.value.status_code == 403


@pytest.mark.asyncio
async def test_network_failure_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connexion refusée", request=request)

    async with OrdersApiClient(Settings(), transport=httpx.MockTransport(handler)) as api:
        with pytest.raises(ApiError) as excinfo:
            await api.fetch_history_stats()

    assert excinfo.value.status_code is None
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
async def test_invalid_payload_is_reported_as_api_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"users": [{"id": 1, "username": "x", "role": "pirate"}]})

    async with OrdersApiClient(Settings(), transport=httpx.MockTransport(handler)) as api:
        with pytest.raises(ApiError):
            await api.fetch_users()


@pytest.mark.asyncio
async def test_update_without_body_returns_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204)

    async with OrdersApiClient(Settings(), transport=httpx.MockTransport(handler)) as api:
        assert await api.update_order_product(1, 10, {"statut": "livre"}) is None


@pytest.mark.asyncio
async def test_reference_data_degrades_to_empty_lists(backend, caplog) -> None:
    backend.fail("products")

    async with backend.client() as api:
        reference = await load_reference_data(api)

    assert reference.products == []
    assert len(reference.users) == 5
    assert len(reference.suppliers) == 2
    assert "produits" in caplog.text
    assert reference.username_for(4) == "damien"
    assert reference.username_for(42) == "Agent 42"
    assert reference.atelier_agent_ids() == {4, 5}
