"""Client HTTP asynchrone vers l'API de gestion des commandes."""
from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx
from pydantic import ValidationError

from gestion_commandes.core import models
from gestion_commandes.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Erreur lors de la communication avec le serveur"


class ApiError(RuntimeError):
    """Erreur renvoyée par le backend ou survenue pendant l'appel."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _extract_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return GENERIC_ERROR_MESSAGE
    if isinstance(payload, dict):
        for key in ("message", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return GENERIC_ERROR_MESSAGE


class OrdersApiClient:
    """Accès aux routes consommées par les écrans de commandes.

    Utilisable comme gestionnaire de contexte asynchrone ; ``transport`` permet
    d'injecter un transport httpx (tests, ASGI).
    """

    def __init__(
        self,
        config: Settings | None = None,
        *,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = config or default_settings
        headers = {"Accept": "application/json"}
        auth_token = token or self._settings.API_TOKEN
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"
        self._client = httpx.AsyncClient(
            base_url=self._settings.API_BASE_URL,
            headers=headers,
            timeout=httpx.Timeout(self._settings.API_TIMEOUT, connect=5.0),
            transport=transport,
        )

    async def __aenter__(self) -> OrdersApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, json=json)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            message = _extract_message(exc.response)
            logger.warning(
                "[API] %s %s -> %s: %s", method, path, exc.response.status_code, message
            )
            raise ApiError(message, status_code=exc.response.status_code) from exc
        except httpx.HTTPError as exc:
            logger.warning("[API] %s %s: erreur réseau %s", method, path, exc)
            raise ApiError("Erreur réseau lors de l'accès au serveur") from exc
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError("Réponse invalide du serveur", status_code=response.status_code) from exc

    @staticmethod
    def _parse(model: type[models.ApiModel], payload: Any) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise ApiError("Réponse invalide du serveur") from exc

    async def fetch_products(self, *, page: int = 1, limit: int | None = None) -> list[models.Product]:
        params = {"page": page, "limit": limit or self._settings.PRODUCTS_PAGE_SIZE}
        payload = await self._request("GET", "/products", params=params) or {}
        return [self._parse(models.Product, item) for item in payload.get("products", [])]

    async def fetch_users(self, role: str | None = None) -> list[models.User]:
        params = {"role": role} if role else None
        payload = await self._request("GET", "/users", params=params) or {}
        return [self._parse(models.User, item) for item in payload.get("users", [])]

    async def fetch_suppliers(self, *, active_only: bool = True) -> list[models.Supplier]:
        params = {"active": "true"} if active_only else None
        payload = await self._request("GET", "/suppliers", params=params) or {}
        suppliers = [self._parse(models.Supplier, item) for item in payload.get("suppliers", [])]
        if active_only:
            suppliers = [supplier for supplier in suppliers if supplier.is_active]
        return suppliers

    async def create_order(self, payload: models.OrderCreatePayload) -> models.Order:
        body = payload.model_dump(mode="json", by_alias=True)
        logger.info("[Commandes] création client=%s produits=%d", payload.client, len(payload.products))
        response = await self._request("POST", "/orders", json=body) or {}
        return self._parse(models.Order, response.get("order", response))

    async def fetch_order(self, order_id: int) -> models.Order:
        payload = await self._request("GET", f"/orders/{order_id}") or {}
        if "order" not in payload:
            raise ApiError("Réponse invalide du serveur")
        return self._parse(models.Order, payload["order"])

    async def update_order_product(
        self,
        order_id: int,
        order_product_id: int,
        changes: Mapping[str, Any],
    ) -> models.OrderProduct | None:
        logger.info(
            "[Commandes] mise à jour produit order_id=%s order_product_id=%s champs=%s",
            order_id,
            order_product_id,
            sorted(changes),
        )
        response = await self._request(
            "PUT", f"/orders/{order_id}/products/{order_product_id}", json=dict(changes)
        )
        if not response or "orderProduct" not in response:
            return None
        return self._parse(models.OrderProduct, response["orderProduct"])

    async def fetch_history_orders(self, query: Mapping[str, Any]) -> models.HistoryPage:
        payload = await self._request("GET", "/orders/history", params=dict(query)) or {}
        return self._parse(models.HistoryPage, payload)

    async def fetch_history_stats(self) -> models.HistoryStats:
        payload = await self._request("GET", "/orders/history/stats") or {}
        return self._parse(models.HistoryStats, payload.get("stats", {}))

    async def delete_order(self, order_id: int) -> None:
        logger.info("[Commandes] suppression order_id=%s", order_id)
        await self._request("DELETE", f"/orders/{order_id}")
