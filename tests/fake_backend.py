"""Backend FastAPI en mémoire servant les routes consommées par le client."""
from __future__ import annotations

import itertools
import math
from dataclasses import dataclass
from typing import Any

import httpx
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, Response

from gestion_commandes.core.config import Settings
from gestion_commandes.services.api_client import OrdersApiClient

BASE_URL = "http://testserver/api"
TOKEN = "jeton-de-test"


@dataclass
class RecordedRequest:
    route: str
    method: str
    path: str
    params: dict[str, str]
    body: Any
    authorization: str | None


def make_order(
    order_id: int,
    *,
    statut: str = "livre",
    client: str = "Imprimerie Martin",
    commercial: str = "bruno",
    numero_affaire: str | None = None,
    products: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    if products is None:
        products = [{"id": order_id * 10, "quantity": 1}]
    order_products = []
    for product in products:
        item = {
            "id": product["id"],
            "product_id": product.get("product_id", 1),
            "product": {"id": product.get("product_id", 1), "name": product.get("name", "Flyer A5")},
            "quantity": product.get("quantity", 1),
            "statut": product.get("statut"),
            "numero_pms": product.get("numero_pms"),
            "atelier_concerne": product.get("atelier_concerne", "petit format"),
            "etape": product.get("etape", "impression"),
            "machine_impression": product.get("machine_impression"),
            "bat": product.get("bat"),
            "express": product.get("express"),
            "pack_fin_annee": product.get("pack_fin_annee"),
            "orderProductFinitions": product.get("orderProductFinitions", []),
        }
        order_products.append(item)
    return {
        "id": order_id,
        "numero_affaire": numero_affaire or f"AFF-{order_id:04d}",
        "numero_dm": None,
        "client": client,
        "clientInfo": {"id": order_id, "nom": client},
        "commercial_en_charge": commercial,
        "date_limite_livraison_attendue": "2024-06-01T08:00:00Z",
        "statut": statut,
        "orderProducts": order_products,
        "createdAt": "2024-05-01T09:00:00Z",
        "updatedAt": "2024-05-02T09:00:00Z",
    }


class FakeBackend:
    def __init__(self) -> None:
        self.products: list[dict[str, Any]] = [
            {
                "id": 1,
                "name": "Flyer A5",
                "atelier_type": "petit_format",
                "finitions": [
                    {"id": 7, "name": "Pelliculage", "additional_cost": 12.5, "additional_time": 30},
                    {"id": 8, "name": "Rainage", "additional_cost": 4, "additional_time": 10},
                ],
            },
            {"id": 2, "name": "Bâche 3x1", "atelier_type": "grand_format", "finitions": []},
            {"id": 3, "name": "Stylos gravés", "atelier_type": "sous_traitance", "finitions": []},
        ]
        self.users: list[dict[str, Any]] = [
            {"id": 1, "username": "alice", "role": "admin"},
            {"id": 2, "username": "bruno", "role": "commercial"},
            {"id": 3, "username": "chloe", "role": "infograph"},
            {"id": 4, "username": "damien", "role": "atelier"},
            {"id": 5, "username": "emma", "role": "atelier"},
        ]
        self.suppliers: list[dict[str, Any]] = [
            {"id": 1, "name": "Objets & Co", "specialty": "Objet publicitaire", "is_active": True},
            {"id": 2, "name": "Sérigraphie du Nord", "specialty": "Sérigraphie", "is_active": True},
            {"id": 3, "name": "Offset Ancien", "specialty": "Offset", "is_active": False},
        ]
        self.orders: list[dict[str, Any]] = []
        self.requests: list[RecordedRequest] = []
        self.failures: dict[str, tuple[int, Any]] = {}
        self._order_ids = itertools.count(100)
        self._order_product_ids = itertools.count(1000)
        self.app = self._build_app()

    def client(self, **kwargs: Any) -> OrdersApiClient:
        config = Settings(API_BASE_URL=BASE_URL, API_TOKEN=TOKEN)
        return OrdersApiClient(config, transport=httpx.ASGITransport(app=self.app), **kwargs)

    def transport(self) -> httpx.ASGITransport:
        return httpx.ASGITransport(app=self.app)

    def fail(self, route: str, status_code: int = 500, message: str | None = "Erreur serveur") -> None:
        content = {"message": message} if message is not None else {}
        self.failures[route] = (status_code, content)

    def requests_for(self, route: str) -> list[RecordedRequest]:
        return [request for request in self.requests if request.route == route]

    def history_stats(self) -> dict[str, int]:
        livre = sum(1 for order in self.orders if order["statut"] == "livre")
        annule = sum(1 for order in self.orders if order["statut"] == "annule")
        return {"livre": livre, "annule": annule, "total": livre + annule}

    def find_order(self, order_id: int) -> dict[str, Any] | None:
        return next((order for order in self.orders if order["id"] == order_id), None)

    def _record(self, route: str, request: Request, body: Any = None) -> JSONResponse | None:
        self.requests.append(
            RecordedRequest(
                route=route,
                method=request.method,
                path=request.url.path,
                params=dict(request.query_params),
                body=body,
                authorization=request.headers.get("authorization"),
            )
        )
        if route in self.failures:
            status_code, content = self.failures[route]
            return JSONResponse(status_code=status_code, content=content)
        return None

    def _history_page(self, params: dict[str, str]) -> dict[str, Any]:
        orders = [order for order in self.orders if order["statut"] in ("livre", "annule")]
        if params.get("statut"):
            orders = [order for order in orders if order["statut"] == params["statut"]]
        if params.get("client"):
            needle = params["client"].lower()
            orders = [order for order in orders if needle in (order["client"] or "").lower()]
        page = int(params.get("page", 1))
        limit = int(params.get("limit", 10))
        total = len(orders)
        total_pages = max(math.ceil(total / limit), 1)
        start = (page - 1) * limit
        return {
            "orders": orders[start : start + limit],
            "pagination": {
                "currentPage": page,
                "totalPages": total_pages,
                "totalOrders": total,
                "hasPrevPage": page > 1,
                "hasNextPage": page < total_pages,
            },
        }

    def _build_app(self) -> FastAPI:
        backend = self
        app = FastAPI()
        router = APIRouter(prefix="/api")

        @router.get("/products")
        async def list_products(request: Request):
            return backend._record("products", request) or {"products": backend.products}

        @router.get("/users")
        async def list_users(request: Request, role: str | None = None):
            users = [user for user in backend.users if role is None or user["role"] == role]
            return backend._record("users", request) or {"users": users}

        @router.get("/suppliers")
        async def list_suppliers(request: Request, active: str | None = None):
            suppliers = backend.suppliers
            if active == "true":
                suppliers = [supplier for supplier in suppliers if supplier["is_active"]]
            return backend._record("suppliers", request) or {"suppliers": suppliers}

        @router.get("/orders/history/stats")
        async def history_stats(request: Request):
            return backend._record("history_stats", request) or {"stats": backend.history_stats()}

        @router.get("/orders/history")
        async def history(request: Request):
            failure = backend._record("history", request)
            return failure or backend._history_page(dict(request.query_params))

        @router.get("/orders/{order_id}")
        async def get_order(order_id: int, request: Request):
            failure = backend._record("get_order", request)
            if failure is not None:
                return failure
            order = backend.find_order(order_id)
            if order is None:
                return JSONResponse(status_code=404, content={"message": "Commande introuvable"})
            return {"order": order}

        @router.post("/orders", status_code=201)
        async def create_order(request: Request):
            body = await request.json()
            failure = backend._record("create_order", request, body)
            if failure is not None:
                return failure
            order_products = []
            for spec in body["products"]:
                product_id = spec["productId"]
                name = next((p["name"] for p in backend.products if p["id"] == product_id), None)
                order_products.append(
                    {
                        **{key: value for key, value in spec.items() if key not in ("productId", "finitions")},
                        "id": next(backend._order_product_ids),
                        "product_id": product_id,
                        "product": {"id": product_id, "name": name},
                        "orderProductFinitions": spec.get("finitions", []),
                    }
                )
            order = {
                **{key: value for key, value in body.items() if key != "products"},
                "id": next(backend._order_ids),
                "orderProducts": order_products,
            }
            backend.orders.append(order)
            return {"message": "Commande créée", "order": order}

        @router.put("/orders/{order_id}/products/{order_product_id}")
        async def update_order_product(order_id: int, order_product_id: int, request: Request):
            body = await request.json()
            failure = backend._record("update_order_product", request, body)
            if failure is not None:
                return failure
            order = backend.find_order(order_id)
            item = None
            if order is not None:
                item = next((op for op in order["orderProducts"] if op["id"] == order_product_id), None)
            if item is None:
                return JSONResponse(status_code=404, content={"message": "Produit de commande introuvable"})
            for key, value in body.items():
                if key == "finitions":
                    item["orderProductFinitions"] = value
                else:
                    item[key] = value
            if "statut" in body:
                order["statut"] = body["statut"]
            return {"orderProduct": item}

        @router.delete("/orders/{order_id}")
        async def delete_order(order_id: int, request: Request):
            failure = backend._record("delete_order", request)
            if failure is not None:
                return failure
            order = backend.find_order(order_id)
            if order is None:
                return JSONResponse(status_code=404, content={"message": "Commande introuvable"})
            backend.orders.remove(order)
            return Response(status_code=204)

        app.include_router(router)
        return app
