"""Données de référence des formulaires : produits, utilisateurs, fournisseurs."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, TypeVar

from gestion_commandes.core import models
from gestion_commandes.core.constants import ATELIER_PRODUCT_TYPES
from gestion_commandes.services.api_client import ApiError, OrdersApiClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ReferenceData:
    products: list[models.Product] = field(default_factory=list)
    users: list[models.User] = field(default_factory=list)
    suppliers: list[models.Supplier] = field(default_factory=list)

    def users_with_role(self, role: str) -> list[models.User]:
        return [user for user in self.users if user.role == role]

    def atelier_agent_ids(self) -> set[int]:
        return {user.id for user in self.users_with_role("atelier")}

    def username_for(self, user_id: int) -> str:
        for user in self.users:
            if user.id == user_id:
                return user.username
        return f"Agent {user_id}"

    def get_product(self, product_id: int | None) -> models.Product | None:
        if product_id is None:
            return None
        return next((product for product in self.products if product.id == product_id), None)

    def products_for_atelier(self, atelier: str) -> list[models.Product]:
        """Produits du catalogue de l'atelier (aucun tant que l'atelier n'est pas choisi)."""
        if not atelier:
            return []
        atelier_type = ATELIER_PRODUCT_TYPES.get(atelier)
        if atelier_type is None:
            return list(self.products)
        return [product for product in self.products if product.atelier_type == atelier_type]

    def finitions_for_product(self, product_id: int | None) -> list[models.Finition]:
        product = self.get_product(product_id)
        return list(product.finitions) if product else []

    def get_supplier(self, supplier_id: int | None) -> models.Supplier | None:
        if supplier_id is None:
            return None
        return next((supplier for supplier in self.suppliers if supplier.id == supplier_id), None)


async def _or_empty(label: str, call: Awaitable[list[T]]) -> list[T]:
    try:
        return await call
    except ApiError as exc:
        logger.error("Erreur lors du chargement des %s: %s", label, exc.message)
        return []


async def load_reference_data(api: OrdersApiClient) -> ReferenceData:
    """Charge les listes en parallèle ; un échec donne une liste vide."""
    products, users, suppliers = await asyncio.gather(
        _or_empty("produits", api.fetch_products()),
        _or_empty("utilisateurs", api.fetch_users()),
        _or_empty("fournisseurs", api.fetch_suppliers(active_only=True)),
    )
    logger.debug(
        "Données de référence chargées: %d produits, %d utilisateurs, %d fournisseurs",
        len(products),
        len(users),
        len(suppliers),
    )
    return ReferenceData(products=products, users=users, suppliers=suppliers)
