"""Historique des commandes archivées : filtres, pagination, statistiques."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from gestion_commandes.core import models
from gestion_commandes.core.config import settings
from gestion_commandes.core.constants import (
    BAT_OPTIONS,
    EXPRESS_OPTIONS,
    HISTORY_STATUSES,
    PACK_FIN_ANNEE_FILTER_OPTIONS,
)
from gestion_commandes.core.visibility import FieldVisibility, resolve_field_visibility
from gestion_commandes.services.api_client import ApiError, OrdersApiClient
from gestion_commandes.services.events import ORDER_DELETED, ORDER_UPDATED, EventBus
from gestion_commandes.services.inline_edit import InlineEditController

logger = logging.getLogger(__name__)

LOAD_ERROR_MESSAGE = "Erreur lors du chargement de l'historique des commandes"
DELETE_ERROR_MESSAGE = "Erreur lors de la suppression"
DETAILS_ERROR_MESSAGE = "Erreur lors du chargement des détails de la commande"

ORDERS_SLOT = "orders"
STATS_SLOT = "stats"

_TRI_STATE_CHOICES = {
    "bat": tuple(value for value, _ in BAT_OPTIONS),
    "express": tuple(value for value, _ in EXPRESS_OPTIONS),
    "pack_fin_annee": tuple(value for value, _ in PACK_FIN_ANNEE_FILTER_OPTIONS),
}


@dataclass
class HistoryFilters:
    """Filtres de l'historique ; ``""`` ou liste vide signifie « tous »."""

    statut: str = ""
    commercial: list[str] = field(default_factory=list)
    client: str = ""
    atelier: list[str] = field(default_factory=list)
    infographe: list[str] = field(default_factory=list)
    etape: list[str] = field(default_factory=list)
    search: str = ""
    agent_impression: list[str] = field(default_factory=list)
    machine_impression: str = ""
    bat: str = ""
    express: str = ""
    pack_fin_annee: str = ""
    type_sous_traitance: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.statut and self.statut not in HISTORY_STATUSES:
            raise ValueError(f"Statut d'historique invalide: {self.statut}")
        for name, choices in _TRI_STATE_CHOICES.items():
            value = getattr(self, name)
            if value and value not in choices:
                raise ValueError(f"Valeur invalide pour {name}: {value}")

    def with_changes(self, **changes: Any) -> HistoryFilters:
        known = {item.name for item in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Filtres inconnus: {', '.join(sorted(unknown))}")
        return replace(self, **changes)


def build_history_query(
    filters: HistoryFilters,
    *,
    page: int = 1,
    limit: int = 10,
    visibility: FieldVisibility | None = None,
) -> dict[str, Any]:
    """Construit les paramètres de ``GET /orders/history``.

    Les listes sont jointes par des virgules ; listes et chaînes vides sont
    omises pour laisser le backend appliquer « aucun filtre ».
    """
    query: dict[str, Any] = {}
    for item in fields(filters):
        name = item.name
        if name == "machine_impression" and visibility is not None and not visibility.machine_impression_filter:
            continue
        value = getattr(filters, name)
        if isinstance(value, list):
            if value:
                query[name] = ",".join(value)
        elif isinstance(value, str):
            value = value.strip()
            if value:
                query[name] = value
    query["page"] = page
    query["limit"] = limit
    return query


@dataclass
class HistoryRow:
    """Une ligne du tableau : un produit d'une commande."""

    order_product_id: int
    order_id: int
    numero_affaire: Optional[str] = None
    numero_dm: Optional[str] = None
    client_info: Optional[str] = None
    commercial_en_charge: Optional[str] = None
    date_limite_livraison_attendue: Optional[datetime] = None
    product_id: Optional[int] = None
    product_name: str = "Produit"
    quantity: int = 1
    numero_pms: Optional[str] = None
    statut: str = ""
    etape: Optional[str] = None
    atelier_concerne: Optional[str] = None
    infograph_en_charge: Optional[str] = None
    agent_impression: Optional[str] = None
    machine_impression: Optional[str] = None
    date_limite_livraison_estimee: Optional[datetime] = None
    estimated_work_time_minutes: Optional[int] = None
    bat: Optional[str] = None
    express: Optional[str] = None
    pack_fin_annee: Optional[bool] = None
    type_sous_traitance: Optional[str] = None
    commentaires: Optional[str] = None
    finitions: list[models.OrderProductFinition] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def values(self, columns: Iterable[str]) -> dict[str, Any]:
        return {column: getattr(self, column) for column in columns}


def flatten_history_orders(orders: Iterable[models.Order]) -> list[HistoryRow]:
    rows: list[HistoryRow] = []
    for order in orders:
        for order_product in order.order_products:
            rows.append(
                HistoryRow(
                    order_product_id=order_product.id,
                    order_id=order.id,
                    numero_affaire=order.numero_affaire,
                    numero_dm=order.numero_dm,
                    client_info=order.client_display,
                    commercial_en_charge=order.commercial_en_charge,
                    date_limite_livraison_attendue=order.date_limite_livraison_attendue,
                    product_id=order_product.product_id,
                    product_name=order_product.product_name,
                    quantity=order_product.quantity,
                    numero_pms=order_product.numero_pms,
                    statut=order_product.statut or order.statut,
                    etape=order_product.etape,
                    atelier_concerne=order_product.atelier_concerne,
                    infograph_en_charge=order_product.infograph_en_charge,
                    agent_impression=order_product.agent_impression,
                    machine_impression=order_product.machine_impression,
                    date_limite_livraison_estimee=order_product.date_limite_livraison_estimee,
                    estimated_work_time_minutes=order_product.estimated_work_time_minutes,
                    bat=order_product.bat,
                    express=order_product.express,
                    pack_fin_annee=order_product.pack_fin_annee,
                    type_sous_traitance=order_product.type_sous_traitance,
                    commentaires=order_product.commentaires,
                    finitions=list(order_product.order_product_finitions),
                    created_at=order.created_at,
                    updated_at=order.updated_at,
                )
            )
    return rows


class HistoryView:
    """État de l'écran d'historique.

    Chaque type de requête (commandes, statistiques) porte un numéro de
    séquence ; une réponse dont le numéro n'est plus le dernier émis est
    ignorée.
    """

    def __init__(
        self,
        api: OrdersApiClient,
        user: models.User,
        *,
        page_size: int | None = None,
    ) -> None:
        self.api = api
        self.user = user
        self.visibility = resolve_field_visibility(user.role)
        self.page_size = page_size or settings.HISTORY_PAGE_SIZE
        self.filters = HistoryFilters()
        self.rows: list[HistoryRow] = []
        self.pagination = models.Pagination()
        self.stats = models.HistoryStats()
        self.loading = False
        self.error = ""
        self._sequences: dict[str, int] = {ORDERS_SLOT: 0, STATS_SLOT: 0}
        self.inline_edit = InlineEditController(
            api,
            self.visibility,
            on_error=self._report_error,
            on_committed=self._after_inline_commit,
        )

    @property
    def columns(self) -> list[str]:
        return [column for column, visible in self.visibility.history_columns.items() if visible]

    @property
    def current_page(self) -> int:
        return self.pagination.current_page

    def find_row(self, order_product_id: int) -> HistoryRow | None:
        return next((row for row in self.rows if row.order_product_id == order_product_id), None)

    def dismiss_error(self) -> None:
        self.error = ""

    def _report_error(self, message: str) -> None:
        self.error = message

    def _next_sequence(self, slot: str) -> int:
        self._sequences[slot] += 1
        return self._sequences[slot]

    def _is_stale(self, slot: str, sequence: int) -> bool:
        stale = sequence != self._sequences[slot]
        if stale:
            logger.debug(
                "Réponse %s périmée ignorée (requête %d, dernière %d)",
                slot,
                sequence,
                self._sequences[slot],
            )
        return stale

    async def refresh(self, page: int | None = None) -> bool:
        """Charge une page de l'historique avec les filtres courants."""
        page = page or self.current_page
        sequence = self._next_sequence(ORDERS_SLOT)
        query = build_history_query(
            self.filters, page=page, limit=self.page_size, visibility=self.visibility
        )
        self.loading = True
        try:
            result = await self.api.fetch_history_orders(query)
        except ApiError as exc:
            if self._is_stale(ORDERS_SLOT, sequence):
                return False
            logger.error("Chargement de l'historique impossible: %s", exc.message)
            self.error = LOAD_ERROR_MESSAGE
            self.loading = False
            return False
        if self._is_stale(ORDERS_SLOT, sequence):
            return False
        self.rows = flatten_history_orders(result.orders)
        self.pagination = result.pagination
        self.loading = False
        return True

    async def refresh_stats(self) -> bool:
        sequence = self._next_sequence(STATS_SLOT)
        try:
            stats = await self.api.fetch_history_stats()
        except ApiError as exc:
            logger.error("Chargement des statistiques impossible: %s", exc.message)
            return False
        if self._is_stale(STATS_SLOT, sequence):
            return False
        self.stats = stats
        return True

    async def reload(self, page: int | None = None) -> None:
        await asyncio.gather(self.refresh(page), self.refresh_stats())

    async def set_filters(self, **changes: Any) -> None:
        self.filters = self.filters.with_changes(**changes)
        await self.reload(page=1)

    async def reset_filters(self) -> None:
        self.filters = HistoryFilters()
        await self.reload(page=1)

    async def go_to_page(self, page: int) -> bool:
        if page < 1 or page > max(self.pagination.total_pages, 1):
            return False
        return await self.refresh(page)

    async def next_page(self) -> bool:
        if not self.pagination.has_next_page:
            return False
        return await self.go_to_page(self.current_page + 1)

    async def previous_page(self) -> bool:
        if not self.pagination.has_prev_page:
            return False
        return await self.go_to_page(self.current_page - 1)

    async def open_row(
        self, order_product_id: int
    ) -> tuple[models.Order, Optional[models.OrderProduct]] | None:
        """Charge la commande complète d'une ligne, pour l'ouvrir dans le formulaire.

        Le produit de commande est ``None`` s'il n'existe plus côté serveur.
        """
        row = self.find_row(order_product_id)
        if row is None:
            logger.warning("Ligne %s absente de la page courante", order_product_id)
            return None
        try:
            order = await self.api.fetch_order(row.order_id)
        except ApiError as exc:
            logger.error("Chargement de la commande %s impossible: %s", row.order_id, exc.message)
            self.error = DETAILS_ERROR_MESSAGE
            return None
        order_product = next(
            (item for item in order.order_products if item.id == order_product_id), None
        )
        return order, order_product

    async def delete_order(self, order_id: int) -> bool:
        if not self.visibility.can_delete_history_orders:
            logger.warning(
                "Suppression refusée pour %s (rôle %s)", self.user.username, self.user.role
            )
            return False
        try:
            await self.api.delete_order(order_id)
        except ApiError as exc:
            logger.error("Suppression de la commande %s impossible: %s", order_id, exc.message)
            self.error = DELETE_ERROR_MESSAGE
            return False
        await self.reload()
        return True

    async def handle_order_updated(self, payload: Any = None) -> None:
        await self.reload()

    async def handle_order_deleted(self, payload: Any = None) -> None:
        order_id = payload.get("id") if isinstance(payload, dict) else payload
        if order_id is not None:
            self.rows = [row for row in self.rows if row.order_id != order_id]
        await self.reload()

    def bind(self, bus: EventBus) -> Callable[[], None]:
        """Abonne la vue aux évènements poussés ; retourne la fonction de désabonnement."""
        unsubscribers = [
            bus.subscribe(ORDER_UPDATED, self.handle_order_updated),
            bus.subscribe(ORDER_DELETED, self.handle_order_deleted),
        ]

        def unbind() -> None:
            for unsubscribe in unsubscribers:
                unsubscribe()

        return unbind

    async def _after_inline_commit(self, row: HistoryRow, field_name: str) -> None:
        if field_name == "statut":
            await self.refresh_stats()
