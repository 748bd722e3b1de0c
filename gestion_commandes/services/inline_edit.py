"""Édition en ligne d'une cellule du tableau d'historique."""
from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, NamedTuple, Union

from gestion_commandes.core.constants import ORDER_STATUSES
from gestion_commandes.core.visibility import FieldVisibility
from gestion_commandes.services.api_client import ApiError, OrdersApiClient

if TYPE_CHECKING:
    from gestion_commandes.services.history import HistoryRow

logger = logging.getLogger(__name__)

UPDATE_ERROR_MESSAGE = "Erreur lors de la mise à jour"

CommitCallback = Callable[["HistoryRow", str], Union[Awaitable[None], None]]


class CellKey(NamedTuple):
    order_product_id: int
    field: str


class InlineEditController:
    """Une seule cellule en édition à la fois : en ouvrir une autre remplace la première."""

    def __init__(
        self,
        api: OrdersApiClient,
        visibility: FieldVisibility,
        *,
        on_error: Callable[[str], None],
        on_committed: CommitCallback | None = None,
    ) -> None:
        self._api = api
        self._visibility = visibility
        self._on_error = on_error
        self._on_committed = on_committed
        self.active: CellKey | None = None
        self.temp_value: Any = None
        self._row: HistoryRow | None = None

    def can_edit(self, field: str) -> bool:
        return self._visibility.is_history_editable(field)

    def is_editing(self, order_product_id: int, field: str) -> bool:
        return self.active == CellKey(order_product_id, field)

    def begin(self, row: HistoryRow, field: str) -> bool:
        if not self.can_edit(field):
            return False
        self.active = CellKey(row.order_product_id, field)
        self._row = row
        self.temp_value = getattr(row, field)
        return True

    def set_temp_value(self, value: Any) -> None:
        if self.active is None:
            return
        if self.active.field == "statut" and value and value not in ORDER_STATUSES:
            raise ValueError(f"Statut invalide: {value}")
        self.temp_value = value

    def cancel(self) -> None:
        self.active = None
        self._row = None
        self.temp_value = None

    def _close_if_active(self, key: CellKey) -> None:
        if self.active == key:
            self.cancel()

    async def commit(self) -> bool:
        """Enregistre la valeur temporaire si elle a changé ; sinon ferme simplement l'édition."""
        if self.active is None or self._row is None:
            return False
        key, row, value = self.active, self._row, self.temp_value
        if not value or value == getattr(row, key.field):
            self.cancel()
            return False
        try:
            await self._api.update_order_product(row.order_id, row.order_product_id, {key.field: value})
        except ApiError as exc:
            logger.warning(
                "Échec de la mise à jour en ligne %s=%r (order_product_id=%s): %s",
                key.field,
                value,
                row.order_product_id,
                exc.message,
            )
            self._close_if_active(key)
            self._on_error(UPDATE_ERROR_MESSAGE)
            return False
        setattr(row, key.field, value)
        self._close_if_active(key)
        if self._on_committed is not None:
            result = self._on_committed(row, key.field)
            if inspect.isawaitable(result):
                await result
        return True

    async def blur(self) -> bool:
        return await self.commit()

    async def handle_key(self, key: str) -> bool:
        if key == "Enter":
            return await self.commit()
        if key == "Escape":
            self.cancel()
        return False
