"""Formulaire de commande en deux étapes (informations commande, puis produits)."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from datetime import tzinfo
from enum import Enum
from typing import Any

from gestion_commandes.core import config, models
from gestion_commandes.core.constants import (
    ATELIER_OPTIONS,
    ORDER_STATUSES,
    SOUS_TRAITANCE,
    default_etape_for_atelier,
    etapes_for_atelier,
)
from gestion_commandes.core.dates import local_now_input, to_absolute_iso, to_local_input
from gestion_commandes.core.visibility import FieldVisibility, Section, resolve_field_visibility
from gestion_commandes.services.api_client import ApiError, OrdersApiClient
from gestion_commandes.services.reference_data import ReferenceData
from gestion_commandes.services.search_dropdowns import DropdownKey, Picker, SearchDropdownRegistry

logger = logging.getLogger(__name__)

SAVE_ERROR_MESSAGE = "Erreur lors de la sauvegarde"

# Attributs du brouillon dont le nom diffère du champ de la matrice de visibilité.
_ATTRIBUTE_FIELDS: dict[str, str] = {
    "product_id": "product",
    "supplier_id": "supplier_selection",
    "client_id": "client",
}

_UPDATABLE_PRODUCT_ATTRIBUTES: tuple[str, ...] = (
    "product_id",
    "quantity",
    "numero_pms",
    "infograph_en_charge",
    "agent_impression",
    "machine_impression",
    "date_limite_livraison_estimee",
    "etape",
    "atelier_concerne",
    "estimated_work_time_minutes",
    "bat",
    "express",
    "pack_fin_annee",
    "commentaires",
    "type_sous_traitance",
    "supplier_id",
)


class FormStep(int, Enum):
    ORDER_INFO = 1
    PRODUCT_CONFIG = 2


class FormValidationError(ValueError):
    """Erreur de saisie affichée dans le formulaire ; aucun appel réseau n'est fait."""

    def __init__(self, message: str, product_number: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.product_number = product_number


class ReadOnlyFieldError(ValueError):
    """Saisie d'un champ verrouillé pour le rôle courant."""


def _blank_to_none(value: Any) -> Any:
    if value == "":
        return None
    return value


def _pack_to_bool(value: str) -> bool | None:
    if value == "oui":
        return True
    if value == "non":
        return False
    return None


def _bool_to_pack(value: bool | None) -> str:
    if value is None:
        return ""
    return "oui" if value else "non"


@dataclass
class FinitionAssignment:
    finition_id: int
    finition_name: str = "Finition"
    assigned_agents: list[int] = field(default_factory=list)
    # Dates au format datetime-local ; '' quand non renseignées.
    start_date: str = ""
    end_date: str = ""
    additional_cost: float = 0
    additional_time: int = 0

    @property
    def is_done(self) -> bool:
        return bool(self.end_date)


@dataclass
class ProductDraft:
    product_id: int | None = None
    quantity: int = 1
    unit_price: float | None = None
    numero_pms: str = ""
    infograph_en_charge: str = ""
    agent_impression: str = ""
    machine_impression: str = ""
    date_limite_livraison_estimee: str = ""
    etape: str = ""
    atelier_concerne: str = ""
    estimated_work_time_minutes: int | None = None
    bat: str = ""
    express: str = ""
    pack_fin_annee: str = ""
    commentaires: str = ""
    type_sous_traitance: str = ""
    supplier_id: int | None = None
    finitions: list[FinitionAssignment] = field(default_factory=list)
    order_product_id: int | None = None

    def get_finition(self, finition_id: int) -> FinitionAssignment | None:
        return next((item for item in self.finitions if item.finition_id == finition_id), None)

    @classmethod
    def from_order_product(cls, order_product: models.OrderProduct, tz: tzinfo | None = None) -> ProductDraft:
        finitions = [
            FinitionAssignment(
                finition_id=item.finition_id,
                finition_name=item.finition.name if item.finition else "Finition",
                assigned_agents=list(item.assigned_agents),
                start_date=to_local_input(item.start_date, tz),
                end_date=to_local_input(item.end_date, tz),
            )
            for item in order_product.order_product_finitions
        ]
        return cls(
            product_id=order_product.product_id,
            quantity=order_product.quantity or 1,
            unit_price=order_product.unit_price,
            numero_pms=order_product.numero_pms or "",
            infograph_en_charge=order_product.infograph_en_charge or "",
            agent_impression=order_product.agent_impression or "",
            machine_impression=order_product.machine_impression or "",
            date_limite_livraison_estimee=to_local_input(order_product.date_limite_livraison_estimee, tz),
            etape=order_product.etape or "",
            atelier_concerne=order_product.atelier_concerne or "",
            estimated_work_time_minutes=order_product.estimated_work_time_minutes,
            bat=order_product.bat or "",
            express=order_product.express or "",
            pack_fin_annee=_bool_to_pack(order_product.pack_fin_annee),
            commentaires=order_product.commentaires or "",
            type_sous_traitance=order_product.type_sous_traitance or "",
            supplier_id=order_product.supplier_id,
            finitions=finitions,
            order_product_id=order_product.id,
        )


@dataclass
class OrderDraft:
    numero_affaire: str = ""
    numero_dm: str = ""
    client: str = ""
    client_id: int | None = None
    commercial_en_charge: str = ""
    date_limite_livraison_attendue: str = ""
    statut: str = "en_cours"

    @classmethod
    def from_order(cls, order: models.Order, tz: tzinfo | None = None) -> OrderDraft:
        return cls(
            numero_affaire=order.numero_affaire or "",
            numero_dm=order.numero_dm or "",
            client=order.client_display or "",
            client_id=order.client_id,
            commercial_en_charge=order.commercial_en_charge or "",
            date_limite_livraison_attendue=to_local_input(order.date_limite_livraison_attendue, tz),
            statut=order.statut or "en_cours",
        )


_ORDER_ATTRIBUTES = {item.name for item in fields(OrderDraft)}
_PRODUCT_ATTRIBUTES = {item.name for item in fields(ProductDraft)} - {"finitions", "order_product_id"}


class OrderFormState:
    """État du formulaire de création / modification de commande.

    Une nouvelle commande commence à l'étape 1. En modification, le formulaire
    s'ouvre directement à l'étape 2 sur l'unique produit sélectionné, qui est
    enregistré seul via la route de mise à jour d'un produit de commande.
    """

    def __init__(
        self,
        user: models.User,
        reference: ReferenceData | None = None,
        *,
        order: models.Order | None = None,
        order_product_id: int | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self.user = user
        self.visibility: FieldVisibility = resolve_field_visibility(user.role)
        self.reference = reference or ReferenceData()
        self.tz = tz if tz is not None else config.settings.timezone
        self.dropdowns = SearchDropdownRegistry()
        self.products: list[ProductDraft] = []
        self.error = ""
        self.loading = False
        self.order = order
        self.edit_order_product_id: int | None = None
        self.result: models.Order | models.OrderProduct | None = None

        if order is None:
            self.order_data = OrderDraft(commercial_en_charge=user.username)
            self.step = FormStep.ORDER_INFO
            return

        if order_product_id is None:
            raise ValueError("Aucun produit de commande sélectionné pour la modification")
        selected = next((item for item in order.order_products if item.id == order_product_id), None)
        if selected is None:
            raise ValueError(f"Produit {order_product_id} absent de la commande {order.id}")
        self.order_data = OrderDraft.from_order(order, tz)
        self.products = [ProductDraft.from_order_product(selected, tz)]
        self.edit_order_product_id = order_product_id
        self.step = FormStep.PRODUCT_CONFIG

    @property
    def is_edit_mode(self) -> bool:
        return self.edit_order_product_id is not None

    @property
    def can_submit(self) -> bool:
        return not self.loading

    def dismiss_error(self) -> None:
        self.error = ""

    def _fail(self, message: str, product_number: int | None = None) -> None:
        self.error = message
        raise FormValidationError(message, product_number)

    def _product(self, index: int) -> ProductDraft:
        if not 0 <= index < len(self.products):
            raise IndexError(f"Ligne produit inexistante: {index}")
        return self.products[index]

    def _ensure_editable(self, section: Section, attribute: str) -> None:
        field_name = _ATTRIBUTE_FIELDS.get(attribute, attribute)
        if self.visibility.is_read_only(section, field_name):
            raise ReadOnlyFieldError(f"Le champ {field_name} n'est pas modifiable pour le rôle {self.user.role}")

    # Étape 1 -------------------------------------------------------------

    def set_order_field(self, attribute: str, value: Any) -> None:
        if attribute not in _ORDER_ATTRIBUTES:
            raise ValueError(f"Champ commande inconnu: {attribute}")
        self._ensure_editable(Section.ORDER, attribute)
        if attribute == "statut" and value not in ORDER_STATUSES:
            raise ValueError(f"Statut invalide: {value}")
        setattr(self.order_data, attribute, value)

    def select_client(self, client: models.Client | None) -> None:
        self._ensure_editable(Section.ORDER, "client")
        if client is None:
            self.order_data.client = ""
            self.order_data.client_id = None
        else:
            self.order_data.client = client.nom
            self.order_data.client_id = client.id

    def set_client_text(self, text: str) -> None:
        """Saisie libre d'un client non référencé."""
        self._ensure_editable(Section.ORDER, "client")
        self.order_data.client = text
        self.order_data.client_id = None

    def go_to_next_step(self) -> None:
        if self.step is FormStep.PRODUCT_CONFIG:
            return
        if not self.order_data.client.strip() and self.order_data.client_id is None:
            self._fail("Veuillez sélectionner un client")
        self.step = FormStep.PRODUCT_CONFIG
        self.error = ""
        if not self.products:
            self.add_product()

    def go_to_previous_step(self) -> None:
        self.step = FormStep.ORDER_INFO
        self.error = ""

    # Étape 2 -------------------------------------------------------------

    def add_product(self) -> ProductDraft:
        if self.is_edit_mode:
            raise RuntimeError("Le mode modification ne porte que sur le produit sélectionné")
        draft = ProductDraft(
            etape=default_etape_for_atelier(""),
            date_limite_livraison_estimee=self.order_data.date_limite_livraison_attendue,
        )
        self.products.append(draft)
        return draft

    def remove_product(self, index: int) -> None:
        if self.is_edit_mode:
            raise RuntimeError("Le mode modification ne porte que sur le produit sélectionné")
        self._product(index)
        del self.products[index]
        self.dropdowns.remove_product(index)

    def update_product(self, index: int, attribute: str, value: Any) -> None:
        if attribute not in _PRODUCT_ATTRIBUTES:
            raise ValueError(f"Champ produit inconnu: {attribute}")
        draft = self._product(index)
        self._ensure_editable(Section.PRODUCT, attribute)
        if attribute == "atelier_concerne":
            self._change_atelier(index, draft, value)
            return
        if attribute == "etape" and value and value not in etapes_for_atelier(draft.atelier_concerne):
            raise ValueError(f"Étape {value!r} impossible pour l'atelier {draft.atelier_concerne!r}")
        if attribute == "product_id" and value != draft.product_id:
            draft.finitions = []
        setattr(draft, attribute, value)

    def _change_atelier(self, index: int, draft: ProductDraft, atelier: str) -> None:
        if atelier and atelier not in ATELIER_OPTIONS:
            raise ValueError(f"Atelier inconnu: {atelier}")
        draft.atelier_concerne = atelier
        draft.etape = default_etape_for_atelier(atelier)
        # Le catalogue dépend de l'atelier : le produit choisi n'est plus valable.
        draft.product_id = None
        draft.finitions = []
        if atelier != SOUS_TRAITANCE:
            draft.supplier_id = None
            draft.type_sous_traitance = ""
        self.dropdowns.clear_product(index)

    def etape_options(self, index: int) -> tuple[str, ...]:
        return etapes_for_atelier(self._product(index).atelier_concerne)

    def search_products(self, index: int, term: str) -> list[models.Product]:
        draft = self._product(index)
        return self.dropdowns.search(
            DropdownKey(index, Picker.PRODUCT),
            term,
            self.reference.products_for_atelier(draft.atelier_concerne),
            label=lambda product: product.name,
        )

    def choose_product(self, index: int, product_id: int) -> None:
        draft = self._product(index)
        product = self.reference.get_product(product_id)
        if product is not None and draft.atelier_concerne:
            if product not in self.reference.products_for_atelier(draft.atelier_concerne):
                raise ValueError(f"Le produit {product.name} n'appartient pas à l'atelier {draft.atelier_concerne}")
        self.update_product(index, "product_id", product_id)
        self.dropdowns.reset(DropdownKey(index, Picker.PRODUCT))

    def search_suppliers(self, index: int, term: str) -> list[models.Supplier]:
        self._product(index)
        return self.dropdowns.search(
            DropdownKey(index, Picker.SUPPLIER),
            term,
            self.reference.suppliers,
            label=lambda supplier: supplier.name,
        )

    def choose_supplier(self, index: int, supplier_id: int | None) -> None:
        self.update_product(index, "supplier_id", supplier_id)
        self.dropdowns.reset(DropdownKey(index, Picker.SUPPLIER))

    # Finitions -----------------------------------------------------------

    def search_finitions(self, index: int, term: str) -> list[models.Finition]:
        if not self.visibility.can_mutate_finitions:
            return []
        draft = self._product(index)
        candidates = [
            finition
            for finition in self.reference.finitions_for_product(draft.product_id)
            if draft.get_finition(finition.id) is None
        ]
        return self.dropdowns.search(
            DropdownKey(index, Picker.FINITION),
            term,
            candidates,
            label=lambda finition: finition.name,
        )

    def choose_finition(self, index: int, finition_id: int) -> bool:
        added = self.add_finition(index, finition_id)
        self.dropdowns.reset(DropdownKey(index, Picker.FINITION))
        return added

    def add_finition(self, index: int, finition_id: int) -> bool:
        if not self.visibility.can_mutate_finitions:
            return False
        draft = self._product(index)
        finition = next(
            (item for item in self.reference.finitions_for_product(draft.product_id) if item.id == finition_id),
            None,
        )
        if finition is None or draft.get_finition(finition_id) is not None:
            return False
        draft.finitions.append(
            FinitionAssignment(
                finition_id=finition.id,
                finition_name=finition.name,
                additional_cost=finition.additional_cost,
                additional_time=finition.additional_time,
            )
        )
        return True

    def remove_finition(self, index: int, finition_id: int) -> bool:
        if not self.visibility.can_mutate_finitions:
            return False
        draft = self._product(index)
        remaining = [item for item in draft.finitions if item.finition_id != finition_id]
        if len(remaining) == len(draft.finitions):
            return False
        draft.finitions = remaining
        self.dropdowns.discard(DropdownKey(index, Picker.AGENT, finition_id))
        return True

    def search_agents(self, index: int, finition_id: int, term: str) -> list[models.User]:
        if not self.visibility.can_mutate_finitions:
            return []
        self._product(index)
        return self.dropdowns.search(
            DropdownKey(index, Picker.AGENT, finition_id),
            term,
            self.reference.users_with_role("atelier"),
            label=lambda user: user.username,
        )

    def update_finition_agents(self, index: int, finition_id: int, agents: list[int]) -> bool:
        if not self.visibility.can_mutate_finitions:
            return False
        assignment = self._product(index).get_finition(finition_id)
        if assignment is None:
            return False
        if self.reference.users:
            unknown = set(agents) - self.reference.atelier_agent_ids()
            if unknown:
                raise ValueError(f"Agents hors atelier: {sorted(unknown)}")
        assignment.assigned_agents = list(dict.fromkeys(agents))
        return True

    def update_finition_dates(self, index: int, finition_id: int, start_date: str, end_date: str) -> bool:
        if not self.visibility.can_mutate_finitions:
            return False
        assignment = self._product(index).get_finition(finition_id)
        if assignment is None:
            return False
        if end_date and not start_date:
            raise ValueError("Une date de fin nécessite une date de début")
        assignment.start_date = start_date
        assignment.end_date = end_date
        return True

    def mark_finition_done(self, index: int, finition_id: int, done: bool = True, *, now: str | None = None) -> bool:
        """Coche ou décoche « terminé » ; la date de début n'est jamais modifiée."""
        if not self.visibility.can_mutate_finitions:
            return False
        assignment = self._product(index).get_finition(finition_id)
        if assignment is None:
            return False
        if not done:
            assignment.end_date = ""
            return True
        if not assignment.start_date:
            raise ValueError("La finition doit avoir une date de début avant d'être terminée")
        assignment.end_date = now or local_now_input(self.tz)
        return True

    # Validation et envoi -------------------------------------------------

    def validate(self) -> None:
        # Produits avant client : sans produit, le message reste le même quelles que soient les données commande.
        if not self.products:
            self._fail("Veuillez sélectionner au moins un produit")
        if self.order_data.client_id is None and not self.order_data.client.strip():
            self._fail("Veuillez sélectionner ou saisir un client")
        visible = self.visibility.product_level
        for number, draft in enumerate(self.products, start=1):
            if not draft.product_id or not draft.quantity or draft.quantity <= 0:
                self._fail(
                    f"Produit {number}: Veuillez sélectionner un produit et spécifier une quantité valide",
                    number,
                )
            if visible["express"] and not draft.express:
                self._fail(f"Produit {number}: Veuillez sélectionner si c'est express (oui/non)", number)
            if visible["pack_fin_annee"] and not draft.pack_fin_annee:
                self._fail(f"Produit {number}: Veuillez sélectionner l'option pack fin d'année (oui/non)", number)
            if visible["atelier_concerne"] and not draft.atelier_concerne:
                self._fail(f"Produit {number}: Veuillez sélectionner un atelier concerné", number)
            if visible["bat"] and not draft.bat:
                self._fail(f"Produit {number}: Veuillez sélectionner l'option BAT (avec/sans)", number)
            if (
                draft.atelier_concerne == SOUS_TRAITANCE
                and visible["supplier_selection"]
                and draft.supplier_id is None
            ):
                self._fail(
                    f"Produit {number}: Veuillez sélectionner un fournisseur pour la sous-traitance",
                    number,
                )

    def _finition_spec(self, assignment: FinitionAssignment) -> models.FinitionSpec:
        return models.FinitionSpec(
            finition_id=assignment.finition_id,
            assigned_agents=list(assignment.assigned_agents),
            start_date=to_absolute_iso(assignment.start_date, self.tz),
            end_date=to_absolute_iso(assignment.end_date, self.tz),
        )

    def _product_spec(self, draft: ProductDraft) -> models.ProductSpec:
        finitions = (
            [self._finition_spec(item) for item in draft.finitions]
            if self.visibility.can_mutate_finitions
            else []
        )
        return models.ProductSpec(
            product_id=draft.product_id,
            quantity=draft.quantity,
            unit_price=draft.unit_price,
            numero_pms=_blank_to_none(draft.numero_pms),
            infograph_en_charge=_blank_to_none(draft.infograph_en_charge),
            agent_impression=_blank_to_none(draft.agent_impression),
            machine_impression=_blank_to_none(draft.machine_impression),
            date_limite_livraison_estimee=to_absolute_iso(draft.date_limite_livraison_estimee, self.tz),
            etape=_blank_to_none(draft.etape),
            atelier_concerne=_blank_to_none(draft.atelier_concerne),
            estimated_work_time_minutes=draft.estimated_work_time_minutes,
            bat=_blank_to_none(draft.bat),
            express=_blank_to_none(draft.express),
            pack_fin_annee=_pack_to_bool(draft.pack_fin_annee),
            commentaires=_blank_to_none(draft.commentaires),
            type_sous_traitance=_blank_to_none(draft.type_sous_traitance),
            supplier_id=draft.supplier_id,
            finitions=finitions,
        )

    def build_create_payload(self) -> models.OrderCreatePayload:
        if self.is_edit_mode:
            raise RuntimeError("Création impossible depuis le mode modification")
        data = self.order_data
        return models.OrderCreatePayload(
            numero_affaire=_blank_to_none(data.numero_affaire),
            numero_dm=_blank_to_none(data.numero_dm),
            client=_blank_to_none(data.client.strip()),
            client_id=data.client_id,
            commercial_en_charge=data.commercial_en_charge or self.user.username,
            date_limite_livraison_attendue=to_absolute_iso(data.date_limite_livraison_attendue, self.tz),
            statut=data.statut,
            products=[self._product_spec(draft) for draft in self.products],
        )

    def build_update_payload(self) -> dict[str, Any]:
        """Champs modifiables du produit sélectionné, pour la route de mise à jour."""
        if not self.is_edit_mode:
            raise RuntimeError("Aucun produit de commande en cours de modification")
        if len(self.products) != 1:
            raise RuntimeError("Le mode modification ne porte que sur le produit sélectionné")
        spec = self._product_spec(self.products[0]).model_dump(mode="json")
        changes = {
            attribute: spec[attribute]
            for attribute in _UPDATABLE_PRODUCT_ATTRIBUTES
            if not self.visibility.is_read_only(Section.PRODUCT, _ATTRIBUTE_FIELDS.get(attribute, attribute))
        }
        if self.visibility.can_mutate_finitions:
            changes["finitions"] = spec["finitions"]
        return changes

    async def submit(self, api: OrdersApiClient) -> bool:
        """Valide puis enregistre ; retourne False si la saisie ou l'appel échoue."""
        self.error = ""
        try:
            self.validate()
        except FormValidationError as exc:
            logger.debug("Formulaire invalide: %s", exc.message)
            return False

        self.loading = True
        try:
            if self.is_edit_mode:
                if self.order is None:
                    raise RuntimeError("Commande d'origine absente en mode modification")
                self.result = await api.update_order_product(
                    self.order.id, self.edit_order_product_id, self.build_update_payload()
                )
            else:
                self.result = await api.create_order(self.build_create_payload())
        except ApiError as exc:
            self.error = exc.message or SAVE_ERROR_MESSAGE
            logger.warning("Échec de l'enregistrement de la commande: %s", exc.message)
            return False
        finally:
            self.loading = False
        return True
