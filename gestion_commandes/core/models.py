"""Modèles Pydantic des données échangées avec le backend."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gestion_commandes.core.constants import ROLES


class ApiModel(BaseModel):
    """Base des modèles : accepte les noms camelCase du backend et les noms Python."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class User(ApiModel):
    id: int
    username: str
    role: str

    @field_validator("role")
    @classmethod
    def _validate_role(cls, value: str) -> str:
        if value not in ROLES:
            raise ValueError(f"Rôle inconnu: {value}")
        return value


class Client(ApiModel):
    id: int
    nom: str


class Finition(ApiModel):
    id: int
    name: str
    additional_cost: float = 0
    additional_time: int = 0


class Product(ApiModel):
    id: int
    name: str
    atelier_type: Optional[str] = None
    finitions: list[Finition] = Field(default_factory=list)


class ProductRef(ApiModel):
    id: Optional[int] = None
    name: Optional[str] = None


class Supplier(ApiModel):
    id: int
    name: str
    specialty: Optional[str] = None
    is_active: bool = True


class OrderProductFinition(ApiModel):
    finition_id: int
    finition: Optional[Finition] = None
    assigned_agents: list[int] = Field(default_factory=list)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class OrderProduct(ApiModel):
    id: int
    product_id: Optional[int] = None
    product: Optional[ProductRef] = None
    product_info: Optional[ProductRef] = Field(default=None, alias="productInfo")
    quantity: int = 1
    unit_price: Optional[float] = None
    statut: Optional[str] = None
    numero_pms: Optional[str] = None
    infograph_en_charge: Optional[str] = None
    agent_impression: Optional[str] = None
    machine_impression: Optional[str] = None
    date_limite_livraison_estimee: Optional[datetime] = None
    etape: Optional[str] = None
    atelier_concerne: Optional[str] = None
    estimated_work_time_minutes: Optional[int] = None
    bat: Optional[str] = None
    express: Optional[str] = None
    pack_fin_annee: Optional[bool] = None
    commentaires: Optional[str] = None
    type_sous_traitance: Optional[str] = None
    supplier_id: Optional[int] = None
    order_product_finitions: list[OrderProductFinition] = Field(
        default_factory=list, alias="orderProductFinitions"
    )

    @property
    def product_name(self) -> str:
        for ref in (self.product, self.product_info):
            if ref is not None and ref.name:
                return ref.name
        return "Produit"


class Order(ApiModel):
    id: int
    numero_affaire: Optional[str] = None
    numero_dm: Optional[str] = None
    client: Optional[str] = None
    client_id: Optional[int] = None
    client_info: Optional[Client] = Field(default=None, alias="clientInfo")
    commercial_en_charge: Optional[str] = None
    date_limite_livraison_attendue: Optional[datetime] = None
    statut: str = "en_cours"
    order_products: list[OrderProduct] = Field(default_factory=list, alias="orderProducts")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @property
    def client_display(self) -> str | None:
        if self.client_info is not None:
            return self.client_info.nom
        return self.client


class Pagination(ApiModel):
    current_page: int = Field(default=1, alias="currentPage")
    total_pages: int = Field(default=1, alias="totalPages")
    total_orders: int = Field(default=0, alias="totalOrders")
    has_prev_page: bool = Field(default=False, alias="hasPrevPage")
    has_next_page: bool = Field(default=False, alias="hasNextPage")


class HistoryPage(ApiModel):
    orders: list[Order] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class HistoryStats(ApiModel):
    livre: int = 0
    annule: int = 0
    total: int = 0


class FinitionSpec(ApiModel):
    finition_id: int
    assigned_agents: list[int] = Field(default_factory=list)
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class ProductSpec(ApiModel):
    """Produit tel qu'envoyé lors de la création d'une commande."""

    product_id: int = Field(..., gt=0, alias="productId")
    quantity: int = Field(..., gt=0)
    unit_price: Optional[float] = Field(default=None, alias="unitPrice")
    numero_pms: Optional[str] = None
    infograph_en_charge: Optional[str] = None
    agent_impression: Optional[str] = None
    machine_impression: Optional[str] = None
    date_limite_livraison_estimee: Optional[str] = None
    etape: Optional[str] = None
    atelier_concerne: Optional[str] = None
    estimated_work_time_minutes: Optional[int] = None
    bat: Optional[str] = None
    express: Optional[str] = None
    pack_fin_annee: Optional[bool] = None
    commentaires: Optional[str] = None
    type_sous_traitance: Optional[str] = None
    supplier_id: Optional[int] = None
    finitions: list[FinitionSpec] = Field(default_factory=list)


class OrderCreatePayload(ApiModel):
    numero_affaire: Optional[str] = None
    numero_dm: Optional[str] = None
    client: Optional[str] = None
    client_id: Optional[int] = None
    commercial_en_charge: str
    date_limite_livraison_attendue: Optional[str] = None
    statut: str = "en_cours"
    products: list[ProductSpec] = Field(..., min_length=1)
