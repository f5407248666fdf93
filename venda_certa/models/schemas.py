from datetime import datetime
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from venda_certa.models.database import MetodoPagamento, Role, StatusPedido

T = TypeVar("T")


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Envelopes

class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next: bool
    has_prev: bool


class ApiResponse(CamelModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class PaginatedResponse(CamelModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: List[T] = []
    pagination: Pagination


# Categories

class CategoriaCreate(CamelModel):
    nome: str = Field(..., min_length=2, max_length=100)
    slug: str = Field(..., min_length=2, max_length=120, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    descricao: Optional[str] = None
    parent_id: Optional[int] = Field(default=None, gt=0)
    ativo: bool = True


class Categoria(CamelModel):
    id: int
    nome: str
    slug: str
    descricao: Optional[str] = None
    parent_id: Optional[int] = None
    ativo: bool


class CategoriaDetalhe(Categoria):
    subcategorias: List[Categoria] = []


# Products

class ProdutoBase(CamelModel):
    nome: str = Field(..., min_length=2, max_length=255)
    descricao: Optional[str] = None
    preco: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    preco_promocional: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    sku: Optional[str] = Field(default=None, max_length=100)
    estoque: int = Field(default=0, ge=0)
    ativo: bool = True
    categoria_id: Optional[int] = Field(default=None, gt=0)


class ProdutoCreate(ProdutoBase):
    pass


class ProdutoUpdate(CamelModel):
    nome: Optional[str] = Field(default=None, min_length=2, max_length=255)
    descricao: Optional[str] = None
    preco: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    preco_promocional: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    sku: Optional[str] = Field(default=None, max_length=100)
    estoque: Optional[int] = Field(default=None, ge=0)
    ativo: Optional[bool] = None
    categoria_id: Optional[int] = Field(default=None, gt=0)


class Produto(CamelModel):
    id: int
    nome: str
    descricao: Optional[str] = None
    preco: float
    preco_promocional: Optional[float] = None
    sku: Optional[str] = None
    estoque: int
    ativo: bool
    total_vendas: int
    categoria_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class ProdutoResumo(CamelModel):
    id: int
    nome: str
    estoque: int


# Customers

class ClienteCreate(CamelModel):
    nome: str = Field(..., min_length=2, max_length=255)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    telefone: Optional[str] = Field(default=None, pattern=r"^[()\s\-+\d]+$", max_length=20)


class Cliente(CamelModel):
    id: int
    nome: str
    email: str
    telefone: Optional[str] = None
    total_pedidos: int
    total_gasto: float
    ultimo_pedido_data: Optional[datetime] = None
    created_at: datetime


class ClienteResumo(CamelModel):
    id: int
    nome: str
    email: str
    telefone: Optional[str] = None


# Users

class Usuario(CamelModel):
    id: int
    nome: str
    email: str
    role: Role
    ativo: bool


# Addresses

class EnderecoCreate(CamelModel):
    rua: str = Field(..., min_length=2, max_length=100)
    numero: str = Field(..., min_length=1, max_length=10)
    complemento: Optional[str] = Field(default=None, max_length=50)
    bairro: str = Field(..., min_length=2, max_length=50)
    cidade: str = Field(..., min_length=2, max_length=50)
    estado: str = Field(..., pattern=r"^[A-Z]{2}$")
    cep: str = Field(..., pattern=r"^\d{5}-?\d{3}$")
    favorito: bool = False


class EnderecoUpdate(CamelModel):
    rua: Optional[str] = Field(default=None, min_length=2, max_length=100)
    numero: Optional[str] = Field(default=None, min_length=1, max_length=10)
    complemento: Optional[str] = Field(default=None, max_length=50)
    bairro: Optional[str] = Field(default=None, min_length=2, max_length=50)
    cidade: Optional[str] = Field(default=None, min_length=2, max_length=50)
    estado: Optional[str] = Field(default=None, pattern=r"^[A-Z]{2}$")
    cep: Optional[str] = Field(default=None, pattern=r"^\d{5}-?\d{3}$")


class Endereco(CamelModel):
    id: int
    usuario_id: int
    rua: str
    numero: str
    complemento: Optional[str] = None
    bairro: str
    cidade: str
    estado: str
    cep: str
    favorito: bool


# Payment and delivery catalogs

class FormaPagamentoCreate(CamelModel):
    nome: str = Field(..., min_length=2, max_length=50)
    tipo: MetodoPagamento
    ativo: bool = True


class FormaPagamentoUpdate(CamelModel):
    nome: Optional[str] = Field(default=None, min_length=2, max_length=50)
    tipo: Optional[MetodoPagamento] = None
    ativo: Optional[bool] = None


class FormaPagamento(CamelModel):
    id: int
    nome: str
    tipo: MetodoPagamento
    ativo: bool


class MetodoEntregaCreate(CamelModel):
    nome: str = Field(..., min_length=2, max_length=50)
    descricao: Optional[str] = Field(default=None, max_length=255)
    tipo: str = Field(..., min_length=2, max_length=30)
    estimativa_entrega: Optional[str] = Field(default=None, max_length=50)
    preco: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    ativo: bool = True


class MetodoEntregaUpdate(CamelModel):
    nome: Optional[str] = Field(default=None, min_length=2, max_length=50)
    descricao: Optional[str] = Field(default=None, max_length=255)
    tipo: Optional[str] = Field(default=None, min_length=2, max_length=30)
    estimativa_entrega: Optional[str] = Field(default=None, max_length=50)
    preco: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    ativo: Optional[bool] = None


class MetodoEntrega(CamelModel):
    id: int
    nome: str
    descricao: Optional[str] = None
    tipo: str
    estimativa_entrega: Optional[str] = None
    preco: float
    ativo: bool


# Orders

class ItemPedidoCreate(CamelModel):
    produto_id: int = Field(..., gt=0)
    quantidade: int = Field(..., ge=1)
    observacoes: Optional[str] = None


class PedidoCreate(CamelModel):
    cliente_id: int = Field(..., gt=0)
    metodo_pagamento: MetodoPagamento
    itens: List[ItemPedidoCreate] = Field(..., min_length=1)
    desconto: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    taxa_entrega: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    observacoes: Optional[str] = None
    endereco_entrega: Optional[str] = None
    endereco_id: Optional[int] = Field(default=None, gt=0)
    metodo_entrega_id: Optional[int] = Field(default=None, gt=0)
    telefone_contato: Optional[str] = Field(default=None, max_length=20)


class PedidoUpdate(CamelModel):
    status: Optional[StatusPedido] = None
    metodo_pagamento: Optional[MetodoPagamento] = None
    observacoes: Optional[str] = None
    endereco_entrega: Optional[str] = None
    telefone_contato: Optional[str] = Field(default=None, max_length=20)
    data_entrega: Optional[datetime] = None
    motivo_cancelamento: Optional[str] = None

    @model_validator(mode="after")
    def _cancelamento_exige_motivo(self):
        if self.status == StatusPedido.CANCELADO and not (self.motivo_cancelamento or "").strip():
            raise ValueError("motivoCancelamento é obrigatório ao cancelar o pedido")
        return self


class ItemPedido(CamelModel):
    id: int
    produto_id: int
    nome_produto: str
    preco_produto: float
    quantidade: int
    subtotal: float
    observacoes: Optional[str] = None
    produto: Optional[ProdutoResumo] = None


class AtualizacaoPedido(CamelModel):
    id: int
    status: StatusPedido
    descricao: Optional[str] = None
    usuario_id: Optional[int] = None
    created_at: datetime


class Pedido(CamelModel):
    id: int
    cliente_id: int
    numero_comanda: str
    status: StatusPedido
    metodo_pagamento: MetodoPagamento
    subtotal: float
    desconto: float
    taxa_entrega: float
    total: float
    observacoes: Optional[str] = None
    endereco_entrega: Optional[str] = None
    telefone_contato: Optional[str] = None
    metodo_entrega_id: Optional[int] = None
    data_confirmacao: Optional[datetime] = None
    data_entrega: Optional[datetime] = None
    data_cancelamento: Optional[datetime] = None
    motivo_cancelamento: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    cliente: Optional[ClienteResumo] = None
    itens: List[ItemPedido] = []


class PedidoStats(CamelModel):
    total_orders: int
    pending_orders: int
    completed_orders: int
    cancelled_orders: int
    total_revenue: float
    avg_order_value: float
