import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from venda_certa.core.database import Base


class StatusPedido(str, enum.Enum):
    PENDENTE = "pendente"
    CONFIRMADO = "confirmado"
    PREPARANDO = "preparando"
    ENVIADO = "enviado"
    ENTREGUE = "entregue"
    CANCELADO = "cancelado"


class MetodoPagamento(str, enum.Enum):
    DINHEIRO = "dinheiro"
    CARTAO_CREDITO = "cartao_credito"
    CARTAO_DEBITO = "cartao_debito"
    PIX = "pix"
    BOLETO = "boleto"


class Role(str, enum.Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"
    DELIVERY = "delivery"


def _enum_column(enum_cls):
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=20,
        validate_strings=True,
    )


class Categoria(Base):
    """Product category; categories form a tree through ``parent_id``."""
    __tablename__ = "categorias"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(100), nullable=False)
    slug = Column(String(120), unique=True, index=True, nullable=False)
    descricao = Column(Text)
    parent_id = Column(Integer, ForeignKey("categorias.id", ondelete="SET NULL"), nullable=True)
    ativo = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    parent = relationship("Categoria", remote_side=[id], back_populates="subcategorias")
    subcategorias = relationship("Categoria", back_populates="parent")
    produtos = relationship("Produto", back_populates="categoria")


class Produto(Base):
    """Catalog product; ``estoque`` is the stock ledger touched by order events."""
    __tablename__ = "produtos"
    __table_args__ = (
        CheckConstraint("estoque >= 0", name="ck_produtos_estoque_nao_negativo"),
    )

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(255), nullable=False)
    descricao = Column(Text)
    preco = Column(Numeric(10, 2), nullable=False)
    preco_promocional = Column(Numeric(10, 2), nullable=True)
    sku = Column(String(100), unique=True, index=True, nullable=True)
    estoque = Column(Integer, nullable=False, default=0)
    ativo = Column(Boolean, nullable=False, default=True)
    total_vendas = Column(Integer, nullable=False, default=0)
    categoria_id = Column(Integer, ForeignKey("categorias.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    categoria = relationship("Categoria", back_populates="produtos")
    itens_pedido = relationship("ItemPedido", back_populates="produto")

    @property
    def preco_efetivo(self) -> Decimal:
        return self.preco_promocional if self.preco_promocional is not None else self.preco


class Cliente(Base):
    """Customer; the ``total_*`` counters are denormalized order statistics."""
    __tablename__ = "clientes"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    telefone = Column(String(20))
    total_pedidos = Column(Integer, nullable=False, default=0)
    total_gasto = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    ultimo_pedido_data = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    pedidos = relationship("Pedido", back_populates="cliente")


class Usuario(Base):
    """Account that authenticates with a bearer token."""
    __tablename__ = "usuarios"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(_enum_column(Role), nullable=False, default=Role.CUSTOMER)
    ativo = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    enderecos = relationship("Endereco", back_populates="usuario", cascade="all, delete-orphan")


class Pedido(Base):
    """Order header; ``total`` is fixed at creation time."""
    __tablename__ = "pedidos"

    id = Column(Integer, primary_key=True, index=True)
    cliente_id = Column(Integer, ForeignKey("clientes.id", ondelete="RESTRICT"), nullable=False, index=True)
    numero_comanda = Column(String(20), unique=True, index=True, nullable=False)
    status = Column(_enum_column(StatusPedido), nullable=False, default=StatusPedido.PENDENTE, index=True)
    metodo_pagamento = Column(_enum_column(MetodoPagamento), nullable=False, index=True)
    subtotal = Column(Numeric(10, 2), nullable=False)
    desconto = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    taxa_entrega = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    total = Column(Numeric(10, 2), nullable=False)
    observacoes = Column(Text)
    endereco_entrega = Column(Text)
    telefone_contato = Column(String(20))
    metodo_entrega_id = Column(Integer, ForeignKey("metodos_entrega.id", ondelete="SET NULL"), nullable=True)
    data_confirmacao = Column(DateTime)
    data_entrega = Column(DateTime)
    data_cancelamento = Column(DateTime)
    motivo_cancelamento = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    cliente = relationship("Cliente", back_populates="pedidos")
    itens = relationship(
        "ItemPedido",
        back_populates="pedido",
        cascade="all, delete-orphan",
        order_by="ItemPedido.id",
    )
    metodo_entrega = relationship("MetodoEntrega")
    atualizacoes = relationship(
        "AtualizacaoPedido",
        back_populates="pedido",
        cascade="all, delete-orphan",
        order_by="AtualizacaoPedido.id",
    )


class ItemPedido(Base):
    """Order line; name and price are captured when the order is placed."""
    __tablename__ = "itens_pedido"

    id = Column(Integer, primary_key=True, index=True)
    pedido_id = Column(Integer, ForeignKey("pedidos.id", ondelete="CASCADE"), nullable=False, index=True)
    produto_id = Column(Integer, ForeignKey("produtos.id", ondelete="RESTRICT"), nullable=False, index=True)
    nome_produto = Column(String(255), nullable=False)
    preco_produto = Column(Numeric(10, 2), nullable=False)
    quantidade = Column(Integer, nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    observacoes = Column(Text)

    pedido = relationship("Pedido", back_populates="itens")
    produto = relationship("Produto", back_populates="itens_pedido")


class AtualizacaoPedido(Base):
    """One row per status the order has been through, with who moved it."""
    __tablename__ = "atualizacoes_pedido"

    id = Column(Integer, primary_key=True, index=True)
    pedido_id = Column(Integer, ForeignKey("pedidos.id", ondelete="CASCADE"), nullable=False, index=True)
    usuario_id = Column(Integer, ForeignKey("usuarios.id", ondelete="SET NULL"), nullable=True)
    status = Column(_enum_column(StatusPedido), nullable=False)
    descricao = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    pedido = relationship("Pedido", back_populates="atualizacoes")
    usuario = relationship("Usuario")


class Endereco(Base):
    __tablename__ = "enderecos"

    id = Column(Integer, primary_key=True, index=True)
    usuario_id = Column(Integer, ForeignKey("usuarios.id", ondelete="CASCADE"), nullable=False, index=True)
    rua = Column(String(100), nullable=False)
    numero = Column(String(10), nullable=False)
    complemento = Column(String(50))
    bairro = Column(String(50), nullable=False)
    cidade = Column(String(50), nullable=False)
    estado = Column(String(2), nullable=False)
    cep = Column(String(10), nullable=False)
    favorito = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    usuario = relationship("Usuario", back_populates="enderecos")

    def formatado(self) -> str:
        """Single-line address, as copied onto an order."""
        linha = f"{self.rua}, {self.numero}"
        if self.complemento:
            linha += f" - {self.complemento}"
        return f"{linha}, {self.bairro}, {self.cidade}/{self.estado}, CEP {self.cep}"


class FormaPagamento(Base):
    """Payment option offered at checkout; ``tipo`` is the method stored on orders."""
    __tablename__ = "formas_pagamento"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(50), nullable=False)
    tipo = Column(_enum_column(MetodoPagamento), nullable=False, index=True)
    ativo = Column(Boolean, nullable=False, default=True)


class MetodoEntrega(Base):
    __tablename__ = "metodos_entrega"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(50), nullable=False)
    descricao = Column(String(255))
    tipo = Column(String(30), nullable=False)
    estimativa_entrega = Column(String(50))
    preco = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    ativo = Column(Boolean, nullable=False, default=True)
