import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from math import ceil
from typing import List, Optional, Tuple

from pydantic.alias_generators import to_snake
from sqlalchemy import func, or_, text, update
from sqlalchemy.orm import Session, joinedload, selectinload

from venda_certa.core.database import LIKE_ESCAPE, like_pattern
from venda_certa.core.errors import (
    ConflictError,
    ForbiddenError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
    VendaCertaError,
)
from venda_certa.models.database import (
    AtualizacaoPedido,
    Cliente,
    Endereco,
    FormaPagamento,
    ItemPedido,
    MetodoEntrega,
    MetodoPagamento,
    Pedido,
    Produto,
    Role,
    StatusPedido,
    Usuario,
)
from venda_certa.models.schemas import ItemPedidoCreate, Pagination, PedidoCreate, PedidoStats, PedidoUpdate
from venda_certa.services.status import BLOQUEIO_DE_ENTREGA, CARIMBOS, ROTULOS, aplicar_transicao

logger = logging.getLogger(__name__)

CENTAVOS = Decimal("0.01")
CAMPOS_BLOQUEADOS_APOS_ENVIO = ("metodo_pagamento", "endereco_entrega")
CAMPOS_ANULAVEIS = {"observacoes", "endereco_entrega", "telefone_contato", "data_entrega"}


def dinheiro(valor) -> Decimal:
    return Decimal(str(valor)).quantize(CENTAVOS, rounding=ROUND_HALF_UP)


def gerar_numero_comanda() -> str:
    return f"{datetime.utcnow():%y%m%d}{uuid.uuid4().hex[:8].upper()}"


@dataclass
class PedidoFiltros:
    page: int = 1
    limit: int = 10
    search: Optional[str] = None
    cliente_id: Optional[int] = None
    status: Optional[StatusPedido] = None
    metodo_pagamento: Optional[MetodoPagamento] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    sort_by: str = "createdAt"
    sort_order: str = "DESC"


@dataclass
class _Linha:
    produto: Produto
    quantidade: int
    preco: Decimal
    subtotal: Decimal
    observacoes: Optional[str]


class PedidoService:
    """
    Order lifecycle: checkout, status changes, cancellation and deletion.

    Every mutation commits once at the end, so stock, customer counters and
    the order rows move together or not at all. Stock is reserved with a
    conditional UPDATE, which keeps it from going negative when concurrent
    orders race for the same product.
    """

    def __init__(self, db: Session, max_page_size: int = 100):
        self.db = db
        self.max_page_size = max_page_size

    def create_order(self, dados: PedidoCreate, usuario: Optional[Usuario] = None) -> Pedido:
        logger.info(f"Creating order for customer {dados.cliente_id} with {len(dados.itens)} item(s)")

        try:
            cliente = self.db.get(Cliente, dados.cliente_id)
            if not cliente:
                raise NotFoundError("Cliente não encontrado")

            self._verificar_forma_pagamento(dados.metodo_pagamento)
            taxa_entrega = dados.taxa_entrega
            if dados.metodo_entrega_id is not None:
                metodo_entrega = self._metodo_entrega(dados.metodo_entrega_id)
                if "taxa_entrega" not in dados.model_fields_set:
                    taxa_entrega = metodo_entrega.preco
            endereco_entrega = dados.endereco_entrega
            if dados.endereco_id is not None and not endereco_entrega:
                endereco_entrega = self._endereco(dados.endereco_id, usuario).formatado()

            linhas = self._precificar_itens(dados.itens)
            subtotal = dinheiro(sum((linha.subtotal for linha in linhas), Decimal("0")))
            desconto = dinheiro(dados.desconto)
            taxa_entrega = dinheiro(taxa_entrega)
            total = subtotal - desconto + taxa_entrega
            if total < 0:
                raise ValidationError("Desconto não pode ser maior que o valor do pedido")

            pedido = Pedido(
                cliente_id=cliente.id,
                numero_comanda=gerar_numero_comanda(),
                status=StatusPedido.PENDENTE,
                metodo_pagamento=dados.metodo_pagamento,
                subtotal=subtotal,
                desconto=desconto,
                taxa_entrega=taxa_entrega,
                total=total,
                observacoes=dados.observacoes,
                endereco_entrega=endereco_entrega,
                telefone_contato=dados.telefone_contato,
                metodo_entrega_id=dados.metodo_entrega_id,
            )
            self.db.add(pedido)
            self.db.flush()
            self._registrar_historico(pedido, usuario, "Pedido criado")

            for linha in linhas:
                pedido.itens.append(
                    ItemPedido(
                        produto_id=linha.produto.id,
                        nome_produto=linha.produto.nome,
                        preco_produto=linha.preco,
                        quantidade=linha.quantidade,
                        subtotal=linha.subtotal,
                        observacoes=linha.observacoes,
                    )
                )
                self._reservar_estoque(linha.produto, linha.quantidade)

            self.db.execute(
                update(Cliente)
                .where(Cliente.id == cliente.id)
                .values(
                    total_pedidos=Cliente.total_pedidos + 1,
                    total_gasto=Cliente.total_gasto + total,
                    ultimo_pedido_data=datetime.utcnow(),
                )
                .execution_options(synchronize_session=False)
            )

            self.db.commit()
        except VendaCertaError as e:
            self.db.rollback()
            logger.warning(f"Order rejected for customer {dados.cliente_id}: {e.message}")
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating order: {str(e)}")
            raise

        logger.info(f"Order {pedido.numero_comanda} created - total R$ {total}")
        return self.get_order(pedido.id)

    def get_order(self, pedido_id: int) -> Pedido:
        pedido = (
            self.db.query(Pedido)
            .options(
                joinedload(Pedido.cliente),
                selectinload(Pedido.itens).joinedload(ItemPedido.produto),
            )
            .filter(Pedido.id == pedido_id)
            .first()
        )
        if not pedido:
            raise NotFoundError("Pedido não encontrado")
        return pedido

    def update_order(self, pedido_id: int, dados: PedidoUpdate, usuario: Optional[Usuario] = None) -> Pedido:
        """
        Apply a status change and/or free-form field updates.

        Moving into ``cancelado`` restores stock and customer counters in the
        same transaction as the status write. The status write only lands if
        the order still has the status it was read with, so two racing
        cancellations compensate once.
        """
        pedido = self._carregar(pedido_id)
        alteracoes = {
            campo: valor
            for campo, valor in dados.model_dump(exclude_unset=True).items()
            if valor is not None or campo in CAMPOS_ANULAVEIS
        }
        novo_status = alteracoes.pop("status", None)
        motivo = alteracoes.pop("motivo_cancelamento", None)
        status_lido = pedido.status

        try:
            self._validar_alteracoes(pedido, alteracoes)

            if novo_status is not None and aplicar_transicao(pedido, novo_status, motivo):
                self._travar_status(
                    pedido.id,
                    status_lido,
                    status=pedido.status,
                    motivo_cancelamento=pedido.motivo_cancelamento,
                    **{coluna: getattr(pedido, coluna) for coluna in CARIMBOS.values()},
                )
                if pedido.status == StatusPedido.CANCELADO:
                    self._registrar_historico(pedido, usuario, pedido.motivo_cancelamento)
                    self._compensar(pedido)
                else:
                    self._registrar_historico(pedido, usuario, f"Status atualizado para {ROTULOS[pedido.status]}")

            for campo, valor in alteracoes.items():
                setattr(pedido, campo, valor)

            self.db.commit()
        except VendaCertaError as e:
            self.db.rollback()
            logger.warning(f"Update rejected for order {pedido_id}: {e.message}")
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating order {pedido_id}: {str(e)}")
            raise

        return self.get_order(pedido_id)

    def delete_order(self, pedido_id: int) -> None:
        pedido = self._carregar(pedido_id)
        if pedido.status not in (StatusPedido.PENDENTE, StatusPedido.CANCELADO):
            raise InvalidStateError("Apenas pedidos pendentes ou cancelados podem ser excluídos")

        try:
            self._travar_status(pedido.id, pedido.status)
            # Cancelled orders were already compensated when they were cancelled.
            if pedido.status == StatusPedido.PENDENTE:
                self._compensar(pedido)
            self.db.delete(pedido)
            self.db.commit()
        except VendaCertaError as e:
            self.db.rollback()
            logger.warning(f"Delete rejected for order {pedido_id}: {e.message}")
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error deleting order {pedido_id}: {str(e)}")
            raise

        logger.info(f"Order {pedido_id} deleted")

    def get_history(self, pedido_id: int) -> List[AtualizacaoPedido]:
        self._carregar(pedido_id)
        return (
            self.db.query(AtualizacaoPedido)
            .filter(AtualizacaoPedido.pedido_id == pedido_id)
            .order_by(AtualizacaoPedido.id.asc())
            .all()
        )

    def list_customer_orders(self, cliente_id: int, filtros: PedidoFiltros) -> Tuple[List[Pedido], Pagination]:
        if not self.db.get(Cliente, cliente_id):
            raise NotFoundError("Cliente não encontrado")
        return self.list_orders(replace(filtros, cliente_id=cliente_id))

    def list_orders(self, filtros: PedidoFiltros) -> Tuple[List[Pedido], Pagination]:
        page = max(filtros.page, 1)
        limit = min(max(filtros.limit, 1), self.max_page_size)
        ordenacao = self._ordenacao(filtros.sort_by, filtros.sort_order)

        query = self.db.query(Pedido)
        if filtros.search:
            termo = like_pattern(filtros.search)
            query = query.filter(
                or_(
                    Pedido.numero_comanda.ilike(termo, escape=LIKE_ESCAPE),
                    Pedido.observacoes.ilike(termo, escape=LIKE_ESCAPE),
                )
            )
        if filtros.cliente_id:
            query = query.filter(Pedido.cliente_id == filtros.cliente_id)
        if filtros.status:
            query = query.filter(Pedido.status == filtros.status)
        if filtros.metodo_pagamento:
            query = query.filter(Pedido.metodo_pagamento == filtros.metodo_pagamento)
        query = query.filter(*self._filtro_periodo(filtros.date_from, filtros.date_to))

        total_itens = query.count()
        pedidos = (
            query.options(
                joinedload(Pedido.cliente),
                selectinload(Pedido.itens).joinedload(ItemPedido.produto),
            )
            .order_by(*ordenacao)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        total_paginas = ceil(total_itens / limit)
        paginacao = Pagination(
            current_page=page,
            total_pages=total_paginas,
            total_items=total_itens,
            items_per_page=limit,
            has_next=page < total_paginas,
            has_prev=page > 1,
        )
        return pedidos, paginacao

    def get_stats(self, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None) -> PedidoStats:
        periodo = self._filtro_periodo(date_from, date_to)

        def contar(*condicoes) -> int:
            return self.db.query(func.count(Pedido.id)).filter(*periodo, *condicoes).scalar() or 0

        total = contar()
        pendentes = contar(Pedido.status == StatusPedido.PENDENTE)
        entregues = contar(Pedido.status == StatusPedido.ENTREGUE)
        cancelados = contar(Pedido.status == StatusPedido.CANCELADO)

        receita = (
            self.db.query(func.sum(Pedido.total))
            .filter(*periodo, Pedido.status != StatusPedido.CANCELADO)
            .scalar()
        )
        receita = dinheiro(receita or 0)

        validos = total - cancelados
        media = dinheiro(receita / validos) if validos > 0 else Decimal("0.00")

        return PedidoStats(
            total_orders=total,
            pending_orders=pendentes,
            completed_orders=entregues,
            cancelled_orders=cancelados,
            total_revenue=float(receita),
            avg_order_value=float(media),
        )

    def _carregar(self, pedido_id: int) -> Pedido:
        pedido = self.db.get(Pedido, pedido_id)
        if not pedido:
            raise NotFoundError("Pedido não encontrado")
        return pedido

    def _precificar_itens(self, itens: List[ItemPedidoCreate]) -> List[_Linha]:
        """Load and check every requested product; prices are snapshotted here."""
        linhas = []
        for item in itens:
            produto = self.db.get(Produto, item.produto_id)
            if not produto:
                raise NotFoundError(f"Produto com ID {item.produto_id} não encontrado")
            if not produto.ativo:
                raise InvalidStateError(f'Produto "{produto.nome}" não está ativo')
            # Advisory only; _reservar_estoque is the authoritative check.
            if produto.estoque < item.quantidade:
                raise InsufficientStockError(produto.nome, produto.estoque, item.quantidade)

            preco = dinheiro(produto.preco_efetivo)
            linhas.append(
                _Linha(
                    produto=produto,
                    quantidade=item.quantidade,
                    preco=preco,
                    subtotal=dinheiro(preco * item.quantidade),
                    observacoes=item.observacoes,
                )
            )
        return linhas

    def _reservar_estoque(self, produto: Produto, quantidade: int) -> None:
        update_count = self.db.execute(
            text("""
                UPDATE produtos
                SET estoque = estoque - :quantidade,
                    total_vendas = total_vendas + :quantidade,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = :produto_id AND estoque >= :quantidade
            """),
            {"quantidade": quantidade, "produto_id": produto.id},
        ).rowcount

        if update_count == 0:
            disponivel = self.db.query(Produto.estoque).filter(Produto.id == produto.id).scalar() or 0
            raise InsufficientStockError(produto.nome, disponivel, quantidade)

        logger.debug(f"Reserved {quantidade} unit(s) of product {produto.id}")

    def _compensar(self, pedido: Pedido) -> None:
        """Give back stock and undo the customer counters for ``pedido``."""
        for item in pedido.itens:
            self.db.execute(
                update(Produto)
                .where(Produto.id == item.produto_id)
                .values(
                    estoque=Produto.estoque + item.quantidade,
                    total_vendas=Produto.total_vendas - item.quantidade,
                )
                .execution_options(synchronize_session=False)
            )

        self.db.execute(
            update(Cliente)
            .where(Cliente.id == pedido.cliente_id)
            .values(
                total_pedidos=Cliente.total_pedidos - 1,
                total_gasto=Cliente.total_gasto - pedido.total,
            )
            .execution_options(synchronize_session=False)
        )
        logger.info(f"Restored stock for {len(pedido.itens)} item(s) of order {pedido.numero_comanda}")

    def _travar_status(self, pedido_id: int, status_lido: StatusPedido, **valores) -> None:
        """Conditional write on the order row; fails if another request changed its status first."""
        with self.db.no_autoflush:
            update_count = self.db.execute(
                update(Pedido)
                .where(Pedido.id == pedido_id, Pedido.status == status_lido)
                .values(updated_at=datetime.utcnow(), **valores)
                .execution_options(synchronize_session=False)
            ).rowcount

        if update_count == 0:
            raise ConflictError("Pedido foi alterado por outra operação. Tente novamente")

    def _registrar_historico(self, pedido: Pedido, usuario: Optional[Usuario], descricao: Optional[str]) -> None:
        self.db.add(
            AtualizacaoPedido(
                pedido_id=pedido.id,
                usuario_id=usuario.id if usuario is not None else None,
                status=pedido.status,
                descricao=descricao,
            )
        )

    def _verificar_forma_pagamento(self, tipo: MetodoPagamento) -> None:
        # Methods without a catalog entry are accepted.
        formas = self.db.query(FormaPagamento).filter(FormaPagamento.tipo == tipo).all()
        if formas and not any(forma.ativo for forma in formas):
            raise InvalidStateError("Método de pagamento indisponível")

    def _metodo_entrega(self, metodo_entrega_id: int) -> MetodoEntrega:
        metodo = self.db.get(MetodoEntrega, metodo_entrega_id)
        if not metodo:
            raise NotFoundError("Método de entrega não encontrado")
        if not metodo.ativo:
            raise InvalidStateError("Método de entrega indisponível")
        return metodo

    def _endereco(self, endereco_id: int, usuario: Optional[Usuario]) -> Endereco:
        endereco = self.db.get(Endereco, endereco_id)
        if not endereco:
            raise NotFoundError("Endereço não encontrado")
        if usuario is not None and usuario.role != Role.ADMIN and endereco.usuario_id != usuario.id:
            raise ForbiddenError("Endereço pertence a outro usuário")
        return endereco

    def _validar_alteracoes(self, pedido: Pedido, alteracoes: dict) -> None:
        if pedido.status not in BLOQUEIO_DE_ENTREGA:
            return
        for campo in CAMPOS_BLOQUEADOS_APOS_ENVIO:
            if campo in alteracoes and alteracoes[campo] != getattr(pedido, campo):
                raise InvalidStateError(
                    "Método de pagamento e endereço de entrega não podem ser alterados "
                    "após o envio do pedido"
                )

    def _ordenacao(self, sort_by: str, sort_order: str):
        nome = to_snake(sort_by or "createdAt")
        if nome not in Pedido.__table__.columns.keys():
            raise ValidationError(f"Campo de ordenação inválido: {sort_by}")

        direcao = (sort_order or "DESC").upper()
        if direcao not in ("ASC", "DESC"):
            raise ValidationError(f"Direção de ordenação inválida: {sort_order}")

        coluna = getattr(Pedido, nome)
        if direcao == "ASC":
            return coluna.asc(), Pedido.id.asc()
        return coluna.desc(), Pedido.id.desc()

    @staticmethod
    def _filtro_periodo(date_from: Optional[datetime], date_to: Optional[datetime]) -> list:
        condicoes = []
        if date_from:
            condicoes.append(Pedido.created_at >= date_from)
        if date_to:
            condicoes.append(Pedido.created_at <= date_to)
        return condicoes
