from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from decimal import Decimal

import pydantic
import pytest

from venda_certa.core.errors import (
    ConflictError,
    ForbiddenError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
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
    Role,
    StatusPedido,
    Usuario,
)
from venda_certa.models.schemas import ItemPedidoCreate, PedidoCreate, PedidoUpdate
from venda_certa.services.pedido_service import PedidoFiltros, PedidoService


def pedido_de(cliente, *itens, **extra):
    return PedidoCreate(
        cliente_id=cliente.id,
        metodo_pagamento=extra.pop("metodo_pagamento", MetodoPagamento.PIX),
        itens=[ItemPedidoCreate(produto_id=p.id, quantidade=q) for p, q in itens],
        **extra,
    )


@pytest.fixture
def service(db):
    return PedidoService(db)


class TestCriacaoPedido:
    """Checkout: pricing, stock reservation and customer counters"""

    def test_order_totals_stock_and_customer_counters(self, db, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 3)))

        assert pedido.status == StatusPedido.PENDENTE
        assert pedido.subtotal == Decimal("60.00")
        assert pedido.total == Decimal("60.00")
        assert len(pedido.numero_comanda) <= 20
        assert pedido.cliente.nome == "Maria Silva"

        item = pedido.itens[0]
        assert item.nome_produto == "Camiseta Básica"
        assert item.preco_produto == Decimal("20.00")
        assert item.quantidade == 3
        assert item.subtotal == Decimal("60.00")

        db.refresh(produto)
        assert produto.estoque == 7
        assert produto.total_vendas == 3

        db.refresh(cliente)
        assert cliente.total_pedidos == 1
        assert cliente.total_gasto == Decimal("60.00")
        assert cliente.ultimo_pedido_data is not None

    def test_promotional_price_discount_and_delivery_fee(self, service, cliente, criar_produto, produto):
        promocional = criar_produto(nome="Tênis", preco=Decimal("50.00"), preco_promocional=Decimal("40.00"))

        pedido = service.create_order(
            pedido_de(
                cliente,
                (promocional, 2),
                (produto, 1),
                desconto=Decimal("5.00"),
                taxa_entrega=Decimal("7.50"),
            )
        )

        assert [i.preco_produto for i in pedido.itens] == [Decimal("40.00"), Decimal("20.00")]
        assert pedido.subtotal == sum(i.subtotal for i in pedido.itens) == Decimal("100.00")
        assert pedido.total == pedido.subtotal - pedido.desconto + pedido.taxa_entrega
        assert pedido.total == Decimal("102.50")

    def test_insufficient_stock_creates_nothing(self, db, service, cliente, produto):
        with pytest.raises(InsufficientStockError, match="Estoque insuficiente"):
            service.create_order(pedido_de(cliente, (produto, 15)))

        assert db.query(Pedido).count() == 0
        db.refresh(produto)
        assert produto.estoque == 10
        db.refresh(cliente)
        assert cliente.total_pedidos == 0

    def test_failed_reservation_rolls_back_earlier_lines(self, db, service, cliente, produto):
        # Each line passes the advisory check on its own; together they exceed stock.
        with pytest.raises(InsufficientStockError):
            service.create_order(pedido_de(cliente, (produto, 6), (produto, 6)))

        assert db.query(Pedido).count() == 0
        assert db.query(ItemPedido).count() == 0
        db.refresh(produto)
        assert produto.estoque == 10
        assert produto.total_vendas == 0
        db.refresh(cliente)
        assert cliente.total_pedidos == 0
        assert cliente.total_gasto == Decimal("0.00")

    def test_unknown_customer(self, service, produto):
        fantasma = Cliente(id=9999)
        with pytest.raises(NotFoundError, match="Cliente"):
            service.create_order(pedido_de(fantasma, (produto, 1)))

    def test_unknown_product_leaves_stock_untouched(self, db, service, cliente, produto):
        dados = PedidoCreate(
            cliente_id=cliente.id,
            metodo_pagamento=MetodoPagamento.DINHEIRO,
            itens=[
                ItemPedidoCreate(produto_id=produto.id, quantidade=2),
                ItemPedidoCreate(produto_id=99999, quantidade=1),
            ],
        )
        with pytest.raises(NotFoundError, match="99999"):
            service.create_order(dados)

        db.refresh(produto)
        assert produto.estoque == 10
        assert db.query(Pedido).count() == 0

    def test_inactive_product(self, service, cliente, criar_produto):
        inativo = criar_produto(nome="Boné antigo", ativo=False)
        with pytest.raises(InvalidStateError, match="não está ativo"):
            service.create_order(pedido_de(cliente, (inativo, 1)))

    def test_discount_larger_than_order(self, db, service, cliente, produto):
        with pytest.raises(ValidationError):
            service.create_order(pedido_de(cliente, (produto, 1), desconto=Decimal("25.00")))
        db.refresh(produto)
        assert produto.estoque == 10

    def test_item_snapshot_survives_product_changes(self, db, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 1)))

        produto.nome = "Camiseta Premium"
        produto.preco = Decimal("35.00")
        db.commit()

        item = service.get_order(pedido.id).itens[0]
        assert item.nome_produto == "Camiseta Básica"
        assert item.preco_produto == Decimal("20.00")
        assert item.produto.nome == "Camiseta Premium"


class TestConcorrencia:
    """Stock can never go negative, whatever the interleaving"""

    def test_reservation_after_stale_check_fails(self, db, session_factory, cliente, criar_produto, monkeypatch):
        produto = criar_produto(estoque=5)
        original = PedidoService._precificar_itens

        def precificar_e_deixar_outro_comprar(self, itens):
            linhas = original(self, itens)
            # Another request buys 3 units after this one passed the stock check.
            monkeypatch.setattr(PedidoService, "_precificar_itens", original)
            concorrente = session_factory()
            try:
                PedidoService(concorrente).create_order(pedido_de(cliente, (produto, 3)))
            finally:
                concorrente.close()
            return linhas

        monkeypatch.setattr(PedidoService, "_precificar_itens", precificar_e_deixar_outro_comprar)

        with pytest.raises(InsufficientStockError, match="Disponível: 2"):
            PedidoService(db).create_order(pedido_de(cliente, (produto, 3)))

        db.refresh(produto)
        assert produto.estoque == 2
        assert db.query(Pedido).count() == 1
        db.refresh(cliente)
        assert cliente.total_pedidos == 1

    def test_sequential_orders_never_oversell(self, db, service, cliente, criar_produto):
        produto = criar_produto(estoque=5)

        sucessos, erros = 0, []
        for _ in range(5):
            try:
                service.create_order(pedido_de(cliente, (produto, 2)))
                sucessos += 1
            except InsufficientStockError as e:
                erros.append(e)

        db.refresh(produto)
        assert sucessos == 2
        assert len(erros) == 3
        assert produto.estoque == 1
        assert produto.total_vendas == 4

    def test_threaded_single_unit_orders_sell_exactly_the_stock(self, db, session_factory, cliente, criar_produto):
        produto = criar_produto(estoque=5)
        cliente_id, produto_id = cliente.id, produto.id

        def comprar(_):
            session = session_factory()
            try:
                PedidoService(session).create_order(
                    PedidoCreate(
                        cliente_id=cliente_id,
                        metodo_pagamento=MetodoPagamento.PIX,
                        itens=[ItemPedidoCreate(produto_id=produto_id, quantidade=1)],
                    )
                )
                return "ok"
            except InsufficientStockError:
                return "sem_estoque"
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=5) as executor:
            resultados = list(executor.map(comprar, range(20)))

        assert resultados.count("ok") == 5
        assert resultados.count("sem_estoque") == 15

        db.refresh(produto)
        assert produto.estoque == 0
        assert produto.total_vendas == 5
        assert db.query(Pedido).count() == 5
        db.refresh(cliente)
        assert cliente.total_pedidos == 5

    def test_racing_cancellations_compensate_once(self, db, session_factory, cliente, produto):
        pedido = PedidoService(db).create_order(pedido_de(cliente, (produto, 3)))
        cancelar = PedidoUpdate(status=StatusPedido.CANCELADO, motivo_cancelamento="duplicado")

        a, b = session_factory(), session_factory()
        try:
            # Both requests read the order while it is still pending.
            a.get(Pedido, pedido.id)
            b.get(Pedido, pedido.id)

            PedidoService(a).update_order(pedido.id, cancelar)
            with pytest.raises(ConflictError):
                PedidoService(b).update_order(pedido.id, cancelar)
        finally:
            a.close()
            b.close()

        db.refresh(produto)
        assert produto.estoque == 10
        assert produto.total_vendas == 0
        db.refresh(cliente)
        assert cliente.total_pedidos == 0
        assert cliente.total_gasto == Decimal("0.00")

    def test_cancel_after_concurrent_delete_compensates_once(self, db, session_factory, cliente, produto):
        pedido = PedidoService(db).create_order(pedido_de(cliente, (produto, 3)))

        a, b = session_factory(), session_factory()
        try:
            a.get(Pedido, pedido.id)
            b.get(Pedido, pedido.id)

            PedidoService(a).delete_order(pedido.id)
            with pytest.raises(ConflictError):
                PedidoService(b).update_order(
                    pedido.id,
                    PedidoUpdate(status=StatusPedido.CANCELADO, motivo_cancelamento="tarde demais"),
                )
        finally:
            a.close()
            b.close()

        db.refresh(produto)
        assert produto.estoque == 10
        db.refresh(cliente)
        assert cliente.total_pedidos == 0

    def test_delete_after_concurrent_cancel_compensates_once(self, db, session_factory, cliente, produto):
        pedido = PedidoService(db).create_order(pedido_de(cliente, (produto, 3)))

        a, b = session_factory(), session_factory()
        try:
            a.get(Pedido, pedido.id)
            b.get(Pedido, pedido.id)

            PedidoService(a).update_order(
                pedido.id,
                PedidoUpdate(status=StatusPedido.CANCELADO, motivo_cancelamento="cliente desistiu"),
            )
            with pytest.raises(ConflictError):
                PedidoService(b).delete_order(pedido.id)
        finally:
            a.close()
            b.close()

        db.refresh(produto)
        assert produto.estoque == 10
        assert db.query(Pedido).count() == 1
        db.refresh(cliente)
        assert cliente.total_pedidos == 0


class TestAtualizacaoPedido:
    def test_cancel_restores_stock_and_customer_counters(self, db, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 3)))

        cancelado = service.update_order(
            pedido.id,
            PedidoUpdate(status=StatusPedido.CANCELADO, motivo_cancelamento="cliente desistiu"),
        )

        assert cancelado.status == StatusPedido.CANCELADO
        assert cancelado.motivo_cancelamento == "cliente desistiu"
        assert cancelado.data_cancelamento is not None
        assert cancelado.total == Decimal("60.00")

        db.refresh(produto)
        assert produto.estoque == 10
        assert produto.total_vendas == 0
        db.refresh(cliente)
        assert cliente.total_pedidos == 0
        assert cliente.total_gasto == Decimal("0.00")

    def test_cancelling_twice_restores_once(self, db, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 3)))
        cancelar = PedidoUpdate(status=StatusPedido.CANCELADO, motivo_cancelamento="duplicado")

        service.update_order(pedido.id, cancelar)
        service.update_order(pedido.id, cancelar)

        db.refresh(produto)
        assert produto.estoque == 10

    def test_cancel_without_reason_is_rejected_by_schema(self, db, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 3)))

        with pytest.raises(pydantic.ValidationError, match="motivoCancelamento"):
            PedidoUpdate(status=StatusPedido.CANCELADO)

        db.refresh(pedido)
        assert pedido.status == StatusPedido.PENDENTE
        db.refresh(produto)
        assert produto.estoque == 7

    def test_cancel_from_shipped_restores_stock(self, db, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 4)))
        service.update_order(pedido.id, PedidoUpdate(status=StatusPedido.ENVIADO))

        service.update_order(
            pedido.id,
            PedidoUpdate(status=StatusPedido.CANCELADO, motivo_cancelamento="extraviado"),
        )

        db.refresh(produto)
        assert produto.estoque == 10

    def test_status_dates_are_stamped(self, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 1)))

        confirmado = service.update_order(pedido.id, PedidoUpdate(status=StatusPedido.CONFIRMADO))
        assert confirmado.data_confirmacao is not None
        assert confirmado.data_entrega is None

        entregue = service.update_order(pedido.id, PedidoUpdate(status=StatusPedido.ENTREGUE))
        assert entregue.data_entrega is not None

    def test_delivered_order_cannot_go_back(self, db, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 1)))
        service.update_order(pedido.id, PedidoUpdate(status=StatusPedido.ENTREGUE))

        with pytest.raises(InvalidStateError):
            service.update_order(pedido.id, PedidoUpdate(status=StatusPedido.PREPARANDO))

        db.refresh(pedido)
        assert pedido.status == StatusPedido.ENTREGUE

    def test_free_fields_update_before_shipping(self, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 1)))

        atualizado = service.update_order(
            pedido.id,
            PedidoUpdate(
                metodo_pagamento=MetodoPagamento.BOLETO,
                endereco_entrega="Rua Nova, 10",
                observacoes="Portão azul",
            ),
        )

        assert atualizado.metodo_pagamento == MetodoPagamento.BOLETO
        assert atualizado.endereco_entrega == "Rua Nova, 10"
        assert atualizado.observacoes == "Portão azul"

    def test_payment_and_address_locked_after_shipping(self, db, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 1), endereco_entrega="Rua A, 1"))
        service.update_order(pedido.id, PedidoUpdate(status=StatusPedido.ENVIADO))

        with pytest.raises(InvalidStateError, match="após o envio"):
            service.update_order(pedido.id, PedidoUpdate(metodo_pagamento=MetodoPagamento.CARTAO_CREDITO))
        with pytest.raises(InvalidStateError):
            service.update_order(pedido.id, PedidoUpdate(endereco_entrega="Rua B, 2"))

        notas = service.update_order(pedido.id, PedidoUpdate(observacoes="Entregar na portaria"))
        assert notas.observacoes == "Entregar na portaria"
        assert notas.endereco_entrega == "Rua A, 1"
        assert notas.metodo_pagamento == MetodoPagamento.PIX

    def test_nullable_fields_can_be_cleared(self, service, cliente, produto):
        pedido = service.create_order(
            pedido_de(cliente, (produto, 1), observacoes="Portão azul", telefone_contato="(11) 98888-0000")
        )

        atualizado = service.update_order(pedido.id, PedidoUpdate(observacoes=None, telefone_contato=None))

        assert atualizado.observacoes is None
        assert atualizado.telefone_contato is None

    def test_explicit_null_status_and_payment_are_ignored(self, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 1)))

        atualizado = service.update_order(pedido.id, PedidoUpdate(status=None, metodo_pagamento=None))

        assert atualizado.status == StatusPedido.PENDENTE
        assert atualizado.metodo_pagamento == MetodoPagamento.PIX

    def test_address_cannot_be_cleared_after_shipping(self, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 1), endereco_entrega="Rua A, 1"))
        service.update_order(pedido.id, PedidoUpdate(status=StatusPedido.ENVIADO))

        with pytest.raises(InvalidStateError):
            service.update_order(pedido.id, PedidoUpdate(endereco_entrega=None))

    def test_update_unknown_order(self, service):
        with pytest.raises(NotFoundError):
            service.update_order(12345, PedidoUpdate(observacoes="x"))


class TestExclusaoPedido:
    def test_delete_pending_restores_stock(self, db, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 3)))

        service.delete_order(pedido.id)

        assert db.query(Pedido).count() == 0
        assert db.query(ItemPedido).count() == 0
        db.refresh(produto)
        assert produto.estoque == 10
        assert produto.total_vendas == 0
        db.refresh(cliente)
        assert cliente.total_pedidos == 0
        assert cliente.total_gasto == Decimal("0.00")

    def test_delete_cancelled_does_not_restore_again(self, db, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 3)))
        service.update_order(
            pedido.id,
            PedidoUpdate(status=StatusPedido.CANCELADO, motivo_cancelamento="teste"),
        )

        service.delete_order(pedido.id)

        db.refresh(produto)
        assert produto.estoque == 10
        db.refresh(cliente)
        assert cliente.total_pedidos == 0

    @pytest.mark.parametrize("status", [
        StatusPedido.CONFIRMADO,
        StatusPedido.PREPARANDO,
        StatusPedido.ENVIADO,
        StatusPedido.ENTREGUE,
    ])
    def test_delete_after_confirmation_is_rejected(self, db, service, cliente, produto, status):
        pedido = service.create_order(pedido_de(cliente, (produto, 3)))
        service.update_order(pedido.id, PedidoUpdate(status=status))

        with pytest.raises(InvalidStateError, match="pendentes ou cancelados"):
            service.delete_order(pedido.id)

        assert db.query(Pedido).count() == 1
        db.refresh(produto)
        assert produto.estoque == 7

    def test_delete_unknown_order(self, service):
        with pytest.raises(NotFoundError):
            service.delete_order(4242)


class TestHistorico:
    def test_status_changes_are_recorded_with_user(self, service, cliente, produto, criar_usuario):
        entregador = criar_usuario(Role.DELIVERY)
        pedido = service.create_order(pedido_de(cliente, (produto, 1)))

        service.update_order(pedido.id, PedidoUpdate(status=StatusPedido.CONFIRMADO), entregador)
        service.update_order(pedido.id, PedidoUpdate(status=StatusPedido.CONFIRMADO), entregador)
        service.update_order(pedido.id, PedidoUpdate(observacoes="Ligar antes"), entregador)
        service.update_order(
            pedido.id,
            PedidoUpdate(status=StatusPedido.CANCELADO, motivo_cancelamento="sem troco"),
            entregador,
        )

        historico = service.get_history(pedido.id)

        assert [h.status for h in historico] == [
            StatusPedido.PENDENTE,
            StatusPedido.CONFIRMADO,
            StatusPedido.CANCELADO,
        ]
        assert historico[0].descricao == "Pedido criado"
        assert historico[0].usuario_id is None
        assert historico[1].descricao == "Status atualizado para Confirmado"
        assert historico[2].descricao == "sem troco"
        assert {h.usuario_id for h in historico[1:]} == {entregador.id}

    def test_creation_records_the_acting_user(self, service, cliente, produto, criar_usuario):
        atendente = criar_usuario(Role.ADMIN)
        pedido = service.create_order(pedido_de(cliente, (produto, 1)), atendente)

        [criacao] = service.get_history(pedido.id)
        assert criacao.usuario_id == atendente.id

    def test_rejected_transition_records_nothing(self, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 1)))
        service.update_order(pedido.id, PedidoUpdate(status=StatusPedido.ENTREGUE))

        with pytest.raises(InvalidStateError):
            service.update_order(pedido.id, PedidoUpdate(status=StatusPedido.CONFIRMADO))

        assert len(service.get_history(pedido.id)) == 2

    def test_history_is_deleted_with_the_order(self, db, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 1)))

        service.delete_order(pedido.id)

        assert db.query(AtualizacaoPedido).count() == 0

    def test_history_of_unknown_order(self, service):
        with pytest.raises(NotFoundError):
            service.get_history(777)


class TestCatalogosNoCheckout:
    @pytest.fixture
    def expressa(self, db):
        metodo = MetodoEntrega(nome="Expressa", tipo="expressa", preco=Decimal("12.00"))
        db.add(metodo)
        db.commit()
        return metodo

    @pytest.fixture
    def endereco(self, db, criar_usuario):
        usuario = criar_usuario(Role.CUSTOMER)
        endereco = Endereco(
            usuario_id=usuario.id,
            rua="Rua das Flores",
            numero="12",
            bairro="Centro",
            cidade="São Paulo",
            estado="SP",
            cep="01000-000",
        )
        db.add(endereco)
        db.commit()
        return endereco

    def test_delivery_method_sets_default_fee(self, service, cliente, produto, expressa):
        pedido = service.create_order(pedido_de(cliente, (produto, 1), metodo_entrega_id=expressa.id))

        assert pedido.metodo_entrega_id == expressa.id
        assert pedido.taxa_entrega == Decimal("12.00")
        assert pedido.total == Decimal("32.00")

    def test_explicit_fee_overrides_delivery_method(self, service, cliente, produto, expressa):
        pedido = service.create_order(
            pedido_de(cliente, (produto, 1), metodo_entrega_id=expressa.id, taxa_entrega=Decimal("0"))
        )

        assert pedido.taxa_entrega == Decimal("0.00")
        assert pedido.total == Decimal("20.00")

    def test_inactive_delivery_method(self, db, service, cliente, produto, expressa):
        expressa.ativo = False
        db.commit()

        with pytest.raises(InvalidStateError, match="entrega indisponível"):
            service.create_order(pedido_de(cliente, (produto, 1), metodo_entrega_id=expressa.id))

    def test_unknown_delivery_method(self, service, cliente, produto):
        with pytest.raises(NotFoundError, match="Método de entrega"):
            service.create_order(pedido_de(cliente, (produto, 1), metodo_entrega_id=999))

    def test_disabled_payment_method_is_refused(self, db, service, cliente, produto):
        db.add(FormaPagamento(nome="Boleto bancário", tipo=MetodoPagamento.BOLETO, ativo=False))
        db.commit()

        with pytest.raises(InvalidStateError, match="pagamento indisponível"):
            service.create_order(pedido_de(cliente, (produto, 1), metodo_pagamento=MetodoPagamento.BOLETO))

        pedido = service.create_order(pedido_de(cliente, (produto, 1), metodo_pagamento=MetodoPagamento.PIX))
        assert pedido.metodo_pagamento == MetodoPagamento.PIX

    def test_saved_address_is_copied_onto_the_order(self, db, service, cliente, produto, endereco):
        dono = db.get(Usuario, endereco.usuario_id)

        pedido = service.create_order(pedido_de(cliente, (produto, 1), endereco_id=endereco.id), dono)

        assert pedido.endereco_entrega == "Rua das Flores, 12, Centro, São Paulo/SP, CEP 01000-000"

    def test_address_of_another_user_is_refused(self, db, service, cliente, produto, endereco, criar_usuario):
        intruso = criar_usuario(Role.CUSTOMER, email="intruso@example.com")

        with pytest.raises(ForbiddenError):
            service.create_order(pedido_de(cliente, (produto, 1), endereco_id=endereco.id), intruso)

        db.refresh(produto)
        assert produto.estoque == 10


class TestListagem:
    @pytest.fixture
    def pedidos(self, db, service, cliente, produto):
        outro = Cliente(nome="João Souza", email="joao@example.com")
        db.add(outro)
        db.commit()
        return [
            service.create_order(pedido_de(cliente, (produto, 1), observacoes="Entrega URGENTE")),
            service.create_order(pedido_de(cliente, (produto, 2), metodo_pagamento=MetodoPagamento.BOLETO)),
            service.create_order(pedido_de(outro, (produto, 3))),
        ]

    def test_pagination_envelope(self, service, pedidos):
        pagina1, paginacao1 = service.list_orders(PedidoFiltros(page=1, limit=2))
        pagina2, paginacao2 = service.list_orders(PedidoFiltros(page=2, limit=2))

        assert len(pagina1) == 2
        assert len(pagina2) == 1
        assert paginacao1.total_items == 3
        assert paginacao1.total_pages == 2
        assert paginacao1.items_per_page == 2
        assert paginacao1.has_next and not paginacao1.has_prev
        assert paginacao2.has_prev and not paginacao2.has_next
        assert {p.id for p in pagina1 + pagina2} == {p.id for p in pedidos}

    def test_empty_result_has_zeroed_pagination(self, service):
        pedidos, paginacao = service.list_orders(PedidoFiltros())

        assert pedidos == []
        assert paginacao.total_items == 0
        assert paginacao.total_pages == 0
        assert not paginacao.has_next
        assert not paginacao.has_prev

    def test_page_size_is_capped(self, db, pedidos):
        _, paginacao = PedidoService(db, max_page_size=2).list_orders(PedidoFiltros(limit=500))
        assert paginacao.items_per_page == 2

    def test_filters(self, service, cliente, pedidos):
        por_cliente, _ = service.list_orders(PedidoFiltros(cliente_id=cliente.id))
        assert len(por_cliente) == 2

        por_metodo, _ = service.list_orders(PedidoFiltros(metodo_pagamento=MetodoPagamento.BOLETO))
        assert [p.id for p in por_metodo] == [pedidos[1].id]

        service.update_order(pedidos[0].id, PedidoUpdate(status=StatusPedido.CONFIRMADO))
        por_status, _ = service.list_orders(PedidoFiltros(status=StatusPedido.CONFIRMADO))
        assert [p.id for p in por_status] == [pedidos[0].id]

    def test_search_matches_notes_and_order_number(self, service, pedidos):
        por_nota, _ = service.list_orders(PedidoFiltros(search="urgente"))
        assert [p.id for p in por_nota] == [pedidos[0].id]

        por_numero, _ = service.list_orders(PedidoFiltros(search=pedidos[2].numero_comanda))
        assert [p.id for p in por_numero] == [pedidos[2].id]

    def test_date_range(self, service, pedidos):
        agora = datetime.utcnow()
        futuro, _ = service.list_orders(PedidoFiltros(date_from=agora + timedelta(days=1)))
        assert futuro == []

        janela, _ = service.list_orders(
            PedidoFiltros(date_from=agora - timedelta(days=1), date_to=agora + timedelta(days=1))
        )
        assert len(janela) == 3

    def test_sort_by_camel_case_column(self, service, pedidos):
        asc, _ = service.list_orders(PedidoFiltros(sort_by="total", sort_order="asc"))
        assert [p.total for p in asc] == sorted(p.total for p in asc)

        desc, _ = service.list_orders(PedidoFiltros(sort_by="numeroComanda", sort_order="DESC"))
        assert [p.numero_comanda for p in desc] == sorted((p.numero_comanda for p in desc), reverse=True)

    def test_invalid_sort_column(self, service):
        with pytest.raises(ValidationError, match="ordenação"):
            service.list_orders(PedidoFiltros(sort_by="senha"))

    def test_invalid_sort_order(self, service):
        with pytest.raises(ValidationError):
            service.list_orders(PedidoFiltros(sort_order="sideways"))

    def test_search_wildcards_match_literally(self, service, cliente, produto, pedidos):
        com_porcentagem = service.create_order(pedido_de(cliente, (produto, 1), observacoes="Desconto de 10%"))

        por_porcentagem, _ = service.list_orders(PedidoFiltros(search="%"))
        assert [p.id for p in por_porcentagem] == [com_porcentagem.id]

        por_sublinhado, _ = service.list_orders(PedidoFiltros(search="_"))
        assert por_sublinhado == []

    def test_orders_of_one_customer(self, service, cliente, pedidos):
        do_cliente, paginacao = service.list_customer_orders(cliente.id, PedidoFiltros())

        assert {p.id for p in do_cliente} == {pedidos[0].id, pedidos[1].id}
        assert paginacao.total_items == 2

    def test_orders_of_unknown_customer(self, service):
        with pytest.raises(NotFoundError, match="Cliente"):
            service.list_customer_orders(999, PedidoFiltros())


class TestEstatisticas:
    def test_counts_revenue_and_average(self, service, cliente, produto):
        a = service.create_order(pedido_de(cliente, (produto, 1)))
        b = service.create_order(pedido_de(cliente, (produto, 2)))
        c = service.create_order(pedido_de(cliente, (produto, 3)))
        service.update_order(b.id, PedidoUpdate(status=StatusPedido.ENTREGUE))
        service.update_order(c.id, PedidoUpdate(status=StatusPedido.CANCELADO, motivo_cancelamento="x"))

        stats = service.get_stats()

        assert stats.total_orders == 3
        assert stats.pending_orders == 1
        assert stats.completed_orders == 1
        assert stats.cancelled_orders == 1
        assert stats.total_revenue == 60.0
        assert stats.avg_order_value == 30.0
        assert a.total + b.total == Decimal("60.00")

    def test_average_is_rounded(self, service, cliente, criar_produto):
        produto = criar_produto(preco=Decimal("10.00"))
        for quantidade in (1, 1, 2):
            service.create_order(pedido_de(cliente, (produto, quantidade)))

        assert service.get_stats().avg_order_value == 13.33

    def test_all_cancelled_gives_zero_average(self, service, cliente, produto):
        pedido = service.create_order(pedido_de(cliente, (produto, 1)))
        service.update_order(pedido.id, PedidoUpdate(status=StatusPedido.CANCELADO, motivo_cancelamento="x"))

        stats = service.get_stats()

        assert stats.total_orders == 1
        assert stats.cancelled_orders == 1
        assert stats.total_revenue == 0.0
        assert stats.avg_order_value == 0.0

    def test_empty_range(self, service, cliente, produto):
        service.create_order(pedido_de(cliente, (produto, 1)))

        stats = service.get_stats(date_from=datetime.utcnow() + timedelta(days=1))

        assert stats.total_orders == 0
        assert stats.avg_order_value == 0.0
