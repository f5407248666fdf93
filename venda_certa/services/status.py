"""Order status lifecycle.

``pendente -> confirmado -> preparando -> enviado -> entregue``, with
``cancelado`` reachable from every non-terminal status. Forward moves may
skip steps; ``entregue`` and ``cancelado`` are terminal.
"""
import logging
from datetime import datetime
from typing import Optional

from venda_certa.core.errors import InvalidStateError
from venda_certa.models.database import Pedido, StatusPedido

logger = logging.getLogger(__name__)

FLUXO = (
    StatusPedido.PENDENTE,
    StatusPedido.CONFIRMADO,
    StatusPedido.PREPARANDO,
    StatusPedido.ENVIADO,
    StatusPedido.ENTREGUE,
)

TERMINAIS = frozenset({StatusPedido.ENTREGUE, StatusPedido.CANCELADO})

# Statuses from which payment method and delivery address are frozen.
BLOQUEIO_DE_ENTREGA = frozenset({StatusPedido.ENVIADO, StatusPedido.ENTREGUE, StatusPedido.CANCELADO})

CARIMBOS = {
    StatusPedido.CONFIRMADO: "data_confirmacao",
    StatusPedido.ENTREGUE: "data_entrega",
    StatusPedido.CANCELADO: "data_cancelamento",
}

ROTULOS = {
    StatusPedido.PENDENTE: "Pendente",
    StatusPedido.CONFIRMADO: "Confirmado",
    StatusPedido.PREPARANDO: "Em Preparo",
    StatusPedido.ENVIADO: "Saiu para Entrega",
    StatusPedido.ENTREGUE: "Entregue",
    StatusPedido.CANCELADO: "Cancelado",
}


def pode_transitar(atual: StatusPedido, novo: StatusPedido) -> bool:
    """Return True if an order in ``atual`` may move to ``novo``."""
    atual, novo = StatusPedido(atual), StatusPedido(novo)
    if atual == novo:
        return True
    if atual in TERMINAIS:
        return False
    if novo == StatusPedido.CANCELADO:
        return True
    return FLUXO.index(novo) > FLUXO.index(atual)


def garantir_transicao(atual: StatusPedido, novo: StatusPedido) -> None:
    if not pode_transitar(atual, novo):
        raise InvalidStateError(
            f"Não é possível alterar o status de {ROTULOS[StatusPedido(atual)]} "
            f"para {ROTULOS[StatusPedido(novo)]}"
        )


def aplicar_transicao(
    pedido: Pedido,
    novo: StatusPedido,
    motivo: Optional[str] = None,
    agora: Optional[datetime] = None,
) -> bool:
    """Move ``pedido`` to ``novo`` and stamp the matching date column.

    Returns False when the order already is in ``novo`` (nothing changes).
    Compensating stock/statistics on cancellation is the caller's job.
    """
    novo = StatusPedido(novo)
    if pedido.status == novo:
        return False

    garantir_transicao(pedido.status, novo)

    if novo == StatusPedido.CANCELADO:
        if not (motivo or "").strip():
            raise InvalidStateError("Motivo do cancelamento é obrigatório")
        pedido.motivo_cancelamento = motivo.strip()

    agora = agora or datetime.utcnow()
    coluna = CARIMBOS.get(novo)
    if coluna:
        setattr(pedido, coluna, agora)

    logger.info(f"Order {pedido.numero_comanda}: {StatusPedido(pedido.status).value} -> {novo.value}")
    pedido.status = novo
    return True
