from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from venda_certa.core.config import Settings
from venda_certa.core.database import get_db
from venda_certa.core.security import get_current_user, get_settings, require_roles
from venda_certa.models.database import MetodoPagamento, Role, StatusPedido
from venda_certa.models.database import Usuario as DBUsuario
from venda_certa.models.schemas import (
    ApiResponse,
    AtualizacaoPedido,
    PaginatedResponse,
    Pedido,
    PedidoCreate,
    PedidoStats,
    PedidoUpdate,
)
from venda_certa.services.pedido_service import PedidoFiltros, PedidoService

router = APIRouter(dependencies=[Depends(get_current_user)])


def get_pedido_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> PedidoService:
    return PedidoService(db, max_page_size=settings.max_page_size)


@router.get("", response_model=PaginatedResponse[Pedido])
async def list_pedidos(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    search: Optional[str] = None,
    cliente_id: Optional[int] = Query(None, alias="clienteId"),
    status_pedido: Optional[StatusPedido] = Query(None, alias="status"),
    metodo_pagamento: Optional[MetodoPagamento] = Query(None, alias="metodoPagamento"),
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("DESC", alias="sortOrder"),
    service: PedidoService = Depends(get_pedido_service),
    settings: Settings = Depends(get_settings),
):
    """List orders with filters, sorting and pagination"""
    filtros = PedidoFiltros(
        page=page,
        limit=limit or settings.default_page_size,
        search=search,
        cliente_id=cliente_id,
        status=status_pedido,
        metodo_pagamento=metodo_pagamento,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    pedidos, paginacao = service.list_orders(filtros)
    return PaginatedResponse[Pedido](
        message="Pedidos obtidos com sucesso",
        data=[Pedido.model_validate(p) for p in pedidos],
        pagination=paginacao,
    )


@router.get(
    "/stats",
    response_model=ApiResponse[PedidoStats],
    dependencies=[Depends(require_roles(Role.ADMIN))],
)
async def get_stats(
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    service: PedidoService = Depends(get_pedido_service),
):
    """Aggregate order counts and revenue"""
    stats = service.get_stats(date_from, date_to)
    return ApiResponse[PedidoStats](message="Estatísticas obtidas com sucesso", data=stats)


@router.get("/cliente/{cliente_id}", response_model=PaginatedResponse[Pedido])
async def list_pedidos_do_cliente(
    cliente_id: int,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    status_pedido: Optional[StatusPedido] = Query(None, alias="status"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("DESC", alias="sortOrder"),
    service: PedidoService = Depends(get_pedido_service),
    settings: Settings = Depends(get_settings),
):
    """Orders placed by one customer"""
    filtros = PedidoFiltros(
        page=page,
        limit=limit or settings.default_page_size,
        status=status_pedido,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    pedidos, paginacao = service.list_customer_orders(cliente_id, filtros)
    return PaginatedResponse[Pedido](
        message="Pedidos do cliente obtidos com sucesso",
        data=[Pedido.model_validate(p) for p in pedidos],
        pagination=paginacao,
    )


@router.get("/{pedido_id}", response_model=ApiResponse[Pedido])
async def get_pedido(pedido_id: int, service: PedidoService = Depends(get_pedido_service)):
    """Get a specific order"""
    pedido = service.get_order(pedido_id)
    return ApiResponse[Pedido](message="Pedido obtido com sucesso", data=Pedido.model_validate(pedido))


@router.get("/{pedido_id}/historico", response_model=ApiResponse[List[AtualizacaoPedido]])
async def get_historico(pedido_id: int, service: PedidoService = Depends(get_pedido_service)):
    """Status changes of an order, oldest first"""
    atualizacoes = service.get_history(pedido_id)
    return ApiResponse[List[AtualizacaoPedido]](
        message="Histórico obtido com sucesso",
        data=[AtualizacaoPedido.model_validate(a) for a in atualizacoes],
    )


@router.post("", response_model=ApiResponse[Pedido], status_code=status.HTTP_201_CREATED)
async def create_pedido(
    dados: PedidoCreate,
    usuario: DBUsuario = Depends(get_current_user),
    service: PedidoService = Depends(get_pedido_service),
):
    """Create an order, reserving stock for every item"""
    pedido = service.create_order(dados, usuario)
    return ApiResponse[Pedido](message="Pedido criado com sucesso", data=Pedido.model_validate(pedido))


@router.put("/{pedido_id}", response_model=ApiResponse[Pedido])
async def update_pedido(
    pedido_id: int,
    dados: PedidoUpdate,
    usuario: DBUsuario = Depends(require_roles(Role.ADMIN, Role.DELIVERY)),
    service: PedidoService = Depends(get_pedido_service),
):
    """Update order fields or move it through its status lifecycle"""
    pedido = service.update_order(pedido_id, dados, usuario)
    return ApiResponse[Pedido](message="Pedido atualizado com sucesso", data=Pedido.model_validate(pedido))


@router.delete(
    "/{pedido_id}",
    response_model=ApiResponse[None],
    dependencies=[Depends(require_roles(Role.ADMIN))],
)
async def delete_pedido(pedido_id: int, service: PedidoService = Depends(get_pedido_service)):
    """Delete a pending or cancelled order"""
    service.delete_order(pedido_id)
    return ApiResponse[None](message="Pedido excluído com sucesso")
