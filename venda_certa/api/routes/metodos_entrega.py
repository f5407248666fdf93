import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from venda_certa.core.database import get_db
from venda_certa.core.errors import NotFoundError
from venda_certa.core.security import require_roles
from venda_certa.models.database import MetodoEntrega as DBMetodoEntrega
from venda_certa.models.database import Role
from venda_certa.models.schemas import ApiResponse, MetodoEntrega, MetodoEntregaCreate, MetodoEntregaUpdate

logger = logging.getLogger(__name__)

router = APIRouter()

admin_only = [Depends(require_roles(Role.ADMIN))]

NULLABLE_FIELDS = {"descricao", "estimativa_entrega"}


def _get_metodo(db: Session, metodo_id: int) -> DBMetodoEntrega:
    metodo = db.get(DBMetodoEntrega, metodo_id)
    if not metodo:
        raise NotFoundError("Método de entrega não encontrado")
    return metodo


def _listar(db: Session, somente_ativos: bool) -> List[MetodoEntrega]:
    query = db.query(DBMetodoEntrega)
    if somente_ativos:
        query = query.filter(DBMetodoEntrega.ativo.is_(True))
    return [MetodoEntrega.model_validate(m) for m in query.order_by(DBMetodoEntrega.preco.asc()).all()]


@router.get("", response_model=ApiResponse[List[MetodoEntrega]])
async def list_metodos(db: Session = Depends(get_db)):
    return ApiResponse[List[MetodoEntrega]](message="Métodos de entrega obtidos com sucesso", data=_listar(db, False))


@router.get("/ativos", response_model=ApiResponse[List[MetodoEntrega]])
async def list_metodos_ativos(db: Session = Depends(get_db)):
    """Delivery methods currently offered, cheapest first"""
    return ApiResponse[List[MetodoEntrega]](message="Métodos de entrega obtidos com sucesso", data=_listar(db, True))


@router.get("/{metodo_id}", response_model=ApiResponse[MetodoEntrega])
async def get_metodo(metodo_id: int, db: Session = Depends(get_db)):
    metodo = _get_metodo(db, metodo_id)
    return ApiResponse[MetodoEntrega](message="Método de entrega obtido com sucesso", data=MetodoEntrega.model_validate(metodo))


@router.post("", response_model=ApiResponse[MetodoEntrega], status_code=status.HTTP_201_CREATED, dependencies=admin_only)
async def create_metodo(dados: MetodoEntregaCreate, db: Session = Depends(get_db)):
    metodo = DBMetodoEntrega(**dados.model_dump())
    db.add(metodo)
    db.commit()
    db.refresh(metodo)
    logger.info(f"Delivery method {metodo.id} created ({metodo.nome})")
    return ApiResponse[MetodoEntrega](message="Método de entrega criado com sucesso", data=MetodoEntrega.model_validate(metodo))


@router.put("/{metodo_id}", response_model=ApiResponse[MetodoEntrega], dependencies=admin_only)
async def update_metodo(metodo_id: int, dados: MetodoEntregaUpdate, db: Session = Depends(get_db)):
    metodo = _get_metodo(db, metodo_id)
    for field, value in dados.model_dump(exclude_unset=True).items():
        if value is not None or field in NULLABLE_FIELDS:
            setattr(metodo, field, value)
    db.commit()
    db.refresh(metodo)
    return ApiResponse[MetodoEntrega](message="Método de entrega atualizado com sucesso", data=MetodoEntrega.model_validate(metodo))


@router.delete("/{metodo_id}", response_model=ApiResponse[None], dependencies=admin_only)
async def delete_metodo(metodo_id: int, db: Session = Depends(get_db)):
    db.delete(_get_metodo(db, metodo_id))
    db.commit()
    return ApiResponse[None](message="Método de entrega excluído com sucesso")
