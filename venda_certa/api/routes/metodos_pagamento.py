from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from venda_certa.core.database import get_db
from venda_certa.core.errors import NotFoundError
from venda_certa.core.security import require_roles
from venda_certa.models.database import FormaPagamento as DBFormaPagamento
from venda_certa.models.database import Role
from venda_certa.models.schemas import ApiResponse, FormaPagamento, FormaPagamentoCreate, FormaPagamentoUpdate

router = APIRouter()

admin_only = [Depends(require_roles(Role.ADMIN))]


def _get_forma(db: Session, forma_id: int) -> DBFormaPagamento:
    forma = db.get(DBFormaPagamento, forma_id)
    if not forma:
        raise NotFoundError("Método de pagamento não encontrado")
    return forma


def _listar(db: Session, somente_ativos: bool) -> List[FormaPagamento]:
    query = db.query(DBFormaPagamento)
    if somente_ativos:
        query = query.filter(DBFormaPagamento.ativo.is_(True))
    return [FormaPagamento.model_validate(f) for f in query.order_by(DBFormaPagamento.nome.asc()).all()]


@router.get("", response_model=ApiResponse[List[FormaPagamento]])
async def list_formas(db: Session = Depends(get_db)):
    return ApiResponse[List[FormaPagamento]](message="Métodos de pagamento obtidos com sucesso", data=_listar(db, False))


@router.get("/ativos", response_model=ApiResponse[List[FormaPagamento]])
async def list_formas_ativas(db: Session = Depends(get_db)):
    """Payment methods currently offered at checkout"""
    return ApiResponse[List[FormaPagamento]](message="Métodos de pagamento obtidos com sucesso", data=_listar(db, True))


@router.get("/{forma_id}", response_model=ApiResponse[FormaPagamento])
async def get_forma(forma_id: int, db: Session = Depends(get_db)):
    forma = _get_forma(db, forma_id)
    return ApiResponse[FormaPagamento](message="Método de pagamento obtido com sucesso", data=FormaPagamento.model_validate(forma))


@router.post("", response_model=ApiResponse[FormaPagamento], status_code=status.HTTP_201_CREATED, dependencies=admin_only)
async def create_forma(dados: FormaPagamentoCreate, db: Session = Depends(get_db)):
    forma = DBFormaPagamento(**dados.model_dump())
    db.add(forma)
    db.commit()
    db.refresh(forma)
    return ApiResponse[FormaPagamento](message="Método de pagamento criado com sucesso", data=FormaPagamento.model_validate(forma))


@router.put("/{forma_id}", response_model=ApiResponse[FormaPagamento], dependencies=admin_only)
async def update_forma(forma_id: int, dados: FormaPagamentoUpdate, db: Session = Depends(get_db)):
    forma = _get_forma(db, forma_id)
    for field, value in dados.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(forma, field, value)
    db.commit()
    db.refresh(forma)
    return ApiResponse[FormaPagamento](message="Método de pagamento atualizado com sucesso", data=FormaPagamento.model_validate(forma))


@router.delete("/{forma_id}", response_model=ApiResponse[None], dependencies=admin_only)
async def delete_forma(forma_id: int, db: Session = Depends(get_db)):
    db.delete(_get_forma(db, forma_id))
    db.commit()
    return ApiResponse[None](message="Método de pagamento excluído com sucesso")
