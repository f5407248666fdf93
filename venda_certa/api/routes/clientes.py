from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from venda_certa.core.database import get_db
from venda_certa.core.errors import ConflictError, NotFoundError, conflict_from_integrity
from venda_certa.core.security import get_current_user
from venda_certa.models.database import Cliente as DBCliente
from venda_certa.models.schemas import ApiResponse, Cliente, ClienteCreate

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.post("", response_model=ApiResponse[Cliente], status_code=status.HTTP_201_CREATED)
async def create_cliente(dados: ClienteCreate, db: Session = Depends(get_db)):
    email = dados.email.strip().lower()
    if db.query(DBCliente).filter(DBCliente.email == email).first():
        raise ConflictError("E-mail já cadastrado")

    cliente = DBCliente(nome=dados.nome, email=email, telefone=dados.telefone)
    db.add(cliente)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise conflict_from_integrity(e)
    db.refresh(cliente)
    return ApiResponse[Cliente](message="Cliente criado com sucesso", data=Cliente.model_validate(cliente))


@router.get("", response_model=ApiResponse[List[Cliente]])
async def list_clientes(db: Session = Depends(get_db)):
    clientes = db.query(DBCliente).order_by(DBCliente.nome.asc()).all()
    return ApiResponse[List[Cliente]](
        message="Clientes obtidos com sucesso",
        data=[Cliente.model_validate(c) for c in clientes],
    )


@router.get("/{cliente_id}", response_model=ApiResponse[Cliente])
async def get_cliente(cliente_id: int, db: Session = Depends(get_db)):
    """Customer with the running order count and total spent"""
    cliente = db.get(DBCliente, cliente_id)
    if not cliente:
        raise NotFoundError("Cliente não encontrado")
    return ApiResponse[Cliente](message="Cliente obtido com sucesso", data=Cliente.model_validate(cliente))
