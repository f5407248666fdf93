from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from venda_certa.core.database import get_db
from venda_certa.core.errors import ConflictError, NotFoundError, conflict_from_integrity
from venda_certa.core.security import require_roles
from venda_certa.models.database import Categoria as DBCategoria
from venda_certa.models.database import Role
from venda_certa.models.schemas import ApiResponse, Categoria, CategoriaCreate, CategoriaDetalhe

router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[Categoria],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(Role.ADMIN))],
)
async def create_categoria(dados: CategoriaCreate, db: Session = Depends(get_db)):
    if db.query(DBCategoria).filter(DBCategoria.slug == dados.slug).first():
        raise ConflictError("Slug já cadastrado")
    if dados.parent_id is not None and not db.get(DBCategoria, dados.parent_id):
        raise NotFoundError("Categoria pai não encontrada")

    categoria = DBCategoria(**dados.model_dump())
    db.add(categoria)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise conflict_from_integrity(e)
    db.refresh(categoria)
    return ApiResponse[Categoria](message="Categoria criada com sucesso", data=Categoria.model_validate(categoria))


@router.get("", response_model=ApiResponse[List[Categoria]])
async def list_categorias(raiz: bool = False, db: Session = Depends(get_db)):
    """List categories; ``raiz=true`` keeps only top-level ones"""
    query = db.query(DBCategoria)
    if raiz:
        query = query.filter(DBCategoria.parent_id.is_(None))
    categorias = query.order_by(DBCategoria.nome.asc()).all()
    return ApiResponse[List[Categoria]](
        message="Categorias obtidas com sucesso",
        data=[Categoria.model_validate(c) for c in categorias],
    )


@router.get("/{categoria_id}", response_model=ApiResponse[CategoriaDetalhe])
async def get_categoria(categoria_id: int, db: Session = Depends(get_db)):
    categoria = (
        db.query(DBCategoria)
        .options(selectinload(DBCategoria.subcategorias))
        .filter(DBCategoria.id == categoria_id)
        .first()
    )
    if not categoria:
        raise NotFoundError("Categoria não encontrada")
    return ApiResponse[CategoriaDetalhe](
        message="Categoria obtida com sucesso",
        data=CategoriaDetalhe.model_validate(categoria),
    )
