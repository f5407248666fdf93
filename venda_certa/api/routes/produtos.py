import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from venda_certa.core.database import LIKE_ESCAPE, get_db, like_pattern
from venda_certa.core.errors import ConflictError, NotFoundError, conflict_from_integrity
from venda_certa.core.security import require_roles
from venda_certa.models.database import Categoria as DBCategoria
from venda_certa.models.database import ItemPedido as DBItemPedido
from venda_certa.models.database import Produto as DBProduto
from venda_certa.models.database import Role
from venda_certa.models.schemas import ApiResponse, Produto, ProdutoCreate, ProdutoUpdate

logger = logging.getLogger(__name__)

router = APIRouter()

admin_only = [Depends(require_roles(Role.ADMIN))]

NULLABLE_FIELDS = {"descricao", "preco_promocional", "sku", "categoria_id"}


def _get_produto(db: Session, produto_id: int) -> DBProduto:
    produto = db.get(DBProduto, produto_id)
    if not produto:
        raise NotFoundError("Produto não encontrado")
    return produto


def _check_categoria(db: Session, categoria_id: Optional[int]) -> None:
    if categoria_id is not None and not db.get(DBCategoria, categoria_id):
        raise NotFoundError("Categoria não encontrada")


def _commit(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise conflict_from_integrity(e)


@router.post("", response_model=ApiResponse[Produto], status_code=status.HTTP_201_CREATED, dependencies=admin_only)
async def create_produto(dados: ProdutoCreate, db: Session = Depends(get_db)):
    """Create a new product"""
    if dados.sku and db.query(DBProduto).filter(DBProduto.sku == dados.sku).first():
        raise ConflictError("SKU já cadastrado")
    _check_categoria(db, dados.categoria_id)

    produto = DBProduto(**dados.model_dump())
    db.add(produto)
    _commit(db)
    db.refresh(produto)
    logger.info(f"Product {produto.id} created ({produto.nome})")
    return ApiResponse[Produto](message="Produto criado com sucesso", data=Produto.model_validate(produto))


@router.get("", response_model=ApiResponse[List[Produto]])
async def list_produtos(
    search: Optional[str] = None,
    ativo: Optional[bool] = None,
    categoria_id: Optional[int] = Query(None, alias="categoriaId"),
    db: Session = Depends(get_db),
):
    """Get all products"""
    query = db.query(DBProduto)
    if search:
        query = query.filter(DBProduto.nome.ilike(like_pattern(search), escape=LIKE_ESCAPE))
    if ativo is not None:
        query = query.filter(DBProduto.ativo == ativo)
    if categoria_id is not None:
        query = query.filter(DBProduto.categoria_id == categoria_id)
    produtos = query.order_by(DBProduto.nome.asc()).all()
    return ApiResponse[List[Produto]](
        message="Produtos obtidos com sucesso",
        data=[Produto.model_validate(p) for p in produtos],
    )


@router.get("/{produto_id}", response_model=ApiResponse[Produto])
async def get_produto(produto_id: int, db: Session = Depends(get_db)):
    """Get a specific product"""
    produto = _get_produto(db, produto_id)
    return ApiResponse[Produto](message="Produto obtido com sucesso", data=Produto.model_validate(produto))


@router.put("/{produto_id}", response_model=ApiResponse[Produto], dependencies=admin_only)
async def update_produto(produto_id: int, dados: ProdutoUpdate, db: Session = Depends(get_db)):
    """Update a product"""
    produto = _get_produto(db, produto_id)
    alteracoes = {
        field: value
        for field, value in dados.model_dump(exclude_unset=True).items()
        if value is not None or field in NULLABLE_FIELDS
    }
    if "categoria_id" in alteracoes:
        _check_categoria(db, alteracoes["categoria_id"])

    for field, value in alteracoes.items():
        setattr(produto, field, value)

    _commit(db)
    db.refresh(produto)
    return ApiResponse[Produto](message="Produto atualizado com sucesso", data=Produto.model_validate(produto))


@router.delete("/{produto_id}", response_model=ApiResponse[None], dependencies=admin_only)
async def delete_produto(produto_id: int, db: Session = Depends(get_db)):
    """Delete a product that no order references"""
    produto = _get_produto(db, produto_id)
    if db.query(DBItemPedido.id).filter(DBItemPedido.produto_id == produto_id).first():
        raise ConflictError("Produto possui pedidos vinculados e não pode ser excluído")

    db.delete(produto)
    db.commit()
    logger.info(f"Product {produto_id} deleted")
    return ApiResponse[None](message="Produto excluído com sucesso")
