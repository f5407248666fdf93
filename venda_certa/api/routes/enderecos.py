import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy import update
from sqlalchemy.orm import Session

from venda_certa.core.database import get_db
from venda_certa.core.errors import ForbiddenError, NotFoundError
from venda_certa.core.security import get_current_user, require_roles
from venda_certa.models.database import Endereco as DBEndereco
from venda_certa.models.database import Role
from venda_certa.models.database import Usuario as DBUsuario
from venda_certa.models.schemas import ApiResponse, Endereco, EnderecoCreate, EnderecoUpdate

logger = logging.getLogger(__name__)

router = APIRouter()

NULLABLE_FIELDS = {"complemento"}


def _get_endereco(db: Session, endereco_id: int, usuario: DBUsuario) -> DBEndereco:
    endereco = db.get(DBEndereco, endereco_id)
    if not endereco:
        raise NotFoundError("Endereço não encontrado")
    if usuario.role != Role.ADMIN and endereco.usuario_id != usuario.id:
        raise ForbiddenError("Endereço pertence a outro usuário")
    return endereco


def _desmarcar_favoritos(db: Session, usuario_id: int, exceto: Optional[int] = None) -> None:
    query = update(DBEndereco).where(DBEndereco.usuario_id == usuario_id, DBEndereco.favorito.is_(True))
    if exceto is not None:
        query = query.where(DBEndereco.id != exceto)
    db.execute(
        query
        .values(favorito=False)
        .execution_options(synchronize_session=False)
    )


def _listar(db: Session, usuario_id: int) -> List[Endereco]:
    enderecos = (
        db.query(DBEndereco)
        .filter(DBEndereco.usuario_id == usuario_id)
        .order_by(DBEndereco.favorito.desc(), DBEndereco.id.asc())
        .all()
    )
    return [Endereco.model_validate(e) for e in enderecos]


@router.get("", response_model=ApiResponse[List[Endereco]])
async def list_enderecos(usuario: DBUsuario = Depends(get_current_user), db: Session = Depends(get_db)):
    """Addresses of the authenticated user, favorite first"""
    return ApiResponse[List[Endereco]](message="Endereços obtidos com sucesso", data=_listar(db, usuario.id))


@router.get(
    "/usuario/{usuario_id}",
    response_model=ApiResponse[List[Endereco]],
    dependencies=[Depends(require_roles(Role.ADMIN))],
)
async def list_enderecos_do_usuario(usuario_id: int, db: Session = Depends(get_db)):
    if not db.get(DBUsuario, usuario_id):
        raise NotFoundError("Usuário não encontrado")
    return ApiResponse[List[Endereco]](message="Endereços obtidos com sucesso", data=_listar(db, usuario_id))


@router.get("/{endereco_id}", response_model=ApiResponse[Endereco])
async def get_endereco(
    endereco_id: int,
    usuario: DBUsuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    endereco = _get_endereco(db, endereco_id, usuario)
    return ApiResponse[Endereco](message="Endereço obtido com sucesso", data=Endereco.model_validate(endereco))


@router.post("", response_model=ApiResponse[Endereco], status_code=status.HTTP_201_CREATED)
async def create_endereco(
    dados: EnderecoCreate,
    usuario: DBUsuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if dados.favorito:
        _desmarcar_favoritos(db, usuario.id)
    endereco = DBEndereco(usuario_id=usuario.id, **dados.model_dump())
    db.add(endereco)
    db.commit()
    db.refresh(endereco)
    logger.info(f"Address {endereco.id} created for user {usuario.id}")
    return ApiResponse[Endereco](message="Endereço criado com sucesso", data=Endereco.model_validate(endereco))


@router.put("/{endereco_id}", response_model=ApiResponse[Endereco])
async def update_endereco(
    endereco_id: int,
    dados: EnderecoUpdate,
    usuario: DBUsuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    endereco = _get_endereco(db, endereco_id, usuario)
    for field, value in dados.model_dump(exclude_unset=True).items():
        if value is not None or field in NULLABLE_FIELDS:
            setattr(endereco, field, value)
    db.commit()
    db.refresh(endereco)
    return ApiResponse[Endereco](message="Endereço atualizado com sucesso", data=Endereco.model_validate(endereco))


@router.put("/{endereco_id}/favorito", response_model=ApiResponse[Endereco])
async def set_favorito(
    endereco_id: int,
    usuario: DBUsuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Make this the owner's only favorite address"""
    endereco = _get_endereco(db, endereco_id, usuario)
    _desmarcar_favoritos(db, endereco.usuario_id, exceto=endereco.id)
    endereco.favorito = True
    db.commit()
    db.refresh(endereco)
    return ApiResponse[Endereco](message="Endereço favorito atualizado", data=Endereco.model_validate(endereco))


@router.delete("/{endereco_id}", response_model=ApiResponse[None])
async def delete_endereco(
    endereco_id: int,
    usuario: DBUsuario = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    endereco = _get_endereco(db, endereco_id, usuario)
    db.delete(endereco)
    db.commit()
    return ApiResponse[None](message="Endereço excluído com sucesso")
