from fastapi import APIRouter, Depends

from venda_certa.core.security import get_current_user
from venda_certa.models.database import Usuario as DBUsuario
from venda_certa.models.schemas import ApiResponse, Usuario

router = APIRouter()


@router.get("/me", response_model=ApiResponse[Usuario])
async def me(user: DBUsuario = Depends(get_current_user)):
    """Return the user behind the bearer token"""
    return ApiResponse[Usuario](message="Usuário autenticado", data=Usuario.model_validate(user))
