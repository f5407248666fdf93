import logging
from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from venda_certa.core.config import Settings
from venda_certa.core.database import get_db
from venda_certa.core.errors import ForbiddenError, UnauthorizedError
from venda_certa.models.database import Role, Usuario

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def decode_token(token: str, settings: Settings) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expirado")
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Token inválido")


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
) -> Usuario:
    """Resolve the bearer token to an active user."""
    if credentials is None:
        raise UnauthorizedError("Token de acesso requerido")

    payload = decode_token(credentials.credentials, settings)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise UnauthorizedError("Token inválido")

    user = db.get(Usuario, user_id)
    if not user:
        logger.warning(f"Token for unknown user {user_id}")
        raise UnauthorizedError("Usuário não encontrado")
    if not user.ativo:
        logger.warning(f"Blocked user {user_id} tried to authenticate")
        raise ForbiddenError("Usuário bloqueado")
    return user


def require_roles(*roles: Role):
    """Dependency factory that admits only users holding one of ``roles``."""

    def checker(user: Usuario = Depends(get_current_user)) -> Usuario:
        if user.role not in roles:
            logger.warning(f"User {user.id} ({user.role.value}) denied; requires {[r.value for r in roles]}")
            raise ForbiddenError("Acesso negado para este perfil")
        return user

    return checker
