"""Domain exceptions for Venda Certa.

Services raise these when a business rule is violated; the handlers in
``venda_certa.api.errors`` turn them into the JSON error envelope.
"""
from typing import List, Optional

from sqlalchemy.exc import IntegrityError


class VendaCertaError(Exception):
    """Base exception for all Venda Certa errors."""

    status_code = 500

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = errors
        super().__init__(message)


class ValidationError(VendaCertaError):
    """Raised when input is malformed or violates a field rule."""

    status_code = 400


class NotFoundError(VendaCertaError):
    """Raised when a referenced entity does not exist."""

    status_code = 404


class InvalidStateError(VendaCertaError):
    """Raised when an operation is not allowed in the entity's current state."""

    status_code = 400


class InsufficientStockError(VendaCertaError):
    """Raised when a product does not have enough stock for the requested quantity."""

    status_code = 400

    def __init__(self, product_name: str, available: int, requested: int):
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            f'Estoque insuficiente para o produto "{product_name}". '
            f"Disponível: {available}, solicitado: {requested}"
        )


class ConflictError(VendaCertaError):
    """Raised when a unique field is already taken."""

    status_code = 409


class UnauthorizedError(VendaCertaError):
    status_code = 401


class ForbiddenError(VendaCertaError):
    status_code = 403


_CONSTRAINT_MESSAGES = (
    ("sku", "SKU já cadastrado"),
    ("email", "E-mail já cadastrado"),
    ("slug", "Slug já cadastrado"),
    ("numero_comanda", "Número de comanda já utilizado"),
)


def conflict_from_integrity(exc: IntegrityError) -> ConflictError:
    """Map a database constraint violation to a domain-level conflict."""
    text = str(exc.orig).lower()
    for needle, message in _CONSTRAINT_MESSAGES:
        if needle in text:
            return ConflictError(message)
    return ConflictError("Registro duplicado")
