from datetime import datetime, timedelta
from decimal import Decimal

import jwt
import pytest
from fastapi.testclient import TestClient

from venda_certa.app import create_app
from venda_certa.core.config import Settings
from venda_certa.models.database import Cliente, Produto, Role, Usuario

TEST_JWT_SECRET = "test-secret-key-with-at-least-32-bytes"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'venda_certa_test.db'}",
        environment="test",
        log_level="WARNING",
        jwt_secret=TEST_JWT_SECRET,
        jwt_algorithm="HS256",
        default_page_size=10,
        max_page_size=100,
        cors_origins=["http://localhost:3000"],
    )


@pytest.fixture
def app(settings):
    app = create_app(settings)
    yield app
    app.state.engine.dispose()


@pytest.fixture
def session_factory(app):
    return app.state.session_factory


@pytest.fixture
def db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def criar_produto(db):
    """Factory for products; defaults match the 20.00 / stock 10 scenario."""

    def _criar(**kwargs):
        dados = {"nome": "Camiseta Básica", "preco": Decimal("20.00"), "estoque": 10}
        dados.update(kwargs)
        produto = Produto(**dados)
        db.add(produto)
        db.commit()
        db.refresh(produto)
        return produto

    return _criar


@pytest.fixture
def produto(criar_produto):
    return criar_produto()


@pytest.fixture
def cliente(db):
    cliente = Cliente(nome="Maria Silva", email="maria@example.com", telefone="(11) 99999-0000")
    db.add(cliente)
    db.commit()
    db.refresh(cliente)
    return cliente


@pytest.fixture
def criar_usuario(db):
    def _criar(role: Role, ativo: bool = True, email=None):
        usuario = Usuario(
            nome=f"Usuário {role.value}",
            email=email or f"{role.value}{'' if ativo else '-bloqueado'}@example.com",
            role=role,
            ativo=ativo,
        )
        db.add(usuario)
        db.commit()
        db.refresh(usuario)
        return usuario

    return _criar


@pytest.fixture
def make_token(settings):
    def _make(usuario, expires_in=timedelta(hours=1)):
        payload = {"sub": str(usuario.id), "email": usuario.email, "exp": datetime.utcnow() + expires_in}
        return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)

    return _make


@pytest.fixture
def admin_headers(criar_usuario, make_token):
    return {"Authorization": f"Bearer {make_token(criar_usuario(Role.ADMIN))}"}


@pytest.fixture
def customer_headers(criar_usuario, make_token):
    return {"Authorization": f"Bearer {make_token(criar_usuario(Role.CUSTOMER))}"}


@pytest.fixture
def delivery_headers(criar_usuario, make_token):
    return {"Authorization": f"Bearer {make_token(criar_usuario(Role.DELIVERY))}"}
