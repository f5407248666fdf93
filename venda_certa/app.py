import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from venda_certa.api.errors import register_exception_handlers
from venda_certa.api.routes import (
    auth,
    categorias,
    clientes,
    enderecos,
    metodos_entrega,
    metodos_pagamento,
    pedidos,
    produtos,
)
from venda_certa.core.config import Settings, configure_logging
from venda_certa.core.database import Base, create_session_factory

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Venda Certa API",
        description="Order, catalog and customer backend for Sistema Venda Certa",
        version="1.0.0",
    )

    engine, SessionLocal = create_session_factory(settings.database_url)
    Base.metadata.create_all(bind=engine)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = SessionLocal

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    # Include routers
    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(pedidos.router, prefix="/api/pedidos", tags=["pedidos"])
    app.include_router(produtos.router, prefix="/api/produtos", tags=["produtos"])
    app.include_router(clientes.router, prefix="/api/clientes", tags=["clientes"])
    app.include_router(categorias.router, prefix="/api/categorias", tags=["categorias"])
    app.include_router(enderecos.router, prefix="/api/enderecos", tags=["enderecos"])
    app.include_router(metodos_pagamento.router, prefix="/api/metodos-pagamento", tags=["metodos-pagamento"])
    app.include_router(metodos_entrega.router, prefix="/api/metodos-entrega", tags=["metodos-entrega"])

    @app.get("/")
    async def root():
        return {"message": "Venda Certa API"}

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    logger.info(f"Venda Certa API ready ({settings.environment})")
    return app
