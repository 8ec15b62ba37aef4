# main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
# Importamos los routers de la capa de infraestructura
from app.infrastructure.api.routers import catalog_router, invoices_router
from app.infrastructure.persistence import models  # noqa: F401 (registra las tablas)
from app.infrastructure.persistence.database import Base, engine

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - [%(funcName)s] - %(message)s')

Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="API de Recepción de Facturas CFDI",
    description="Carga, validación y registro de facturas de flotilleros.",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(catalog_router.router)
app.include_router(invoices_router.router)


@app.get("/", tags=["Health Check"])
def read_root():
    return {"status": "ok", "message": "API de recepción de facturas"}
