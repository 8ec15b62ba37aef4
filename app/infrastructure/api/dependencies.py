# app/infrastructure/api/dependencies.py
from datetime import datetime

from fastapi import Depends
from sqlalchemy.orm import Session

from app.domain.ports.invoice_extractor import InvoiceExtractor
from app.domain.ports.invoice_repository import InvoiceRepository
from app.domain.ports.project_catalog import ProjectCatalog
from app.domain.services import week_clock
from app.infrastructure.external.cfdi_xml_extractor import CfdiXmlExtractor
from app.infrastructure.external.openai_extractor_adapter import OpenAIExtractorAdapter
from app.infrastructure.persistence.database import SessionLocal
from app.infrastructure.persistence.invoice_repository_adapter import (
    PostgreSQLInvoiceRepository,
    PostgreSQLProjectCatalog,
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_invoice_repository(db: Session = Depends(get_db)) -> InvoiceRepository:
    return PostgreSQLInvoiceRepository(db)


def get_project_catalog(db: Session = Depends(get_db)) -> ProjectCatalog:
    return PostgreSQLProjectCatalog(db)


def get_invoice_extractor() -> InvoiceExtractor:
    return OpenAIExtractorAdapter()


def get_local_extractor() -> InvoiceExtractor:
    return CfdiXmlExtractor()


def get_now() -> datetime:
    return week_clock.now()
