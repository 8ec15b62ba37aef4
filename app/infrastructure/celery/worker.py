import os
import shutil
from celery import Celery
from typing import Dict
import logging

import config

# --- CONFIGURACIÓN DE CELERY PARA GOOGLE CLOUD PUB/SUB ---

# El broker es 'pubsub://' y la API publica las tareas en el tema configurado.
celery_app = Celery(
    'tasks',
    broker=config.CELERY_BROKER_URL,
    backend=None  # Pub/Sub no funciona como backend de resultados.
)

celery_app.conf.update(
    broker_transport_options={
        # Tiempo que una tarea puede estar "en proceso" antes de que
        # Pub/Sub la vuelva a entregar. Subir archivos a Drive es lo más lento.
        'visibility_timeout': 600,
        'topic': config.CELERY_PUBSUB_TOPIC,
        'subscription_name_prefix': 'celery-worker-sub'
    },
    task_ignore_result=True
)

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - [%(funcName)s] - %(message)s')

from app.application.use_cases.archive_invoice_files import ArchiveInvoiceFilesUseCase
from app.infrastructure.persistence.database import SessionLocal
from app.infrastructure.persistence.invoice_repository_adapter import PostgreSQLInvoiceRepository
from app.infrastructure.external.google_drive_adapter import GoogleDriveAdapter
from app.infrastructure.external.n8n_webhook_adapter import N8nWebhookAdapter


@celery_app.task(name="tasks.archive_invoice_files")
def archive_invoice_files(invoice_id: str, metadata: dict, temp_folder_path: str, files: Dict[str, str]):
    logging.info(f"[{invoice_id}] >>> INICIO DE LA TAREA.")
    db_session = SessionLocal()
    try:
        use_case = ArchiveInvoiceFilesUseCase(
            invoice_repo=PostgreSQLInvoiceRepository(db_session),
            file_storage=GoogleDriveAdapter(),
            notification_service=N8nWebhookAdapter()
        )
        use_case.execute(invoice_id, metadata, temp_folder_path, files)

        db_session.commit()
        logging.info(f"[{invoice_id}] Commit ejecutado. Archivos registrados.")
    except Exception:
        logging.error(f"[{invoice_id}] Error al archivar la factura. Iniciando rollback.", exc_info=True)
        db_session.rollback()
        raise
    finally:
        db_session.close()
        if os.path.exists(temp_folder_path):
            shutil.rmtree(temp_folder_path)
        logging.info(f"[{invoice_id}] Directorio temporal eliminado.")
