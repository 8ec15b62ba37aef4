# app/application/use_cases/archive_invoice_files.py
import logging
from typing import Dict

from app.domain.ports.file_storage import ArchiveResult, FileStorage
from app.domain.ports.invoice_repository import InvoiceRepository
from app.domain.ports.notification import Notification


class ArchiveInvoiceFilesUseCase:
    def __init__(
        self,
        invoice_repo: InvoiceRepository,
        file_storage: FileStorage,
        notification_service: Notification,
    ):
        self.invoice_repo = invoice_repo
        self.file_storage = file_storage
        self.notification_service = notification_service

    def execute(self, invoice_id: str, metadata: dict, temp_folder_path: str, files: Dict[str, str]) -> ArchiveResult:
        """
        Sube los archivos de una factura ya registrada, guarda las
        referencias en la BD y avisa a n8n.
        """
        # --- PASO 1: Archivar en Drive ---
        logging.info(f"[{invoice_id}] Archivando {len(files)} archivo(s)...")
        result = self.file_storage.archive_invoice_files(metadata, temp_folder_path, files)

        # --- PASO 2: Registrar los archivos subidos ---
        for stored in result.files:
            self.invoice_repo.save_file_record(
                invoice_id=invoice_id,
                kind=stored.kind,
                filename=stored.filename,
                url=stored.url,
                file_id=stored.file_id,
            )
        missing = set(files) - {stored.kind for stored in result.files}
        if missing:
            logging.warning(f"[{invoice_id}] No se archivaron: {sorted(missing)}")

        # --- PASO 3: Notificación (no bloquea el registro) ---
        response = self.notification_service.notify_invoice_registered(invoice_id, metadata, result.folder_path)
        logging.info(f"[{invoice_id}] Resultado de la notificación: {response.get('status')}")
        return result
