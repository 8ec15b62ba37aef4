# app/infrastructure/external/google_drive_adapter.py
import logging
import os
import re
from googleapiclient.discovery import build
from googleapiclient.http import MediaFileUpload
from app.domain.ports.file_storage import ArchiveResult, FileStorage, StoredFile
from .google_auth import get_google_credentials
import config
from typing import Dict, Optional

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = 'application/vnd.google-apps.folder'
LATE_FOLDER_NAME = 'Extemporaneas'

MIME_TYPES = {
    '.xml': 'application/xml',
    '.pdf': 'application/pdf',
}


def _sanitize(name: str) -> str:
    return re.sub(r"[\\/:*?\"<>|']", "", name or "").strip()


def build_folder_names(metadata: dict) -> list:
    """Semana_WW_YYYY / [Extemporaneas] / PROYECTO / RFC_Nombre"""
    week_folder = f"Semana_{int(metadata['week']):02d}_{metadata['year']}"
    project_folder = _sanitize((metadata.get('project') or 'SIN_PROYECTO').upper().replace(' ', '_'))
    issuer_folder = f"{metadata['issuer_rfc']}_{_sanitize(metadata.get('issuer_name') or '').replace(' ', '_')}".rstrip('_')

    names = [week_folder]
    if metadata.get('is_late'):
        names.append(LATE_FOLDER_NAME)
    names.extend([project_folder, issuer_folder])
    return names


class GoogleDriveAdapter(FileStorage):
    """
    Implementación del adaptador de Google Drive que archiva los archivos
    de cada factura en la jerarquía de carpetas de su semana de pago.
    """
    def __init__(self):
        creds = get_google_credentials()
        self.service = build('drive', 'v3', credentials=creds)

    def _find_folder(self, name: str, parent_id: str) -> Optional[str]:
        escaped = name.replace("'", "\\'")
        query = (
            f"mimeType='{FOLDER_MIME_TYPE}' and name='{escaped}' "
            f"and '{parent_id}' in parents and trashed=false"
        )
        response = self.service.files().list(q=query, fields='files(id, name)', pageSize=1).execute()
        files = response.get('files', [])
        return files[0]['id'] if files else None

    def _get_or_create_folder(self, name: str, parent_id: str) -> str:
        existing_id = self._find_folder(name, parent_id)
        if existing_id:
            return existing_id
        folder_metadata = {
            'name': name,
            'mimeType': FOLDER_MIME_TYPE,
            'parents': [parent_id],
        }
        folder = self.service.files().create(body=folder_metadata, fields='id').execute()
        logger.info(f"Carpeta '{name}' creada. ID: {folder.get('id')}")
        return folder.get('id')

    def archive_invoice_files(self, metadata: dict, local_folder_path: str, files: Dict[str, str]) -> ArchiveResult:
        """
        Crea la jerarquía de carpetas y sube los archivos uno por uno.
        Los archivos se renombran con el UUID de la factura.
        """
        uuid = metadata['uuid']
        if not config.DRIVE_PARENT_FOLDER_ID:
            raise ValueError("No se ha definido GOOGLE_DRIVE_ROOT_FOLDER_ID en el archivo .env")

        folder_names = build_folder_names(metadata)
        parent_id = config.DRIVE_PARENT_FOLDER_ID
        for name in folder_names:
            parent_id = self._get_or_create_folder(name, parent_id)
        folder_path = '/'.join(folder_names)
        logger.info(f"[{uuid}] Carpeta destino: {folder_path}")

        stored = []
        for kind, filename in files.items():
            file_path = os.path.join(local_folder_path, filename)
            if not os.path.exists(file_path):
                logger.warning(f"[{uuid}] El archivo {filename} no fue encontrado en la ruta temporal. Omitiendo.")
                continue

            extension = os.path.splitext(filename)[1].lower()
            prefix = 'NC_' if kind.startswith('credit_note') else ''
            target_name = f"{prefix}{uuid}{extension}"
            try:
                media = MediaFileUpload(file_path, mimetype=MIME_TYPES.get(extension), resumable=True)
                uploaded = self.service.files().create(
                    body={'name': target_name, 'parents': [parent_id]},
                    media_body=media,
                    fields='id, webViewLink'
                ).execute()
            except Exception as e:
                # Si un archivo falla, registramos el error pero continuamos con los demás
                logger.warning(f"[{uuid}] Falló la subida de {filename}. Error: {e}")
                continue

            stored.append(StoredFile(
                kind=kind,
                filename=target_name,
                file_id=uploaded.get('id'),
                url=uploaded.get('webViewLink', ''),
            ))
            logger.info(f"[{uuid}] Archivo {target_name} subido.")

        return ArchiveResult(folder_path=folder_path, files=stored)
