# app/infrastructure/external/google_auth.py
import os
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
import config # Usamos el config.py del root

SERVICE_ACCOUNT_FILE = os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE", "")


def get_google_credentials():
    """
    Usa la cuenta de servicio si está configurada; si no, carga las
    credenciales de usuario desde token.json y las refresca si expiraron.
    """
    if SERVICE_ACCOUNT_FILE and os.path.exists(SERVICE_ACCOUNT_FILE):
        return service_account.Credentials.from_service_account_file(SERVICE_ACCOUNT_FILE, scopes=config.SCOPES)

    if not os.path.exists(config.TOKEN_FILE):
        raise FileNotFoundError(f"El archivo '{config.TOKEN_FILE}' no se encontró.")

    creds = Credentials.from_authorized_user_file(config.TOKEN_FILE, config.SCOPES)

    if creds and creds.expired and creds.refresh_token:
        creds.refresh(Request())

    return creds
