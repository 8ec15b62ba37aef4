# config.py
import os
from dotenv import load_dotenv

load_dotenv()

# --- CONFIGURACIÓN DEL CICLO DE FACTURACIÓN ---
# Todas las fechas se evalúan en hora de la Ciudad de México
TIMEZONE = os.getenv("INVOICE_TIMEZONE", "America/Mexico_City")
DEADLINE_HOUR = 10  # Jueves 10:00 de la semana siguiente
EXPECTED_RECEIVER_RFC = os.getenv("EXPECTED_RECEIVER_RFC", "BLI180227F23")

# Pronto pago: comisión financiera y tolerancia de la nota de crédito
PRONTO_PAGO_FEE_RATE = float(os.getenv("PRONTO_PAGO_FEE_RATE", "0.08"))
CREDIT_NOTE_TOLERANCE = 0.05

# --- BASE DE DATOS ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./facturas.db")

# --- CELERY / PUB-SUB ---
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "pubsub://")
CELERY_PUBSUB_TOPIC = os.getenv("CELERY_PUBSUB_TOPIC", "facturas-recepcion")
TEMP_UPLOADS_DIR = os.getenv("TEMP_UPLOADS_DIR", "/tmp")

# --- CONFIGURACIÓN DE GOOGLE ---
# ID de la carpeta raíz en Google Drive donde se archivan las facturas
DRIVE_PARENT_FOLDER_ID = os.getenv("GOOGLE_DRIVE_ROOT_FOLDER_ID", "")

SCOPES = [
    "https://www.googleapis.com/auth/drive",
]

TOKEN_FILE = os.getenv("GOOGLE_TOKEN_FILE", "token.json")

# --- EXTRACCIÓN CON IA ---
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_API_URL = os.getenv("OPENAI_API_URL", "https://api.openai.com/v1/chat/completions")

# --- NOTIFICACIONES (n8n) ---
N8N_WEBHOOK_URL = os.getenv("N8N_WEBHOOK_URL", "")

# --- API ---
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if origin.strip()
]
