# app/infrastructure/persistence/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

import config

# En producción DATABASE_URL apunta al proxy de Cloud SQL (PostgreSQL);
# en desarrollo se usa un archivo SQLite local.
DATABASE_URL = config.DATABASE_URL
if not DATABASE_URL:
    raise ValueError("No se ha definido DATABASE_URL en el archivo .env")

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()
