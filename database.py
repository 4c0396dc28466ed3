# =============================================================================
# 🗄️ database.py
# -----------------------------------------------------------------------------
# Engine, Session-Factory und Base für QR Tracker.
# DATABASE_URL aus .env; ohne Angabe eine lokale SQLite-Datei.
# =============================================================================

import os
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from dotenv import load_dotenv

load_dotenv()

SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./qr_tracker.db")


def build_engine(url: str) -> Engine:
    """SQLite braucht check_same_thread=False (FastAPI nutzt Threads pro Anfrage)."""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    # Server-Datenbanken: tote Verbindungen erkennen, vor dem MySQL-Timeout recyceln
    return create_engine(url, pool_pre_ping=True, pool_recycle=280)


engine = build_engine(SQLALCHEMY_DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()


def get_db():
    """FastAPI-Dependency: eine Session pro Anfrage, danach geschlossen."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
