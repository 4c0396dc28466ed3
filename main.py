# =============================================================================
# 🚀 QR Tracker – Hauptapplikation (main.py)
# =============================================================================

from __future__ import annotations
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from dotenv import load_dotenv

# -------------------------------------------------------------------------
# 1️⃣ .env laden (muss ganz oben sein!)
# -------------------------------------------------------------------------
env_path = Path(__file__).resolve().parent / ".env"
load_dotenv(dotenv_path=env_path)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("qr_tracker")

from database import Base, engine
import models  # noqa: F401  – registriert alle Tabellen an Base.metadata


# -------------------------------------------------------------------------
# 2️⃣ FastAPI App
# -------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("Datenbanktabellen bereit (%s)", engine.url.render_as_string(hide_password=True))
    yield


app = FastAPI(title="QR Tracker", version="1.0", lifespan=lifespan)

# -------------------------------------------------------------------------
# 3️⃣ Uploads (Logos)
# -------------------------------------------------------------------------
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", "uploads"))
(UPLOAD_DIR / "logos").mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(UPLOAD_DIR)), name="uploads")

# -------------------------------------------------------------------------
# 4️⃣ Session & CORS Middleware
# -------------------------------------------------------------------------
app.add_middleware(
    SessionMiddleware,
    secret_key=os.getenv("SESSION_SECRET", "qr-tracker-secret-key"),
    max_age=60 * 60 * 24 * 7,
    session_cookie=os.getenv("SESSION_COOKIE_NAME", "qr_tracker_session"),
    same_site=os.getenv("SESSION_SAME_SITE", "lax"),
    https_only=os.getenv("SESSION_HTTPS_ONLY", "0") in {"1", "true", "yes"},
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -------------------------------------------------------------------------
# 5️⃣ Routen laden
# -------------------------------------------------------------------------
from routes import auth
from routes import qrcodes
from routes import analytics
from routes import track

app.include_router(auth.router)
app.include_router(qrcodes.router)
app.include_router(analytics.router)
app.include_router(track.router)


# -------------------------------------------------------------------------
# 6️⃣ Home
# -------------------------------------------------------------------------
@app.get("/")
def home():
    return {"message": "QR Tracker API", "version": app.version}


@app.get("/health")
def health():
    return {"status": "ok"}
