# routes/auth.py
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Request, Depends, HTTPException, status
from passlib.hash import pbkdf2_sha256
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from database import get_db
from models.user import User

# ─────────────────────────────────────────────
# 🔐 Authentifizierungs-Router
# ─────────────────────────────────────────────
router = APIRouter(prefix="/api/auth", tags=["Authentication"])


class CredentialsIn(BaseModel):
    email: str = Field(..., min_length=3, max_length=200)
    password: str = Field(..., min_length=1)


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _login(request: Request, user: User) -> None:
    request.session["user_id"] = user.id


def _user_payload(user: User) -> dict:
    return {
        "user_id": user.id,
        "email": user.email,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


# ─────────────────────────────────────────────
# 🧩 Registrierung
# ─────────────────────────────────────────────
@router.post("/register", status_code=201)
def register_user(payload: CredentialsIn, request: Request, db: Session = Depends(get_db)):
    """Registriert einen neuen Benutzer und meldet ihn direkt an."""
    email = _normalize_email(payload.email)
    if "@" not in email:
        raise HTTPException(status_code=400, detail="Ungültige E-Mail-Adresse.")

    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Benutzer existiert bereits.")

    user = User(email=email, password_hash=pbkdf2_sha256.hash(payload.password))
    db.add(user)
    db.commit()
    db.refresh(user)

    _login(request, user)
    return {"message": "Registrierung erfolgreich", **_user_payload(user)}


# ─────────────────────────────────────────────
# 🔑 Login / Logout
# ─────────────────────────────────────────────
@router.post("/login")
def login_user(payload: CredentialsIn, request: Request, db: Session = Depends(get_db)):
    email = _normalize_email(payload.email)
    user: Optional[User] = db.query(User).filter(User.email == email).first()
    if not user or not pbkdf2_sha256.verify(payload.password, user.password_hash):
        raise HTTPException(status_code=400, detail="Ungültige Zugangsdaten.")

    user.last_login = datetime.now(timezone.utc)
    db.commit()

    _login(request, user)
    return {"message": "Login erfolgreich", **_user_payload(user)}


@router.post("/logout")
def logout_user(request: Request):
    request.session.clear()
    return {"message": "Abgemeldet"}


# ─────────────────────────────────────────────
# 👤 Aktueller Benutzer
# ─────────────────────────────────────────────
def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Gibt den aktuell eingeloggten Benutzer zurück."""
    user_id = request.session.get("user_id")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Nicht eingeloggt.")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        request.session.clear()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Benutzer nicht gefunden.")
    return user


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return _user_payload(user)
