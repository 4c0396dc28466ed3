# =============================================================================
# 🔗 utils/tracking.py
# Tracking-URLs: /track/{qr_id}/{tracking_id} auf der öffentlichen Basis-URL
# =============================================================================

from __future__ import annotations

import os
import secrets

from fastapi import Request


TRACKING_PATH = "/track/{qr_id}/{tracking_id}"


def new_tracking_id() -> str:
    """Kurzes, zufälliges Token – wird weder gespeichert noch geprüft."""
    return secrets.token_urlsafe(6)


def create_tracking_url(base_url: str, qr_id: str) -> str:
    """Baut die Umleitungs-URL, über die jeder Scan gezählt wird."""
    path = TRACKING_PATH.format(qr_id=qr_id, tracking_id=new_tracking_id())
    return f"{base_url.rstrip('/')}{path}"


def resolve_base_url(request: Request) -> str:
    """
    Basis-URL passend zur aktuellen Umgebung:
    - lokal: aktueller Host (localhost/127.0.0.1)
    - prod/staging: APP_DOMAIN aus .env, sonst aktueller Host
    """
    base_url = str(request.base_url).rstrip("/")
    if "127.0.0.1" in base_url or "localhost" in base_url:
        return base_url
    app_domain = os.getenv("APP_DOMAIN", "").rstrip("/")
    return app_domain or base_url
