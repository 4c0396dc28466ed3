# =============================================================================
# 🌍 utils/geo.py
# Client-IP und Standort einer Scan-Anfrage bestimmen
# =============================================================================

from __future__ import annotations

import ipaddress
import logging
import os
from typing import Tuple

import httpx
from fastapi import Request

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


def client_ip(request: Request) -> str:
    xff = request.headers.get("x-forwarded-for", "")
    if xff:
        return xff.split(",")[0].strip()
    ip = request.client.host if request.client else ""
    # IPv4-mapped IPv6 (::ffff:1.2.3.4)
    return ip.replace("::ffff:", "", 1) if ip.startswith("::ffff:") else ip


def _is_public_ip(ip: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return not (addr.is_private or addr.is_loopback or addr.is_reserved or addr.is_link_local)


def lookup_ip(ip: str) -> Tuple[str, str]:
    """
    Fragt GEOIP_API_URL (z. B. https://ipapi.co/{ip}/json/) ab.
    Ohne Konfiguration oder bei Fehlern: ("Unknown", "Unknown").
    """
    url_template = os.getenv("GEOIP_API_URL", "").strip()
    if not url_template or not _is_public_ip(ip):
        return UNKNOWN, UNKNOWN

    try:
        res = httpx.get(url_template.format(ip=ip), timeout=3.0)
        if res.status_code == 200:
            data = res.json()
            if not isinstance(data, dict):
                logger.warning("GeoIP-Antwort für %s ist kein Objekt: %r", ip, data)
                return UNKNOWN, UNKNOWN
            country = data.get("country_name") or data.get("country") or UNKNOWN
            city = data.get("city") or UNKNOWN
            return str(country), str(city)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("GeoIP-Abfrage fehlgeschlagen für %s: %s", ip, e)
    return UNKNOWN, UNKNOWN


def resolve_location(request: Request) -> Tuple[str, str]:
    """Land/Stadt: zuerst Proxy-Header (X-Country, CF-IPCountry, X-City), dann GeoIP."""
    country = request.headers.get("x-country") or request.headers.get("cf-ipcountry")
    city = request.headers.get("x-city")
    if country:
        return country, city or UNKNOWN
    return lookup_ip(client_ip(request))
