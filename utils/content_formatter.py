# =============================================================================
# 🧾 utils/content_formatter.py
# -----------------------------------------------------------------------------
# Baut aus strukturierten Eingaben den Text, der im QR-Symbol landet:
# vCard, WLAN, E-Mail, SMS, Geo, Kalender-Event, Telefon.
# Reine Funktionen – kein Zustand, kein I/O.
# =============================================================================

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping
from urllib.parse import quote


def _uri_component(value: str) -> str:
    """Wie encodeURIComponent: nur A-Z a-z 0-9 - _ . ! ~ * ' ( ) bleiben stehen."""
    return quote(value, safe="-_.!~*'()")


def format_vcard(data: Mapping[str, Any]) -> str:
    first_name = data.get("first_name") or ""
    last_name = data.get("last_name") or ""

    vcard = "BEGIN:VCARD\nVERSION:3.0\n"
    vcard += f"N:{last_name};{first_name};;;\n"
    vcard += f"FN:{first_name} {last_name}\n"

    if data.get("organization"):
        vcard += f"ORG:{data['organization']}\n"
    if data.get("title"):
        vcard += f"TITLE:{data['title']}\n"
    if data.get("phone"):
        vcard += f"TEL;TYPE=WORK,VOICE:{data['phone']}\n"
    if data.get("email"):
        vcard += f"EMAIL;TYPE=PREF,INTERNET:{data['email']}\n"
    if data.get("url"):
        vcard += f"URL:{data['url']}\n"
    if data.get("address"):
        vcard += f"ADR;TYPE=WORK,PREF:;;{data['address']};;;;\n"

    vcard += "END:VCARD"
    return vcard


def format_wifi(data: Mapping[str, Any]) -> str:
    # WIFI:S:MeinNetz;T:WPA;P:geheim;H:true;;
    wifi = f"WIFI:S:{data.get('ssid') or ''};"
    if data.get("encryption"):
        wifi += f"T:{data['encryption']};"
    if data.get("password"):
        wifi += f"P:{data['password']};"
    if data.get("hidden") is True:
        wifi += "H:true;"
    wifi += ";"
    return wifi


def format_email(data: Mapping[str, Any]) -> str:
    subject = _uri_component(str(data.get("subject") or ""))
    body = _uri_component(str(data.get("body") or ""))
    return f"mailto:{data.get('email') or ''}?subject={subject}&body={body}"


def format_sms(data: Mapping[str, Any]) -> str:
    message = data.get("message")
    suffix = f"?body={_uri_component(str(message))}" if message else ""
    return f"sms:{data.get('phone') or ''}{suffix}"


def format_geo(data: Mapping[str, Any]) -> str:
    return f"geo:{data.get('lat')},{data.get('lng')}"


def format_phone(data: Mapping[str, Any]) -> str:
    return f"tel:{data.get('phone') or ''}"


def format_ical_date(value: Any) -> str:
    """
    Wandelt ein ISO-Datum (oder datetime) in das iCal-Format YYYYMMDDTHHMMSSZ (UTC).
    Zeitangaben ohne Zone gelten als UTC.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        raw = str(value).strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def format_event(data: Mapping[str, Any]) -> str:
    event = "BEGIN:VEVENT\n"
    if data.get("summary"):
        event += f"SUMMARY:{data['summary']}\n"
    if data.get("location"):
        event += f"LOCATION:{data['location']}\n"
    if data.get("description"):
        event += f"DESCRIPTION:{data['description']}\n"
    if data.get("start_date"):
        event += f"DTSTART:{format_ical_date(data['start_date'])}\n"
    if data.get("end_date"):
        event += f"DTEND:{format_ical_date(data['end_date'])}\n"
    event += "END:VEVENT"
    return event


FORMATTERS: Dict[str, Callable[[Mapping[str, Any]], str]] = {
    "vcard": format_vcard,
    "wifi": format_wifi,
    "email": format_email,
    "sms": format_sms,
    "geo": format_geo,
    "event": format_event,
    "phone": format_phone,
}


def format_content(qr_type: str, data: Mapping[str, Any]) -> str:
    """
    Liefert den QR-Inhalt passend zum Typ.
    url/text und unbekannte Typen geben einfach data['text'] zurück.
    """
    formatter = FORMATTERS.get((qr_type or "").lower())
    if formatter is None:
        return str(data.get("text") or "")
    return formatter(data)
