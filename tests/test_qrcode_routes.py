from __future__ import annotations

from io import BytesIO

from PIL import Image

from models.qrcode import QRCode


def _create(client, **payload):
    body = {"text": "https://example.com/ziel", "qr_type": "url"}
    body.update(payload)
    response = client.post("/api/qrcodes", json=body)
    assert response.status_code == 201, response.text
    return response.json()


# ─────────────────────────────────────────────
# 🔐 Login
# ─────────────────────────────────────────────
def test_register_login_logout(api_client):
    response = api_client.post("/api/auth/register", json={"email": "Bob@Example.com", "password": "pw"})
    assert response.status_code == 201
    assert response.json()["email"] == "bob@example.com"

    duplicate = api_client.post("/api/auth/register", json={"email": "bob@example.com", "password": "x"})
    assert duplicate.status_code == 400

    assert api_client.get("/api/auth/me").status_code == 200
    assert api_client.post("/api/auth/logout").status_code == 200
    assert api_client.get("/api/auth/me").status_code == 401

    assert api_client.post("/api/auth/login", json={"email": "bob@example.com", "password": "falsch"}).status_code == 400
    assert api_client.post("/api/auth/login", json={"email": "bob@example.com", "password": "pw"}).status_code == 200
    assert api_client.get("/api/auth/me").json()["email"] == "bob@example.com"


def test_qrcodes_require_login(api_client):
    assert api_client.get("/api/qrcodes").status_code == 401
    assert api_client.post("/api/qrcodes", json={"text": "x"}).status_code == 401


# ─────────────────────────────────────────────
# ✅ Erstellen
# ─────────────────────────────────────────────
def test_create_with_tracking(logged_in_client):
    qr = _create(logged_in_client, tags=["messe"])

    assert qr["text"] == "https://example.com/ziel"
    assert qr["qr_image"].startswith("data:image/png;base64,")
    assert qr["tracking_enabled"] is True
    assert qr["tracking_url"].startswith(f"http://testserver/track/{qr['id']}/")
    assert qr["status"] == "active"
    assert qr["tags"] == ["messe"]
    assert qr["analytics"] == {"scan_count": 0, "last_scanned": None, "scan_locations": [], "devices": []}
    assert "password" not in qr["security"]


def test_create_without_tracking(logged_in_client):
    qr = _create(logged_in_client, enable_tracking=False)
    assert qr["tracking_enabled"] is False
    assert qr["tracking_url"] is None


def test_create_from_structured_data(logged_in_client):
    qr = _create(logged_in_client, text=None, qr_type="wifi", data={"ssid": "Gast", "encryption": "WPA", "password": "pw"})
    assert qr["text"] == "WIFI:S:Gast;T:WPA;P:pw;;"
    assert qr["qr_type"] == "wifi"


def test_create_validation(logged_in_client):
    assert logged_in_client.post("/api/qrcodes", json={"text": ""}).status_code == 400
    assert logged_in_client.post("/api/qrcodes", json={"text": "x", "qr_type": "fax"}).status_code == 400
    assert logged_in_client.post("/api/qrcodes", json={
        "text": "x", "security": {"is_password_protected": True, "password": "  "},
    }).status_code == 400
    assert logged_in_client.post("/api/qrcodes", json={
        "text": "x", "customization": {"color": "nicht-farbig"},
    }).status_code == 400


def test_security_settings(logged_in_client, api_env):
    _, session_local = api_env
    qr = _create(logged_in_client, security={
        "is_password_protected": True,
        "password": " abc ",
        "expires_at": "2099-01-01T00:00:00Z",
        "max_scans": "-4",
    })
    assert qr["security"]["is_password_protected"] is True
    assert qr["security"]["expires_at"] == "2099-01-01T00:00:00+00:00"
    assert qr["security"]["max_scans"] == 0

    with session_local() as db:
        assert db.get(QRCode, qr["id"]).password == "abc"


def test_bulk_create_skips_invalid(logged_in_client):
    response = logged_in_client.post("/api/qrcodes/bulk", json={
        "qr_codes": [
            {"text": "https://a.example"},
            {"text": ""},
            {"text": "Hallo", "qr_type": "text"},
        ],
        "enable_tracking": False,
    })
    assert response.status_code == 201
    created = response.json()
    assert [q["text"] for q in created] == ["https://a.example", "Hallo"]
    assert all(q["tracking_url"] is None for q in created)

    assert logged_in_client.post("/api/qrcodes/bulk", json={"qr_codes": []}).status_code == 400


# ─────────────────────────────────────────────
# 📋 Liste / Detail / Besitz
# ─────────────────────────────────────────────
def test_list_and_get(logged_in_client):
    first = _create(logged_in_client, text="https://eins.example")
    second = _create(logged_in_client, text="https://zwei.example")

    listed = logged_in_client.get("/api/qrcodes").json()
    assert {q["id"] for q in listed} == {first["id"], second["id"]}

    detail = logged_in_client.get(f"/api/qrcodes/{first['id']}")
    assert detail.status_code == 200
    assert detail.json()["text"] == "https://eins.example"

    assert logged_in_client.get("/api/qrcodes/gibt-es-nicht").status_code == 404


def test_other_users_codes_are_hidden(logged_in_client):
    qr = _create(logged_in_client)
    logged_in_client.post("/api/auth/logout")
    logged_in_client.post("/api/auth/register", json={"email": "mallory@example.com", "password": "pw"})

    assert logged_in_client.get("/api/qrcodes").json() == []
    assert logged_in_client.get(f"/api/qrcodes/{qr['id']}").status_code == 404
    assert logged_in_client.delete(f"/api/qrcodes/{qr['id']}").status_code == 404
    deleted = logged_in_client.post("/api/qrcodes/delete-bulk", json={"qr_code_ids": [qr["id"]]})
    assert deleted.json()["deleted_count"] == 0


# ─────────────────────────────────────────────
# ✏️ Bearbeiten
# ─────────────────────────────────────────────
def test_update_keeps_tracking_url_and_stats(logged_in_client):
    qr = _create(logged_in_client)

    response = logged_in_client.put(f"/api/qrcodes/{qr['id']}", json={
        "text": "https://neu.example",
        "tags": ["neu"],
        "customization": {"color": "#112233", "background_color": "#ffffff", "margin": 2},
    })
    assert response.status_code == 200
    updated = response.json()
    assert updated["text"] == "https://neu.example"
    assert updated["tags"] == ["neu"]
    assert updated["tracking_url"] == qr["tracking_url"]
    assert updated["customization"]["color"] == "#112233"
    assert updated["qr_image"] != qr["qr_image"]
    assert updated["analytics"]["scan_count"] == 0


def test_update_password_falls_back_to_existing(logged_in_client):
    qr = _create(logged_in_client, security={"is_password_protected": True, "password": "abc"})
    response = logged_in_client.put(f"/api/qrcodes/{qr['id']}", json={
        "security": {"is_password_protected": True, "password": "", "max_scans": 5},
    })
    assert response.status_code == 200
    assert response.json()["security"]["max_scans"] == 5

    unprotected = _create(logged_in_client)
    response = logged_in_client.put(f"/api/qrcodes/{unprotected['id']}", json={
        "security": {"is_password_protected": True},
    })
    assert response.status_code == 400


def test_update_rejects_empty_text(logged_in_client):
    qr = _create(logged_in_client)
    assert logged_in_client.put(f"/api/qrcodes/{qr['id']}", json={"text": "  "}).status_code == 400


# ─────────────────────────────────────────────
# 🗑️ Löschen
# ─────────────────────────────────────────────
def test_delete_and_bulk_delete(logged_in_client):
    a = _create(logged_in_client)
    b = _create(logged_in_client)
    c = _create(logged_in_client)

    assert logged_in_client.delete(f"/api/qrcodes/{a['id']}").status_code == 200
    assert logged_in_client.get(f"/api/qrcodes/{a['id']}").status_code == 404

    response = logged_in_client.post("/api/qrcodes/delete-bulk", json={"qr_code_ids": [b["id"], c["id"], "fehlt"]})
    assert response.status_code == 200
    assert response.json()["deleted_count"] == 2
    assert logged_in_client.get("/api/qrcodes").json() == []

    assert logged_in_client.post("/api/qrcodes/delete-bulk", json={"qr_code_ids": []}).status_code == 400


# ─────────────────────────────────────────────
# 🧾 Formatieren & Logo
# ─────────────────────────────────────────────
def test_format_content(logged_in_client):
    response = logged_in_client.post("/api/qrcodes/format-content", json={
        "qr_type": "sms", "data": {"phone": "+49170", "message": "Hallo du"},
    })
    assert response.status_code == 200
    assert response.json() == {"formatted_content": "sms:+49170?body=Hallo%20du"}

    bad = logged_in_client.post("/api/qrcodes/format-content", json={
        "qr_type": "event", "data": {"start_date": "kein datum"},
    })
    assert bad.status_code == 400


def test_upload_logo_and_use_it(logged_in_client):
    buffer = BytesIO()
    Image.new("RGBA", (32, 32), (0, 0, 255, 255)).save(buffer, format="PNG")

    response = logged_in_client.post(
        "/api/qrcodes/upload-logo",
        files={"logo": ("logo.png", buffer.getvalue(), "image/png")},
    )
    assert response.status_code == 200
    logo_path = response.json()["logo_path"]
    assert logo_path.startswith("/uploads/logos/logo-")

    assert logged_in_client.get(logo_path).status_code == 200

    qr = _create(logged_in_client, customization={"logo": logo_path})
    assert qr["customization"]["logo"] == logo_path


def test_upload_logo_rejects_other_types(logged_in_client):
    response = logged_in_client.post(
        "/api/qrcodes/upload-logo",
        files={"logo": ("notes.txt", b"hallo", "text/plain")},
    )
    assert response.status_code == 400
