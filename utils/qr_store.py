# =============================================================================
# 🗃️ utils/qr_store.py
# -----------------------------------------------------------------------------
# Datenzugriff für QR-Codes. Wird pro Anfrage mit einer Session gebaut
# (get_store) und explizit an die Scan-/Analytics-Funktionen übergeben.
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from fastapi import Depends
from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.orm import Session

from database import get_db
from models.qrcode import QRCode, QRStatus
from models.qr_device import QRDeviceCount
from models.qr_scan import QRScan


class QRStore:
    def __init__(self, db: Session):
        self.db = db

    # ---------------------------------------------------------------------
    # 🔍 Lesen
    # ---------------------------------------------------------------------
    def find_by_id(self, qr_id: str) -> Optional[QRCode]:
        return self.db.get(QRCode, qr_id, populate_existing=True)

    def find_owned(self, qr_id: str, user_id: int) -> Optional[QRCode]:
        return (
            self.db.query(QRCode)
            .filter(QRCode.id == qr_id, QRCode.user_id == user_id)
            .first()
        )

    def find_by_user(self, user_id: int, newest_first: bool = False) -> List[QRCode]:
        order = (QRCode.created_at.desc(), QRCode.id.desc()) if newest_first else (QRCode.created_at, QRCode.id)
        return self.db.query(QRCode).filter(QRCode.user_id == user_id).order_by(*order).all()

    # ---------------------------------------------------------------------
    # ✏️ Schreiben
    # ---------------------------------------------------------------------
    def add(self, qr: QRCode) -> QRCode:
        self.db.add(qr)
        self.db.commit()
        self.db.refresh(qr)
        return qr

    def save(self, qr: QRCode) -> QRCode:
        self.db.commit()
        self.db.refresh(qr)
        return qr

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def mark_expired(self, qr_id: str) -> None:
        """Setzt den Status auf 'expired' (idempotent)."""
        self.db.execute(
            update(QRCode)
            .where(QRCode.id == qr_id)
            .values(status=QRStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

    def apply_scan(self, qr_id: str, country: str, city: str, now: datetime) -> bool:
        """
        Zählt einen Scan in einem einzigen bedingten UPDATE:
        scan_count + 1, last_scanned, Ablauf-Flag beim Erreichen des Limits.
        Nur aktive Codes unter ihrem Limit werden getroffen.
        Der Standort-Eintrag hängt in derselben Transaktion daran.
        Gibt False zurück, wenn kein Datensatz getroffen wurde.
        Kein Commit – das übernimmt der Aufrufer.
        """
        reaches_limit = and_(QRCode.max_scans > 0, QRCode.scan_count + 1 >= QRCode.max_scans)
        result = self.db.execute(
            update(QRCode)
            .where(
                QRCode.id == qr_id,
                QRCode.status == QRStatus.ACTIVE.value,
                or_(QRCode.max_scans <= 0, QRCode.scan_count < QRCode.max_scans),
            )
            .values(
                scan_count=QRCode.scan_count + 1,
                last_scanned=now,
                status=case((reaches_limit, QRStatus.EXPIRED.value), else_=QRCode.status),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return False

        self.db.add(QRScan(qr_id=qr_id, country=country, city=city, timestamp=now))
        self.db.flush()
        return True

    def increment_device(self, qr_id: str, device_type: str) -> None:
        """Geräte-Zähler per Upsert: vorhandener Eintrag +1, sonst neu mit 1."""
        table = QRDeviceCount.__table__
        dialect = self.db.get_bind().dialect.name

        if dialect in ("sqlite", "postgresql"):
            if dialect == "sqlite":
                from sqlalchemy.dialects.sqlite import insert
            else:
                from sqlalchemy.dialects.postgresql import insert
            stmt = insert(table).values(qr_id=qr_id, device_type=device_type, count=1)
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.qr_id, table.c.device_type],
                set_={"count": table.c.count + 1},
            )
            self.db.execute(stmt)
            return

        if dialect in ("mysql", "mariadb"):
            from sqlalchemy.dialects.mysql import insert
            stmt = insert(table).values(qr_id=qr_id, device_type=device_type, count=1)
            self.db.execute(stmt.on_duplicate_key_update(count=table.c.count + 1))
            return

        # Andere Datenbanken: Zeile sperren, dann erhöhen oder anlegen
        row = self.db.execute(
            select(QRDeviceCount)
            .where(QRDeviceCount.qr_id == qr_id, QRDeviceCount.device_type == device_type)
            .with_for_update()
        ).scalar_one_or_none()
        if row is None:
            self.db.add(QRDeviceCount(qr_id=qr_id, device_type=device_type, count=1))
        else:
            row.count = row.count + 1
        self.db.flush()

    # ---------------------------------------------------------------------
    # 🗑️ Löschen
    # ---------------------------------------------------------------------
    def delete(self, qr: QRCode) -> None:
        self.db.delete(qr)
        self.db.commit()

    def delete_many(self, qr_ids: Iterable[str], user_id: int) -> int:
        """Löscht nur Codes des Besitzers; Standorte/Geräte gehen per Cascade mit."""
        rows = (
            self.db.query(QRCode)
            .filter(QRCode.id.in_(list(qr_ids)), QRCode.user_id == user_id)
            .all()
        )
        for qr in rows:
            self.db.delete(qr)
        self.db.commit()
        return len(rows)


def get_store(db: Session = Depends(get_db)) -> QRStore:
    """FastAPI-Dependency: ein Store pro Anfrage."""
    return QRStore(db)
