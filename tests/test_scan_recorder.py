from datetime import datetime, timedelta, timezone

from sqlalchemy import delete
from sqlalchemy.exc import OperationalError

from models.qrcode import QRCode, QRStatus
from utils.analytics import ScanData, ScanOutcome, record_scan
from utils.expiration import to_utc
from utils.qr_store import QRStore

IPHONE = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)"
ANDROID = "Mozilla/5.0 (Linux; Android 14; Pixel 8) Mobile"


def _scan(ua: str = IPHONE, country: str = "Germany", city: str = "Berlin") -> ScanData:
    return ScanData(user_agent=ua, ip="203.0.113.5", tracking_id="t1", country=country, city=city)


def test_missing_code(store):
    assert record_scan(store, "gibt-es-nicht", _scan()).outcome is ScanOutcome.NOT_FOUND


def test_scan_updates_counter_location_and_device(make_qr, store):
    qr = make_qr()
    before = datetime.now(timezone.utc)

    result = record_scan(store, qr.id, _scan())

    assert result.ok
    assert result.qr.scan_count == 1
    assert to_utc(result.qr.last_scanned) >= before - timedelta(seconds=1)
    assert [(s.country, s.city) for s in result.qr.scans] == [("Germany", "Berlin")]
    assert [(d.device_type, d.count) for d in result.qr.devices] == [("ios", 1)]
    assert result.qr.status == QRStatus.ACTIVE.value


def test_device_counts_are_upserted(make_qr, store):
    qr = make_qr()
    for ua in (IPHONE, ANDROID, IPHONE, IPHONE, "curl/8.0"):
        assert record_scan(store, qr.id, _scan(ua)).ok

    qr = store.find_by_id(qr.id)
    assert {d.device_type: d.count for d in qr.devices} == {"ios": 3, "android": 1, "unknown": 1}
    assert qr.scan_count == 5
    assert len(qr.scans) == 5


def test_missing_location_defaults_to_unknown(make_qr, store):
    qr = make_qr()
    result = record_scan(store, qr.id, ScanData(user_agent=IPHONE, country="", city=""))
    assert [(s.country, s.city) for s in result.qr.scans] == [("Unknown", "Unknown")]


def test_last_allowed_scan_expires_code(make_qr, store):
    qr = make_qr(max_scans=3, scan_count=2)

    result = record_scan(store, qr.id, _scan())
    assert result.ok
    assert result.qr.scan_count == 3
    assert result.qr.status == QRStatus.EXPIRED.value

    again = record_scan(store, qr.id, _scan())
    assert again.outcome is ScanOutcome.EXPIRED
    qr = store.find_by_id(qr.id)
    assert qr.scan_count == 3
    assert len(qr.scans) == 1


def test_past_expiry_is_persisted(make_qr, store, session_local):
    qr = make_qr(expires_at=datetime.now(timezone.utc) - timedelta(hours=1))

    result = record_scan(store, qr.id, _scan())
    assert result.outcome is ScanOutcome.EXPIRED

    with session_local() as other:
        fresh = QRStore(other).find_by_id(qr.id)
        assert fresh.status == QRStatus.EXPIRED.value
        assert fresh.scan_count == 0


def test_expired_code_is_never_counted(make_qr, store):
    qr = make_qr(status=QRStatus.EXPIRED.value)
    assert record_scan(store, qr.id, _scan()).outcome is ScanOutcome.EXPIRED
    assert store.find_by_id(qr.id).scan_count == 0


def test_conditional_update_stops_at_limit(make_qr, store):
    qr = make_qr(max_scans=1)
    now = datetime.now(timezone.utc)

    assert store.apply_scan(qr.id, "Germany", "Berlin", now) is True
    # zweiter Scan (z. B. parallel) trifft keine Zeile mehr
    assert store.apply_scan(qr.id, "Germany", "Berlin", now) is False
    store.commit()

    qr = store.find_by_id(qr.id)
    assert qr.scan_count == 1
    assert qr.status == QRStatus.EXPIRED.value


def test_database_error_is_reported(make_qr, db):
    class BrokenStore(QRStore):
        def find_by_id(self, qr_id):
            raise OperationalError("SELECT", {}, Exception("db down"))

    result = record_scan(BrokenStore(db), "abc", _scan())
    assert result.outcome is ScanOutcome.INTERNAL
    assert result.qr is None


def test_code_deleted_during_scan_is_not_found(make_qr, db):
    class VanishingStore(QRStore):
        def apply_scan(self, qr_id, country, city, now):
            # paralleles Löschen zwischen Prüfung und Update
            self.db.execute(delete(QRCode).where(QRCode.id == qr_id))
            self.db.commit()
            return False

    qr = make_qr()
    result = record_scan(VanishingStore(db), qr.id, _scan())

    assert result.outcome is ScanOutcome.NOT_FOUND
    assert result.qr is None
