"""Repository layer responsible for all database access."""

from __future__ import annotations

import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from gameroom.domain.errors import TransientStoreError
from gameroom.domain.models import (
    Booking,
    BookingDraft,
    BookingStatus,
    Device,
    DeviceStatus,
    Player,
)
from gameroom.utils.config import Settings, get_settings
from gameroom.utils.logger import get_logger


logger = get_logger(__name__)

_BOOKING_COLUMNS = """
    id, player_id, device_id, start_at, duration_hours, is_playing_alone,
    fellows, status, passcode, created_at, updated_at
"""

_DEMO_DEVICES = [
    ("PlayStation 5", "Two controllers, FIFA and racing titles", 2),
    ("Xbox Series X", "Game Pass library", 1),
    ("Nintendo Switch", "Party games, four Joy-Cons", 2),
    ("Gaming PC", "RTX workstation with racing wheel", 3),
    ("VR Headset", "Standing play area required", 1),
]


def _encode_dt(value: datetime) -> str:
    # Fixed-width ISO strings keep lexical order equal to time order.
    return value.isoformat(timespec="microseconds")


def _decode_dt(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _is_contention(exc: sqlite3.OperationalError) -> bool:
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def _row_to_device(row: sqlite3.Row) -> Device:
    quantity = row["quantity"]
    return Device(
        device_id=int(row["id"]),
        name=str(row["name"]),
        description=row["description"],
        quantity=None if quantity is None else int(quantity),
        status=DeviceStatus(row["status"]),
    )


def _row_to_booking(row: sqlite3.Row) -> Booking:
    return Booking(
        booking_id=int(row["id"]),
        player_id=int(row["player_id"]),
        device_id=int(row["device_id"]),
        start=datetime.fromisoformat(row["start_at"]),
        duration_hours=float(row["duration_hours"]),
        is_playing_alone=bool(row["is_playing_alone"]),
        fellows=int(row["fellows"]),
        status=BookingStatus(row["status"]),
        passcode=str(row["passcode"]),
        created_at=_decode_dt(row["created_at"]),
        updated_at=_decode_dt(row["updated_at"]),
    )


class StoreSession:
    """Queries bound to one connection, optionally inside a write transaction."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection

    # --- devices ---

    def get_device(self, device_id: int) -> Optional[Device]:
        row = self._conn.execute(
            """
            SELECT id, name, description, quantity, status
            FROM Devices
            WHERE id = ?;
            """,
            (device_id,),
        ).fetchone()
        return None if row is None else _row_to_device(row)

    def list_devices(self, status: Optional[DeviceStatus] = None) -> list[Device]:
        if status is None:
            rows = self._conn.execute(
                """
                SELECT id, name, description, quantity, status
                FROM Devices
                ORDER BY id ASC;
                """
            ).fetchall()
        else:
            rows = self._conn.execute(
                """
                SELECT id, name, description, quantity, status
                FROM Devices
                WHERE status = ?
                ORDER BY id ASC;
                """,
                (status.value,),
            ).fetchall()
        return [_row_to_device(row) for row in rows]

    def insert_device(
        self,
        *,
        name: str,
        description: Optional[str],
        quantity: Optional[int],
        status: DeviceStatus,
        now: datetime,
    ) -> Device:
        cursor = self._conn.execute(
            """
            INSERT INTO Devices (name, description, quantity, status, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?);
            """,
            (name, description, quantity, status.value, _encode_dt(now), _encode_dt(now)),
        )
        return Device(
            device_id=int(cursor.lastrowid),
            name=name,
            description=description,
            quantity=quantity,
            status=status,
        )

    def update_device(self, device: Device, now: datetime) -> bool:
        cursor = self._conn.execute(
            """
            UPDATE Devices
            SET name = ?, description = ?, quantity = ?, status = ?, updated_at = ?
            WHERE id = ?;
            """,
            (
                device.name,
                device.description,
                device.quantity,
                device.status.value,
                _encode_dt(now),
                device.device_id,
            ),
        )
        return cursor.rowcount > 0

    def delete_device(self, device_id: int) -> bool:
        cursor = self._conn.execute("DELETE FROM Devices WHERE id = ?;", (device_id,))
        return cursor.rowcount > 0

    def count_bookings_for_device(self, device_id: int) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) AS count FROM RoomBookings WHERE device_id = ?;",
            (device_id,),
        ).fetchone()
        return int(row["count"])

    # --- players ---

    def get_player(self, player_id: int) -> Optional[Player]:
        row = self._conn.execute(
            "SELECT id, email FROM Players WHERE id = ?;",
            (player_id,),
        ).fetchone()
        if row is None:
            return None
        return Player(player_id=int(row["id"]), email=str(row["email"]))

    def get_player_by_email(self, email: str) -> Optional[Player]:
        row = self._conn.execute(
            "SELECT id, email FROM Players WHERE lower(email) = lower(?);",
            (email,),
        ).fetchone()
        if row is None:
            return None
        return Player(player_id=int(row["id"]), email=str(row["email"]))

    def insert_player(self, email: str, now: datetime) -> Player:
        cursor = self._conn.execute(
            "INSERT INTO Players (email, created_at) VALUES (?, ?);",
            (email, _encode_dt(now)),
        )
        return Player(player_id=int(cursor.lastrowid), email=email)

    # --- bookings ---

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        row = self._conn.execute(
            f"SELECT {_BOOKING_COLUMNS} FROM RoomBookings WHERE id = ?;",
            (booking_id,),
        ).fetchone()
        return None if row is None else _row_to_booking(row)

    def list_bookings(self) -> list[Booking]:
        rows = self._conn.execute(
            f"SELECT {_BOOKING_COLUMNS} FROM RoomBookings ORDER BY start_at ASC, id ASC;"
        ).fetchall()
        return [_row_to_booking(row) for row in rows]

    def list_bookings_by_player(self, player_id: int) -> list[Booking]:
        rows = self._conn.execute(
            f"""
            SELECT {_BOOKING_COLUMNS}
            FROM RoomBookings
            WHERE player_id = ?
            ORDER BY start_at ASC, id ASC;
            """,
            (player_id,),
        ).fetchall()
        return [_row_to_booking(row) for row in rows]

    def list_active_bookings_overlapping(self, start: datetime, end: datetime) -> list[Booking]:
        """Non-cancelled bookings intersecting the half-open window [start, end)."""
        rows = self._conn.execute(
            f"""
            SELECT {_BOOKING_COLUMNS}
            FROM RoomBookings
            WHERE status != ?
              AND start_at < ?
              AND end_at > ?
            ORDER BY start_at ASC, id ASC;
            """,
            (BookingStatus.CANCELLED.value, _encode_dt(end), _encode_dt(start)),
        ).fetchall()
        return [_row_to_booking(row) for row in rows]

    def count_overlapping(
        self,
        *,
        device_id: int,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[int] = None,
    ) -> int:
        row = self._conn.execute(
            """
            SELECT COUNT(*) AS count
            FROM RoomBookings
            WHERE device_id = ?
              AND status != ?
              AND start_at < ?
              AND end_at > ?
              AND (? IS NULL OR id != ?);
            """,
            (
                device_id,
                BookingStatus.CANCELLED.value,
                _encode_dt(end),
                _encode_dt(start),
                exclude_booking_id,
                exclude_booking_id,
            ),
        ).fetchone()
        return int(row["count"])

    def insert_booking(
        self,
        draft: BookingDraft,
        *,
        status: BookingStatus,
        passcode: str,
        now: datetime,
    ) -> Booking:
        cursor = self._conn.execute(
            """
            INSERT INTO RoomBookings (
                player_id, device_id, start_at, end_at, duration_hours,
                is_playing_alone, fellows, status, passcode, created_at, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                draft.player_id,
                draft.device_id,
                _encode_dt(draft.start),
                _encode_dt(draft.end),
                draft.duration_hours,
                int(draft.is_playing_alone),
                draft.fellows,
                status.value,
                passcode,
                _encode_dt(now),
                _encode_dt(now),
            ),
        )
        return Booking(
            booking_id=int(cursor.lastrowid),
            player_id=draft.player_id,
            device_id=draft.device_id,
            start=draft.start,
            duration_hours=draft.duration_hours,
            is_playing_alone=draft.is_playing_alone,
            fellows=draft.fellows,
            status=status,
            passcode=passcode,
            created_at=now,
            updated_at=now,
        )

    def update_booking(self, booking: Booking, now: datetime) -> bool:
        cursor = self._conn.execute(
            """
            UPDATE RoomBookings
            SET device_id = ?,
                start_at = ?,
                end_at = ?,
                duration_hours = ?,
                is_playing_alone = ?,
                fellows = ?,
                status = ?,
                updated_at = ?
            WHERE id = ?;
            """,
            (
                booking.device_id,
                _encode_dt(booking.start),
                _encode_dt(booking.end),
                booking.duration_hours,
                int(booking.is_playing_alone),
                booking.fellows,
                booking.status.value,
                _encode_dt(now),
                booking.booking_id,
            ),
        )
        return cursor.rowcount > 0

    def update_booking_statuses(
        self,
        changes: list[tuple[int, BookingStatus]],
        now: datetime,
    ) -> int:
        """Write recomputed statuses back; cancelled rows are never touched."""
        if not changes:
            return 0
        cursor = self._conn.executemany(
            """
            UPDATE RoomBookings
            SET status = ?, updated_at = ?
            WHERE id = ? AND status != ?;
            """,
            [
                (status.value, _encode_dt(now), booking_id, BookingStatus.CANCELLED.value)
                for booking_id, status in changes
            ],
        )
        return int(cursor.rowcount)

    def count_bookings(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) AS count FROM RoomBookings;").fetchone()
        return int(row["count"])

    def delete_booking(self, booking_id: int) -> bool:
        cursor = self._conn.execute("DELETE FROM RoomBookings WHERE id = ?;", (booking_id,))
        return cursor.rowcount > 0


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.store_busy_timeout_seconds,
            isolation_level=None,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def session(self) -> Iterator[StoreSession]:
        """Autocommit session for plain reads and single-statement writes."""
        try:
            with closing(self._connect()) as conn:
                yield StoreSession(conn)
        except sqlite3.OperationalError as exc:
            if _is_contention(exc):
                raise TransientStoreError(f"Booking store is busy: {exc}") from exc
            raise

    @contextmanager
    def transaction(self) -> Iterator[StoreSession]:
        """Serialized write transaction; rolls back on any error.

        ``BEGIN IMMEDIATE`` takes SQLite's reserved lock up front, so the
        overlap count and the following write cannot interleave with another
        writer, in this process or any other.
        """
        try:
            with closing(self._connect()) as conn:
                conn.execute("BEGIN IMMEDIATE;")
                try:
                    yield StoreSession(conn)
                except BaseException:
                    conn.execute("ROLLBACK;")
                    raise
                conn.execute("COMMIT;")
        except sqlite3.OperationalError as exc:
            if _is_contention(exc):
                raise TransientStoreError(f"Booking store is busy: {exc}") from exc
            raise

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with closing(self._connect()) as conn:
                conn.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS Players (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        email TEXT NOT NULL UNIQUE,
                        created_at TEXT NOT NULL
                    );

                    CREATE TABLE IF NOT EXISTS Devices (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL,
                        description TEXT,
                        quantity INTEGER CHECK (quantity IS NULL OR quantity >= 0),
                        status TEXT NOT NULL DEFAULT 'Available',
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    );

                    CREATE TABLE IF NOT EXISTS RoomBookings (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        player_id INTEGER NOT NULL,
                        device_id INTEGER NOT NULL,
                        start_at TEXT NOT NULL,
                        end_at TEXT NOT NULL,
                        duration_hours REAL NOT NULL CHECK (duration_hours > 0),
                        is_playing_alone INTEGER NOT NULL CHECK (is_playing_alone IN (0,1)),
                        fellows INTEGER NOT NULL DEFAULT 0 CHECK (fellows >= 0),
                        status TEXT NOT NULL,
                        passcode TEXT NOT NULL,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        FOREIGN KEY (player_id) REFERENCES Players(id),
                        FOREIGN KEY (device_id) REFERENCES Devices(id)
                    );

                    CREATE INDEX IF NOT EXISTS idx_bookings_device_window
                    ON RoomBookings(device_id, start_at, end_at);

                    CREATE INDEX IF NOT EXISTS idx_bookings_player
                    ON RoomBookings(player_id);
                    """
                )
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_data(self, now: Optional[datetime] = None) -> int:
        """Seed demo devices and a player only when no devices exist yet."""
        timestamp = now or datetime.now()
        try:
            with self.transaction() as store:
                if store.list_devices():
                    logger.info("Demo data already present; skipping seed")
                    return 0
                for name, description, quantity in _DEMO_DEVICES:
                    store.insert_device(
                        name=name,
                        description=description,
                        quantity=quantity,
                        status=DeviceStatus.AVAILABLE,
                        now=timestamp,
                    )
                if store.get_player_by_email("player@example.edu") is None:
                    store.insert_player("player@example.edu", timestamp)
            logger.info("Demo seed completed with %s devices", len(_DEMO_DEVICES))
            return len(_DEMO_DEVICES)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Demo data seeding failed: {exc}") from exc

    # --- single-call conveniences ---

    def get_device(self, device_id: int) -> Optional[Device]:
        with self.session() as store:
            return store.get_device(device_id)

    def list_devices(self, status: Optional[DeviceStatus] = None) -> list[Device]:
        with self.session() as store:
            return store.list_devices(status)

    def create_device(
        self,
        *,
        name: str,
        quantity: Optional[int],
        description: Optional[str] = None,
        status: DeviceStatus = DeviceStatus.AVAILABLE,
        now: Optional[datetime] = None,
    ) -> Device:
        with self.transaction() as store:
            return store.insert_device(
                name=name,
                description=description,
                quantity=quantity,
                status=status,
                now=now or datetime.now(),
            )

    def get_player(self, player_id: int) -> Optional[Player]:
        with self.session() as store:
            return store.get_player(player_id)

    def create_player(self, email: str, now: Optional[datetime] = None) -> Player:
        with self.transaction() as store:
            return store.insert_player(email, now or datetime.now())

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        with self.session() as store:
            return store.get_booking(booking_id)

    def list_bookings(self) -> list[Booking]:
        with self.session() as store:
            return store.list_bookings()

    def list_bookings_by_player(self, player_id: int) -> list[Booking]:
        with self.session() as store:
            return store.list_bookings_by_player(player_id)

    def list_active_bookings_overlapping(self, start: datetime, end: datetime) -> list[Booking]:
        with self.session() as store:
            return store.list_active_bookings_overlapping(start, end)

    def count_bookings(self) -> int:
        with self.session() as store:
            return store.count_bookings()
