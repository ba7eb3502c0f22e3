"""Repository layer responsible for all database access."""

from __future__ import annotations

import sqlite3
from contextlib import closing, contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Iterator, Optional
from zoneinfo import ZoneInfo

from availability_engine.domain.errors import DatabaseError, ValidationError
from availability_engine.domain.models import (
    CONFLICT_BOOKING,
    CONFLICT_ONFLEET_TASK,
    DAYS_OF_WEEK,
    INACTIVE_APPOINTMENT_STATUSES,
    PLAN_TYPE_DIY,
    PLAN_TYPE_FULL_SERVICE,
    PLAN_TYPES,
    RESOURCE_DRIVER,
    RESOURCE_MOVER,
    RESOURCE_TYPES,
    BlockedDate,
    Commitment,
    ResourceAvailabilityWindow,
)
from availability_engine.utils.config import Settings, get_settings
from availability_engine.utils.logger import get_logger
from availability_engine.utils.time_windows import is_valid_time_string


logger = get_logger(__name__)

RESOURCE_STATUS_ACTIVE = "Active"
_INSTANT_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
_RESOURCE_TABLES = {RESOURCE_DRIVER: "Drivers", RESOURCE_MOVER: "Movers"}
_TABLES = ("Drivers", "Movers", "ResourceAvailability", "BlockedDates", "Appointments", "DeliveryTasks")


def format_instant(value: datetime) -> str:
    """Serialize an aware datetime as a sortable UTC string."""
    if value.tzinfo is None:
        raise ValidationError("appointment time must be timezone-aware", field="time")
    return value.astimezone(timezone.utc).strftime(_INSTANT_FORMAT)


def parse_instant(value: str) -> datetime:
    return datetime.strptime(value, _INSTANT_FORMAT).replace(tzinfo=timezone.utc)


def _validate_resource_type(resource_type: str) -> None:
    if resource_type not in RESOURCE_TYPES:
        raise ValidationError(
            f"resource_type must be one of {', '.join(RESOURCE_TYPES)}",
            field="resourceType",
        )


@dataclass(frozen=True)
class AppointmentRecord:
    """Appointment projection used by the event service."""

    appointment_id: int
    appointment_time: datetime
    plan_type: str
    number_of_units: int
    status: str
    mover_id: Optional[int]
    driver_id: Optional[int]


@dataclass(frozen=True)
class ResourceRecord:
    resource_type: str
    resource_id: int
    name: str
    status: str
    window_count: int

    @property
    def is_active(self) -> bool:
        return self.status == RESOURCE_STATUS_ACTIVE


class AvailabilityRepository:
    """Encapsulates SQLite access so the engine stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _session(self, operation: str) -> Iterator[sqlite3.Connection]:
        try:
            with closing(self._connect()) as conn, conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error("Database operation failed | operation=%s | error=%s", operation, exc)
            raise DatabaseError(f"{operation} failed: {exc}") from exc

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        with self._session("initialize_database") as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS Drivers (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'Active'
                );
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS Movers (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'Active'
                );
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS ResourceAvailability (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    resource_type TEXT NOT NULL CHECK (resource_type IN ('driver', 'mover')),
                    resource_id INTEGER NOT NULL,
                    day_of_week TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    is_blocked INTEGER NOT NULL DEFAULT 0 CHECK (is_blocked IN (0, 1)),
                    CHECK (start_time < end_time)
                );
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS BlockedDates (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    resource_type TEXT NOT NULL CHECK (resource_type IN ('driver', 'mover')),
                    resource_id INTEGER NOT NULL,
                    blocked_date TEXT NOT NULL,
                    reason TEXT
                );
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS Appointments (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    appointment_time TEXT NOT NULL,
                    plan_type TEXT NOT NULL,
                    number_of_units INTEGER NOT NULL CHECK (number_of_units > 0),
                    status TEXT NOT NULL DEFAULT 'Scheduled',
                    mover_id INTEGER REFERENCES Movers(id),
                    driver_id INTEGER REFERENCES Drivers(id)
                );
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS DeliveryTasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    appointment_id INTEGER NOT NULL REFERENCES Appointments(id),
                    unit_number INTEGER NOT NULL,
                    driver_id INTEGER REFERENCES Drivers(id)
                );
                """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_availability_type_day
                ON ResourceAvailability(resource_type, day_of_week);
                """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_blocked_dates_type_date
                ON BlockedDates(resource_type, blocked_date);
                """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_appointments_time_status
                ON Appointments(appointment_time, status);
                """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_delivery_tasks_driver
                ON DeliveryTasks(driver_id, appointment_id);
                """
            )
        logger.info("Database initialized at %s", self._db_path)

    def seed_demo_data(self, today: Optional[date] = None) -> None:
        """Seed a small deterministic roster only when no resources exist."""
        with self._session("seed_demo_data") as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM Drivers;")
            if int(cursor.fetchone()["count"]) > 0:
                logger.info("Demo data already present; skipping seed")
                return

        weekdays = DAYS_OF_WEEK[1:6]
        driver_ids = [self.create_resource(RESOURCE_DRIVER, f"Driver {n}") for n in range(1, 7)]
        mover_ids = [self.create_resource(RESOURCE_MOVER, f"Moving Crew {n}") for n in range(1, 4)]

        for index, driver_id in enumerate(driver_ids):
            days = weekdays + ("Saturday",) if index % 2 == 0 else weekdays
            start_time = "08:00" if index < 4 else "12:00"
            self.replace_weekly_availability(
                RESOURCE_DRIVER,
                driver_id,
                [(day, start_time, "18:00") for day in days],
            )
        for index, mover_id in enumerate(mover_ids):
            days = weekdays if index < 2 else ("Saturday", "Sunday")
            self.replace_weekly_availability(
                RESOURCE_MOVER,
                mover_id,
                [(day, "09:00", "18:00") for day in days],
            )

        tz = ZoneInfo(self._settings.business_timezone)
        base = today or datetime.now(tz).date()
        first = datetime(base.year, base.month, base.day, 10, tzinfo=tz) + timedelta(days=1)
        second = datetime(base.year, base.month, base.day, 14, tzinfo=tz) + timedelta(days=2)
        appointment_id = self.create_appointment(
            first,
            PLAN_TYPE_FULL_SERVICE,
            2,
            mover_id=mover_ids[0],
        )
        self.create_delivery_task(appointment_id, 2, driver_ids[0])
        diy_id = self.create_appointment(second, PLAN_TYPE_DIY, 1)
        self.create_delivery_task(diy_id, 1, driver_ids[1])
        self.add_blocked_date(RESOURCE_DRIVER, driver_ids[2], base + timedelta(days=3), "Vacation")
        logger.info(
            "Demo seed completed | drivers=%s | movers=%s",
            len(driver_ids),
            len(mover_ids),
        )

    def create_resource(self, resource_type: str, name: str, status: str = RESOURCE_STATUS_ACTIVE) -> int:
        _validate_resource_type(resource_type)
        table = _RESOURCE_TABLES[resource_type]
        with self._session("create_resource") as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"INSERT INTO {table} (name, status) VALUES (?, ?);",
                (name, status),
            )
            return int(cursor.lastrowid)

    def set_resource_status(self, resource_type: str, resource_id: int, status: str) -> bool:
        """Returns False when no such resource exists."""
        _validate_resource_type(resource_type)
        table = _RESOURCE_TABLES[resource_type]
        with self._session("set_resource_status") as conn:
            cursor = conn.execute(
                f"UPDATE {table} SET status = ? WHERE id = ?;",
                (status, resource_id),
            )
            return cursor.rowcount > 0

    def get_resource(self, resource_type: str, resource_id: int) -> Optional[ResourceRecord]:
        _validate_resource_type(resource_type)
        table = _RESOURCE_TABLES[resource_type]
        with self._session("get_resource") as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT r.id, r.name, r.status, COUNT(ra.id) AS window_count
                FROM {table} AS r
                LEFT JOIN ResourceAvailability AS ra
                  ON ra.resource_id = r.id AND ra.resource_type = ?
                WHERE r.id = ?
                GROUP BY r.id, r.name, r.status;
                """,
                (resource_type, resource_id),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return ResourceRecord(
                resource_type=resource_type,
                resource_id=int(row["id"]),
                name=str(row["name"]),
                status=str(row["status"]),
                window_count=int(row["window_count"]),
            )

    def replace_weekly_availability(
        self,
        resource_type: str,
        resource_id: int,
        windows: Iterable[tuple[str, str, str]] | Iterable[tuple[str, str, str, bool]],
    ) -> None:
        """Replace every weekly rule of one resource with ``windows``."""
        _validate_resource_type(resource_type)
        rows: list[tuple[str, int, str, str, str, int]] = []
        for window in windows:
            day_name, start_time, end_time = window[0], window[1], window[2]
            is_blocked = bool(window[3]) if len(window) > 3 else False
            if day_name not in DAYS_OF_WEEK:
                raise ValidationError(f"unknown day of week {day_name!r}", field="dayOfWeek")
            if not is_valid_time_string(start_time) or not is_valid_time_string(end_time):
                raise ValidationError("availability times must follow HH:MM", field="startTime")
            if start_time >= end_time:
                raise ValidationError("startTime must be before endTime", field="startTime")
            rows.append((resource_type, resource_id, day_name, start_time, end_time, int(is_blocked)))

        with self._session("replace_weekly_availability") as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM ResourceAvailability WHERE resource_type = ? AND resource_id = ?;",
                (resource_type, resource_id),
            )
            cursor.executemany(
                """
                INSERT INTO ResourceAvailability (
                    resource_type, resource_id, day_of_week, start_time, end_time, is_blocked
                )
                VALUES (?, ?, ?, ?, ?, ?);
                """,
                rows,
            )

    def list_availability_windows(self, resource_type: str) -> list[ResourceAvailabilityWindow]:
        """Weekly rules of every active resource in the pool."""
        _validate_resource_type(resource_type)
        table = _RESOURCE_TABLES[resource_type]
        with self._session("list_availability_windows") as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT ra.resource_id, ra.day_of_week, ra.start_time, ra.end_time, ra.is_blocked
                FROM ResourceAvailability AS ra
                INNER JOIN {table} AS r ON r.id = ra.resource_id
                WHERE ra.resource_type = ?
                  AND r.status = 'Active'
                ORDER BY ra.resource_id ASC, ra.day_of_week ASC, ra.start_time ASC;
                """,
                (resource_type,),
            )
            return [
                ResourceAvailabilityWindow(
                    resource_type=resource_type,
                    resource_id=int(row["resource_id"]),
                    day_of_week=str(row["day_of_week"]),
                    start_time=str(row["start_time"]),
                    end_time=str(row["end_time"]),
                    is_blocked=bool(row["is_blocked"]),
                )
                for row in cursor.fetchall()
            ]

    def add_blocked_date(
        self,
        resource_type: str,
        resource_id: int,
        blocked_date: date,
        reason: Optional[str] = None,
    ) -> int:
        _validate_resource_type(resource_type)
        with self._session("add_blocked_date") as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO BlockedDates (resource_type, resource_id, blocked_date, reason)
                VALUES (?, ?, ?, ?);
                """,
                (resource_type, resource_id, blocked_date.isoformat(), reason),
            )
            return int(cursor.lastrowid)

    def delete_blocked_date(self, blocked_date_id: int) -> Optional[BlockedDate]:
        """Hard-delete a blocked date and return what was removed."""
        with self._session("delete_blocked_date") as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT resource_type, resource_id, blocked_date, reason
                FROM BlockedDates
                WHERE id = ?;
                """,
                (blocked_date_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            cursor.execute("DELETE FROM BlockedDates WHERE id = ?;", (blocked_date_id,))
            return BlockedDate(
                resource_type=str(row["resource_type"]),
                resource_id=int(row["resource_id"]),
                blocked_date=date.fromisoformat(str(row["blocked_date"])),
                reason=row["reason"],
            )

    def list_blocked_dates(
        self,
        resource_type: str,
        start_date: date,
        end_date: date,
    ) -> list[BlockedDate]:
        """Blocked dates in the inclusive range ``[start_date, end_date]``."""
        _validate_resource_type(resource_type)
        with self._session("list_blocked_dates") as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT resource_id, blocked_date, reason
                FROM BlockedDates
                WHERE resource_type = ?
                  AND blocked_date >= ?
                  AND blocked_date <= ?
                ORDER BY blocked_date ASC, resource_id ASC;
                """,
                (resource_type, start_date.isoformat(), end_date.isoformat()),
            )
            return [
                BlockedDate(
                    resource_type=resource_type,
                    resource_id=int(row["resource_id"]),
                    blocked_date=date.fromisoformat(str(row["blocked_date"])),
                    reason=row["reason"],
                )
                for row in cursor.fetchall()
            ]

    def create_appointment(
        self,
        appointment_time: datetime,
        plan_type: str,
        number_of_units: int,
        *,
        mover_id: Optional[int] = None,
        driver_id: Optional[int] = None,
        status: str = "Scheduled",
    ) -> int:
        if plan_type not in PLAN_TYPES:
            raise ValidationError(f"planType must be one of {', '.join(PLAN_TYPES)}", field="planType")
        with self._session("create_appointment") as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Appointments (
                    appointment_time, plan_type, number_of_units, status, mover_id, driver_id
                )
                VALUES (?, ?, ?, ?, ?, ?);
                """,
                (
                    format_instant(appointment_time),
                    plan_type,
                    number_of_units,
                    status,
                    mover_id,
                    driver_id,
                ),
            )
            return int(cursor.lastrowid)

    def get_appointment(self, appointment_id: int) -> Optional[AppointmentRecord]:
        with self._session("get_appointment") as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, appointment_time, plan_type, number_of_units, status, mover_id, driver_id
                FROM Appointments
                WHERE id = ?;
                """,
                (appointment_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return AppointmentRecord(
                appointment_id=int(row["id"]),
                appointment_time=parse_instant(str(row["appointment_time"])),
                plan_type=str(row["plan_type"]),
                number_of_units=int(row["number_of_units"]),
                status=str(row["status"]),
                mover_id=None if row["mover_id"] is None else int(row["mover_id"]),
                driver_id=None if row["driver_id"] is None else int(row["driver_id"]),
            )

    def update_appointment_status(self, appointment_id: int, status: str) -> None:
        with self._session("update_appointment_status") as conn:
            conn.execute(
                "UPDATE Appointments SET status = ? WHERE id = ?;",
                (status, appointment_id),
            )

    def create_delivery_task(
        self,
        appointment_id: int,
        unit_number: int,
        driver_id: Optional[int] = None,
    ) -> int:
        with self._session("create_delivery_task") as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO DeliveryTasks (appointment_id, unit_number, driver_id)
                VALUES (?, ?, ?);
                """,
                (appointment_id, unit_number, driver_id),
            )
            return int(cursor.lastrowid)

    def assign_delivery_task_driver(self, task_id: int, driver_id: Optional[int]) -> Optional[int]:
        """Set the task's driver and return its appointment id, or None if unknown."""
        with self._session("assign_delivery_task_driver") as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT appointment_id FROM DeliveryTasks WHERE id = ?;", (task_id,))
            row = cursor.fetchone()
            if row is None:
                return None
            cursor.execute(
                "UPDATE DeliveryTasks SET driver_id = ? WHERE id = ?;",
                (driver_id, task_id),
            )
            return int(row["appointment_id"])

    def list_commitments(
        self,
        resource_type: str,
        start: datetime,
        end: datetime,
        exclude_appointment_id: Optional[int] = None,
    ) -> list[Commitment]:
        """Active commitments of active resources anchored in ``[start, end)``.

        Movers are committed through their booked appointments. Drivers are
        committed through directly booked appointments and through delivery
        tasks, one task commitment per driver and appointment.
        """
        _validate_resource_type(resource_type)
        inactive = tuple(INACTIVE_APPOINTMENT_STATUSES)
        placeholders = ",".join("?" for _ in inactive)
        column = "mover_id" if resource_type == RESOURCE_MOVER else "driver_id"
        table = _RESOURCE_TABLES[resource_type]
        excluded = -1 if exclude_appointment_id is None else exclude_appointment_id
        window = (format_instant(start), format_instant(end))

        with self._session("list_commitments") as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT a.id AS appointment_id, a.{column} AS resource_id, a.appointment_time
                FROM Appointments AS a
                INNER JOIN {table} AS r ON r.id = a.{column}
                WHERE r.status = 'Active'
                  AND a.appointment_time >= ?
                  AND a.appointment_time < ?
                  AND a.status NOT IN ({placeholders})
                  AND a.id != ?
                ORDER BY a.appointment_time ASC, a.id ASC;
                """,
                (*window, *inactive, excluded),
            )
            commitments = [
                Commitment(
                    resource_type=resource_type,
                    resource_id=int(row["resource_id"]),
                    anchor_time=parse_instant(str(row["appointment_time"])),
                    kind=CONFLICT_BOOKING,
                    appointment_id=int(row["appointment_id"]),
                )
                for row in cursor.fetchall()
            ]
            if resource_type != RESOURCE_DRIVER:
                return commitments

            cursor.execute(
                f"""
                SELECT DISTINCT t.driver_id, t.appointment_id, a.appointment_time
                FROM DeliveryTasks AS t
                INNER JOIN Appointments AS a ON a.id = t.appointment_id
                INNER JOIN Drivers AS d ON d.id = t.driver_id
                WHERE d.status = 'Active'
                  AND a.appointment_time >= ?
                  AND a.appointment_time < ?
                  AND a.status NOT IN ({placeholders})
                  AND a.id != ?
                ORDER BY a.appointment_time ASC, t.appointment_id ASC;
                """,
                (*window, *inactive, excluded),
            )
            commitments.extend(
                Commitment(
                    resource_type=RESOURCE_DRIVER,
                    resource_id=int(row["driver_id"]),
                    anchor_time=parse_instant(str(row["appointment_time"])),
                    kind=CONFLICT_ONFLEET_TASK,
                    appointment_id=int(row["appointment_id"]),
                )
                for row in cursor.fetchall()
            )
            return commitments

    def count_rows(self, table: str) -> int:
        if table not in _TABLES:
            raise ValueError(f"unknown table {table!r}")
        with self._session("count_rows") as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT COUNT(*) AS count FROM {table};")
            return int(cursor.fetchone()["count"])
