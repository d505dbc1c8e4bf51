# ABOUTME: Persistent report store backed by SQLAlchemy (SQLite or Postgres)
# ABOUTME: Append-only: reports are inserted, read and eventually deleted, never updated

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Index, String, Text, create_engine, delete, event, func, select,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from surflab.debug import debug_log
from surflab.errors import DuplicateReportId, StoreUnavailable
from surflab.reports.models import Recommendations, Report
from surflab.weather.models import ConditionSnapshot

log = logging.getLogger(__name__)

Base = declarative_base()


class SurfReportRow(Base):
    __tablename__ = "surf_reports"

    id = Column(String, primary_key=True)
    timestamp = Column(DateTime, nullable=False)
    location = Column(String, nullable=False)
    narrative = Column(Text, nullable=False)
    conditions = Column(JSON, nullable=False)
    recommendations = Column(JSON, nullable=False)
    cached_until = Column(DateTime, nullable=False)
    templated = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False)

    # "current" lookups and history lookups
    __table_args__ = (
        Index("idx_surf_reports_location_cached_until", "location", "cached_until"),
        Index("idx_surf_reports_location_timestamp", "location", "timestamp"),
    )


def _to_db(value: datetime) -> datetime:
    """Aware datetime -> naive UTC (SQLite has no timezone support)."""
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _row_to_report(row: SurfReportRow) -> Report:
    return Report(
        id=row.id,
        timestamp=_from_db(row.timestamp),
        location=row.location,
        narrative=row.narrative,
        conditions=ConditionSnapshot.from_dict(row.conditions),
        recommendations=Recommendations.from_dict(row.recommendations),
        cached_until=_from_db(row.cached_until),
        templated=bool(row.templated),
    )


class ReportStore:
    """
    Durable store of generated surf reports, keyed by location.

    Every failure to talk to the database surfaces as StoreUnavailable;
    nothing here ever turns an error into "no report".
    """

    def __init__(self, database_url: str):
        self.database_url = database_url
        connect_args = {}
        engine_kwargs = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            if ":memory:" in database_url or database_url == "sqlite://":
                # Single shared connection, otherwise every session sees an empty database
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_pre_ping"] = True

        self._engine = create_engine(database_url, connect_args=connect_args, **engine_kwargs)

        if database_url.startswith("sqlite"):
            @event.listens_for(self._engine, "connect")
            def _set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
                cursor.close()

        self._sessionmaker = sessionmaker(bind=self._engine, expire_on_commit=False)

    def initialize(self) -> None:
        """Create the table and indexes if they don't exist yet."""
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"Could not initialize report store: {e}") from e
        log.info("Report store ready")

    def close(self) -> None:
        self._engine.dispose()

    # ==================== Reads ====================

    def get_current(self, location: str, now: Optional[datetime] = None) -> Optional[Report]:
        """Most recent report for location whose cached_until is still in the future."""
        now = now or datetime.now(timezone.utc)
        query = (
            select(SurfReportRow)
            .where(SurfReportRow.location == location)
            .where(SurfReportRow.cached_until > _to_db(now))
            .order_by(SurfReportRow.timestamp.desc(), SurfReportRow.id.desc())
            .limit(1)
        )
        return self._first(query, "get_current")

    def get_latest(self, location: str) -> Optional[Report]:
        """Most recent report for location regardless of age or cached_until."""
        query = (
            select(SurfReportRow)
            .where(SurfReportRow.location == location)
            .order_by(SurfReportRow.timestamp.desc(), SurfReportRow.id.desc())
            .limit(1)
        )
        return self._first(query, "get_latest")

    def get_recent(self, location: str, limit: int) -> list[Report]:
        """Up to `limit` reports for location, newest first."""
        if limit <= 0:
            return []
        query = (
            select(SurfReportRow)
            .where(SurfReportRow.location == location)
            .order_by(SurfReportRow.timestamp.desc(), SurfReportRow.id.desc())
            .limit(limit)
        )
        try:
            with self._sessionmaker() as session:
                rows = session.execute(query).scalars().all()
                return [_row_to_report(row) for row in rows]
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"get_recent failed: {e}") from e

    def stats(self, location: str) -> dict:
        """Row count and timestamp range for location."""
        query = (
            select(
                func.count(SurfReportRow.id),
                func.min(SurfReportRow.timestamp),
                func.max(SurfReportRow.timestamp),
            )
            .where(SurfReportRow.location == location)
        )
        try:
            with self._sessionmaker() as session:
                total, oldest, newest = session.execute(query).one()
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"stats failed: {e}") from e
        return {
            "total_reports": int(total or 0),
            "oldest_report": _from_db(oldest).isoformat() if oldest else None,
            "newest_report": _from_db(newest).isoformat() if newest else None,
        }

    # ==================== Writes ====================

    def save(self, report: Report) -> None:
        """
        Insert a new report.

        Raises:
            DuplicateReportId: a report with this id already exists
            StoreUnavailable: the database could not be written
        """
        started = time.monotonic()
        row = SurfReportRow(
            id=report.id,
            timestamp=_to_db(report.timestamp),
            location=report.location,
            narrative=report.narrative,
            conditions=report.conditions.to_dict(),
            recommendations=report.recommendations.to_dict(),
            cached_until=_to_db(report.cached_until),
            templated=report.templated,
            created_at=_to_db(datetime.now(timezone.utc)),
        )
        try:
            with self._sessionmaker() as session:
                session.add(row)
                session.commit()
        except IntegrityError as e:
            raise DuplicateReportId(f"Report id already exists: {report.id}") from e
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"save failed: {e}") from e

        elapsed_ms = (time.monotonic() - started) * 1000
        log.info(f"Report saved: {report.id} ({elapsed_ms:.0f}ms)")

    def delete_older_than(self, location: str, age: timedelta, now: Optional[datetime] = None) -> int:
        """Retention cleanup: delete reports created more than `age` ago."""
        now = now or datetime.now(timezone.utc)
        cutoff = _to_db(now - age)
        count = self._delete(
            delete(SurfReportRow)
            .where(SurfReportRow.location == location)
            .where(SurfReportRow.timestamp < cutoff),
            "delete_older_than",
        )
        log.info(f"Cleaned up {count} reports older than {age} for {location}")
        return count

    def delete_all(self, location: str) -> int:
        """Drop every report for location (explicit cache clear)."""
        count = self._delete(
            delete(SurfReportRow).where(SurfReportRow.location == location),
            "delete_all",
        )
        log.info(f"Cleared {count} cached reports for {location}")
        return count

    # ==================== Helpers ====================

    def _first(self, query, operation: str) -> Optional[Report]:
        started = time.monotonic()
        try:
            with self._sessionmaker() as session:
                row = session.execute(query).scalars().first()
                report = _row_to_report(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"{operation} failed: {e}") from e

        elapsed_ms = (time.monotonic() - started) * 1000
        debug_log(f"{operation}: {report.id if report else 'miss'} ({elapsed_ms:.0f}ms)", "STORE")
        return report

    def _delete(self, statement, operation: str) -> int:
        try:
            with self._sessionmaker() as session:
                result = session.execute(statement)
                session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise StoreUnavailable(f"{operation} failed: {e}") from e
