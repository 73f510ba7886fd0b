"""
Local store for timesheet entries.

Entries live in a single SQLite table. The natural key (date, time_in,
project, task_description) is unique, times are range-checked and
15-minute aligned, and ``hours`` is a stored generated column, all enforced
by the database itself. Inserts report duplicates and constraint violations
as result values; status transitions raise on mismatched row counts.

The store is an explicit handle: create one TimesheetStore per database
file and pass it to whatever needs it. Each unit of work runs on its own
short-lived connection.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import (
    CheckConstraint,
    Computed,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    func,
    select,
    update,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from .errors import ConstraintViolation, StatusUpdateMismatch, StoreError
from .logging_utils import get_logger
from .models import (
    BatchInsertResult,
    DuplicateGroup,
    EntryStatus,
    InsertResult,
    TimesheetEntry,
)

logger = get_logger()

NATURAL_KEY = ('date', 'time_in', 'project', 'task_description')


class Base(DeclarativeBase):
    """Base class for store models."""
    pass


class TimesheetRecord(Base):
    """One stored timesheet entry."""
    __tablename__ = 'timesheet'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    time_in: Mapped[int] = mapped_column(Integer, nullable=False)
    time_out: Mapped[int] = mapped_column(Integer, nullable=False)
    project: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    tool: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    detail_charge_code: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    task_description: Mapped[str] = mapped_column(Text, nullable=False)
    hours: Mapped[float] = mapped_column(
        Float, Computed("(time_out - time_in) / 60.0", persisted=True)
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=EntryStatus.PENDING.value,
        server_default=EntryStatus.PENDING.value, index=True,
    )
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        # % truncates REAL operands, so alignment only holds for whole minutes
        CheckConstraint(
            "typeof(time_in) = 'integer' AND typeof(time_out) = 'integer'",
            name='ck_timesheet_whole_minutes',
        ),
        CheckConstraint('time_in BETWEEN 0 AND 1439', name='ck_timesheet_time_in_range'),
        CheckConstraint('time_out BETWEEN 1 AND 1440', name='ck_timesheet_time_out_range'),
        CheckConstraint('time_out > time_in', name='ck_timesheet_time_order'),
        CheckConstraint('time_in % 15 = 0 AND time_out % 15 = 0', name='ck_timesheet_slot_aligned'),
        CheckConstraint(
            "status IN ('pending', 'submitted', 'failed')", name='ck_timesheet_status'
        ),
        Index('uq_timesheet_nk', *NATURAL_KEY, unique=True),
    )

    def to_entry(self) -> TimesheetEntry:
        return TimesheetEntry(
            id=self.id,
            date=self.date,
            time_in=self.time_in,
            time_out=self.time_out,
            project=self.project,
            tool=self.tool,
            charge_code=self.detail_charge_code,
            task_description=self.task_description,
            status=EntryStatus(self.status),
            last_error=self.last_error,
            submitted_at=self.submitted_at.isoformat(timespec='seconds') if self.submitted_at else None,
        )


def _row_values(entry: TimesheetEntry) -> Dict:
    return {
        'date': entry.date,
        'time_in': entry.time_in,
        'time_out': entry.time_out,
        'project': entry.project,
        'tool': entry.tool,
        'detail_charge_code': entry.charge_code,
        'task_description': entry.task_description,
        'status': EntryStatus.PENDING.value,
    }


def _describe(error: IntegrityError) -> str:
    return str(error.orig) if error.orig is not None else str(error)


class TimesheetStore:
    """
    Handle on one timesheet database.

    Args:
        path: SQLite file path, or ":memory:" for a private in-memory store
        echo: Log emitted SQL (debugging)
    """

    def __init__(self, path: str, echo: bool = False):
        self.path = path
        if path == ':memory:':
            # One shared connection, otherwise every unit of work sees a fresh empty database
            self._engine = create_engine(
                'sqlite://',
                echo=echo,
                poolclass=StaticPool,
                connect_args={'check_same_thread': False},
            )
        else:
            self._engine = create_engine(f'sqlite:///{path}', echo=echo, poolclass=NullPool)
        self._session_factory = sessionmaker(bind=self._engine, autoflush=False,
                                             expire_on_commit=False)
        self.ensure_schema()

    @property
    def engine(self):
        return self._engine

    def ensure_schema(self):
        """Create the table and indexes if they do not exist."""
        Base.metadata.create_all(self._engine)

    def close(self):
        self._engine.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ------------------------------------------------------------------
    # Inserts
    # ------------------------------------------------------------------

    def _insert_statement(self, entry: TimesheetEntry):
        return (
            sqlite_insert(TimesheetRecord.__table__)
            .values(**_row_values(entry))
            .on_conflict_do_nothing(index_elements=list(NATURAL_KEY))
        )

    def insert_entry(self, entry: TimesheetEntry) -> InsertResult:
        """
        Insert one entry.

        A natural-key duplicate is reported as ``is_duplicate=True`` with
        ``success=False``; a range or alignment violation as ``success=False``
        with the database message in ``error``. Neither raises.
        """
        try:
            with self._engine.begin() as conn:
                result = conn.execute(self._insert_statement(entry))
        except IntegrityError as e:
            logger.debug(f"Insert rejected: {_describe(e)}")
            return InsertResult(success=False, error=_describe(e))

        if result.rowcount == 0:
            logger.debug(f"Duplicate entry skipped: {entry.natural_key}")
            return InsertResult(success=False, is_duplicate=True, changes=0)

        return InsertResult(success=True, changes=result.rowcount)

    def insert_entries(self, entries: Sequence[TimesheetEntry]) -> BatchInsertResult:
        """
        Insert a batch of entries in one transaction.

        Duplicates are skipped and counted. Any other constraint violation
        rolls back the whole batch and is reported with ``inserted=0`` and
        every entry counted as an error.
        """
        total = len(entries)
        if total == 0:
            return BatchInsertResult(success=True, total=0)

        inserted = 0
        duplicates = 0
        try:
            with self._engine.begin() as conn:
                for index, entry in enumerate(entries):
                    try:
                        result = conn.execute(self._insert_statement(entry))
                    except IntegrityError as e:
                        raise ConstraintViolation(
                            f"Entry {index + 1} ({entry.date} {entry.project}): {_describe(e)}",
                            entry_index=index,
                        ) from e
                    if result.rowcount == 0:
                        duplicates += 1
                    else:
                        inserted += result.rowcount
        except (ConstraintViolation, SQLAlchemyError) as e:
            logger.warning(f"Batch insert rolled back: {e}")
            return BatchInsertResult(
                success=False,
                total=total,
                inserted=0,
                duplicates=0,
                errors=total,
                error_message=str(e),
            )

        logger.debug(f"Batch insert: {inserted} inserted, {duplicates} duplicate(s)")
        return BatchInsertResult(success=True, total=total, inserted=inserted,
                                 duplicates=duplicates)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def check_duplicate_entry(self, entry: TimesheetEntry,
                              exclude_id: Optional[int] = None) -> bool:
        """Check whether another stored entry has the same natural key."""
        stmt = select(func.count()).select_from(TimesheetRecord).where(
            TimesheetRecord.date == entry.date,
            TimesheetRecord.time_in == entry.time_in,
            TimesheetRecord.project == entry.project,
            TimesheetRecord.task_description == entry.task_description,
        )
        if exclude_id is not None:
            stmt = stmt.where(TimesheetRecord.id != exclude_id)

        with self._session_factory() as session:
            return session.scalar(stmt) > 0

    def get_duplicate_entries(self, start_date: Optional[str] = None,
                              end_date: Optional[str] = None) -> List[DuplicateGroup]:
        """
        List natural keys stored more than once, optionally within a date range.

        The unique index prevents new duplicates; this finds rows that predate it.
        """
        stmt = select(
            TimesheetRecord.date,
            TimesheetRecord.time_in,
            TimesheetRecord.project,
            TimesheetRecord.task_description,
            func.count().label('occurrences'),
            func.group_concat(TimesheetRecord.id).label('id_list'),
        )
        if start_date:
            stmt = stmt.where(TimesheetRecord.date >= start_date)
        if end_date:
            stmt = stmt.where(TimesheetRecord.date <= end_date)
        stmt = (
            stmt.group_by(*(getattr(TimesheetRecord, col) for col in NATURAL_KEY))
            .having(func.count() > 1)
            .order_by(TimesheetRecord.date, TimesheetRecord.time_in)
        )

        with self._session_factory() as session:
            rows = session.execute(stmt).all()

        return [
            DuplicateGroup(
                date=row.date,
                time_in=row.time_in,
                project=row.project,
                task_description=row.task_description,
                count=row.occurrences,
                ids=sorted(int(i) for i in str(row.id_list).split(',')),
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _fetch(self, stmt) -> List[TimesheetEntry]:
        with self._session_factory() as session:
            return [record.to_entry() for record in session.scalars(stmt)]

    def get_pending_entries(self, include_failed: bool = True) -> List[TimesheetEntry]:
        """
        Entries eligible for submission, oldest first.

        Failed entries stay eligible unless include_failed is False.
        """
        statuses = [EntryStatus.PENDING.value]
        if include_failed:
            statuses.append(EntryStatus.FAILED.value)
        stmt = (
            select(TimesheetRecord)
            .where(TimesheetRecord.status.in_(statuses))
            .order_by(TimesheetRecord.date, TimesheetRecord.time_in, TimesheetRecord.id)
        )
        return self._fetch(stmt)

    def get_submitted_entries(self) -> List[TimesheetEntry]:
        stmt = (
            select(TimesheetRecord)
            .where(TimesheetRecord.status == EntryStatus.SUBMITTED.value)
            .order_by(TimesheetRecord.date, TimesheetRecord.time_in, TimesheetRecord.id)
        )
        return self._fetch(stmt)

    def get_entries_by_ids(self, ids: Iterable[int]) -> List[TimesheetEntry]:
        ids = list(ids)
        if not ids:
            return []
        stmt = select(TimesheetRecord).where(TimesheetRecord.id.in_(ids)).order_by(TimesheetRecord.id)
        return self._fetch(stmt)

    def count_by_status(self) -> Dict[str, int]:
        """Number of entries per status (every status present, zero if none)."""
        counts = {status.value: 0 for status in EntryStatus}
        stmt = select(TimesheetRecord.status, func.count()).group_by(TimesheetRecord.status)
        with self._session_factory() as session:
            for status, count in session.execute(stmt):
                counts[status] = count
        return counts

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def _transition(self, ids: List[int], values: Dict) -> int:
        if not ids:
            return 0
        stmt = (
            update(TimesheetRecord.__table__)
            .where(
                TimesheetRecord.__table__.c.id.in_(ids),
                TimesheetRecord.__table__.c.status != EntryStatus.SUBMITTED.value,
            )
            .values(**values)
        )
        try:
            with self._engine.begin() as conn:
                updated = conn.execute(stmt).rowcount
                if updated != len(ids):
                    raise StatusUpdateMismatch(expected=len(ids), updated=updated)
        except IntegrityError as e:
            raise StoreError(f"Status update rejected: {_describe(e)}") from e
        return updated

    def mark_submitted(self, ids: Iterable[int]) -> int:
        """
        Mark pending or failed entries as submitted.

        Raises:
            StatusUpdateMismatch: If any id is unknown or already submitted;
                nothing is updated in that case
        """
        ids = list(dict.fromkeys(ids))
        return self._transition(ids, {
            'status': EntryStatus.SUBMITTED.value,
            'submitted_at': datetime.now().replace(microsecond=0),
            'last_error': None,
        })

    def mark_failed(self, ids: Iterable[int], reason: Optional[str] = None) -> int:
        """
        Mark pending or failed entries as failed, recording the reason.

        Failed entries remain eligible for the next run.

        Raises:
            StatusUpdateMismatch: If any id is unknown or already submitted
        """
        ids = list(dict.fromkeys(ids))
        return self._transition(ids, {
            'status': EntryStatus.FAILED.value,
            'last_error': reason,
        })

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_entries(self, ids: Iterable[int]) -> int:
        """Delete entries by id. Returns the number of rows removed."""
        ids = list(ids)
        if not ids:
            return 0
        with self._engine.begin() as conn:
            return conn.execute(
                delete(TimesheetRecord.__table__).where(TimesheetRecord.__table__.c.id.in_(ids))
            ).rowcount

    def reset(self) -> int:
        """Delete every entry (administrative wipe). Returns the number of rows removed."""
        with self._engine.begin() as conn:
            removed = conn.execute(delete(TimesheetRecord.__table__)).rowcount
        logger.info(f"Store reset: {removed} entries removed")
        return removed
