"""
SQLAlchemy-backed datastore.

Three tables mirror the scheduler's records: team_members, meetings and
available_slots. Blocking database work runs in a worker thread via
``asyncio.to_thread`` so the event loop keeps serving other requests.

The claim is a conditional UPDATE keyed on ``status = 'pending'``; the
affected row count decides the winner. The load increment runs in the
same transaction and the whole unit rolls back if the member is missing
or inactive.
"""

import asyncio
import logging
import uuid
from datetime import datetime, time
from typing import Callable, Optional, TypeVar

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    create_engine,
    event,
    select,
    update,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from team_scheduler.errors import (
    AlreadyAssignedError,
    DatastoreError,
    DuplicateEmailError,
    NotFoundError,
)
from team_scheduler.schemas.meeting_schema import Meeting, MeetingStatus
from team_scheduler.schemas.slot_schema import SlotTemplateEntry
from team_scheduler.schemas.team_schema import CalendarCredential, TeamMember
from team_scheduler.storage.base import DEFAULT_SLOT_TEMPLATE
from team_scheduler.utils import ensure_utc, normalize_email, utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class TeamMemberRow(Base):
    __tablename__ = "team_members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    load: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    calendar_sync_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    access_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    calendar_id: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    credential_valid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)


class MeetingRow(Base):
    __tablename__ = "meetings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(320), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start: Mapped[datetime] = mapped_column(nullable=False, index=True)
    end: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=MeetingStatus.PENDING.value, nullable=False, index=True
    )
    assigned_to: Mapped[Optional[str]] = mapped_column(
        ForeignKey("team_members.id"), nullable=True
    )
    external_event_id: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)


class SlotTemplateRow(Base):
    __tablename__ = "available_slots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


def _member_from_row(row: TeamMemberRow) -> TeamMember:
    credential = None
    if row.access_token:
        credential = CalendarCredential(
            access_token=row.access_token,
            refresh_token=row.refresh_token,
            calendar_id=row.calendar_id or "primary",
            valid=row.credential_valid,
        )
    return TeamMember(
        id=row.id,
        name=row.name,
        email=row.email,
        is_active=row.is_active,
        load=row.load,
        credential=credential,
        calendar_sync_enabled=row.calendar_sync_enabled,
        created_at=ensure_utc(row.created_at),
    )


def _meeting_from_row(row: MeetingRow) -> Meeting:
    return Meeting(
        id=row.id,
        customer_name=row.customer_name,
        customer_email=row.customer_email,
        title=row.title,
        description=row.description,
        start=ensure_utc(row.start),
        end=ensure_utc(row.end),
        status=MeetingStatus(row.status),
        assigned_to=row.assigned_to,
        external_event_id=row.external_event_id,
        created_at=ensure_utc(row.created_at),
    )


def _entry_from_row(row: SlotTemplateRow) -> SlotTemplateEntry:
    return SlotTemplateEntry(
        id=row.id,
        day_of_week=row.day_of_week,
        start_time=row.start_time,
        end_time=row.end_time,
        duration_minutes=row.duration_minutes,
        is_active=row.is_active,
    )


def _use_immediate_transactions(engine: Engine) -> None:
    """Make SQLite take the write lock when a transaction starts.

    pysqlite otherwise defers locking until the first write, and two
    writers upgrading from a shared lock at once fail with "database is
    locked" instead of waiting their turn.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class SqlDatastore:
    """``Datastore`` on any SQLAlchemy-supported database (SQLite by default)."""

    def __init__(self, url: str, echo: bool = False, create_schema: bool = True) -> None:
        is_sqlite = make_url(url).get_backend_name() == "sqlite"
        connect_args = {"check_same_thread": False} if is_sqlite else {}
        self.engine = create_engine(
            url, echo=echo, pool_pre_ping=True, connect_args=connect_args
        )
        if is_sqlite:
            _use_immediate_transactions(self.engine)
        self._session_factory = sessionmaker(
            bind=self.engine, autoflush=False, expire_on_commit=False
        )
        if create_schema:
            Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    async def _run(self, work: Callable[[Session], T]) -> T:
        """Run ``work`` in its own transaction on a worker thread."""

        def _call() -> T:
            with self._session_factory() as session:
                try:
                    with session.begin():
                        return work(session)
                except SQLAlchemyError as exc:
                    raise DatastoreError(str(exc)) from exc

        return await asyncio.to_thread(_call)

    # ------------------------------------------------------------------ #
    # Team members
    # ------------------------------------------------------------------ #

    async def list_active_team_members(self) -> list[TeamMember]:
        def work(session: Session) -> list[TeamMember]:
            rows = session.scalars(
                select(TeamMemberRow)
                .where(TeamMemberRow.is_active.is_(True))
                .order_by(TeamMemberRow.load, TeamMemberRow.id)
            )
            return [_member_from_row(r) for r in rows]

        return await self._run(work)

    async def list_active_team_members_with_calendar(self) -> list[TeamMember]:
        def work(session: Session) -> list[TeamMember]:
            rows = session.scalars(
                select(TeamMemberRow)
                .where(
                    TeamMemberRow.is_active.is_(True),
                    TeamMemberRow.calendar_sync_enabled.is_(True),
                    TeamMemberRow.credential_valid.is_(True),
                    TeamMemberRow.access_token.is_not(None),
                )
                .order_by(TeamMemberRow.load, TeamMemberRow.id)
            )
            return [_member_from_row(r) for r in rows]

        return await self._run(work)

    async def get_team_member(self, member_id: str) -> Optional[TeamMember]:
        def work(session: Session) -> Optional[TeamMember]:
            row = session.get(TeamMemberRow, member_id)
            return _member_from_row(row) if row else None

        return await self._run(work)

    async def add_team_member(self, name: str, email: str) -> TeamMember:
        email = normalize_email(email)

        def work(session: Session) -> TeamMember:
            existing = session.scalar(select(TeamMemberRow).where(TeamMemberRow.email == email))
            if existing is not None:
                raise DuplicateEmailError(email)
            row = TeamMemberRow(
                id=str(uuid.uuid4()),
                name=name,
                email=email,
                is_active=True,
                load=0,
                calendar_sync_enabled=False,
                credential_valid=False,
                created_at=utcnow(),
            )
            session.add(row)
            session.flush()
            return _member_from_row(row)

        try:
            member = await self._run(work)
        except DatastoreError as exc:
            # Lost a race on the unique email index.
            if isinstance(exc.__cause__, IntegrityError):
                raise DuplicateEmailError(email) from exc
            raise
        logger.info("Team member added: %s (%s)", member.id, email)
        return member

    async def set_team_member_active(self, member_id: str, active: bool) -> TeamMember:
        def work(session: Session) -> TeamMember:
            row = session.get(TeamMemberRow, member_id)
            if row is None:
                raise NotFoundError("team member", member_id)
            row.is_active = active
            session.flush()
            return _member_from_row(row)

        return await self._run(work)

    async def set_calendar_credential(
        self, member_id: str, credential: Optional[CalendarCredential]
    ) -> TeamMember:
        def work(session: Session) -> TeamMember:
            row = session.get(TeamMemberRow, member_id)
            if row is None:
                raise NotFoundError("team member", member_id)
            row.access_token = credential.access_token if credential else None
            row.refresh_token = credential.refresh_token if credential else None
            row.calendar_id = credential.calendar_id if credential else None
            row.credential_valid = credential.valid if credential else False
            row.calendar_sync_enabled = credential is not None
            session.flush()
            return _member_from_row(row)

        return await self._run(work)

    async def mark_credential_invalid(self, member_id: str) -> None:
        def work(session: Session) -> None:
            session.execute(
                update(TeamMemberRow)
                .where(TeamMemberRow.id == member_id)
                .values(credential_valid=False)
            )

        await self._run(work)

    # ------------------------------------------------------------------ #
    # Meetings
    # ------------------------------------------------------------------ #

    async def create_meeting(self, meeting: Meeting) -> Meeting:
        def work(session: Session) -> Meeting:
            session.add(
                MeetingRow(
                    id=meeting.id,
                    customer_name=meeting.customer_name,
                    customer_email=meeting.customer_email,
                    title=meeting.title,
                    description=meeting.description,
                    start=ensure_utc(meeting.start),
                    end=ensure_utc(meeting.end),
                    status=meeting.status.value,
                    assigned_to=meeting.assigned_to,
                    external_event_id=meeting.external_event_id,
                    created_at=ensure_utc(meeting.created_at),
                )
            )
            return meeting

        return await self._run(work)

    async def get_meeting(self, meeting_id: str) -> Optional[Meeting]:
        def work(session: Session) -> Optional[Meeting]:
            row = session.get(MeetingRow, meeting_id)
            return _meeting_from_row(row) if row else None

        return await self._run(work)

    async def list_pending_meetings(self) -> list[Meeting]:
        def work(session: Session) -> list[Meeting]:
            rows = session.scalars(
                select(MeetingRow)
                .where(MeetingRow.status == MeetingStatus.PENDING.value)
                .order_by(MeetingRow.start)
            )
            return [_meeting_from_row(r) for r in rows]

        return await self._run(work)

    async def claim_meeting(
        self, meeting_id: str, member_id: str
    ) -> tuple[Meeting, TeamMember]:
        def work(session: Session) -> tuple[Meeting, TeamMember]:
            claimed = session.execute(
                update(MeetingRow)
                .where(
                    MeetingRow.id == meeting_id,
                    MeetingRow.status == MeetingStatus.PENDING.value,
                )
                .values(status=MeetingStatus.ASSIGNED.value, assigned_to=member_id)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount == 0:
                current = session.get(MeetingRow, meeting_id)
                if current is None:
                    raise NotFoundError("meeting", meeting_id)
                raise AlreadyAssignedError(meeting_id, current.assigned_to)

            bumped = session.execute(
                update(TeamMemberRow)
                .where(TeamMemberRow.id == member_id, TeamMemberRow.is_active.is_(True))
                .values(load=TeamMemberRow.load + 1)
                .execution_options(synchronize_session=False)
            )
            if bumped.rowcount == 0:
                # Raising inside session.begin() rolls the meeting update back.
                raise NotFoundError("team member", member_id)

            meeting = session.get(MeetingRow, meeting_id, populate_existing=True)
            member = session.get(TeamMemberRow, member_id, populate_existing=True)
            return _meeting_from_row(meeting), _member_from_row(member)

        return await self._run(work)

    async def set_external_event_id(self, meeting_id: str, event_id: str) -> None:
        def work(session: Session) -> None:
            result = session.execute(
                update(MeetingRow)
                .where(MeetingRow.id == meeting_id)
                .values(external_event_id=event_id)
            )
            if result.rowcount == 0:
                raise NotFoundError("meeting", meeting_id)

        await self._run(work)

    # ------------------------------------------------------------------ #
    # Slot template
    # ------------------------------------------------------------------ #

    async def list_active_slot_template_entries(self) -> list[SlotTemplateEntry]:
        def work(session: Session) -> list[SlotTemplateEntry]:
            rows = session.scalars(
                select(SlotTemplateRow)
                .where(SlotTemplateRow.is_active.is_(True))
                .order_by(SlotTemplateRow.day_of_week, SlotTemplateRow.start_time)
            )
            return [_entry_from_row(r) for r in rows]

        return await self._run(work)

    async def add_slot_template_entry(self, entry: SlotTemplateEntry) -> SlotTemplateEntry:
        def work(session: Session) -> SlotTemplateEntry:
            row = SlotTemplateRow(
                id=entry.id or str(uuid.uuid4()),
                day_of_week=entry.day_of_week,
                start_time=entry.start_time,
                end_time=entry.end_time,
                duration_minutes=entry.duration_minutes,
                is_active=entry.is_active,
            )
            session.add(row)
            session.flush()
            return _entry_from_row(row)

        return await self._run(work)

    async def seed_default_slot_template(self) -> int:
        def work(session: Session) -> int:
            if session.scalar(select(SlotTemplateRow.id).limit(1)) is not None:
                return 0
            for entry in DEFAULT_SLOT_TEMPLATE:
                session.add(
                    SlotTemplateRow(
                        id=str(uuid.uuid4()),
                        day_of_week=entry.day_of_week,
                        start_time=entry.start_time,
                        end_time=entry.end_time,
                        duration_minutes=entry.duration_minutes,
                        is_active=True,
                    )
                )
            return len(DEFAULT_SLOT_TEMPLATE)

        added = await self._run(work)
        if added:
            logger.info("Seeded %d default slot template entries", added)
        return added
