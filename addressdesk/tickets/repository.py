from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol, Sequence

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from addressdesk.db.models import StaffTable, TicketHistoryTable, TicketTable

from .errors import ConflictError, DuplicateTicketNumberError, NotFoundError, StorageError
from .models import (
    County,
    HistoryEntry,
    PremiseType,
    RequestType,
    StaffMember,
    Ticket,
    TicketFilter,
    TicketIntake,
    TicketMutation,
)
from .state import Department, StaffRole, TicketPriority, TicketStatus, WorkflowStage

logger = logging.getLogger(__name__)

_INTAKE_COLUMNS = (
    "first_name",
    "last_name",
    "email",
    "mobile_phone",
    "landline_phone",
    "existing_address",
    "additional_info",
    "property_id",
    "street_name",
    "closest_intersection",
    "subdivision",
    "lot_number",
    "x_coordinate",
    "y_coordinate",
)


class TicketRepository(Protocol):
    """Document store for tickets with single-document atomic updates."""

    async def ensure_schema(self) -> None:
        ...

    async def load(self, ticket_id: str) -> Ticket | None:
        ...

    async def insert(self, ticket: Ticket) -> Ticket:
        """Persist a new ticket, assigning its id and initial version."""

    async def atomic_update(self, ticket_id: str, expected_version: int, mutation: TicketMutation) -> Ticket:
        """Apply ``mutation`` only if the stored version equals ``expected_version``."""

    async def find(self, query: TicketFilter) -> Sequence[Ticket]:
        ...


class StaffDirectory(Protocol):
    """Staff records consulted for assignment and maintained by admins."""

    async def find_available(
        self,
        department: Department,
        role: StaffRole | None = None,
        exclude_ids: Iterable[str] = (),
    ) -> Sequence[StaffMember]:
        ...

    async def get(self, staff_id: str) -> StaffMember | None:
        ...

    async def list_staff(self) -> Sequence[StaffMember]:
        ...

    async def save(self, staff: StaffMember) -> StaffMember:
        """Insert or replace ``staff``; e-mail addresses are unique."""


class SQLTicketRepository:
    """Persistence for tickets and their history on top of async SQLAlchemy."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    async def load(self, ticket_id: str) -> Ticket | None:
        try:
            async with self._session_factory() as session:
                return await self._load_in_session(session, ticket_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load ticket {ticket_id}") from exc

    async def insert(self, ticket: Ticket) -> Ticket:
        stored = replace(ticket, id=ticket.id or str(uuid.uuid4()), version=1)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(self._ticket_to_row(stored))
                    await session.flush()
                    for position, entry in enumerate(stored.history):
                        session.add(self._entry_to_row(stored.id, position, entry))
        except IntegrityError as exc:
            if "ticket_number" in str(exc.orig):
                raise DuplicateTicketNumberError(
                    f"Ticket number {stored.ticket_number} is already in use"
                ) from exc
            raise StorageError(f"Failed to insert ticket {stored.ticket_number}") from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to insert ticket {stored.ticket_number}") from exc
        return stored

    async def atomic_update(self, ticket_id: str, expected_version: int, mutation: TicketMutation) -> Ticket:
        values = {key: _to_column(value) for key, value in mutation.changes.items()}
        values["updated_at"] = _to_utc(mutation.updated_at)
        values["version"] = expected_version + 1
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        update(TicketTable)
                        .where(TicketTable.id == ticket_id, TicketTable.version == expected_version)
                        .values(**values)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 0:
                        if await session.get(TicketTable, ticket_id) is None:
                            raise NotFoundError(f"Ticket {ticket_id} not found")
                        logger.info("Version conflict on ticket %s at version %s", ticket_id, expected_version)
                        raise ConflictError(
                            f"Ticket {ticket_id} was modified concurrently (expected version {expected_version})"
                        )
                    if mutation.entry is not None:
                        position = await session.scalar(
                            select(func.count())
                            .select_from(TicketHistoryTable)
                            .where(TicketHistoryTable.ticket_id == ticket_id)
                        )
                        session.add(self._entry_to_row(ticket_id, int(position or 0), mutation.entry))
                        await session.flush()
                    updated = await self._load_in_session(session, ticket_id)
        except IntegrityError as exc:
            # Two writers raced for the same history position.
            raise ConflictError(f"Ticket {ticket_id} was modified concurrently") from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to update ticket {ticket_id}") from exc
        if updated is None:  # pragma: no cover - row was updated inside the transaction
            raise NotFoundError(f"Ticket {ticket_id} not found")
        return updated

    async def find(self, query: TicketFilter) -> Sequence[Ticket]:
        statement = select(TicketTable)
        if query.status is not None:
            statement = statement.where(TicketTable.status == query.status.value)
        if query.priority is not None:
            statement = statement.where(TicketTable.priority == query.priority.value)
        if query.assigned_to is not None:
            statement = statement.where(TicketTable.assigned_to == query.assigned_to)
        if query.workflow_stage is not None:
            statement = statement.where(TicketTable.workflow_stage == query.workflow_stage.value)
        if query.exclude_statuses:
            statement = statement.where(
                TicketTable.status.not_in([status.value for status in query.exclude_statuses])
            )
        if query.has_due_date is True:
            statement = statement.where(TicketTable.due_date.is_not(None))
        elif query.has_due_date is False:
            statement = statement.where(TicketTable.due_date.is_(None))
        if query.signature_token is not None:
            statement = statement.where(TicketTable.signature_token == query.signature_token)
        if query.property_id is not None:
            statement = statement.where(TicketTable.property_id == query.property_id)
        if query.exclude_id is not None:
            statement = statement.where(TicketTable.id != query.exclude_id)
        statement = statement.order_by(TicketTable.created_at.desc())

        try:
            async with self._session_factory() as session:
                rows = (await session.execute(statement)).scalars().all()
                histories = await self._load_histories(session, [row.id for row in rows])
        except SQLAlchemyError as exc:
            raise StorageError("Failed to query tickets") from exc
        return [self._row_to_ticket(row, histories.get(row.id, [])) for row in rows]

    async def _load_in_session(self, session: AsyncSession, ticket_id: str) -> Ticket | None:
        row = await session.get(TicketTable, ticket_id, populate_existing=True)
        if row is None:
            return None
        histories = await self._load_histories(session, [ticket_id])
        return self._row_to_ticket(row, histories.get(ticket_id, []))

    async def _load_histories(
        self, session: AsyncSession, ticket_ids: Sequence[str]
    ) -> dict[str, list[TicketHistoryTable]]:
        if not ticket_ids:
            return {}
        result = await session.execute(
            select(TicketHistoryTable)
            .where(TicketHistoryTable.ticket_id.in_(ticket_ids))
            .order_by(TicketHistoryTable.ticket_id, TicketHistoryTable.position.asc())
        )
        grouped: dict[str, list[TicketHistoryTable]] = {}
        for row in result.scalars().all():
            grouped.setdefault(row.ticket_id, []).append(row)
        return grouped

    @staticmethod
    def _ticket_to_row(ticket: Ticket) -> TicketTable:
        intake = ticket.intake
        return TicketTable(
            id=ticket.id,
            ticket_number=ticket.ticket_number,
            version=ticket.version,
            status=ticket.status.value,
            workflow_stage=ticket.workflow_stage.value,
            priority=ticket.priority.value,
            assigned_to=ticket.assigned_to,
            address_created=ticket.address_created,
            address_verified=ticket.address_verified,
            approved_address=ticket.approved_address,
            verification_note=ticket.verification_note,
            created_by=ticket.created_by,
            created_at=_to_utc(ticket.created_at),
            updated_at=_to_utc(ticket.updated_at),
            due_date=_to_utc(ticket.due_date),
            time_to_resolve=ticket.time_to_resolve,
            request_type=intake.request_type.value,
            premise_type=intake.premise_type.value,
            county=intake.county.value,
            signature_token=ticket.signature_token,
            signature_requested=ticket.signature_requested,
            signature_requested_at=_to_utc(ticket.signature_requested_at),
            signature_requested_by=ticket.signature_requested_by,
            signature_completed=ticket.signature_completed,
            signature_completed_at=_to_utc(ticket.signature_completed_at),
            address_letter_path=ticket.address_letter_path,
            **{column: getattr(intake, column) for column in _INTAKE_COLUMNS},
        )

    @staticmethod
    def _entry_to_row(ticket_id: str, position: int, entry: HistoryEntry) -> TicketHistoryTable:
        return TicketHistoryTable(
            ticket_id=ticket_id,
            position=position,
            workflow_stage=entry.workflow_stage.value,
            status=entry.status.value,
            assigned_to=entry.assigned_to,
            notes=entry.notes,
            action_by=entry.action_by,
            timestamp=_to_utc(entry.timestamp),
        )

    @staticmethod
    def _row_to_ticket(row: TicketTable, history_rows: Sequence[TicketHistoryTable]) -> Ticket:
        intake = TicketIntake(
            request_type=RequestType(row.request_type),
            premise_type=PremiseType(row.premise_type),
            county=County(row.county),
            **{column: getattr(row, column) for column in _INTAKE_COLUMNS},
        )
        history = tuple(
            HistoryEntry(
                workflow_stage=WorkflowStage(entry.workflow_stage),
                status=TicketStatus(entry.status),
                assigned_to=entry.assigned_to,
                notes=entry.notes,
                action_by=entry.action_by,
                timestamp=_ensure_datetime(entry.timestamp),
            )
            for entry in history_rows
        )
        return Ticket(
            id=row.id,
            ticket_number=row.ticket_number,
            intake=intake,
            status=TicketStatus(row.status),
            workflow_stage=WorkflowStage(row.workflow_stage),
            priority=TicketPriority(row.priority),
            created_by=row.created_by,
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
            due_date=_optional_datetime(row.due_date),
            time_to_resolve=row.time_to_resolve,
            assigned_to=row.assigned_to,
            address_created=bool(row.address_created),
            address_verified=bool(row.address_verified),
            approved_address=row.approved_address,
            verification_note=row.verification_note,
            signature_token=row.signature_token,
            signature_requested=bool(row.signature_requested),
            signature_requested_at=_optional_datetime(row.signature_requested_at),
            signature_requested_by=row.signature_requested_by,
            signature_completed=bool(row.signature_completed),
            signature_completed_at=_optional_datetime(row.signature_completed_at),
            address_letter_path=row.address_letter_path,
            history=history,
            version=row.version,
        )


class SQLStaffDirectory:
    """Staff lookups backed by the ``staff`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_available(
        self,
        department: Department,
        role: StaffRole | None = None,
        exclude_ids: Iterable[str] = (),
    ) -> Sequence[StaffMember]:
        statement = select(StaffTable).where(
            StaffTable.department == department.value,
            StaffTable.is_available_for_assignment.is_(True),
        )
        if role is not None:
            statement = statement.where(StaffTable.role == role.value)
        excluded = list(exclude_ids)
        if excluded:
            statement = statement.where(StaffTable.id.not_in(excluded))
        statement = statement.order_by(StaffTable.name)
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(statement)).scalars().all()
        except SQLAlchemyError as exc:
            raise StorageError("Failed to query staff") from exc
        return [self._row_to_staff(row) for row in rows]

    async def get(self, staff_id: str) -> StaffMember | None:
        try:
            async with self._session_factory() as session:
                row = await session.get(StaffTable, staff_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load staff member {staff_id}") from exc
        return None if row is None else self._row_to_staff(row)

    async def list_staff(self) -> Sequence[StaffMember]:
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(select(StaffTable).order_by(StaffTable.name))).scalars().all()
        except SQLAlchemyError as exc:
            raise StorageError("Failed to query staff") from exc
        return [self._row_to_staff(row) for row in rows]

    async def save(self, staff: StaffMember) -> StaffMember:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.merge(
                        StaffTable(
                            id=staff.id,
                            name=staff.name,
                            email=staff.email,
                            department=staff.department.value,
                            role=staff.role.value,
                            is_available_for_assignment=staff.is_available_for_assignment,
                        )
                    )
        except IntegrityError as exc:
            raise ConflictError(f"Staff e-mail {staff.email} is already in use") from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to save staff member {staff.id}") from exc
        return staff

    @staticmethod
    def _row_to_staff(row: StaffTable) -> StaffMember:
        return StaffMember(
            id=row.id,
            name=row.name,
            email=row.email,
            department=Department(row.department),
            role=StaffRole(row.role),
            is_available_for_assignment=bool(row.is_available_for_assignment),
        )


def _to_column(value: Any) -> Any:
    if isinstance(value, (TicketStatus, WorkflowStage, TicketPriority)):
        return value.value
    if isinstance(value, datetime):
        return _to_utc(value)
    return value


def _to_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _optional_datetime(value: datetime | None) -> datetime | None:
    return None if value is None else _ensure_datetime(value)


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")
