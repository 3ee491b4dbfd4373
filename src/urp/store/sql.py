"""SQLAlchemy-backed record store.

Maps the generic record model onto five tables and implements
``RecordStore`` on top of a SQLAlchemy 2.0 session factory:

    urp_entities            one row per Entity, keyed (org_id, id)
    urp_dynamic_fields      (org_id, entity_id, field_name) -> typed value columns
    urp_relationships       directed typed edges
    urp_transactions        transaction headers, keyed (org_id, id)
    urp_transaction_lines   lines, ordered by line_number

Every key and foreign key leads with ``org_id``, so two tenants may use
the same record ids without touching each other's rows.

Driver-level failures (``OperationalError``, pool ``TimeoutError``,
disconnects) are raised as ``StoreUnavailableError``; everything else
propagates unchanged.

Tags:
    store, orm, sqlalchemy, session, urp

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

import datetime
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKeyConstraint,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    event,
    or_,
    select,
)
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, relationship, selectinload, sessionmaker

from urp.core.errors import StoreUnavailableError
from urp.core.identifiers import matches_identifier
from urp.core.logging import get_logger
from urp.core.models import (
    DELETED_STATUS,
    DateRange,
    DynamicField,
    Entity,
    FieldType,
    Relationship,
    Transaction,
    TransactionLine,
    field_value,
    normalize_relationship_type,
)

logger = get_logger(__name__)

_AMOUNT = Numeric(18, 4, asdecimal=True)


class UrpBase(DeclarativeBase):
    """Declarative base for the record tables."""

    type_annotation_map = {
        str: Text,
        int: Integer,
        bool: Boolean,
        datetime.datetime: DateTime,
        datetime.date: Date,
        Decimal: _AMOUNT,
        dict: JSON,
    }


class EntityRow(UrpBase):
    __tablename__ = "urp_entities"
    __table_args__ = (UniqueConstraint("org_id", "type", "code", name="uq_urp_entities_org_type_code"),)

    org_id: Mapped[str] = mapped_column(Text, primary_key=True)
    id: Mapped[str] = mapped_column(Text, primary_key=True)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    code: Mapped[str] = mapped_column(Text, nullable=False)
    identifier_code: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(Text, default="active", nullable=False)
    created_at: Mapped[datetime.datetime | None] = mapped_column(DateTime)
    updated_at: Mapped[datetime.datetime | None] = mapped_column(DateTime)


class DynamicFieldRow(UrpBase):
    __tablename__ = "urp_dynamic_fields"
    __table_args__ = (
        ForeignKeyConstraint(
            ["org_id", "entity_id"], ["urp_entities.org_id", "urp_entities.id"], ondelete="CASCADE"
        ),
    )

    org_id: Mapped[str] = mapped_column(Text, primary_key=True)
    entity_id: Mapped[str] = mapped_column(Text, primary_key=True)
    field_name: Mapped[str] = mapped_column(Text, primary_key=True)
    field_type: Mapped[str] = mapped_column(Text, nullable=False)
    value_text: Mapped[str | None] = mapped_column(Text)
    value_number: Mapped[Decimal | None] = mapped_column(_AMOUNT)
    value_boolean: Mapped[bool | None] = mapped_column(Boolean)
    value_json: Mapped[Any | None] = mapped_column(JSON)
    identifier_code: Mapped[str] = mapped_column(Text, default="", nullable=False)


class RelationshipRow(UrpBase):
    __tablename__ = "urp_relationships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[str] = mapped_column(Text, index=True, nullable=False)
    from_entity_id: Mapped[str] = mapped_column(Text, nullable=False)
    to_entity_id: Mapped[str] = mapped_column(Text, nullable=False)
    relationship_type: Mapped[str] = mapped_column(Text, nullable=False)
    identifier_code: Mapped[str] = mapped_column(Text, default="", nullable=False)


class TransactionRow(UrpBase):
    __tablename__ = "urp_transactions"

    org_id: Mapped[str] = mapped_column(Text, primary_key=True)
    id: Mapped[str] = mapped_column(Text, primary_key=True)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    identifier_code: Mapped[str] = mapped_column(Text, default="", nullable=False)

    lines: Mapped[list[TransactionLineRow]] = relationship(
        "TransactionLineRow",
        order_by="TransactionLineRow.line_number",
        cascade="all, delete-orphan",
    )


class TransactionLineRow(UrpBase):
    __tablename__ = "urp_transaction_lines"
    __table_args__ = (
        ForeignKeyConstraint(
            ["org_id", "transaction_id"], ["urp_transactions.org_id", "urp_transactions.id"], ondelete="CASCADE"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[str] = mapped_column(Text, nullable=False)
    transaction_id: Mapped[str] = mapped_column(Text, nullable=False)
    line_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    entity_id: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(_AMOUNT, default=Decimal("0"), nullable=False)
    unit_amount: Mapped[Decimal] = mapped_column(_AMOUNT, default=Decimal("0"), nullable=False)
    line_amount: Mapped[Decimal] = mapped_column(_AMOUNT, nullable=False)
    line_metadata: Mapped[dict | None] = mapped_column("metadata", JSON)


def create_urp_engine(url: str = "sqlite:///urp.db", *, echo: bool = False, **kwargs: Any) -> Engine:
    """Create a SQLAlchemy engine; SQLite gets foreign keys enabled."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        engine = create_engine(url, echo=echo, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine
    return create_engine(url, echo=echo, **kwargs)


_UNAVAILABLE = (sa_exc.OperationalError, sa_exc.TimeoutError, sa_exc.InterfaceError, sa_exc.DisconnectionError)


class SqlRecordStore:
    """``RecordStore`` over SQLAlchemy.

    Example:
        engine = create_urp_engine("sqlite:///:memory:")
        store = SqlRecordStore(engine)
        store.create_schema()
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    def create_schema(self) -> None:
        UrpBase.metadata.create_all(self._engine)

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except _UNAVAILABLE as e:
            logger.warning("store_unavailable", operation=operation, error=str(e))
            raise StoreUnavailableError(f"Record store unavailable during {operation}", cause=e) from e

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def add_entity(self, entity: Entity) -> Entity:
        with self._session("add_entity") as session:
            session.merge(
                EntityRow(
                    id=entity.id,
                    org_id=entity.org_id,
                    type=entity.type,
                    name=entity.name,
                    code=entity.code,
                    identifier_code=entity.identifier_code,
                    status=entity.status,
                    created_at=entity.created_at,
                    updated_at=entity.updated_at,
                )
            )
            session.commit()
        return entity

    def set_dynamic_field(self, dynamic_field: DynamicField) -> DynamicField:
        raw = dynamic_field.value.raw
        kind = dynamic_field.field_type
        with self._session("set_dynamic_field") as session:
            owner = session.get(EntityRow, (dynamic_field.org_id, dynamic_field.entity_id))
            if owner is None:
                raise KeyError(
                    f"Entity {dynamic_field.entity_id!r} not found in org {dynamic_field.org_id!r}"
                )
            session.merge(
                DynamicFieldRow(
                    entity_id=dynamic_field.entity_id,
                    field_name=dynamic_field.field_name,
                    org_id=dynamic_field.org_id,
                    field_type=kind.value,
                    value_text=raw if kind is FieldType.TEXT else None,
                    value_number=raw if kind is FieldType.NUMBER else None,
                    value_boolean=raw if kind is FieldType.BOOLEAN else None,
                    value_json=raw if kind is FieldType.JSON else None,
                    identifier_code=dynamic_field.identifier_code,
                )
            )
            session.commit()
        return dynamic_field

    def add_relationship(self, relationship: Relationship) -> Relationship:
        rel_type = normalize_relationship_type(relationship.relationship_type)
        with self._session("add_relationship") as session:
            session.add(
                RelationshipRow(
                    org_id=relationship.org_id,
                    from_entity_id=relationship.from_entity_id,
                    to_entity_id=relationship.to_entity_id,
                    relationship_type=rel_type,
                    identifier_code=relationship.identifier_code,
                )
            )
            session.commit()
        return Relationship(
            relationship.from_entity_id,
            relationship.to_entity_id,
            relationship.org_id,
            rel_type,
            relationship.identifier_code,
        )

    def add_transaction(self, transaction: Transaction) -> Transaction:
        with self._session("add_transaction") as session:
            if session.get(TransactionRow, (transaction.org_id, transaction.id)) is not None:
                raise ValueError(f"Transaction {transaction.id!r} already exists; transactions are immutable")
            row = TransactionRow(
                id=transaction.id,
                org_id=transaction.org_id,
                type=transaction.type,
                date=transaction.date,
                identifier_code=transaction.identifier_code,
            )
            row.lines = [
                TransactionLineRow(
                    org_id=transaction.org_id,
                    line_number=line.line_number or index + 1,
                    entity_id=line.entity_id,
                    quantity=line.quantity,
                    unit_amount=line.unit_amount,
                    line_amount=line.line_amount,
                    line_metadata=dict(line.metadata) or None,
                )
                for index, line in enumerate(transaction.lines)
            ]
            session.add(row)
            session.commit()
        return transaction

    def delete_entity(self, org_id: str, entity_id: str, *, hard: bool = False) -> None:
        with self._session("delete_entity") as session:
            row = session.get(EntityRow, (org_id, entity_id))
            if row is None:
                return
            if not hard:
                row.status = DELETED_STATUS
            else:
                session.execute(
                    delete(DynamicFieldRow).where(
                        DynamicFieldRow.org_id == org_id, DynamicFieldRow.entity_id == entity_id
                    )
                )
                session.execute(
                    delete(RelationshipRow).where(
                        RelationshipRow.org_id == org_id,
                        or_(
                            RelationshipRow.from_entity_id == entity_id,
                            RelationshipRow.to_entity_id == entity_id,
                        ),
                    )
                )
                session.delete(row)
            session.commit()

    # ------------------------------------------------------------------ #
    # Reads (RecordStore protocol)
    # ------------------------------------------------------------------ #

    def list_entities(
        self,
        org_id: str,
        entity_type: str,
        identifier_pattern: str | None = None,
        include_dynamic: bool = False,
    ) -> list[Entity]:
        stmt = (
            select(EntityRow)
            .where(EntityRow.org_id == org_id, EntityRow.type == entity_type)
            .order_by(EntityRow.code, EntityRow.id)
        )
        with self._session("list_entities") as session:
            rows = [r for r in session.scalars(stmt) if matches_identifier(r.identifier_code, identifier_pattern)]
            fields: dict[str, list[DynamicField]] = {}
            if include_dynamic and rows:
                for f in self._fetch_fields(session, org_id, [r.id for r in rows], None):
                    fields.setdefault(f.entity_id, []).append(f)
        return [_entity_from_row(r, tuple(fields.get(r.id, ()))) for r in rows]

    def list_relationships(self, org_id: str, relationship_type: str) -> list[Relationship]:
        stmt = (
            select(RelationshipRow)
            .where(RelationshipRow.org_id == org_id, RelationshipRow.relationship_type == relationship_type)
            .order_by(RelationshipRow.id)
        )
        with self._session("list_relationships") as session:
            return [
                Relationship(r.from_entity_id, r.to_entity_id, r.org_id, r.relationship_type, r.identifier_code)
                for r in session.scalars(stmt)
            ]

    def list_transactions(
        self,
        org_id: str,
        transaction_type: str,
        identifier_pattern: str | None = None,
        date_range: DateRange | None = None,
    ) -> list[Transaction]:
        stmt = (
            select(TransactionRow)
            .options(selectinload(TransactionRow.lines))
            .where(TransactionRow.org_id == org_id, TransactionRow.type == transaction_type)
            .order_by(TransactionRow.date, TransactionRow.id)
        )
        if date_range is not None and date_range.start is not None:
            stmt = stmt.where(TransactionRow.date >= date_range.start)
        if date_range is not None and date_range.end is not None:
            stmt = stmt.where(TransactionRow.date <= date_range.end)
        with self._session("list_transactions") as session:
            return [
                _transaction_from_row(r)
                for r in session.scalars(stmt)
                if matches_identifier(r.identifier_code, identifier_pattern)
            ]

    def list_dynamic_fields(
        self,
        org_id: str,
        entity_ids: Sequence[str] | None = None,
        field_names: Sequence[str] | None = None,
    ) -> list[DynamicField]:
        with self._session("list_dynamic_fields") as session:
            return self._fetch_fields(session, org_id, entity_ids, field_names)

    def _fetch_fields(
        self,
        session: Session,
        org_id: str,
        entity_ids: Sequence[str] | None,
        field_names: Sequence[str] | None,
    ) -> list[DynamicField]:
        stmt = (
            select(DynamicFieldRow)
            .where(DynamicFieldRow.org_id == org_id)
            .order_by(DynamicFieldRow.entity_id, DynamicFieldRow.field_name)
        )
        if entity_ids is not None:
            stmt = stmt.where(DynamicFieldRow.entity_id.in_(list(entity_ids)))
        if field_names is not None:
            stmt = stmt.where(DynamicFieldRow.field_name.in_(list(field_names)))
        return [_field_from_row(r) for r in session.scalars(stmt)]


def _entity_from_row(row: EntityRow, fields: tuple[DynamicField, ...]) -> Entity:
    return Entity(
        id=row.id,
        org_id=row.org_id,
        type=row.type,
        name=row.name,
        code=row.code,
        identifier_code=row.identifier_code,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
        dynamic_fields=fields,
    )


def _field_from_row(row: DynamicFieldRow) -> DynamicField:
    kind = FieldType(row.field_type)
    raw = {
        FieldType.TEXT: row.value_text,
        FieldType.NUMBER: row.value_number,
        FieldType.BOOLEAN: row.value_boolean,
        FieldType.JSON: row.value_json,
    }[kind]
    return DynamicField(
        entity_id=row.entity_id,
        org_id=row.org_id,
        field_name=row.field_name,
        value=field_value(kind, raw),
        identifier_code=row.identifier_code,
    )


def _transaction_from_row(row: TransactionRow) -> Transaction:
    return Transaction(
        id=row.id,
        org_id=row.org_id,
        type=row.type,
        date=row.date,
        identifier_code=row.identifier_code,
        lines=tuple(
            TransactionLine(
                entity_id=line.entity_id,
                line_amount=Decimal(line.line_amount),
                quantity=Decimal(line.quantity),
                unit_amount=Decimal(line.unit_amount),
                line_number=line.line_number,
                metadata=dict(line.line_metadata or {}),
            )
            for line in row.lines
        ),
    )
