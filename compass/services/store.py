"""Storage collaborator used by the provisioning engine.

A thin layer over a SQLAlchemy ``Session``: point lookup, equality-filtered
listing, insert and update. Every write commits on its own, so one failed
artifact never rolls back artifacts created earlier in the same run. Storage
failures surface as ``PersistenceError``; a primary-key or unique conflict
surfaces as ``DuplicateArtifactError`` so callers can treat it as
"already exists".
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from compass.db import Base
from compass.errors import PersistenceError
from compass.models import Form, Item

M = TypeVar("M", bound=Base)


class DuplicateArtifactError(PersistenceError):
    """The row already exists (deterministic id or unique key taken)."""


class RegistryStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, model: Type[M], ident: Any) -> Optional[M]:
        try:
            return self.db.get(model, ident)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load {model.__tablename__} {ident}: {exc}") from exc

    def list_by(self, model: Type[M], **equals: Any) -> List[M]:
        stmt = select(model)
        for column, value in equals.items():
            stmt = stmt.where(getattr(model, column) == value)
        try:
            return list(self.db.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to fetch {model.__tablename__}: {exc}") from exc

    def forms_for_bank(self, content_bank_id: str) -> List[Form]:
        return self.list_by(Form, content_bank_id=content_bank_id)

    def items_for_bank(self, content_bank_id: str) -> List[Item]:
        """Items reachable through a form that belongs to the bank."""

        stmt = (
            select(Item)
            .join(Form, Item.form_id == Form.form_id)
            .where(Form.content_bank_id == content_bank_id)
            .order_by(Item.form_id, Item.sequence_number)
        )
        try:
            return list(self.db.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to fetch items for bank {content_bank_id}: {exc}") from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def insert(self, obj: M) -> M:
        self.insert_many([obj])
        self.db.refresh(obj)
        return obj

    def insert_many(self, objs: Sequence[Base]) -> None:
        """Insert and commit ``objs`` together; all or nothing."""

        if not objs:
            return
        try:
            self.db.add_all(list(objs))
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateArtifactError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(str(exc)) from exc

    def update(self, obj: M, **changes: Any) -> M:
        for field, value in changes.items():
            setattr(obj, field, value)
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(str(exc)) from exc
        self.db.refresh(obj)
        return obj
