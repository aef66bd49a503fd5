"""SQLAlchemy ORM models for forms, fields, responses and answers."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from formbuilder.db.base import Base


JSONType = JSON().with_variant(JSONB(), "postgresql")


class Form(Base):
    """A form definition owned by the identity that created it."""

    __tablename__ = "forms"
    __table_args__ = (
        Index("idx_forms_owner", "created_by"),
        Index("idx_forms_published", "published"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    fields: Mapped[list["Field"]] = relationship(
        back_populates="form",
        cascade="all, delete-orphan",
        order_by="Field.order",
        foreign_keys="Field.form_id",
    )


class Field(Base):
    """A declared input slot on a form."""

    __tablename__ = "fields"
    __table_args__ = (
        UniqueConstraint("form_id", "order", name="uq_field_form_order"),
        Index("idx_fields_form", "form_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    form_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("forms.id", ondelete="CASCADE"), nullable=False
    )
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    options: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    linked_form_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("forms.id", ondelete="SET NULL"), nullable=True
    )

    form: Mapped["Form"] = relationship(back_populates="fields", foreign_keys=[form_id])


class Response(Base):
    """One submission of a form by a caller."""

    __tablename__ = "responses"
    __table_args__ = (
        Index("idx_responses_form", "form_id"),
        Index("idx_responses_submitter", "submitted_by"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    form_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("forms.id", ondelete="RESTRICT"), nullable=False
    )
    submitted_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    fields: Mapped[list["ResponseField"]] = relationship(
        back_populates="response",
        cascade="all, delete-orphan",
    )


class ResponseField(Base):
    """
    One answer linking a response to a field definition.

    An empty value with no file metadata means "answered empty", which is
    distinct from having no row at all ("never answered").
    """

    __tablename__ = "response_fields"
    __table_args__ = (
        UniqueConstraint("response_id", "field_id", name="uq_response_field"),
        Index("idx_response_fields_response", "response_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    response_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("responses.id", ondelete="CASCADE"), nullable=False
    )
    field_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("fields.id", ondelete="RESTRICT"), nullable=False
    )
    value: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # File metadata (absent for scalar answers)
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_path: Mapped[str | None] = mapped_column(String(512), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)

    response: Mapped["Response"] = relationship(back_populates="fields")
    field: Mapped["Field"] = relationship()

    def clear(self) -> None:
        """Reset to the "answered empty" state."""
        self.value = ""
        self.file_name = None
        self.file_path = None
        self.file_size = None
        self.mime_type = None
