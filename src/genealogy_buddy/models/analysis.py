"""Persisted results of AI tool invocations."""

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, ForeignKey, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from genealogy_buddy.models.base import Base, TimestampMixin

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Analysis(Base, TimestampMixin):
    """One successful tool invocation and the AI result it produced."""

    __tablename__ = "analyses"

    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    user_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    identity_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    feature_key: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        index=True,
    )
    input: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
    )
    result: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
    )
    model: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    input_tokens: Mapped[int | None] = mapped_column(nullable=True)
    output_tokens: Mapped[int | None] = mapped_column(nullable=True)
