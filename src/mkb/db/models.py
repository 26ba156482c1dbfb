"""
mkb.db.models

Core persistence schema for the killboard.

Responsibilities:
- Define ORM models:
  - User: an authenticated EVE character and its SSO tokens
  - Killmail: a killmail reference (id + hash) and its processing status
  - Entity: a killmail participant (character, corporation, ship type, ...)
  - KillmailEntity: association of an entity to a killmail with a side label
"""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy import Uuid as SAUuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mkb.db.base import Base, generated_uuid


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class KillmailStatus(enum.StrEnum):
    pending = "pending"
    resolved = "resolved"
    failed = "failed"


class EntityType(enum.StrEnum):
    solar_system = "solar_system"
    character = "character"
    corporation = "corporation"
    alliance = "alliance"
    ship_type = "ship_type"
    weapon_type = "weapon_type"


class EntitySide(enum.StrEnum):
    victim = "victim"
    attacker = "attacker"
    location = "location"


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=generated_uuid(),
    )
    character_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)

    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )
    last_fetched: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"User(character_id={self.character_id}, expires_at={self.expires_at})"


class Killmail(Base):
    __tablename__ = "killmails"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=generated_uuid(),
    )
    killmail_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    killmail_hash: Mapped[str] = mapped_column(Text, nullable=False)
    # Stored as plain text; values come from KillmailStatus.
    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=KillmailStatus.pending.value,
        server_default=KillmailStatus.pending.value,
    )

    participants: Mapped[list[KillmailEntity]] = relationship(
        back_populates="killmail", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_killmails_status", "status"),)


class Entity(Base):
    __tablename__ = "entities"

    # ESI ids are globally unique across characters, corporations, types, systems.
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    type: Mapped[str] = mapped_column(Text, nullable=False)


class KillmailEntity(Base):
    __tablename__ = "killmails_x_entities"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=generated_uuid(),
    )
    killmail_id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), ForeignKey("killmails.id"), nullable=False, index=True
    )
    entity_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("entities.id"), nullable=False, index=True
    )
    entity_side: Mapped[str] = mapped_column(Text, nullable=False)

    killmail: Mapped[Killmail] = relationship(back_populates="participants")
    entity: Mapped[Entity] = relationship()

    __table_args__ = (
        UniqueConstraint(
            "killmail_id", "entity_id", "entity_side", name="uq_killmails_x_entities_link"
        ),
    )
