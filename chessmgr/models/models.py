from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from flask import current_app
from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from chessmgr.extensions import db, bcrypt
from chessmgr.utils import utcnow

INITIAL_RATING = 1500
MIN_RATING = 0
MAX_RATING = 4000


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class TimestampedBase(db.Model):
    """Abstract base providing id/created/updated columns."""

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UserRole(Enum):
    ADMIN = "admin"
    PLAYER = "player"


class TournamentStatus(Enum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    FINISHED = "finished"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TournamentStatus.FINISHED, TournamentStatus.CANCELLED)


class TournamentFormat(Enum):
    SWISS = "swiss"
    ROUND_ROBIN = "round_robin"
    ELIMINATION = "elimination"


class MatchResult(Enum):
    NOT_STARTED = "not_started"
    ONGOING = "ongoing"
    WHITE_WINS = "white_wins"
    BLACK_WINS = "black_wins"
    DRAW = "draw"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_RESULTS


TERMINAL_RESULTS = frozenset({MatchResult.WHITE_WINS, MatchResult.BLACK_WINS, MatchResult.DRAW})


class User(TimestampedBase):
    __tablename__ = "user"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SqlEnum(UserRole, name="user_role", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=UserRole.PLAYER,
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False, default=INITIAL_RATING)

    # Soft delete: anonymized rows stay so historical matches keep valid references
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime)
    original_name: Mapped[str | None] = mapped_column(String(255))

    inscriptions: Mapped[list["Inscription"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
    )
    created_tournaments: Mapped[list["Tournament"]] = relationship(back_populates="creator")

    def set_password(self, password: str) -> None:
        salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_LOG_ROUNDS", 12))
        self.password_hash = bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def check_password(self, password: str) -> bool:
        if not self.password_hash or self.is_deleted:
            return False
        try:
            return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))
        except ValueError:
            return False

    def has_role(self, *roles: UserRole | str) -> bool:
        role_value = self.role.value if isinstance(self.role, UserRole) else str(self.role)
        allowed = {r.value if isinstance(r, UserRole) else str(r) for r in roles}
        return role_value in allowed

    @property
    def is_admin(self) -> bool:
        return self.has_role(UserRole.ADMIN)

    @property
    def display_name(self) -> str:
        if self.is_deleted:
            return f"Deleted user #{self.id}"
        return self.name

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def is_active(self) -> bool:  # Flask-Login compatibility
        return not self.is_deleted

    @property
    def is_anonymous(self) -> bool:
        return False

    def get_id(self) -> str:
        return self.id


class Tournament(TimestampedBase):
    __tablename__ = "tournament"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(String(255))
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    registration_deadline: Mapped[datetime | None] = mapped_column(DateTime)
    max_participants: Mapped[int | None] = mapped_column(Integer)
    tournament_format: Mapped[TournamentFormat] = mapped_column(
        SqlEnum(TournamentFormat, name="tournament_format", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=TournamentFormat.SWISS,
    )
    total_rounds: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[TournamentStatus] = mapped_column(
        SqlEnum(TournamentStatus, name="tournament_status", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=TournamentStatus.UPCOMING,
        index=True,
    )
    created_by: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    creator: Mapped[User | None] = relationship(back_populates="created_tournaments")
    inscriptions: Mapped[list["Inscription"]] = relationship(
        back_populates="tournament",
        cascade="all, delete-orphan",
        order_by="Inscription.registration_date",
    )
    matches: Mapped[list["Match"]] = relationship(
        back_populates="tournament",
        cascade="all, delete-orphan",
        order_by="Match.round",
    )


class Inscription(TimestampedBase):
    __tablename__ = "inscription"
    __table_args__ = (
        UniqueConstraint("user_id", "tournament_id", name="uq_inscription_user_tournament"),
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournament.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    registration_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    user: Mapped[User] = relationship(back_populates="inscriptions")
    tournament: Mapped[Tournament] = relationship(back_populates="inscriptions")


class Match(TimestampedBase):
    __tablename__ = "match"
    __table_args__ = (
        Index("ix_match_tournament_round", "tournament_id", "round"),
    )

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournament.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    white_player_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id"),
        nullable=False,
        index=True,
    )
    black_player_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("user.id"),
        nullable=False,
        index=True,
    )
    round: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    result: Mapped[MatchResult] = mapped_column(
        SqlEnum(MatchResult, name="match_result", native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=MatchResult.NOT_STARTED,
    )

    tournament: Mapped[Tournament] = relationship(back_populates="matches")
    white_player: Mapped[User] = relationship(foreign_keys=[white_player_id])
    black_player: Mapped[User] = relationship(foreign_keys=[black_player_id])

    def involves(self, user_id: str) -> bool:
        return user_id in (self.white_player_id, self.black_player_id)


class AuditLog(TimestampedBase):
    __tablename__ = "audit_log"

    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("user.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(36))
    meta: Mapped[dict | None] = mapped_column(JSON)

    user: Mapped[User | None] = relationship()
