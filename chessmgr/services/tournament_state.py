"""Tournament lifecycle rules: legal transitions, edit guards, finish criteria."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Sequence

from chessmgr.models import Match, Tournament, TournamentFormat, TournamentStatus
from chessmgr.services.errors import PreconditionError

# upcoming -> ongoing -> finished; cancelled from upcoming/ongoing only
TRANSITIONS: dict[TournamentStatus, frozenset[TournamentStatus]] = {
    TournamentStatus.UPCOMING: frozenset({TournamentStatus.ONGOING, TournamentStatus.CANCELLED}),
    TournamentStatus.ONGOING: frozenset({TournamentStatus.FINISHED, TournamentStatus.CANCELLED}),
    TournamentStatus.FINISHED: frozenset(),
    TournamentStatus.CANCELLED: frozenset(),
}

ONGOING_EDITABLE_FIELDS = frozenset({'description', 'end_date'})

EDITABLE_FIELDS = frozenset({
    'name',
    'description',
    'location',
    'start_date',
    'end_date',
    'registration_deadline',
    'max_participants',
    'tournament_format',
    'total_rounds',
})


def can_transition(current: TournamentStatus, target: TournamentStatus) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(current: TournamentStatus, target: TournamentStatus) -> None:
    """Raise PreconditionError unless ``current -> target`` is a legal transition."""
    if current.is_terminal:
        raise PreconditionError(
            f"Tournament is {current.value}; its status can no longer change"
        )
    if not can_transition(current, target):
        raise PreconditionError(
            f"Cannot change tournament status from '{current.value}' to '{target.value}'"
        )


def validate_dates(
    start_date: datetime,
    end_date: datetime,
    registration_deadline: datetime | None,
) -> None:
    if start_date >= end_date:
        raise PreconditionError("Start date must be before end date")
    if registration_deadline is not None and registration_deadline >= start_date:
        raise PreconditionError("Registration deadline must be before start date")


def validate_update(
    tournament: Tournament,
    changes: Mapping[str, Any],
    inscription_count: int,
) -> None:
    """
    Check field changes against the restrictions of the tournament's status.

    Args:
        tournament: Tournament as currently stored
        changes: Field name -> new value (already parsed to model types)
        inscription_count: Current number of inscriptions

    Raises:
        PreconditionError: If any change is not allowed
    """
    unknown = sorted(set(changes) - EDITABLE_FIELDS)
    if unknown:
        raise PreconditionError(f"These fields cannot be edited: {', '.join(unknown)}")

    status = tournament.status
    if status in (TournamentStatus.FINISHED, TournamentStatus.CANCELLED):
        raise PreconditionError("A finished or cancelled tournament cannot be modified")

    if status is TournamentStatus.ONGOING:
        invalid = sorted(set(changes) - ONGOING_EDITABLE_FIELDS)
        if invalid:
            raise PreconditionError(
                f"These fields cannot be modified while the tournament is ongoing: "
                f"{', '.join(invalid)}. Only the description and end date may change."
            )
        new_end = changes.get('end_date')
        if new_end is not None and new_end < tournament.end_date:
            raise PreconditionError(
                "The end date of an ongoing tournament can only be extended, not shortened"
            )

    elif status is TournamentStatus.UPCOMING and inscription_count > 0:
        new_format = changes.get('tournament_format')
        if new_format is not None and new_format is not tournament.tournament_format:
            raise PreconditionError(
                "The tournament format cannot change once players have registered"
            )
        new_max = changes.get('max_participants')
        if new_max is not None and new_max < inscription_count:
            raise PreconditionError(
                f"Max participants cannot be lowered to {new_max}: "
                f"{inscription_count} players are already registered"
            )

    validate_dates(
        changes.get('start_date') or tournament.start_date,
        changes.get('end_date') or tournament.end_date,
        changes['registration_deadline'] if 'registration_deadline' in changes
        else tournament.registration_deadline,
    )


def should_finish(tournament: Tournament, matches: Sequence[Match], now: datetime) -> bool:
    """
    Scheduler finish criteria for an ongoing tournament.

    True when the end date has passed, or when at least one match exists, every
    match is terminal and (no round count is configured or the highest played
    round reached it).
    """
    if tournament.status is not TournamentStatus.ONGOING:
        return False

    if now >= tournament.end_date:
        return True

    if not matches:
        return False

    if not all(match.result.is_terminal for match in matches):
        return False

    if tournament.total_rounds:
        max_round = max(match.round for match in matches)
        if max_round < tournament.total_rounds:
            return False

    return True


def coerce_format(value: Any) -> TournamentFormat:
    if isinstance(value, TournamentFormat):
        return value
    try:
        return TournamentFormat(value)
    except ValueError:
        raise PreconditionError(
            f"Invalid tournament format '{value}'. Must be one of: "
            f"{', '.join(f.value for f in TournamentFormat)}"
        ) from None


def coerce_status(value: Any) -> TournamentStatus:
    if isinstance(value, TournamentStatus):
        return value
    try:
        return TournamentStatus(value)
    except ValueError:
        raise PreconditionError(
            f"Invalid tournament status '{value}'. Must be one of: "
            f"{', '.join(s.value for s in TournamentStatus)}"
        ) from None


__all__ = [
    "TRANSITIONS",
    "can_transition",
    "ensure_transition",
    "validate_dates",
    "validate_update",
    "should_finish",
    "coerce_format",
    "coerce_status",
]
