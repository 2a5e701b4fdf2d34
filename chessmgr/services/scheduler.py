"""Time-driven tournament lifecycle scheduler.

One sweep promotes every upcoming tournament whose start date has passed to
ongoing, then finishes every ongoing tournament that meets the finish
criteria (see ``tournament_state.should_finish``). The sweep runs once on
``start()`` and then on a fixed interval from a daemon thread.

Sweeps never overlap within a process: a sweep requested while another is
in progress is skipped. The thread is started by the serving process (first
request, or ``run_dev.py``), never by CLI commands.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List

from flask import Flask, current_app
from sqlalchemy import select

from chessmgr.extensions import db
from chessmgr.models import Match, Tournament, TournamentStatus
from chessmgr.services.audit import log_admin_action
from chessmgr.services.tournament import count_inscriptions
from chessmgr.services.tournament_state import ensure_transition, should_finish
from chessmgr.utils import utcnow

DEFAULT_INTERVAL_SECONDS = 3600


@dataclass
class SweepReport:
    """What one sweep changed."""
    started: List[str] = field(default_factory=list)
    finished: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: bool = False


class TournamentScheduler:
    """Owns the recurring sweep and its start/stop lifecycle."""

    def __init__(
        self,
        app: Flask,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.app = app
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._lifecycle_lock = threading.Lock()
        self._sweep_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def start(self) -> None:
        """Run a sweep immediately, then every ``interval_seconds``."""
        with self._lifecycle_lock:
            if self.is_running:
                self.app.logger.info("Tournament scheduler is already running")
                return

            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run,
                name="tournament-scheduler",
                daemon=True,
            )
            self._thread.start()
        self.app.logger.info(
            f"Tournament scheduler started (every {self.interval_seconds} seconds)"
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        with self._lifecycle_lock:
            if self._thread is None:
                return
            self._stop_event.set()
            self._thread.join(timeout)
            if self._thread.is_alive():
                # Still inside a sweep; keep the handle so start() sees it running
                self.app.logger.warning("Tournament scheduler did not stop within the timeout")
                return
            self._thread = None
        self.app.logger.info("Tournament scheduler stopped")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            with self.app.app_context():
                try:
                    self.check_tournament_states()
                except Exception as e:
                    self.app.logger.error(f"Tournament scheduler sweep failed: {e}")
                finally:
                    db.session.remove()
            self._stop_event.wait(self.interval_seconds)

    def check_tournament_states(self) -> SweepReport:
        """Evaluate every upcoming and ongoing tournament once.

        Must be called inside an application context. A failure on one
        tournament is logged and rolled back without stopping the sweep.
        Returns a report with ``skipped`` set when another sweep is running.
        """
        if not self._sweep_lock.acquire(blocking=False):
            current_app.logger.warning("[Scheduler] Sweep already in progress, skipping")
            return SweepReport(skipped=True)
        try:
            return self._sweep(self.clock())
        finally:
            self._sweep_lock.release()

    def _sweep(self, now: datetime) -> SweepReport:
        report = SweepReport()
        current_app.logger.info("[Scheduler] Checking tournament states")

        for tournament_id in self._ids_with_status(TournamentStatus.UPCOMING):
            try:
                if self._maybe_start(tournament_id, now):
                    report.started.append(tournament_id)
            except Exception as e:
                db.session.rollback()
                report.failed.append(tournament_id)
                current_app.logger.error(f"[Scheduler] Failed to start tournament {tournament_id}: {e}")

        for tournament_id in self._ids_with_status(TournamentStatus.ONGOING):
            try:
                if self._maybe_finish(tournament_id, now):
                    report.finished.append(tournament_id)
            except Exception as e:
                db.session.rollback()
                report.failed.append(tournament_id)
                current_app.logger.error(f"[Scheduler] Failed to finish tournament {tournament_id}: {e}")

        if report.started or report.finished:
            current_app.logger.info(
                f"[Scheduler] Tournaments updated: {len(report.started)} started, "
                f"{len(report.finished)} finished"
            )
        else:
            current_app.logger.info("[Scheduler] No tournaments to update")
        return report

    def _ids_with_status(self, status: TournamentStatus) -> List[str]:
        return list(db.session.execute(
            select(Tournament.id).where(Tournament.status == status)
        ).scalars())

    def _maybe_start(self, tournament_id: str, now: datetime) -> bool:
        tournament = db.session.get(Tournament, tournament_id)
        if tournament is None or tournament.status is not TournamentStatus.UPCOMING:
            return False
        if tournament.start_date > now:
            return False

        ensure_transition(tournament.status, TournamentStatus.ONGOING)

        # Automatic promotion does not enforce the manual-start participant minimum.
        minimum = current_app.config.get('MIN_PARTICIPANTS_TO_START', 4)
        participants = count_inscriptions(tournament_id)
        if participants < minimum:
            current_app.logger.warning(
                f"[Scheduler] Starting tournament \"{tournament.name}\" ({tournament.id}) "
                f"with only {participants} participant(s); manual start requires {minimum}"
            )

        tournament.status = TournamentStatus.ONGOING
        db.session.commit()
        current_app.logger.info(f"[Scheduler] Tournament started: \"{tournament.name}\" ({tournament.id})")
        log_admin_action(None, 'scheduler_start', 'tournament', tournament.id)
        return True

    def _maybe_finish(self, tournament_id: str, now: datetime) -> bool:
        tournament = db.session.get(Tournament, tournament_id)
        if tournament is None:
            return False

        matches = list(db.session.execute(
            select(Match).where(Match.tournament_id == tournament_id)
        ).scalars())
        if not should_finish(tournament, matches, now):
            return False

        ensure_transition(tournament.status, TournamentStatus.FINISHED)
        tournament.status = TournamentStatus.FINISHED
        db.session.commit()
        current_app.logger.info(f"[Scheduler] Tournament finished: \"{tournament.name}\" ({tournament.id})")
        log_admin_action(None, 'scheduler_finish', 'tournament', tournament.id)
        return True


def init_scheduler(app: Flask) -> TournamentScheduler:
    """Register the app's scheduler.

    When ``SCHEDULER_ENABLED`` is set the thread starts on the first request
    the app serves, so CLI commands that build the app never run a
    background sweep next to their own work.
    """
    scheduler = TournamentScheduler(
        app,
        interval_seconds=app.config.get('SCHEDULER_INTERVAL_SECONDS', DEFAULT_INTERVAL_SECONDS),
    )
    app.extensions['tournament_scheduler'] = scheduler

    if app.config.get('SCHEDULER_ENABLED', False):
        @app.before_request
        def start_tournament_scheduler():
            if not scheduler.is_running and not scheduler.stop_requested:
                scheduler.start()

    return scheduler


__all__ = ["TournamentScheduler", "SweepReport", "init_scheduler", "DEFAULT_INTERVAL_SECONDS"]
