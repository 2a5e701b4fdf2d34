"""Tournament lifecycle CLI commands."""

import click
from flask import current_app
from flask.cli import with_appcontext

from chessmgr.services.scheduler import TournamentScheduler


@click.group('tournaments')
def tournament_commands():
    """Tournament lifecycle commands."""
    pass


@tournament_commands.command('check-states')
@with_appcontext
def check_states():
    """Run one scheduler sweep now (start due tournaments, finish completed ones)."""
    app = current_app._get_current_object()
    scheduler = app.extensions.get('tournament_scheduler') or TournamentScheduler(app)
    report = scheduler.check_tournament_states()

    if report.skipped:
        click.echo(click.style('Another sweep is in progress, nothing done.', fg='yellow'))
        return

    click.echo(click.style('Sweep complete.', fg='green'))
    click.echo(f'  Started: {len(report.started)}')
    click.echo(f'  Finished: {len(report.finished)}')
    if report.failed:
        click.echo(click.style(f'  Failed: {len(report.failed)} ({", ".join(report.failed)})', fg='red'))
