"""CLI commands for the chess tournament manager."""

from .tournament import tournament_commands
from .user import user_commands


def register_commands(app):
    """Register all CLI command groups with the Flask app."""
    app.cli.add_command(tournament_commands)
    app.cli.add_command(user_commands)
