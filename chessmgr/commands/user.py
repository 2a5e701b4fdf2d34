"""User management CLI commands."""

import click
from flask.cli import with_appcontext
from sqlalchemy import func, select

from chessmgr.extensions import db
from chessmgr.models import User, UserRole
from chessmgr.services.errors import ChessManagerError
from chessmgr.services.user import UserService


@click.group('user')
def user_commands():
    """User management commands."""
    pass


@user_commands.command('create-admin')
@click.option('--name', required=True, help='Display name')
@click.option('--email', required=True, help='User email')
@click.option('--password', required=True, help='User password')
@with_appcontext
def create_admin(name, email, password):
    """Create an administrator account."""
    try:
        user = UserService.register_user(name=name, email=email, password=password, role=UserRole.ADMIN)
    except ChessManagerError as e:
        click.echo(click.style(f'Error: {e.message}', fg='red'))
        return

    click.echo(click.style('Admin created successfully!', fg='green'))
    click.echo(f'  Name: {user.name}')
    click.echo(f'  Email: {user.email}')
    click.echo(f'  ID: {user.id}')


@user_commands.command('set-password')
@click.option('--email', required=True, help='User email')
@click.option('--password', required=True, help='New password')
@with_appcontext
def set_password(email, password):
    """Set or reset a user's password."""
    user = db.session.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    ).scalar_one_or_none()
    if user is None or user.is_deleted:
        click.echo(click.style(f'Error: No user {email} found', fg='red'))
        return

    try:
        UserService.update_user(user.id, {'password': password})
    except ChessManagerError as e:
        click.echo(click.style(f'Error: {e.message}', fg='red'))
        return
    click.echo(click.style('Password updated.', fg='green'))
