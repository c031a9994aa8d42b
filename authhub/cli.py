"""Command line interface for AuthHub."""

import sys
from datetime import timedelta
from typing import Optional

import click
from alembic import command

from authhub.api.dependencies import build_auth_service
from authhub.core.auth.audit import SessionAuditor
from authhub.core.auth.entities import TimeWindow, UserStatus
from authhub.core.auth.exceptions import EmailAlreadyVerifiedException, UserNotFoundException
from authhub.core.services.configuration_service import ConfigurationService
from authhub.infrastructure.database.init_db import (
    check_database_health,
    get_alembic_config,
    get_database_info,
    init_database,
)
from authhub.infrastructure.database.repositories.login_log_repository import SqlLoginLogRepository
from authhub.infrastructure.database.repositories.refresh_token_repository import SqlRefreshTokenRepository
from authhub.infrastructure.database.session import close_db_connections, session_scope
from authhub.settings import get_settings
from authhub.utils.async_helpers import run_async
from authhub.utils.logging import setup_logging


async def _in_session(work):
    try:
        async with session_scope() as session:
            return await work(session)
    finally:
        await close_db_connections()


@click.group()
def cli():
    """AuthHub CLI."""
    setup_logging()


@cli.command()
def init_db():
    """Initialize database schema with migrations."""
    click.echo("Initializing database...")
    run_async(init_database())
    click.echo("Database initialized successfully!")


@cli.command()
def migrate():
    """Run database migrations to the latest version."""
    click.echo("Running database migrations...")
    command.upgrade(get_alembic_config(), "head")
    click.echo("Migrations completed successfully!")


@cli.command()
@click.option("--retention-days", type=int, default=None, help="Keep swept tokens this many days (defaults to settings)")
def sweep_tokens(retention_days: Optional[int]):
    """Delete expired and revoked refresh tokens."""
    days = retention_days if retention_days is not None else get_settings().token_retention_days
    retention = timedelta(days=days)

    async def sweep(session):
        repo = SqlRefreshTokenRepository(session)
        return await repo.sweep_expired(retention), await repo.sweep_revoked(retention)

    expired, revoked = run_async(_in_session(sweep))
    click.echo(f"Removed {expired} expired and {revoked} revoked refresh tokens")


@cli.command()
@click.option("--days", type=int, default=None, help="Days of login history to keep (defaults to settings)")
def prune_logins(days: Optional[int]):
    """Delete old login log entries."""
    days_to_keep = days if days is not None else get_settings().login_log_retention_days
    removed = run_async(
        _in_session(lambda session: SessionAuditor(SqlLoginLogRepository(session)).prune(days_to_keep))
    )
    click.echo(f"Removed {removed} login log entries older than {days_to_keep} days")


@cli.command()
@click.option("--window", default=None, help='Trailing window such as "1 hour" (defaults to settings)')
@click.option("--threshold", type=int, default=None, help="Minimum failed attempts (defaults to settings)")
def suspicious(window: Optional[str], threshold: Optional[int]):
    """Report IP addresses and users with repeated failed logins."""
    settings = get_settings()
    try:
        parsed = TimeWindow.parse(window or settings.suspicious_window)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--window")
    limit = threshold or settings.suspicious_failed_attempt_threshold

    report = run_async(
        _in_session(lambda session: SessionAuditor(SqlLoginLogRepository(session)).suspicious_activity(parsed, limit))
    )

    click.echo(f"Failed attempts >= {report.threshold} in the last {report.window}:")
    if not report.suspicious_ips and not report.suspicious_users:
        click.echo("  nothing suspicious")
        return
    for source in report.suspicious_ips:
        click.echo(f"  ip   {source.key}: {source.failed_attempts} (last {source.last_attempt_at.isoformat()})")
    for source in report.suspicious_users:
        click.echo(f"  user {source.key}: {source.failed_attempts} (last {source.last_attempt_at.isoformat()})")


@cli.command()
@click.argument("user_id")
@click.argument("status", type=click.Choice([s.value for s in UserStatus]))
def set_status(user_id: str, status: str):
    """Change a user's account status; non-active statuses end all sessions."""
    settings = get_settings()
    try:
        user = run_async(
            _in_session(lambda session: build_auth_service(session, settings).set_user_status(user_id, UserStatus(status)))
        )
    except UserNotFoundException:
        click.echo(f"✗ User not found: {user_id}", err=True)
        sys.exit(1)
    click.echo(f"✓ User {user.email} is now {user.status.value}")


@cli.command()
@click.argument("user_id")
def verify_email(user_id: str):
    """Mark a user's email address as verified."""
    settings = get_settings()
    try:
        user = run_async(
            _in_session(lambda session: build_auth_service(session, settings).verify_email(user_id))
        )
    except UserNotFoundException:
        click.echo(f"✗ User not found: {user_id}", err=True)
        sys.exit(1)
    except EmailAlreadyVerifiedException:
        click.echo(f"Email of user {user_id} is already verified")
        return
    click.echo(f"✓ Email {user.email} is now verified")


@cli.command()
@click.option("--user-id", default=None, help="Only count tokens of this user")
def token_stats(user_id: Optional[str]):
    """Show refresh token counts by state."""
    stats = run_async(_in_session(lambda session: SqlRefreshTokenRepository(session).token_stats(user_id)))

    scope = f"user {user_id}" if user_id else "all users"
    click.echo(f"Refresh tokens for {scope}:")
    click.echo(f"  total:   {stats.total}")
    click.echo(f"  active:  {stats.active}")
    click.echo(f"  expired: {stats.expired}")
    click.echo(f"  revoked: {stats.revoked}")
    for kind, count in sorted(stats.by_type.items()):
        click.echo(f"  {kind}: {count}")


@cli.command()
def check_db():
    """Check database connectivity and health."""
    click.echo("Checking database health...")

    async def check():
        try:
            if not await check_database_health():
                click.echo("✗ Database connection failed")
                return 1
            click.echo("✓ Database connection is healthy")

            info = await get_database_info()
            click.echo("\nDatabase statistics:")
            for table, count in info["tables"].items():
                click.echo(f"  - {table}: {count} records")
            return 0
        finally:
            await close_db_connections()

    sys.exit(run_async(check()))


@cli.command()
def show_config():
    """Display current configuration settings and validation problems."""
    settings = get_settings()

    click.echo("Current configuration:")
    click.echo(f"  Environment: {settings.environment}")
    click.echo(f"  Debug: {settings.debug}")
    click.echo(f"  Database URL: {settings.database_url}")
    click.echo(f"  Redis URL: {settings.redis_url}")
    click.echo(f"  JWT Algorithm: {settings.jwt_algorithm}")
    click.echo(f"  JWT Issuer / Audience: {settings.jwt_issuer} / {settings.jwt_audience}")
    click.echo(f"  Access token expire: {settings.access_token_expire_minutes} minutes")
    click.echo(f"  Refresh token expire: {settings.refresh_token_expire_days} days")
    click.echo(f"  Google OAuth configured: {settings.google_oauth_configured}")
    click.echo(f"  OAuth state check: {settings.oauth_state_check_enabled}")
    click.echo(f"  Login log retention: {settings.login_log_retention_days} days")
    click.echo(
        f"  Suspicious activity: {settings.suspicious_failed_attempt_threshold} failures "
        f"in {settings.suspicious_window}"
    )

    problems = ConfigurationService(settings).validate()
    if problems:
        click.echo("\nConfiguration problems:")
        for problem in problems:
            click.echo(f"  ✗ {problem}")


if __name__ == "__main__":
    cli()
