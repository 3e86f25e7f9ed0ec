"""CLI tools for tote engine administration."""

import click

from tote_engine.db.base import Base
from tote_engine.db.session import SessionLocal, engine


@click.group()
def cli():
    """Tote engine CLI tools."""
    pass


@cli.command("init-db")
def init_db():
    """
    Create all tables directly from the models.

    Intended for local SQLite databases; use `alembic upgrade head`
    against PostgreSQL.
    """
    # Register every model on Base.metadata
    import tote_engine.db.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    click.echo(f"✓ Created tables on {engine.url.render_as_string(hide_password=True)}")


@cli.command("create-cause")
@click.option("--title", required=True, help="Cause title shown to claimants")
@click.option("--description", default=None, help="Optional description")
@click.option("--offline", is_flag=True, help="Create the cause without accepting claims yet")
def create_cause(title: str, description: str | None, offline: bool):
    """
    Publish a cause with an empty ledger.

    Totes are added by approving sponsorships.

    Example:
        python -m tote_engine.cli create-cause --title "Clean Beaches"
    """
    from tote_engine.services import cause_service

    db = SessionLocal()
    try:
        cause = cause_service.create_cause(db, title=title, description=description, is_online=not offline)
        click.echo(f"✓ Created cause: {cause.title}")
        click.echo(f"  ID: {cause.id}")
        click.echo(f"  Online: {cause.is_online}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.option(
    "--kind",
    type=click.Choice(["all", "verifications", "magic-links"]),
    default="all",
    show_default=True,
)
def sweep(kind: str):
    """Run the expiry sweeps once (for cron without the worker)."""
    from tote_engine.services import claim_service, waitlist_service

    db = SessionLocal()
    try:
        if kind in ("all", "verifications"):
            expired = claim_service.sweep_stale_verifications(db)
            click.echo(f"✓ Expired {expired} stale claim(s)")
        if kind in ("all", "magic-links"):
            expired = waitlist_service.sweep_expired_links(db)
            click.echo(f"✓ Expired {expired} magic link(s)")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
