#!/usr/bin/env python3
"""
Liga Prode Management CLI

Command-line management for settlement, standings, prode settings and users.
"""

import logging
import os

import click
from flask.cli import with_appcontext
from flask_migrate import upgrade
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

# One-off commands never start the background jobs
os.environ.setdefault("SCHEDULER_ENABLED", "False")

from liga import create_app, db  # noqa: E402
from liga.errors import LeagueError  # noqa: E402
from liga.models import Match, PayoutSettings, Prediction, Team, User, Zone  # noqa: E402
from liga.repository import LeagueRepository  # noqa: E402
from liga.services.operations import recompute_zone, settle_match  # noqa: E402
from liga.services.payout_rules import build_payout_rule  # noqa: E402
from liga.services.scheduler_service import scheduler_service  # noqa: E402
from liga.services.standings import ranked_zone_table  # noqa: E402

app = create_app()


@click.group()
def cli():
    """Liga Prode Management CLI"""
    pass


# Settlement Commands
@cli.command()
@click.argument("match_id", type=int)
@click.option("--actor", type=int, help="User id recorded in the audit log")
@with_appcontext
def settle(match_id, actor):
    """Settle the unsettled predictions of a played match"""
    try:
        result = settle_match(match_id, actor_user_id=actor)
    except LeagueError as e:
        click.echo(f"❌ {e}")
        logging.error(f"Settlement of match {match_id} failed: {e}")
        return

    pool = result.pool
    click.echo(
        f"✅ Match {match_id} ({result.mode}): settled {result.settled_count} predictions, "
        f"pool {pool.pool_total:.2f}, distributable {pool.distributable:.2f}"
    )
    if result.failed_prediction_ids:
        click.echo(
            f"⚠️  {len(result.failed_prediction_ids)} failed and stay pending: "
            f"{result.failed_prediction_ids}"
        )


@cli.command()
@with_appcontext
def settle_pending():
    """Settle every played match that still has unsettled predictions"""
    try:
        summary = scheduler_service.run_settlement_sweep()
    except LeagueError as e:
        click.echo(f"❌ {e}")
        return

    click.echo(
        f"✅ Settled {summary['settled']} predictions over {summary['matches']} matches"
    )
    if summary["zones"]:
        click.echo(f"📊 Recomputed zones: {summary['zones']}")
    for match_id, failed in summary["failed"].items():
        click.echo(f"⚠️  Match {match_id}: {failed}")


# Standings Commands
@cli.group()
def standings():
    """Standings commands"""
    pass


@standings.command()
@click.argument("zone_id", type=int)
@with_appcontext
def recompute(zone_id):
    """Rebuild a zone table from its played matches"""
    try:
        payload = recompute_zone(zone_id)
    except LeagueError as e:
        click.echo(f"❌ {e}")
        return
    click.echo(f"✅ Recomputed {payload['zone']['name']}: {len(payload['standings'])} teams")


@standings.command()
@with_appcontext
def recompute_all():
    """Rebuild every zone table"""
    try:
        rebuilt = scheduler_service.run_full_rebuild()
    except LeagueError as e:
        click.echo(f"❌ {e}")
        return
    click.echo(f"✅ Recomputed {len(rebuilt)} zones")


@standings.command()
@click.argument("zone_id", type=int)
@with_appcontext
def show(zone_id):
    """Print a zone's ranked table"""
    try:
        payload = ranked_zone_table(LeagueRepository(), zone_id)
    except LeagueError as e:
        click.echo(f"❌ {e}")
        return

    click.echo(f"📊 {payload['zone']['name']}")
    click.echo(f"{'#':>3} {'Team':<24} {'PJ':>3} {'G':>3} {'E':>3} {'P':>3} {'GF':>4} {'GC':>4} {'DG':>4} {'Pts':>4}")
    for row in payload["standings"]:
        marker = "*" if row["manual_position"] else " "
        click.echo(
            f"{row['position']:>3}{marker}{(row['team_name'] or '?'):<24} "
            f"{row['played']:>3} {row['won']:>3} {row['drawn']:>3} {row['lost']:>3} "
            f"{row['goals_for']:>4} {row['goals_against']:>4} "
            f"{row['goal_difference']:>4} {row['points']:>4}"
        )
    legend = payload["zone"].get("legend")
    if legend:
        click.echo(legend)


# Prode Settings Commands
@cli.group()
def settings():
    """Prode settings commands"""
    pass


@settings.command("show")
@with_appcontext
def show_settings():
    """Show the active prode settings"""
    active = PayoutSettings.get_active()
    if active is None:
        rule = PayoutSettings.active_rule()
        click.echo(f"⚪ No settings row, defaults apply: {rule}")
        return

    for key, value in active.to_dict().items():
        click.echo(f"  {key}: {value}")


@settings.command("set")
@click.option("--mode", type=click.Choice(["points", "pool"]))
@click.option("--result-points", type=int)
@click.option("--exact-points", type=int)
@click.option("--fee", type=float, help="House fee percent (pool mode)")
@click.option("--max-bet", type=float)
@click.option("--cutoff", type=int, help="Seconds before kickoff predictions close")
@click.option("--currency")
@with_appcontext
def set_settings(mode, result_points, exact_points, fee, max_bet, cutoff, currency):
    """Update the active prode settings, creating them if needed"""
    active = PayoutSettings.get_active()
    if active is None:
        active = PayoutSettings(is_active=True)
        db.session.add(active)

    updates = {
        "payout_mode": mode,
        "points_for_result": result_points,
        "points_for_exact_score": exact_points,
        "fee_percent": fee,
        "max_stake": max_bet,
        "cutoff_seconds_before_kickoff": cutoff,
        "currency": currency,
    }
    for key, value in updates.items():
        if value is not None:
            setattr(active, key, value)

    try:
        rule = build_payout_rule(
            active.payout_mode or "pool",
            result_points=active.points_for_result,
            exact_points=active.points_for_exact_score,
            fee_percent=active.fee_percent,
        )
        db.session.commit()
    except (ValueError, SQLAlchemyError) as e:
        db.session.rollback()
        click.echo(f"❌ Error saving settings: {e}")
        return
    click.echo(f"✅ Settings saved: {rule}")


# User Management Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command()
@click.argument("username")
@click.argument("email")
@click.argument("password")
@click.option("--display-name", help="Display name")
@with_appcontext
def create_admin(username, email, password, display_name=None):
    """Create an admin user"""
    existing = User.query.filter(
        (User.username == username) | (User.email == email)
    ).first()
    if existing:
        click.echo(f"❌ User with username '{username}' or email '{email}' already exists!")
        return

    admin = User(
        username=username,
        email=email,
        display_name=display_name,
        is_active=True,
        is_admin=True,
    )
    admin.set_password(password)

    try:
        db.session.add(admin)
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        click.echo(f"❌ Error creating user: {e}")
        return
    click.echo(f"✅ Created admin user '{username}' ({email})")


@user.command()
@with_appcontext
def list_users():
    """List all users"""
    users = User.query.order_by(User.created_at.desc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("Users:")
    for u in users:
        status = "🟢" if u.is_active else "🔴"
        role = "👑" if u.is_admin else "  "
        click.echo(f"  {status} {role} {u.username} ({u.email}) - {u.full_name}")


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command()
@with_appcontext
def init():
    """Create database tables"""
    db.create_all()
    click.echo("✅ Database tables created successfully!")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    db.drop_all()
    db.create_all()
    click.echo("✅ Database reset successfully!")


@db_cmd.command()
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def upgrade_schema(revision):
    """Apply Flask-Migrate migrations"""
    upgrade(revision=revision)
    click.echo(f"✅ Migrations applied to {revision}")


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("⚽ Liga Prode Status")
    click.echo("=" * 40)

    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {e}")
        return

    click.echo(f"👥 Active Users: {User.query.filter_by(is_active=True).count()}")
    click.echo(f"🗺️  Zones: {Zone.query.count()} ({Team.query.count()} teams)")

    played = Match.query.filter_by(is_played=True).count()
    click.echo(f"⚽ Matches: {played}/{Match.query.count()} played")

    pending = Prediction.query.filter_by(settled=False).count()
    click.echo(f"🎯 Predictions: {pending} unsettled of {Prediction.query.count()}")

    click.echo(f"💰 Payout rule: {PayoutSettings.active_rule()}")


if __name__ == "__main__":
    with app.app_context():
        cli()
