"""Flask CLI commands for inspecting the subscription and managing accounts."""

import time

import click
from flask import current_app
from flask.cli import AppGroup
from sqlalchemy import func

from models import db, User
from models.user import USER_ROLES
from services.api_client import SubscriptionApiClient
from services.errors import SubscriptionError
from services.lifecycle import SubscriptionLifecycleController
from services.subscription_store import SubscriptionStore

subscription_cli = AppGroup("subscription", help="Inspect and maintain the subscription.")
users_cli = AppGroup("users", help="Manage back-office accounts.")


def _store() -> SubscriptionStore:
    return SubscriptionStore(
        manager_roles=current_app.config.get("SUBSCRIPTION_MANAGER_ROLES", ("developer",))
    )


@subscription_cli.command("show")
def show_subscription():
    """Print the current subscription record."""
    record = _store().get().to_dict()
    for key, value in record.items():
        click.echo(f"{key}: {value}")


@subscription_cli.command("expire")
def expire_subscription():
    """Clear the subscription if its expiration has passed."""
    if _store().expire_if_due():
        click.echo("Subscription expired.")
    else:
        click.echo("Nothing to expire.")


@subscription_cli.command("seed")
def seed_subscription():
    """Reset the subscription to the empty, inactive record."""
    _store().reset()
    click.echo("Subscription reset: active=false, all fields null.")


@subscription_cli.command("watch")
@click.option("--url", default=None, help="Base URL of the API.")
@click.option("--username", prompt=True)
@click.option("--password", prompt=True, hide_input=True)
def watch_subscription(url, username, password):
    """Log in and show a live countdown until the subscription expires."""
    client = SubscriptionApiClient(url or current_app.config["SUBSCRIPTION_API_URL"])
    try:
        client.login(username, password)
    except SubscriptionError as exc:
        raise click.ClickException(f"Login failed: {exc.code}: {exc.message}")

    controller = SubscriptionLifecycleController.from_config(current_app.config, client)
    controller.start()
    try:
        while True:
            remaining = controller.time_remaining
            if remaining is not None:
                click.echo(f"\r{controller.snapshot.subscription_duration}: {remaining}  ", nl=False)
            elif controller.snapshot.active:
                click.echo("\rExpiring...                ", nl=False)
            else:
                click.echo("\rNo active subscription.    ", nl=False)
            time.sleep(1)
    except KeyboardInterrupt:
        click.echo()
    finally:
        controller.stop()


@users_cli.command("create")
@click.argument("username")
@click.option("--role", type=click.Choice(USER_ROLES), default="assistant", show_default=True)
@click.option("--name", default=None)
@click.password_option()
def create_user(username, role, name, password):
    """Create a user or reset an existing user's password and role."""
    username = username.strip().lower()
    user = User.query.filter(func.lower(User.username) == username).first()
    if user is None:
        user = User(username=username, role=role, name=name)
        db.session.add(user)
        action = "created"
    else:
        user.role = role
        if name:
            user.name = name
        action = "updated"
    user.set_password(password)
    db.session.commit()
    click.echo(f"User {action}: {username} ({role})")
