"""Command-line administration of BizAuth accounts.

Provides:
    bizauth init-db
    bizauth username suggest NAME
    bizauth accounts provision-manager --owner <id> --name <name> [--permission ...]
    bizauth accounts set-status --role manager <id> inactive
    bizauth accounts set-permissions <manager-id> view_dashboard edit_inventory
"""
import asyncio
import sys
from contextlib import asynccontextmanager

import click

from .auth import AccountStatus, AuthenticationService, CredentialStore, Role
from .exceptions import AuthError
from .memory import InMemorySessionStore


@asynccontextmanager
async def _service():
    from .interfaces.documentdb import DocumentDb  # pylint: disable=C0415

    async with DocumentDb() as db:
        store = CredentialStore(db)
        async with AuthenticationService(store, InMemorySessionStore()) as service:
            yield service


def _run(coro):
    try:
        return asyncio.run(coro)
    except AuthError as exc:
        click.secho(f"Error: {exc}", fg="red", err=True)
        sys.exit(1)


@click.group()
def cli():
    """BizAuth command-line interface."""
    pass


@cli.command("init-db")
def init_db() -> None:
    """Create the unique username indexes on both credential collections."""
    async def _init():
        async with _service() as service:
            await service.store.ensure_indexes()

    _run(_init())
    click.echo("Credential indexes ready")


@cli.group()
def username() -> None:
    """Username allocation."""


@username.command()
@click.argument("name")
def suggest(name: str) -> None:
    """Print the first free username for NAME."""
    async def _suggest():
        async with _service() as service:
            return await service.allocator.allocate(name)

    click.echo(_run(_suggest()))


@cli.group()
def accounts() -> None:
    """Owner and manager account administration."""


@accounts.command("provision-manager")
@click.option("--owner", "owner_id", required=True, help="Owner account id.")
@click.option("--name", required=True, help="Manager display name.")
@click.option("--business", "business_id", default=None, help="Business id.")
@click.option("--employee", "employee_id", default=None, help="Employee record id.")
@click.option(
    "--permission",
    "permissions",
    multiple=True,
    help="Capability granted to the manager (repeatable).",
)
def provision_manager(
    owner_id: str,
    name: str,
    business_id: str | None,
    employee_id: str | None,
    permissions: tuple[str, ...],
) -> None:
    """Create a manager account and print its credentials once."""
    async def _provision():
        async with _service() as service:
            return await service.provision_delegated_account(
                name,
                owner_id,
                permissions=permissions or None,
                business_id=business_id,
                employee_id=employee_id,
            )

    identity, password = _run(_provision())
    click.echo(f"Manager created: {identity.id}")
    click.echo(f"  Username: {identity.username}")
    click.echo(f"  Password: {password}")
    click.secho("Store these credentials now, they cannot be shown again.", fg="yellow")


@accounts.command("set-status")
@click.option(
    "--role",
    type=click.Choice([Role.OWNER.value, Role.MANAGER.value]),
    required=True,
)
@click.argument("account_id")
@click.argument("status", type=click.Choice([s.value for s in AccountStatus]))
def set_status(role: str, account_id: str, status: str) -> None:
    """Activate or deactivate an account."""
    async def _set():
        async with _service() as service:
            await service.set_account_status(
                Role(role), account_id, AccountStatus(status)
            )

    _run(_set())
    click.echo(f"{role.capitalize()} {account_id} is now {status}")


@accounts.command("set-permissions")
@click.argument("manager_id")
@click.argument("permissions", nargs=-1, required=True)
def set_permissions(manager_id: str, permissions: tuple[str, ...]) -> None:
    """Replace the permission set of a manager."""
    async def _set():
        async with _service() as service:
            await service.update_manager_permissions(manager_id, permissions)

    _run(_set())
    click.echo(f"Manager {manager_id} permissions: {', '.join(sorted(set(permissions)))}")


if __name__ == "__main__":
    cli()
