"""Tests for the bizauth command-line interface."""

from contextlib import asynccontextmanager
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from bizauth.auth import AuthenticationService
from bizauth.cli import cli
from bizauth.memory import InMemorySessionStore


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def service(store):
    return AuthenticationService(store, InMemorySessionStore())


@pytest.fixture
def patched_service(service):
    @asynccontextmanager
    async def _fake_service():
        yield service

    with patch("bizauth.cli._service", _fake_service):
        yield service


def test_username_suggest(runner, patched_service, make_account) -> None:
    make_account("owners", "o-1", "johndoe")
    result = runner.invoke(cli, ["username", "suggest", "John Doe"])
    assert result.exit_code == 0
    assert result.output.strip().splitlines()[-1] == "johndoe1"


def test_provision_manager(runner, patched_service, make_account, docdb) -> None:
    make_account("owners", "o-1", "alice")
    result = runner.invoke(cli, [
        "accounts", "provision-manager",
        "--owner", "o-1", "--name", "Jane Smith",
        "--permission", "view_dashboard", "--permission", "edit_inventory",
    ])
    assert result.exit_code == 0, result.output
    assert "Username: janesmit" in result.output
    assert "Password: janesmit123" in result.output
    doc = docdb.collections["managers"][0]
    assert doc["permissions"] == ["edit_inventory", "view_dashboard"]


def test_provision_manager_unknown_owner(runner, patched_service) -> None:
    result = runner.invoke(cli, [
        "accounts", "provision-manager", "--owner", "nope", "--name", "Jane"
    ])
    assert result.exit_code == 1
    assert "does not exist" in result.output


def test_set_status(runner, patched_service, make_account, docdb) -> None:
    make_account("managers", "m-1", "bob")
    result = runner.invoke(
        cli, ["accounts", "set-status", "--role", "manager", "m-1", "inactive"]
    )
    assert result.exit_code == 0, result.output
    assert docdb.get("managers", "m-1")["status"] == "inactive"


def test_set_status_rejects_admin_role(runner, patched_service) -> None:
    result = runner.invoke(
        cli, ["accounts", "set-status", "--role", "admin", "a-1", "inactive"]
    )
    assert result.exit_code == 2


def test_set_permissions(runner, patched_service, make_account, docdb) -> None:
    make_account("managers", "m-1", "bob", permissions=["view_dashboard"])
    result = runner.invoke(
        cli, ["accounts", "set-permissions", "m-1", "view_stock", "view_dashboard"]
    )
    assert result.exit_code == 0, result.output
    assert docdb.get("managers", "m-1")["permissions"] == ["view_dashboard", "view_stock"]


def test_init_db(runner, patched_service) -> None:
    result = runner.invoke(cli, ["init-db"])
    assert result.exit_code == 0
    assert "indexes ready" in result.output
