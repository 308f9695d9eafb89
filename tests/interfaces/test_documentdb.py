"""Tests for the DocumentDb interface with a mocked asyncdb connection."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from bizauth.interfaces.documentdb import DocumentDb


@pytest.fixture
def conn():
    """Connection object yielded by ``async with await db.connection()``."""
    connection = AsyncMock()
    connection.query = AsyncMock(return_value=([], None))
    connection.write = AsyncMock(return_value=1)
    connection.update = AsyncMock(return_value=1)
    connection.create_index = AsyncMock()
    connection.__aenter__ = AsyncMock(return_value=connection)
    connection.__aexit__ = AsyncMock(return_value=False)
    return connection


@pytest.fixture
def docdb(conn):
    db = DocumentDb(params={"host": "localhost", "port": 27017, "database": "test"})
    driver = AsyncMock()
    driver.connection = AsyncMock(return_value=conn)
    driver.close = AsyncMock()
    db._document_db = driver
    return db


class TestParams:

    def test_default_params(self) -> None:
        params = DocumentDb.default_params()
        assert params["host"]
        assert params["database"]
        assert params["dbtype"] == "mongodb"

    def test_lazy_connection(self) -> None:
        with patch("bizauth.interfaces.documentdb.AsyncDB") as asyncdb:
            asyncdb.return_value = MagicMock()
            db = DocumentDb(params={"host": "h", "port": 1, "database": "d"})
            assert asyncdb.call_count == 0
            assert db.db is asyncdb.return_value
            assert db.db is asyncdb.return_value
        asyncdb.assert_called_once()
        assert asyncdb.call_args.kwargs["params"]["host"] == "h"


class TestConnection:

    @pytest.mark.asyncio
    async def test_context_manager(self, docdb) -> None:
        driver = docdb._document_db
        async with docdb as db:
            assert db.is_connected is True
        driver.close.assert_awaited_once()
        assert docdb.is_connected is False

    @pytest.mark.asyncio
    async def test_connect_failure(self, docdb) -> None:
        docdb._document_db.connection = AsyncMock(side_effect=OSError("refused"))
        with pytest.raises(ConnectionError):
            await docdb.documentdb_connect()
        assert docdb.is_connected is False


class TestReadWrite:

    @pytest.mark.asyncio
    async def test_read_one(self, docdb, conn) -> None:
        conn.query.return_value = ([{"_id": "o-1", "username": "alice"}], None)
        doc = await docdb.read_one("owners", {"username": "alice"})
        assert doc["_id"] == "o-1"
        kwargs = conn.query.call_args.kwargs
        assert kwargs["collection_name"] == "owners"
        assert kwargs["query"] == {"username": "alice"}
        assert kwargs["limit"] == 1

    @pytest.mark.asyncio
    async def test_read_empty(self, docdb, conn) -> None:
        conn.query.return_value = (None, None)
        assert await docdb.read("owners") == []
        assert await docdb.read_one("owners", {"_id": "x"}) is None
        assert await docdb.exists("owners", {"_id": "x"}) is False

    @pytest.mark.asyncio
    async def test_read_driver_error(self, docdb, conn) -> None:
        conn.query.return_value = (None, "server selection timeout")
        with pytest.raises(RuntimeError):
            await docdb.read("owners", {})

    @pytest.mark.asyncio
    async def test_write_wraps_single_document(self, docdb, conn) -> None:
        await docdb.write("managers", {"_id": "m-1"})
        assert conn.write.call_args.kwargs["data"] == [{"_id": "m-1"}]
        assert conn.write.call_args.kwargs["collection"] == "managers"

    @pytest.mark.asyncio
    async def test_update(self, docdb, conn) -> None:
        await docdb.update("managers", {"_id": "m-1"}, {"$set": {"status": "inactive"}})
        kwargs = conn.update.call_args.kwargs
        assert kwargs["query"] == {"_id": "m-1"}
        assert kwargs["data"] == {"$set": {"status": "inactive"}}
        assert kwargs["upsert"] is False


class TestIndexes:

    @pytest.mark.parametrize("spec,expected", [
        ("status", ("status", {})),
        (("username", 1), ([("username", 1)], {})),
        (
            {"keys": [("username", 1)], "unique": True},
            ([("username", 1)], {"unique": True}),
        ),
    ])
    def test_normalize(self, spec, expected) -> None:
        assert DocumentDb._normalize_index_spec(spec) == expected

    def test_normalize_invalid(self) -> None:
        with pytest.raises(ValueError):
            DocumentDb._normalize_index_spec({"unique": True})
        with pytest.raises(TypeError):
            DocumentDb._normalize_index_spec(42)

    @pytest.mark.asyncio
    async def test_create_indexes(self, docdb, conn) -> None:
        await docdb.create_indexes(
            "owners", [{"keys": [("username", 1)], "unique": True}, "status"]
        )
        assert conn.create_index.await_count == 2
        first = conn.create_index.await_args_list[0]
        assert first.args == ("owners", [("username", 1)])
        assert first.kwargs == {"unique": True}
