"""
DocumentDB Interface.

Async access to the document database holding the credential collections,
built on the asyncdb "mongo" driver.

Usage:
    async with DocumentDb() as db:
        owner = await db.read_one("owners", {"username": "johndoe"})
"""
from typing import Optional, Any, List, Union

from asyncdb import AsyncDB
from navconfig import config, BASE_DIR
from navconfig.logging import logging


class DocumentDb:
    """
    Interface for the credential document database (DocumentDB/MongoDB).

    Configuration is read from environment variables via navconfig:
        - DOCUMENTDB_HOSTNAME: Database host (default: localhost)
        - DOCUMENTDB_PORT: Database port (default: 27017)
        - DOCUMENTDB_USERNAME / DOCUMENTDB_PASSWORD: Authentication
        - DOCUMENTDB_DBNAME: Database name (default: bizauth)
        - DOCUMENTDB_USE_SSL: Enable SSL/TLS (default: False)
        - DOCUMENTDB_TLS_CA_FILE: Path to CA certificate file

    The class never retries: callers receive the driver exception and decide.
    """

    def __init__(self, params: Optional[dict] = None, **kwargs):
        self._params = params
        self._document_db: Optional[AsyncDB] = None
        self._connected: bool = False
        self.logger = logging.getLogger('DocumentDb')

    @property
    def db(self) -> AsyncDB:
        """AsyncDB instance, created lazily (not yet connected)."""
        if not self._document_db:
            self._document_db = self._get_connection()
        return self._document_db

    @property
    def is_connected(self) -> bool:
        return self._connected and self._document_db is not None

    def _get_connection(self) -> AsyncDB:
        params = self._params or self.default_params()
        self.logger.debug(
            f"Configuring DocumentDB connection to "
            f"{params.get('host')}:{params.get('port')}/{params.get('database')}"
        )
        engine = config.get('DOCUMENTDB_ENGINE', fallback='mongo')
        return AsyncDB(engine, params=params)

    @staticmethod
    def default_params() -> dict:
        """Connection parameters from the environment."""
        use_ssl = config.getboolean('DOCUMENTDB_USE_SSL', fallback=False)
        params = {
            "host": config.get('DOCUMENTDB_HOSTNAME', fallback='localhost'),
            "port": config.get('DOCUMENTDB_PORT', fallback=27017),
            "username": config.get('DOCUMENTDB_USERNAME'),
            "password": config.get('DOCUMENTDB_PASSWORD'),
            "database": config.get('DOCUMENTDB_DBNAME', fallback='bizauth'),
            "ssl": use_ssl,
            "dbtype": config.get('DOCUMENTDB_DBTYPE', fallback='mongodb'),
            "authsource": config.get('DOCUMENTDB_AUTH_SOURCE', fallback='admin'),
        }
        if use_ssl:
            tls_ca_file = config.get('DOCUMENTDB_TLS_CA_FILE') or BASE_DIR.joinpath(
                'env', 'global-bundle.pem'
            )
            params["tlsCAFile"] = str(tls_ca_file)
        return params

    # =========================================================================
    # Connection Management
    # =========================================================================

    async def documentdb_connect(self) -> None:
        """
        Establish connection to DocumentDB.

        Raises:
            ConnectionError: If unable to establish connection
        """
        try:
            await self.db.connection()  # pylint: disable=E1101
            self._connected = True
            self.logger.info("DocumentDB connection established")
        except Exception as e:
            self._connected = False
            self.logger.error(f"Failed to connect to DocumentDB: {e}")
            raise ConnectionError(f"DocumentDB connection failed: {e}") from e

    async def close(self) -> None:
        if self._document_db:
            try:
                await self._document_db.close()  # pylint: disable=E1101
                self.logger.info("DocumentDB connection closed")
            except Exception as e:
                self.logger.warning(f"Error closing DocumentDB connection: {e}")
            finally:
                self._document_db = None
                self._connected = False

    async def __aenter__(self) -> "DocumentDb":
        await self.documentdb_connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # =========================================================================
    # Read Operations
    # =========================================================================

    async def read(
        self,
        collection_name: str,
        query: Optional[dict] = None,
        limit: Optional[int] = None,
        **kwargs
    ) -> List[dict]:
        """
        Read documents from a collection.

        Args:
            collection_name: Name of the collection to query
            query: MongoDB query filter (default: {} for all documents)
            limit: Maximum number of documents to return

        Returns:
            List of documents matching the query
        """
        if query is None:
            query = {}
        async with await self.db.connection() as conn:  # pylint: disable=E1101
            try:
                result, error = await conn.query(
                    collection_name=collection_name,
                    query=query,
                    limit=limit,
                    **kwargs
                )
                if error:
                    raise RuntimeError(error)
                return result if result else []
            except Exception as e:
                self.logger.error(f"Error reading from {collection_name}: {e}")
                raise

    async def read_one(
        self,
        collection_name: str,
        query: dict,
        **kwargs
    ) -> Optional[dict]:
        """Return the first document matching ``query``, or None."""
        results = await self.read(collection_name, query, limit=1, **kwargs)
        return results[0] if results else None

    async def exists(self, collection_name: str, query: dict) -> bool:
        result = await self.read_one(collection_name, query)
        return result is not None

    # =========================================================================
    # Write Operations
    # =========================================================================

    async def write(
        self,
        collection_name: str,
        data: Union[dict, List[dict]],
        **kwargs
    ) -> Any:
        """
        Insert document(s) into a collection.

        Inserts never replace: a document whose ``_id`` already exists makes
        the driver raise a duplicate-key error.
        """
        if isinstance(data, dict):
            data = [data]
        async with await self.db.connection() as conn:  # pylint: disable=E1101
            try:
                return await conn.write(
                    collection=collection_name,
                    data=data,
                    **kwargs
                )
            except Exception as e:
                self.logger.error(f"Error writing to {collection_name}: {e}")
                raise

    async def update(
        self,
        collection_name: str,
        query: dict,
        update_data: dict,
        upsert: bool = False,
        **kwargs
    ) -> Any:
        """
        Update documents matching a query.

        Args:
            collection_name: Name of the target collection
            query: MongoDB query filter
            update_data: Update operations (``$set``, ``$unset``...)
            upsert: Insert a new document if nothing matches
        """
        async with await self.db.connection() as conn:  # pylint: disable=E1101
            if not hasattr(conn, 'update'):
                raise NotImplementedError("Update not supported by current driver")
            try:
                return await conn.update(
                    collection_name=collection_name,
                    query=query,
                    data=update_data,
                    upsert=upsert,
                    **kwargs
                )
            except Exception as e:
                self.logger.error(f"Error updating {collection_name}: {e}")
                raise

    # =========================================================================
    # Indexes
    # =========================================================================

    @staticmethod
    def _normalize_index_spec(key):
        """Normalize an index spec into (keys, options).

        Accepts a field name, a ``(field, direction)`` tuple, or a dict
        ``{"keys": [...], **options}``.
        """
        if isinstance(key, str):
            return key, {}
        if isinstance(key, tuple):
            return [key], {}
        if isinstance(key, dict):
            spec = dict(key)
            index_keys = spec.pop('keys', spec.pop('key', None))
            if index_keys is None:
                raise ValueError(
                    f"Dict index spec must contain 'keys' or 'key': {key}"
                )
            return index_keys, spec
        raise TypeError(f"Unsupported index spec type: {type(key)}")

    async def create_indexes(
        self,
        collection_name: str,
        keys: List[Union[str, tuple, dict]]
    ) -> None:
        """
        Create indexes on a collection.

        Example:
            await db.create_indexes("owners", [
                {"keys": [("username", 1)], "unique": True},
                "status",
            ])
        """
        async with await self.db.connection() as conn:  # pylint: disable=E1101
            db_obj = getattr(conn, '_db', getattr(conn, '_database', None))
            if not hasattr(conn, 'create_index') and db_obj is None:
                self.logger.warning(
                    f"Cannot create indexes on '{collection_name}': "
                    "no index creation method on connection wrapper"
                )
                return
            try:
                for key in keys:
                    index_keys, index_opts = self._normalize_index_spec(key)
                    if hasattr(conn, 'create_index'):
                        await conn.create_index(
                            collection_name, index_keys, **index_opts
                        )
                    else:
                        await db_obj[collection_name].create_index(
                            index_keys, **index_opts
                        )
                    self.logger.debug(
                        f"Created index on '{collection_name}': {key}"
                    )
            except Exception as e:
                self.logger.error(
                    f"Error creating index on '{collection_name}': {e}"
                )
                raise
