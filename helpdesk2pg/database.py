"""
Database engine adapters: MySQL (mysql-connector) and PostgreSQL (psycopg2).

Both expose the same small surface the inspector, the copy engine and the
orchestrator need, so either engine can act as the source.
"""

import mysql.connector
from mysql.connector import Error as MySQLError
import psycopg2
import psycopg2.extras

from helpdesk2pg import console, PUBLIC_SCHEMA
from helpdesk2pg.config import ConnectionConfig
from helpdesk2pg.errors import ConnectionFailure
from helpdesk2pg.models import ChunkRange


FETCH_BATCH = 500


class Database:
    """Common query helpers; subclasses provide the driver and the catalog SQL."""

    engine = None
    quote_char = '"'
    driver_error = Exception

    def __init__(self, config: ConnectionConfig, label: str = "database", schema: str = PUBLIC_SCHEMA):
        self.config = config
        self.label = label
        self.schema = schema
        self.conn = None

    # ── connection ────────────────────────────────────────────

    def _connect(self):
        raise NotImplementedError

    def connect(self):
        try:
            self.conn = self._connect()
        except self.driver_error as e:
            raise ConnectionFailure(self.label, e) from e
        return self

    def close(self):
        if self.conn is not None:
            try:
                self.conn.close()
            finally:
                self.conn = None

    def __enter__(self):
        if self.conn is None:
            self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ── SQL helpers ───────────────────────────────────────────

    def quote(self, identifier: str) -> str:
        q = self.quote_char
        return f"{q}{identifier.replace(q, q * 2)}{q}"

    def table_ref(self, table: str) -> str:
        return self.quote(table)

    def query(self, sql: str, params=None) -> list[tuple]:
        cursor = self.conn.cursor()
        try:
            cursor.execute(sql, params)
            return cursor.fetchall()
        finally:
            cursor.close()

    def scalar(self, sql: str, params=None):
        rows = self.query(sql, params)
        return rows[0][0] if rows else None

    def execute(self, sql: str, params=None):
        """Run a statement that returns no rows (DDL, DML, SET …)."""
        cursor = self.conn.cursor()
        try:
            if params is None:
                cursor.execute(sql)
            else:
                cursor.execute(sql, params)
        finally:
            cursor.close()

    # ── catalog ───────────────────────────────────────────────

    def list_tables(self) -> list[str]:
        raise NotImplementedError

    def list_sequences(self) -> list[str]:
        return []

    def describe_columns(self, table: str) -> list[tuple[str, str]]:
        """(column name, declared type) pairs in ordinal order."""
        raise NotImplementedError

    # ── data ──────────────────────────────────────────────────

    def count_rows(self, table: str) -> int:
        return int(self.scalar(f"SELECT COUNT(*) FROM {self.table_ref(table)}"))

    def id_bounds(self, table: str) -> tuple:
        rows = self.query(f"SELECT MIN(id), MAX(id) FROM {self.table_ref(table)}")
        return tuple(rows[0]) if rows else (None, None)

    def max_id(self, table: str):
        return self.scalar(f"SELECT MAX(id) FROM {self.table_ref(table)}")

    def fetch_rows(self, table: str, columns: list[str], chunk: ChunkRange = None):
        """Yield row tuples in ``columns`` order, optionally limited to an id range."""
        select_list = ", ".join(self.quote(c) for c in columns)
        sql = f"SELECT {select_list} FROM {self.table_ref(table)}"
        params = None
        if chunk is not None:
            sql += " WHERE id >= %s AND id <= %s"
            params = (chunk.low, chunk.high)

        cursor = self.conn.cursor()
        try:
            cursor.execute(sql, params)
            while True:
                batch = cursor.fetchmany(FETCH_BATCH)
                if not batch:
                    break
                for row in batch:
                    yield row
        finally:
            cursor.close()

    def insert_sql(self, table: str, columns: list[str]) -> str:
        column_list = ", ".join(self.quote(c) for c in columns)
        placeholders = ", ".join(["%s"] * len(columns))
        return f"INSERT INTO {self.table_ref(table)} ({column_list}) VALUES ({placeholders})"

    def insert_rows(self, table: str, columns: list[str], rows: list[tuple]):
        if not rows:
            return
        cursor = self.conn.cursor()
        try:
            cursor.executemany(self.insert_sql(table, columns), rows)
        finally:
            cursor.close()

    def delete_all(self, table: str):
        self.execute(f"DELETE FROM {self.table_ref(table)}")
        self.commit()

    def set_sequence_next(self, sequence: str, value: int):
        raise NotImplementedError(f"{self.engine} has no native sequences")

    def binary(self, value):
        return value

    def disable_triggers(self):
        pass

    def enable_triggers(self):
        pass

    # ── transactions ──────────────────────────────────────────

    def begin(self):
        pass

    def commit(self):
        self.conn.commit()

    def rollback(self):
        self.conn.rollback()


class MySQLDatabase(Database):
    engine = "mysql"
    quote_char = "`"
    driver_error = MySQLError

    def _connect(self):
        return mysql.connector.connect(
            host=self.config.host,
            port=self.config.port,
            user=self.config.user,
            password=self.config.password or "",
            database=self.config.database,
            charset="utf8mb4",
            autocommit=False,
            connect_timeout=10,
        )

    def list_tables(self) -> list[str]:
        rows = self.query(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = %s AND table_type = 'BASE TABLE' "
            "ORDER BY table_name",
            (self.config.database,),
        )
        return [_text(row[0]) for row in rows]

    def describe_columns(self, table: str) -> list[tuple[str, str]]:
        rows = self.query(
            "SELECT column_name, column_type FROM information_schema.columns "
            "WHERE table_schema = %s AND table_name = %s "
            "ORDER BY ordinal_position",
            (self.config.database, table),
        )
        return [(_text(name), _text(col_type)) for name, col_type in rows]

    def begin(self):
        if not self.conn.in_transaction:
            self.conn.start_transaction()

    def disable_triggers(self):
        self.execute("SET FOREIGN_KEY_CHECKS = 0")

    def enable_triggers(self):
        self.execute("SET FOREIGN_KEY_CHECKS = 1")


class PostgreSQLDatabase(Database):
    engine = "postgresql"
    driver_error = psycopg2.Error

    def _connect(self):
        conn = psycopg2.connect(
            host=self.config.host,
            port=self.config.port,
            user=self.config.user,
            password=self.config.password,
            dbname=self.config.database,
            connect_timeout=10,
        )
        conn.autocommit = False
        return conn

    def table_ref(self, table: str) -> str:
        return f"{self.quote(self.schema)}.{self.quote(table)}"

    def list_tables(self) -> list[str]:
        rows = self.query(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = %s AND table_type = 'BASE TABLE' "
            "ORDER BY table_name",
            (self.schema,),
        )
        return [row[0] for row in rows]

    def list_sequences(self) -> list[str]:
        rows = self.query(
            "SELECT sequence_name FROM information_schema.sequences "
            "WHERE sequence_schema = %s ORDER BY sequence_name",
            (self.schema,),
        )
        return [row[0] for row in rows]

    def describe_columns(self, table: str) -> list[tuple[str, str]]:
        rows = self.query(
            "SELECT column_name, data_type FROM information_schema.columns "
            "WHERE table_schema = %s AND table_name = %s "
            "ORDER BY ordinal_position",
            (self.schema, table),
        )
        return [(name, data_type) for name, data_type in rows]

    def insert_rows(self, table: str, columns: list[str], rows: list[tuple]):
        if not rows:
            return
        cursor = self.conn.cursor()
        try:
            psycopg2.extras.execute_batch(cursor, self.insert_sql(table, columns), rows)
        finally:
            cursor.close()

    def set_sequence_next(self, sequence: str, value: int):
        # is_called = false: the next nextval() returns exactly ``value``
        self.execute(
            "SELECT setval(%s, %s, false)",
            (f"{self.quote(self.schema)}.{self.quote(sequence)}", value),
        )

    def binary(self, value):
        return psycopg2.Binary(value)

    def disable_triggers(self):
        self.execute("SET session_replication_role = 'replica'")

    def enable_triggers(self):
        self.execute("SET session_replication_role = 'origin'")


ENGINES = {
    "mysql": MySQLDatabase,
    "postgresql": PostgreSQLDatabase,
}


def _text(value) -> str:
    # information_schema columns come back as bytes on some MySQL servers
    return value.decode() if isinstance(value, (bytes, bytearray)) else value


def open_database(config: ConnectionConfig, label: str, schema: str = PUBLIC_SCHEMA) -> Database:
    """Connect to the engine named in ``config``; raises ConnectionFailure."""
    return ENGINES[config.engine](config, label=label, schema=schema).connect()


def print_connection_hints(config: ConnectionConfig, error: Exception):
    """Print troubleshooting tips for a failed connection."""
    console.print(f"\n  [red]✗ {config.engine} connection failed:[/red] {error}")

    error_code = getattr(error, "errno", None)
    message = str(error).lower()

    if error_code == 2003 or "connection refused" in message or "could not connect" in message:
        console.print(
            "\n  [yellow]Troubleshooting:[/yellow]\n"
            f"    1. Is the server running on [cyan]{config.host}:{config.port}[/cyan]?\n"
            "    2. Check firewall rules and the server's listen/bind address"
        )
    elif error_code == 1045 or "password authentication failed" in message:
        console.print(
            "\n  [yellow]Troubleshooting:[/yellow]\n"
            f"    • Access denied for user [cyan]{config.user}[/cyan]\n"
            "    • Check the password in [cyan]migration_config.json[/cyan] or on the command line"
        )
    elif error_code == 1049 or ("database" in message and "does not exist" in message):
        console.print(
            "\n  [yellow]Troubleshooting:[/yellow]\n"
            f"    • Database [cyan]{config.database}[/cyan] does not exist\n"
            "    • The destination schema must be created before copying data"
        )
    elif error_code == 2005 or "could not translate host name" in message:
        console.print(
            "\n  [yellow]Troubleshooting:[/yellow]\n"
            f"    • Cannot resolve hostname [cyan]{config.host}[/cyan]\n"
            "    • Try using an IP address instead"
        )
    console.print("")
