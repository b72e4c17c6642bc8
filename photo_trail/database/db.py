"""
Database connection management.
"""
import sqlite3
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from ..exceptions import StorageFailure
from .schema import init_schema

MEMORY = ":memory:"


class DBManager:
    """
    Hands out SQLite connections for the spatial store.

    File databases run in WAL mode with one connection per thread, so a
    reader only ever sees committed data while another thread is inside a
    write transaction. An in-memory database only exists on a single
    connection; every read and write then runs under the lock instead.
    """

    def __init__(self, db_path: Union[Path, str]):
        self.db_path = str(db_path)
        self.in_memory = self.db_path == MEMORY
        self._local = threading.local()
        self._shared_conn: Optional[sqlite3.Connection] = None
        self._open_conns: List[sqlite3.Connection] = []
        # connect() holds it while _open() registers the new connection
        self._registry_lock = threading.RLock()
        # SQLite allows a single writer; serialize here rather than spin on SQLITE_BUSY
        self._write_lock = threading.RLock()
        self._schema_ready = False

    def connect(self) -> sqlite3.Connection:
        """
        Returns this thread's connection, opening it (and creating the schema) on first use.
        """
        if self.in_memory:
            if self._shared_conn is None:
                with self._registry_lock:
                    if self._shared_conn is None:
                        self._shared_conn = self._open()
            return self._shared_conn

        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = self._open()
            self._local.conn = conn
        return conn

    def _open(self) -> sqlite3.Connection:
        logging.info(f"Connecting to database: {self.db_path}")
        try:
            # isolation_level=None: transactions are opened explicitly in transaction()
            conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row

            with self._write_lock:
                if not self.in_memory:
                    conn.execute("PRAGMA journal_mode=WAL;")
                    conn.execute("PRAGMA synchronous=NORMAL;")
                conn.execute("PRAGMA temp_store=MEMORY;")

                if not self._schema_ready or self.in_memory:
                    init_schema(conn)
                    self._schema_ready = True
        except sqlite3.Error as e:
            raise StorageFailure(f"Cannot open database {self.db_path}: {e}") from e

        with self._registry_lock:
            self._open_conns.append(conn)
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Runs the block inside BEGIN IMMEDIATE ... COMMIT.
        Any failure rolls everything back; sqlite errors surface as StorageFailure.
        """
        conn = self.connect()
        with self._write_lock:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StorageFailure(f"Cannot start transaction: {e}") from e

            try:
                yield conn
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                self._rollback(conn)
                raise StorageFailure(f"Transaction failed and was rolled back: {e}") from e
            except BaseException:
                self._rollback(conn)
                raise

    @contextmanager
    def reading(self) -> Iterator[sqlite3.Connection]:
        """Connection for read-only statements; sqlite errors surface as StorageFailure."""
        conn = self.connect()
        lock = self._write_lock if self.in_memory else None
        if lock:
            lock.acquire()
        try:
            yield conn
        except sqlite3.Error as e:
            raise StorageFailure(f"Read failed: {e}") from e
        finally:
            if lock:
                lock.release()

    def _rollback(self, conn: sqlite3.Connection):
        if conn.in_transaction:
            try:
                conn.execute("ROLLBACK")
            except sqlite3.Error as e:
                logging.error(f"Rollback failed: {e}")

    def close(self):
        with self._registry_lock:
            for conn in self._open_conns:
                conn.close()
            self._open_conns.clear()
            self._shared_conn = None
        self._local = threading.local()

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
