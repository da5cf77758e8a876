#!/usr/bin/env python3
"""MySQL statement execution shared by all workload workers"""
import json
import threading

import pymysql

from generate_workload_utils import debug_print, StatementError
from statement_builder import bind_params, build_create_table


def adapt_value(value):
    """Convert generated values pymysql cannot escape natively"""
    if isinstance(value, dict):
        return json.dumps(value)
    return value


class MySQLExecutor(object):
    """
    Executes parameterized statements against MySQL.

    One instance is shared by every worker. pymysql connections are not
    thread-safe, so each thread lazily opens its own autocommit connection.
    """

    def __init__(self, connect_kwargs, connect=pymysql.connect):
        """
        Args:
            connect_kwargs: keyword arguments for pymysql.connect
            connect: connection factory
        """
        self.connect_kwargs = dict(connect_kwargs)
        self.connect_kwargs.setdefault("charset", "utf8mb4")
        self.connect_kwargs["autocommit"] = True
        self._connect = connect
        self._local = threading.local()
        self._connections = []
        self._lock = threading.Lock()

    def _connection(self):
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = self._connect(**self.connect_kwargs)
            self._local.conn = conn
            with self._lock:
                self._connections.append(conn)
            debug_print("Opened connection for thread {0}".format(threading.current_thread().name))
        return conn

    def execute(self, statement, values=()):
        """
        Execute one statement with positional values.

        Raises:
            StatementError: wrapping any pymysql failure
        """
        params = bind_params([adapt_value(v) for v in values]) if values else None
        try:
            with self._connection().cursor() as cur:
                cur.execute(statement, params)
        except pymysql.MySQLError as e:
            raise StatementError(statement, list(values), e)

    def ensure_table(self, table):
        """Create the table with matching column types if it does not exist"""
        self.execute(build_create_table(table))

    def close(self):
        with self._lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            try:
                conn.close()
            except pymysql.MySQLError as e:
                debug_print("Ignoring error while closing connection: {0}".format(e))
