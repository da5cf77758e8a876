#!/usr/bin/env python3
"""Unit tests for MySQLExecutor using a mock pymysql connection"""
import json
import threading
import unittest

import pymysql

from generate_workload_utils import StatementError
from schema_resolver import parse_workload, resolve_workload
from statement_executor import MySQLExecutor, adapt_value


class MockCursor:
    """Mock database cursor for testing"""

    def __init__(self, conn):
        self.conn = conn

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        if self.conn.error is not None:
            raise self.conn.error
        self.conn.executed.append((query, params))


class MockConnection:
    """Mock database connection for testing"""

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.executed = []
        self.error = None
        self.closed = False

    def cursor(self):
        return MockCursor(self)

    def close(self):
        self.closed = True


class MockConnect:

    def __init__(self):
        self.connections = []

    def __call__(self, **kwargs):
        conn = MockConnection(**kwargs)
        self.connections.append(conn)
        return conn


class TestMySQLExecutor(unittest.TestCase):
    """Test cases for MySQLExecutor functionality"""

    def setUp(self):
        self.connect = MockConnect()
        self.executor = MySQLExecutor({"host": "db", "user": "bench"}, connect=self.connect)

    def test_connection_settings(self):
        self.executor.execute("SELECT 1")
        kwargs = self.connect.connections[0].kwargs
        self.assertTrue(kwargs["autocommit"])
        self.assertEqual(kwargs["charset"], "utf8mb4")
        self.assertEqual(kwargs["host"], "db")

    def test_values_bound_by_position(self):
        self.executor.execute("INSERT INTO `t` (`a`, `b`) VALUES (%(v1)s, %(v2)s)", [1, {"k": "x"}])
        query, params = self.connect.connections[0].executed[0]
        self.assertEqual(params["v1"], 1)
        self.assertEqual(json.loads(params["v2"]), {"k": "x"})

    def test_statement_without_values(self):
        self.executor.execute("SELECT 1")
        self.assertEqual(self.connect.connections[0].executed, [("SELECT 1", None)])

    def test_connection_reused_within_thread(self):
        self.executor.execute("SELECT 1")
        self.executor.execute("SELECT 2")
        self.assertEqual(len(self.connect.connections), 1)

    def test_one_connection_per_thread(self):
        threads = [threading.Thread(target=self.executor.execute, args=("SELECT 1",)) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(len(self.connect.connections), 3)

    def test_failure_is_wrapped(self):
        self.executor.execute("SELECT 1")
        self.connect.connections[0].error = pymysql.err.OperationalError(2013, "Lost connection")
        with self.assertRaises(StatementError) as ctx:
            self.executor.execute("UPDATE `t` SET `a` = %(v1)s WHERE `id` = %(v2)s", [5, 9])
        err = ctx.exception
        self.assertIn("UPDATE `t`", str(err))
        self.assertEqual(err.values, [5, 9])
        self.assertIsInstance(err.cause, pymysql.err.OperationalError)

    def test_ensure_table(self):
        cfg = {"tables": [{"name": "t", "primary_key": "id", "schema": {"a": "integer"}}]}
        table = resolve_workload(parse_workload(cfg)).tables[0]
        self.executor.ensure_table(table)
        query, _ = self.connect.connections[0].executed[0]
        self.assertTrue(query.startswith("CREATE TABLE IF NOT EXISTS `t`"))

    def test_close_closes_every_connection(self):
        t = threading.Thread(target=self.executor.execute, args=("SELECT 1",))
        t.start()
        t.join()
        self.executor.execute("SELECT 1")
        self.executor.close()
        self.assertTrue(all(c.closed for c in self.connect.connections))

    def test_adapt_value(self):
        self.assertEqual(adapt_value(3), 3)
        self.assertEqual(adapt_value("x"), "x")
        self.assertEqual(json.loads(adapt_value({"a": 1})), {"a": 1})


if __name__ == '__main__':
    unittest.main()
