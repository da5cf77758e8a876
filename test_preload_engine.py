#!/usr/bin/env python3
"""Unit tests for PreloadEngine partitioning and batching"""
import threading
import unittest
from io import StringIO
from unittest.mock import patch
from generate_workload_utils import StatementError
from statement_executor import MySQLExecutor
from schema_resolver import parse_workload, resolve_workload
from value_generator import ValueGenerator
from workload_state import WorkloadState
from preload_engine import PreloadEngine, partition_range


class FakeExecutor:
    """Records executed statements; optionally fails on the Nth call"""

    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on
        self.lock = threading.Lock()

    def execute(self, statement, values=()):
        with self.lock:
            self.calls.append((statement, list(values)))
            if self.fail_on is not None and len(self.calls) == self.fail_on:
                raise StatementError(statement, values, Exception("boom"))


class MockConnection:
    """Mock database connection for testing"""

    def __init__(self):
        self.closed = False

    def cursor(self):
        return MockCursor()

    def close(self):
        self.closed = True


class MockCursor:

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        pass


class CountingProgress:

    def __init__(self):
        self.total = 0
        self.closed = False
        self.lock = threading.Lock()

    def update(self, n=1):
        with self.lock:
            self.total += n

    def close(self):
        self.closed = True


class TestPartitionRange(unittest.TestCase):

    def test_even_split(self):
        self.assertEqual(partition_range(9, 3), [(0, 3), (3, 6), (6, 9)])

    def test_last_partition_absorbs_remainder(self):
        self.assertEqual(partition_range(10, 3), [(0, 3), (3, 6), (6, 10)])

    def test_fewer_rows_than_parts(self):
        self.assertEqual(partition_range(2, 4), [(0, 2)])
        self.assertEqual(partition_range(0, 4), [])

    def test_ranges_cover_total(self):
        for total in (1, 7, 100, 1001):
            for parts in (1, 2, 3, 8):
                ranges = partition_range(total, parts)
                covered = sum(end - start for start, end in ranges)
                self.assertEqual(covered, total)
                for (_, end), (start, _) in zip(ranges, ranges[1:]):
                    self.assertEqual(end, start)

    def test_rejects_zero_parts(self):
        with self.assertRaises(ValueError):
            partition_range(10, 0)


class TestPreloadEngine(unittest.TestCase):
    """Test cases for the preload phase"""

    def setUp(self):
        cfg = {"tables": [
            {"name": "orders", "primary_key": "id", "preload_count": 1000,
             "schema": {"customer": "varchar", "total": "numeric"}},
            {"name": "order_items", "primary_key": "id", "preload_count": 250,
             "schema": {"order_id": {"type": "bigint", "reference": "orders"}, "qty": "integer"}},
        ]}
        self.workload = resolve_workload(parse_workload(cfg))
        self.state = WorkloadState(self.workload)
        self.generator = ValueGenerator(self.workload, self.state)

    def _engine(self, executor, **kwargs):
        engine = PreloadEngine(executor, self.generator, self.state, seed=7, **kwargs)
        self.addCleanup(engine.close)
        return engine

    def _rows_inserted(self, executor, table):
        return sum(len(values) // len(table.column_names) for _, values in executor.calls)

    def test_partitioning_is_transparent(self):
        orders = self.workload.table_map["orders"]
        for threads in (1, 2, 3, 7):
            for threshold in (0, 1000, 10 ** 9):
                self.state = WorkloadState(self.workload)
                self.generator = ValueGenerator(self.workload, self.state)
                executor = FakeExecutor()
                engine = self._engine(executor, batch_size=64, thread_count=threads,
                                      large_table_threshold=threshold)
                self.assertEqual(engine.preload_table(orders), 1000)
                self.assertEqual(self.state.table("orders").preloaded.value, 1000)
                self.assertEqual(self._rows_inserted(executor, orders), 1000)

    def test_batches_and_partial_flush(self):
        orders = self.workload.table_map["orders"]._replace(preload_count=125)
        executor = FakeExecutor()
        self._engine(executor, batch_size=50).preload_table(orders)
        sizes = [len(values) // 2 for _, values in executor.calls]
        self.assertEqual(sizes, [50, 50, 25])
        self.assertEqual(executor.calls[0][0].count("%(v"), 100)
        self.assertEqual(executor.calls[2][0].count("%(v"), 50)

    def test_parallel_partitions_flush_their_own_remainders(self):
        orders = self.workload.table_map["orders"]._replace(preload_count=100)
        executor = FakeExecutor()
        self._engine(executor, batch_size=30, thread_count=3,
                     large_table_threshold=100).preload_table(orders)
        sizes = sorted(len(values) // 2 for _, values in executor.calls)
        # partitions of 33, 33 and 34 rows
        self.assertEqual(sizes, [3, 3, 4, 30, 30, 30])

    def test_progress_reports_every_row(self):
        orders = self.workload.table_map["orders"]
        progress = CountingProgress()
        engine = self._engine(FakeExecutor(), batch_size=33, thread_count=4, large_table_threshold=1,
                              progress_factory=lambda table, total, desc: progress)
        engine.preload_table(orders)
        self.assertEqual(progress.total, 1000)
        self.assertTrue(progress.closed)

    def test_foreign_keys_stay_within_parent_rows(self):
        items = self.workload.table_map["order_items"]
        executor = FakeExecutor()
        self._engine(executor, batch_size=10).preload_table(items)
        fk_values = [values[i] for _, values in executor.calls for i in range(0, len(values), 2)]
        self.assertEqual(len(fk_values), 250)
        self.assertTrue(all(0 <= v < 1000 for v in fk_values))

    def test_flush_failure_is_fatal(self):
        orders = self.workload.table_map["orders"]
        executor = FakeExecutor(fail_on=2)
        engine = self._engine(executor, batch_size=100)
        with self.assertRaises(StatementError):
            engine.preload_table(orders)
        self.assertEqual(len(executor.calls), 2)
        self.assertEqual(self.state.table("orders").preloaded.value, 100)

    def test_parallel_failure_stops_other_workers(self):
        orders = self.workload.table_map["orders"]
        executor = FakeExecutor(fail_on=1)
        engine = self._engine(executor, batch_size=10, thread_count=4, large_table_threshold=1)
        with self.assertRaises(StatementError):
            engine.preload_table(orders)
        self.assertTrue(engine.stop_event.is_set())
        self.assertLess(self.state.table("orders").preloaded.value, 1000)

    def test_empty_table(self):
        orders = self.workload.table_map["orders"]._replace(preload_count=0)
        executor = FakeExecutor()
        self.assertEqual(self._engine(executor).preload_table(orders), 0)
        self.assertEqual(executor.calls, [])

    def test_empty_table_with_zero_threshold(self):
        items = self.workload.table_map["order_items"]._replace(preload_count=0)
        executor = FakeExecutor()
        engine = self._engine(executor, thread_count=2, large_table_threshold=0)
        self.assertEqual(engine.preload_table(items), 0)
        self.assertEqual(executor.calls, [])

    def test_worker_connections_are_reused_across_tables(self):
        connections = []

        def connect(**kwargs):
            conn = MockConnection()
            connections.append(conn)
            return conn

        executor = MySQLExecutor({"host": "db"}, connect=connect)
        engine = self._engine(executor, batch_size=50, thread_count=2, large_table_threshold=1)
        engine.preload_table(self.workload.table_map["orders"])
        engine.preload_table(self.workload.table_map["order_items"])
        self.assertLessEqual(len(connections), 2)
        engine.close()
        executor.close()
        self.assertTrue(all(c.closed for c in connections))

    def test_stopped_load_is_not_reported_finished(self):
        orders = self.workload.table_map["orders"]
        stop = threading.Event()
        stop.set()
        engine = self._engine(FakeExecutor(), stop_event=stop)
        with patch("sys.stderr", new_callable=StringIO) as err:
            self.assertEqual(engine.preload_table(orders), 0)
        self.assertIn("Stopped. Inserted 0 of 1000 records to table orders", err.getvalue())
        self.assertNotIn("Finished", err.getvalue())

    def test_finished_load_is_reported(self):
        orders = self.workload.table_map["orders"]._replace(preload_count=10)
        with patch("sys.stderr", new_callable=StringIO) as err:
            self._engine(FakeExecutor()).preload_table(orders)
        self.assertIn("Finished. Inserted 10 records to table orders", err.getvalue())

    def test_rejects_bad_settings(self):
        with self.assertRaises(ValueError):
            self._engine(FakeExecutor(), batch_size=0)
        with self.assertRaises(ValueError):
            self._engine(FakeExecutor(), thread_count=0)


if __name__ == '__main__':
    unittest.main()
