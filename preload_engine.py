#!/usr/bin/env python3
"""Bulk preload of tables before the operation phase"""
import random
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed

from generate_workload_utils import (
    debug_print, info_print, flatten,
    DEFAULT_BATCH_SIZE, DEFAULT_THREAD_COUNT, DEFAULT_LARGE_TABLE_THRESHOLD
)
from statement_builder import StatementSet


def partition_range(total, parts):
    """
    Split [0, total) into contiguous ranges, one per worker.

    Each range holds total // parts rows; the last one absorbs the remainder.

    Returns: list of (start, end) tuples, empty ranges omitted
    """
    if parts < 1:
        raise ValueError("parts must be at least 1, got {0}".format(parts))
    size = total // parts
    ranges = []
    for i in range(parts):
        start = i * size
        end = total if i == parts - 1 else start + size
        if end > start:
            ranges.append((start, end))
    return ranges


def worker_rng(seed, *parts):
    """Independent RNG per worker; reproducible when a seed is given"""
    if seed is None:
        return random.Random()
    return random.Random(":".join(str(p) for p in (seed,) + parts))


class NullProgress(object):
    """Progress sink that discards updates"""

    def update(self, n=1):
        pass

    def close(self):
        pass


def null_progress_factory(table, total, desc):
    return NullProgress()


class PreloadEngine(object):
    """
    Inserts exactly preload_count synthetic rows into each table.

    Tables below large_table_threshold load in one sequential pass; larger
    tables are split into thread_count partitions loaded concurrently.
    """

    def __init__(self, executor, generator, state, batch_size=DEFAULT_BATCH_SIZE,
                 thread_count=DEFAULT_THREAD_COUNT,
                 large_table_threshold=DEFAULT_LARGE_TABLE_THRESHOLD,
                 progress_factory=null_progress_factory, seed=None, stop_event=None):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1, got {0}".format(batch_size))
        if thread_count < 1:
            raise ValueError("thread_count must be at least 1, got {0}".format(thread_count))
        self.executor = executor
        self.generator = generator
        self.state = state
        self.batch_size = batch_size
        self.thread_count = thread_count
        self.large_table_threshold = large_table_threshold
        self.progress_factory = progress_factory
        self.seed = seed
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        # One pool for every large table, so worker threads and their
        # connections are reused instead of opened per table
        self._pool = None
        self._pool_lock = threading.Lock()

    def _worker_pool(self):
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(max_workers=self.thread_count,
                                                thread_name_prefix="preload")
            return self._pool

    def close(self):
        """Shut down the partition worker pool"""
        with self._pool_lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=True)

    def preload_table(self, table):
        """
        Load table.preload_count rows.

        Returns: number of rows inserted
        Raises: the first worker failure, after every worker has stopped
        """
        total = table.preload_count
        if total == 0:
            debug_print("{0}: nothing to preload".format(table.name))
            return 0
        counters = self.state.table(table.name)
        statements = StatementSet(table, self.batch_size)
        progress = self.progress_factory(table, total, "Loading {0}".format(table.name))
        try:
            if total < self.large_table_threshold or self.thread_count == 1:
                inserted = self._load_partition(table, statements, counters, progress, 0, total)
            else:
                inserted = self._load_parallel(table, statements, counters, progress, total)
        finally:
            progress.close()
        if inserted == total:
            info_print("Finished. Inserted {0} records to table {1}".format(inserted, table.name))
        else:
            info_print("Stopped. Inserted {0} of {1} records to table {2}".format(
                inserted, total, table.name))
        return inserted

    def _load_parallel(self, table, statements, counters, progress, total):
        partitions = partition_range(total, self.thread_count)
        debug_print("{0}: loading {1} rows in partitions {2}".format(table.name, total, partitions))
        pool = self._worker_pool()
        inserted = 0
        error = None
        futures = {}
        for start, end in partitions:
            future = pool.submit(self._load_partition, table, statements, counters, progress, start, end)
            futures[future] = (start, end)
        for future in as_completed(futures):
            try:
                inserted += future.result()
            except Exception as e:
                self.stop_event.set()
                if error is None:
                    error = e
                debug_print("{0}: partition {1} failed: {2}".format(table.name, futures[future], e))
        if error is not None:
            raise error
        return inserted

    def _load_partition(self, table, statements, counters, progress, start, end):
        """Insert rows [start, end) in batches; flushes the partial batch at the end"""
        rng = worker_rng(self.seed, table.name, start)
        buffer = []
        inserted = 0
        for _ in range(start, end):
            if self.stop_event.is_set():
                return inserted
            buffer.append(self.generator.generate_row(rng, table))
            if len(buffer) == self.batch_size:
                inserted += self._flush(statements, counters, progress, buffer)
                buffer = []
        if buffer:
            inserted += self._flush(statements, counters, progress, buffer)
        return inserted

    def _flush(self, statements, counters, progress, buffer):
        try:
            self.executor.execute(statements.insert(len(buffer)), flatten(buffer))
        except Exception:
            # Stop sibling partitions at their next row
            self.stop_event.set()
            raise
        counters.preloaded.add(len(buffer))
        progress.update(len(buffer))
        return len(buffer)
