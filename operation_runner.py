#!/usr/bin/env python3
"""Steady-state mixed insert/update traffic against preloaded tables"""
import threading

from generate_workload_utils import (
    debug_print, info_print, TableResult, DEFAULT_LOG_EVERY
)
from generate_workload_patterns import RateLimiter
from preload_engine import worker_rng, null_progress_factory
from statement_builder import StatementSet


class OperationRunner(object):
    """
    Runs operation_count operations per table, strictly one at a time.

    Each operation is an update with probability update_proportion and an
    insert otherwise. Tables with ops_per_second > 0 are paced by a
    RateLimiter.
    """

    def __init__(self, executor, generator, state, progress_factory=null_progress_factory,
                 seed=None, stop_event=None, rate_limiter_factory=RateLimiter,
                 log_every=DEFAULT_LOG_EVERY):
        self.executor = executor
        self.generator = generator
        self.state = state
        self.progress_factory = progress_factory
        self.seed = seed
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        self.rate_limiter_factory = rate_limiter_factory
        self.log_every = log_every

    def run_table(self, table):
        """
        Perform the table's operations.

        Returns: TableResult with the counts performed by this run
        """
        counters = self.state.table(table.name)
        statements = StatementSet(table)
        rng = worker_rng(self.seed, table.name, "run")
        limiter = self.rate_limiter_factory(table.ops_per_second) if table.ops_per_second > 0 else None
        progress = self.progress_factory(table, table.operation_count, "Running {0}".format(table.name))

        inserts = 0
        updates = 0
        try:
            for i in range(table.operation_count):
                if self.stop_event.is_set():
                    debug_print("{0}: stopping after {1} operations".format(table.name, i))
                    break
                if limiter is not None:
                    limiter.acquire()

                # No existing row to update yet: the draw falls back to an insert
                if rng.random() < table.update_proportion and counters.live_row_count() > 0:
                    values = self.generator.generate_row(rng, table)
                    values.append(self.generator.pick_existing_key(rng, table))
                    self.executor.execute(statements.update, values)
                    counters.updated.add()
                    updates += 1
                else:
                    values = self.generator.generate_row(rng, table)
                    self.executor.execute(statements.insert_one, values)
                    # Published only once the autocommit insert has returned
                    counters.inserted.add()
                    inserts += 1
                progress.update(1)

                done = i + 1
                if self.log_every and done % self.log_every == 0 and done < table.operation_count:
                    info_print("Performed {0} updates and {1} inserts to table {2}".format(
                        updates, inserts, table.name))
        finally:
            progress.close()

        info_print("Finished. Performed {0} updates and {1} inserts to table {2}".format(
            updates, inserts, table.name))
        return TableResult(table.name, counters.preloaded.value, inserts, updates)
