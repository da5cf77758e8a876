#!/usr/bin/env python3
"""Mutable per-table counters shared between workers"""
from generate_workload_patterns import AtomicCounter


class TableCounters(object):
    """Live row accounting for one table"""

    def __init__(self, preload_count):
        self.preload_count = preload_count
        self.preloaded = AtomicCounter()
        self.inserted = AtomicCounter()
        self.updated = AtomicCounter()

    def live_row_count(self):
        """Rows assumed to exist: preloaded universe plus run-phase inserts"""
        return self.preload_count + self.inserted.value


class WorkloadState(object):
    """Counters for every table of a resolved workload"""

    def __init__(self, workload):
        self.counters = dict(
            (t.name, TableCounters(t.preload_count)) for t in workload.tables)

    def table(self, name):
        return self.counters[name]

    def live_row_count(self, name):
        return self.counters[name].live_row_count()
