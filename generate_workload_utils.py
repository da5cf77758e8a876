#!/usr/bin/env python3
"""Utility functions and data structures for workload generation"""
import sys
from collections import namedtuple

GLOBALS = {"debug": False}

ALPHANUMERIC = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

# Columns that reference another table store that table's surrogate key
SURROGATE_KEY_TYPE = "bigserial"

# Closed set of declarable column types
COLUMN_TYPES = ("integer", "bigint", "varchar", "text", "boolean",
                "numeric", "date", "timestamp", "jsonb")

DEFAULT_BATCH_SIZE = 50
DEFAULT_THREAD_COUNT = 2
DEFAULT_LARGE_TABLE_THRESHOLD = 10000000
DEFAULT_LOG_EVERY = 100000


class WorkloadError(Exception):
    """Base class for every failure that stops a workload run"""


class ConfigError(WorkloadError):
    """Invalid workload configuration (bad reference, unsupported type, ...)"""


class StatementError(WorkloadError):
    """A generated statement failed against the backing store"""

    def __init__(self, statement, values, cause):
        self.statement = statement
        self.values = values
        self.cause = cause
        super(StatementError, self).__init__(
            "failed to execute statement: {0}; statement: {1}; values: {2!r}".format(
                cause, statement, values))


def debug_print(*args, **kwargs):
    if GLOBALS["debug"]:
        print("[DEBUG]", *args, **kwargs)


def info_print(*args, **kwargs):
    kwargs.setdefault("file", sys.stderr)
    print(*args, **kwargs)


def rand_string(rng, length=12):
    return "".join(rng.choice(ALPHANUMERIC) for _ in range(length))


def flatten(rows):
    """Flatten a list of row tuples into one flat value list"""
    flat = []
    for row in rows:
        flat.extend(row)
    return flat


ColumnSpec = namedtuple("ColumnSpec", ["name", "type", "reference"])
TableSpec = namedtuple("TableSpec", ["name", "columns", "primary_key", "preload_count",
                                     "operation_count", "update_proportion", "ops_per_second"])

ResolvedColumn = namedtuple("ResolvedColumn", ["name", "type", "reference"])
ResolvedTable = namedtuple("ResolvedTable", ["name", "columns", "column_names", "primary_key",
                                             "preload_count", "operation_count",
                                             "update_proportion", "ops_per_second"])
ResolvedWorkload = namedtuple("ResolvedWorkload", ["tables", "table_map"])

TableResult = namedtuple("TableResult", ["name", "preloaded", "inserted", "updated"])
