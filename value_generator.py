#!/usr/bin/env python3
"""Value generation module for creating synthetic column values"""
from datetime import date, datetime, timedelta
from generate_workload_utils import (
    rand_string, ConfigError, SURROGATE_KEY_TYPE
)


class ValueGenerator(object):
    """
    Responsible for generating type-correct column values.

    Handles:
    - Random values for the closed set of column types
    - Foreign-key values bounded by the referenced table's live row count
    - Full rows in the table's fixed column order
    - Update targets drawn from the table's existing keys

    The generator holds no per-call state; callers pass their own
    random.Random so that worker threads never share one.
    """

    def __init__(self, workload, state):
        """
        Initialize value generator.

        Args:
            workload: ResolvedWorkload
            state: WorkloadState holding live row counters
        """
        self.workload = workload
        self.state = state

    def generate_value(self, rng, column):
        """
        Generate one random value for a resolved column.

        Args:
            rng: Random number generator
            column: ResolvedColumn

        Returns: Value whose Python type matches the column type
        """
        ctype = column.type
        if ctype == SURROGATE_KEY_TYPE:
            # Pick an existing parent row of the referenced table
            return self._pick_key(rng, column.reference)
        if ctype == "integer":
            return rng.randrange(100000)
        if ctype == "bigint":
            return rng.randrange(100000000)
        if ctype == "varchar":
            return rand_string(rng, 10)
        if ctype == "text":
            return rand_string(rng, 20)
        if ctype == "boolean":
            return rng.random() < 0.5
        if ctype == "numeric":
            return rng.random() * 100
        if ctype == "date":
            return date.today() + timedelta(days=rng.randrange(30))
        if ctype == "timestamp":
            return datetime.now() + timedelta(minutes=rng.randrange(60))
        if ctype == "jsonb":
            return {
                "key1": rand_string(rng, 5),
                "key2": rng.randrange(100),
                "key3": rand_string(rng, 8),
            }
        raise ConfigError("column type '{0}' (column '{1}') is not supported".format(ctype, column.name))

    def generate_row(self, rng, table):
        """Generate one value per non-key column, in table.column_names order"""
        return [self.generate_value(rng, col) for col in table.columns]

    def pick_existing_key(self, rng, table):
        """Pick a primary-key value among the table's existing rows"""
        return self._pick_key(rng, table.name)

    def _pick_key(self, rng, table_name):
        live = self.state.live_row_count(table_name)
        if live <= 0:
            raise ConfigError("table '{0}' has no rows to reference".format(table_name))
        return rng.randrange(live)
