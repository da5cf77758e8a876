#!/usr/bin/env python3
"""Schema resolution module: workload config -> immutable generation plan"""
import numbers
from generate_workload_utils import (
    debug_print, ConfigError, ColumnSpec, TableSpec, ResolvedColumn,
    ResolvedTable, ResolvedWorkload, COLUMN_TYPES, SURROGATE_KEY_TYPE
)


def _require_count(table_name, entry, key, default=0):
    value = entry.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigError("table '{0}': '{1}' must be a non-negative integer, got {2!r}".format(
            table_name, key, value))
    return value


def _require_number(table_name, entry, key, default, low=0.0, high=None):
    value = entry.get(key, default)
    if value is None:
        value = default
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigError("table '{0}': '{1}' must be a number, got {2!r}".format(
            table_name, key, value))
    if value < low or (high is not None and value > high):
        bounds = "[{0}, {1}]".format(low, high) if high is not None else ">= {0}".format(low)
        raise ConfigError("table '{0}': '{1}' must be {2}, got {3}".format(
            table_name, key, bounds, value))
    return float(value)


def parse_table_spec(entry):
    """
    Parse one table entry of the workload config.

    Args:
        entry: dict with 'name', 'schema', 'primary_key' and optional
               'preload_count', 'operation_count', 'update_proportion',
               'ops_per_second'

    Returns: TableSpec
    """
    if not isinstance(entry, dict):
        raise ConfigError("each table entry must be an object, got {0!r}".format(entry))
    name = entry.get("name")
    if not name or not isinstance(name, str):
        raise ConfigError("table entry is missing 'name': {0!r}".format(entry))
    primary_key = entry.get("primary_key")
    if not primary_key or not isinstance(primary_key, str):
        raise ConfigError("table '{0}' is missing 'primary_key'".format(name))

    schema = entry.get("schema")
    if not isinstance(schema, dict):
        raise ConfigError("table '{0}': 'schema' must map column names to column definitions".format(name))

    columns = []
    for col_name, col_cfg in schema.items():
        if isinstance(col_cfg, str):
            # Shorthand: "column": "type"
            col_cfg = {"type": col_cfg}
        if not isinstance(col_cfg, dict):
            raise ConfigError("table '{0}', column '{1}': invalid definition {2!r}".format(
                name, col_name, col_cfg))
        columns.append(ColumnSpec(col_name, col_cfg.get("type"), col_cfg.get("reference") or None))

    return TableSpec(
        name=name,
        columns=tuple(columns),
        primary_key=primary_key,
        preload_count=_require_count(name, entry, "preload_count"),
        operation_count=_require_count(name, entry, "operation_count"),
        update_proportion=_require_number(name, entry, "update_proportion", 0.0, 0.0, 1.0),
        ops_per_second=_require_number(name, entry, "ops_per_second", 0.0),
    )


def parse_workload(raw):
    """
    Parse a loaded workload document ({"tables": [...]}) into TableSpecs.

    Returns: tuple of TableSpec in declaration order
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("tables"), list):
        raise ConfigError("workload config must be an object with a 'tables' array")
    specs = []
    seen = set()
    for entry in raw["tables"]:
        spec = parse_table_spec(entry)
        if spec.name in seen:
            raise ConfigError("table '{0}' is declared more than once".format(spec.name))
        seen.add(spec.name)
        specs.append(spec)
    return tuple(specs)


def resolve_workload(table_specs):
    """
    Link foreign-key references and fix column order for every table.

    Every referencing column is retyped to the surrogate-key type. The input
    specs are left untouched; a new ResolvedWorkload is returned.

    Raises:
        ConfigError: on an unknown reference target or unsupported type
    """
    spec_map = {}
    for spec in table_specs:
        spec_map[spec.name] = spec

    tables = []
    for spec in table_specs:
        columns = []
        for col in spec.columns:
            if col.name == spec.primary_key:
                debug_print("{0}: primary key {1} is server-assigned, dropping it from the schema".format(
                    spec.name, col.name))
                continue
            if col.reference:
                if col.reference not in spec_map:
                    raise ConfigError("table '{0}', column '{1}': invalid reference table '{2}'".format(
                        spec.name, col.name, col.reference))
                columns.append(ResolvedColumn(col.name, SURROGATE_KEY_TYPE, col.reference))
                continue
            if col.type not in COLUMN_TYPES:
                raise ConfigError("column type '{0}' (table '{1}', column '{2}') is not supported".format(
                    col.type, spec.name, col.name))
            columns.append(ResolvedColumn(col.name, col.type, None))
        if not columns:
            raise ConfigError("table '{0}' has no columns besides its primary key".format(spec.name))

        tables.append(ResolvedTable(
            name=spec.name,
            columns=tuple(columns),
            column_names=tuple(c.name for c in columns),
            primary_key=spec.primary_key,
            preload_count=spec.preload_count,
            operation_count=spec.operation_count,
            update_proportion=spec.update_proportion,
            ops_per_second=spec.ops_per_second,
        ))
        debug_print("Resolved {0}: columns={1}".format(spec.name, tables[-1].column_names))

    table_map = dict((t.name, t) for t in tables)
    return ResolvedWorkload(tuple(tables), table_map)


def dependency_levels(workload):
    """
    Group tables into levels so every referenced table sits in an earlier level.

    Self-references are ignored. Tables caught in a reference cycle are put
    together in a final level.

    Returns: list of lists of ResolvedTable, each level in declaration order
    """
    parents = {}
    for table in workload.tables:
        parents[table.name] = set(c.reference for c in table.columns
                                  if c.reference and c.reference != table.name)

    levels = []
    placed = set()
    remaining = [t for t in workload.tables]
    while remaining:
        level = [t for t in remaining if parents[t.name] <= placed]
        if not level:
            debug_print("Reference cycle between {0}".format([t.name for t in remaining]))
            level = remaining
        levels.append(level)
        placed.update(t.name for t in level)
        remaining = [t for t in remaining if t.name not in placed]
    return levels
