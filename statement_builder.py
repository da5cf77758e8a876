#!/usr/bin/env python3
"""Parameterized SQL statement construction for resolved tables"""
from generate_workload_utils import ConfigError, SURROGATE_KEY_TYPE

# MySQL rendering of each declarable column type
MYSQL_COLUMN_TYPES = {
    "integer": "INT",
    "bigint": "BIGINT",
    "varchar": "VARCHAR(255)",
    "text": "TEXT",
    "boolean": "BOOLEAN",
    "numeric": "DOUBLE",
    "date": "DATE",
    "timestamp": "DATETIME",
    "jsonb": "JSON",
    SURROGATE_KEY_TYPE: "BIGINT",
}


def quote_ident(name):
    return "`{0}`".format(name.replace("`", "``"))


def placeholder(index):
    """Render 1-based positional parameter `index` for pymysql (pyformat style)"""
    return "%(v{0})s".format(index)


def bind_params(values):
    """Map a flat value list onto the parameters emitted by placeholder()"""
    return dict(("v{0}".format(i), v) for i, v in enumerate(values, 1))


def build_insert(table, num_rows):
    """
    Build a multi-row INSERT for the table's non-key columns.

    Placeholders are numbered 1..num_rows*len(columns), row-major, matching
    the flattened row values in table.column_names order.
    """
    if num_rows < 1:
        raise ValueError("num_rows must be at least 1, got {0}".format(num_rows))
    num_fields = len(table.column_names)
    cols = ", ".join(quote_ident(c) for c in table.column_names)
    rows = []
    for i in range(num_rows):
        row = ", ".join(placeholder(i * num_fields + j + 1) for j in range(num_fields))
        rows.append("({0})".format(row))
    return "INSERT INTO {0} ({1}) VALUES {2}".format(quote_ident(table.name), cols, ", ".join(rows))


def build_update(table):
    """Build an UPDATE of every non-key column; the last parameter is the primary key"""
    set_clauses = ["{0} = {1}".format(quote_ident(c), placeholder(i))
                   for i, c in enumerate(table.column_names, 1)]
    return "UPDATE {0} SET {1} WHERE {2} = {3}".format(
        quote_ident(table.name), ", ".join(set_clauses),
        quote_ident(table.primary_key), placeholder(len(table.column_names) + 1))


def build_create_table(table):
    """Build CREATE TABLE IF NOT EXISTS DDL with an auto-increment primary key"""
    definitions = []
    for col in table.columns:
        sql_type = MYSQL_COLUMN_TYPES.get(col.type)
        if sql_type is None:
            raise ConfigError("column type '{0}' (table '{1}', column '{2}') is not supported".format(
                col.type, table.name, col.name))
        definitions.append("{0} {1}".format(quote_ident(col.name), sql_type))
    definitions.append("{0} BIGINT AUTO_INCREMENT PRIMARY KEY".format(quote_ident(table.primary_key)))
    return "CREATE TABLE IF NOT EXISTS {0} ({1})".format(quote_ident(table.name), ", ".join(definitions))


class StatementSet(object):
    """Statements for one table, built once and reused for every call"""

    def __init__(self, table, batch_size=1):
        self.table = table
        self.batch_size = batch_size
        self.insert_one = build_insert(table, 1)
        self.insert_batch = build_insert(table, batch_size) if batch_size > 1 else self.insert_one
        self.update = build_update(table)
        self._partial = {}

    def insert(self, num_rows):
        """INSERT for num_rows rows; the odd-sized final batch is cached too"""
        if num_rows == 1:
            return self.insert_one
        if num_rows == self.batch_size:
            return self.insert_batch
        stmt = self._partial.get(num_rows)
        if stmt is None:
            stmt = build_insert(self.table, num_rows)
            self._partial[num_rows] = stmt
        return stmt
