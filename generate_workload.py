#!/usr/bin/env python3
"""Create benchmark tables in MySQL, preload them and drive insert/update traffic"""
import argparse, json, sys, threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from getpass import getpass

from tqdm import tqdm

from generate_workload_utils import (
    GLOBALS, debug_print, info_print, WorkloadError, ConfigError, TableResult,
    DEFAULT_BATCH_SIZE, DEFAULT_THREAD_COUNT, DEFAULT_LARGE_TABLE_THRESHOLD
)
from schema_resolver import parse_workload, resolve_workload, dependency_levels
from statement_builder import build_create_table
from statement_executor import MySQLExecutor
from value_generator import ValueGenerator
from workload_state import WorkloadState
from preload_engine import PreloadEngine
from operation_runner import OperationRunner


def load_config(path):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except IOError:
        print("Error: Config file not found: {0}".format(path), file=sys.stderr)
        sys.exit(1)
    except json.JSONDecodeError as e:
        print("Error: Invalid config: {0}".format(e), file=sys.stderr)
        sys.exit(1)


def load_workload(path):
    """Load, parse and resolve the workload; config errors exit before any DB work"""
    raw = load_config(path)
    try:
        workload = resolve_workload(parse_workload(raw))
        # Surface unsupported DDL types before anything is written
        for table in workload.tables:
            build_create_table(table)
        return workload
    except ConfigError as e:
        print("Error: Invalid config: {0}".format(e), file=sys.stderr)
        sys.exit(1)


def connect_mysql(args):
    pwd = args.password
    if args.ask_pass and not pwd:
        pwd = getpass("Password for {0}@{1}: ".format(args.user, args.host))
    executor = MySQLExecutor(dict(host=args.host, port=args.port, user=args.user,
                                  password=pwd or "", database=args.database))
    try:
        executor.execute("SELECT 1")
    except WorkloadError as e:
        print("Error: Failed to connect to MySQL: {0}".format(e), file=sys.stderr)
        executor.close()
        sys.exit(1)
    return executor


def tqdm_progress_factory(disable=False):
    positions = {}
    lock = threading.Lock()

    def factory(table, total, desc):
        with lock:
            position = positions.setdefault(table.name, len(positions))
        return tqdm(total=total, desc=desc, position=position, disable=disable, leave=True)
    return factory


class WorkloadGenerator:
    """Drives the preload or run phase across every table of a workload"""

    def __init__(self, executor, workload, batch_size=DEFAULT_BATCH_SIZE,
                 thread_count=DEFAULT_THREAD_COUNT,
                 large_table_threshold=DEFAULT_LARGE_TABLE_THRESHOLD,
                 parallel_tables=False, seed=None, progress_factory=None):
        self.executor = executor
        self.workload = workload
        self.parallel_tables = parallel_tables
        self.state = WorkloadState(workload)
        self.stop_event = threading.Event()
        self.generator = ValueGenerator(workload, self.state)

        extra = {}
        if progress_factory is not None:
            extra["progress_factory"] = progress_factory
        self.preload_engine = PreloadEngine(
            executor, self.generator, self.state, batch_size=batch_size,
            thread_count=thread_count, large_table_threshold=large_table_threshold,
            seed=seed, stop_event=self.stop_event, **extra)
        self.operation_runner = OperationRunner(
            executor, self.generator, self.state, seed=seed,
            stop_event=self.stop_event, **extra)

    def create_tables(self):
        for table in self.workload.tables:
            debug_print("Creating table {0}".format(table.name))
            self.executor.ensure_table(table)

    def preload(self):
        """Preload level by level so referenced rows are committed before children sample them"""
        self.create_tables()
        results = {}
        try:
            for level in dependency_levels(self.workload):
                for result in self._for_each_table(self._preload_one, level):
                    results[result.name] = result
        finally:
            self.preload_engine.close()
        return [results[t.name] for t in self.workload.tables]

    def run(self):
        self.create_tables()
        return self._for_each_table(self.operation_runner.run_table)

    def _preload_one(self, table):
        inserted = self.preload_engine.preload_table(table)
        return TableResult(table.name, inserted, 0, 0)

    def _for_each_table(self, action, tables=None):
        """Apply action to every table, sequentially or one worker per table"""
        if tables is None:
            tables = self.workload.tables
        if not self.parallel_tables or len(tables) < 2:
            return [action(t) for t in tables]

        results = {}
        error = None
        with ThreadPoolExecutor(max_workers=len(tables)) as pool:
            futures = dict((pool.submit(action, t), t.name) for t in tables)
            for future in as_completed(futures):
                try:
                    results[futures[future]] = future.result()
                except Exception as e:
                    self.stop_event.set()
                    if error is None:
                        error = e
        if error is not None:
            raise error
        return [results[t.name] for t in tables]


def parse_args(argv=None):
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", "-c", required=True, help="JSON workload config file path")
    common.add_argument("--host", default="127.0.0.1", help="MySQL host (default: 127.0.0.1)")
    common.add_argument("--port", type=int, default=3306, help="MySQL port (default: 3306)")
    common.add_argument("--database", default="benchmark", help="Database name (default: benchmark)")
    common.add_argument("--user", "-u", required=True, help="MySQL user")
    common.add_argument("--password", default=None, help="MySQL password")
    common.add_argument("--ask-pass", action="store_true", help="Prompt for password")
    common.add_argument("--parallel-tables", action="store_true", help="Run every table on its own worker")
    common.add_argument("--seed", type=int, default=None, help="Random seed (default: unseeded)")
    common.add_argument("--no-progress", action="store_true", help="Disable progress bars")
    common.add_argument("--debug", action="store_true", help="Enable debug output")

    p = argparse.ArgumentParser(description="Generate benchmark tables and records in MySQL")
    sub = p.add_subparsers(metavar="{preload,run}")
    sub.required = True
    pre = sub.add_parser("preload", aliases=["p"], parents=[common], help="Preload data into the database")
    pre.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE,
                     help="Rows per INSERT statement (default: {0})".format(DEFAULT_BATCH_SIZE))
    pre.add_argument("--threads", type=int, default=DEFAULT_THREAD_COUNT,
                     help="Parallel workers for tables of at least --large-table-threshold rows (default: {0})".format(
                         DEFAULT_THREAD_COUNT))
    pre.add_argument("--large-table-threshold", type=int, default=DEFAULT_LARGE_TABLE_THRESHOLD,
                     help="Preload count from which a table is split across threads (default: {0})".format(
                         DEFAULT_LARGE_TABLE_THRESHOLD))
    pre.set_defaults(command="preload")
    run = sub.add_parser("run", aliases=["r"], parents=[common], help="Run the benchmark")
    run.set_defaults(command="run", batch_size=DEFAULT_BATCH_SIZE, threads=DEFAULT_THREAD_COUNT,
                     large_table_threshold=DEFAULT_LARGE_TABLE_THRESHOLD)
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    GLOBALS["debug"] = args.debug
    workload = load_workload(args.config)
    executor = connect_mysql(args)
    try:
        gen = WorkloadGenerator(
            executor, workload, batch_size=args.batch_size, thread_count=args.threads,
            large_table_threshold=args.large_table_threshold,
            parallel_tables=args.parallel_tables, seed=args.seed,
            progress_factory=tqdm_progress_factory(disable=args.no_progress))
        results = gen.preload() if args.command == "preload" else gen.run()
        for r in results:
            info_print("{0}: preloaded={1} inserted={2} updated={3}".format(
                r.name, r.preloaded, r.inserted, r.updated))
        print("Tables and records created successfully!")
    except Exception as e:
        print("Error: {0}".format(e), file=sys.stderr)
        if GLOBALS["debug"]:
            import traceback
            traceback.print_exc()
        sys.exit(1)
    finally:
        executor.close()


if __name__ == "__main__":
    main()
