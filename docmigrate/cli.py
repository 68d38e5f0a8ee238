# ==============================================
# CLI — Command Line Entry Point
# ==============================================
#
# PURPOSE:
#   Run an assessment from the command line and write the result.
#
# COMMANDS:
# ---------
# 1. Samples exported as files (<container>.json / .jsonl):
#    docmigrate --source json --path ./exports
#
# 2. MongoDB collections (connection from MONGO_* env vars / .env):
#    docmigrate --source mongo --containers customers orders \
#               --partition-key orders=/customerId
#
# 3. HTTP export endpoint:
#    docmigrate --source http --url http://127.0.0.1:8000 --containers users
#
# OPTIONS:
# --------
#   --sample-size N     documents per container
#   --workers N         containers assessed in parallel
#   --output FILE       write the full result as JSON
#   --ddl FILE          write the proposed SQL Server script
#   --log-level LEVEL   DEBUG / INFO / WARNING / ERROR
#
# EXIT CODES:
# -----------
#   0 → ready for migration
#   1 → blocking issues (or containers that could not be assessed)
#   2 → configuration error
#
# ==============================================

import argparse
import json
import logging
import sys
from contextlib import ExitStack
from typing import Dict, List, Optional

from docmigrate import __version__
from docmigrate.assessment import AssessmentResult, AssessmentRunner
from docmigrate.cancellation import CancellationToken
from docmigrate.config import get_config
from docmigrate.errors import AssessmentCancelled, FatalConfigurationError
from docmigrate.sources import (
    ContainerMetadata,
    HttpSampleSource,
    JsonFileSampleSource,
    MongoSampleSource,
    SampleSource,
)

EXIT_READY = 0
EXIT_BLOCKED = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docmigrate",
        description="Assess document-store containers for migration to a relational database.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--source", choices=("json", "mongo", "http"), default="json")
    parser.add_argument("--path", help="Directory holding <container>.json / .jsonl samples (json source)")
    parser.add_argument("--url", help="Base URL of the export endpoint (http source)")
    parser.add_argument("--containers", nargs="+", help="Containers to assess (default: all the source lists)")
    parser.add_argument(
        "--partition-key",
        action="append",
        default=[],
        metavar="NAME=/path",
        help="Partition key path of a container; repeatable",
    )
    parser.add_argument("--sample-size", type=int, help="Documents sampled per container")
    parser.add_argument("--workers", type=int, help="Containers assessed in parallel")
    parser.add_argument("--output", help="Write the full assessment as JSON to this file")
    parser.add_argument("--ddl", help="Write the proposed SQL Server DDL to this file")
    parser.add_argument("--log-level", help="Logging level (default: LOG_LEVEL or INFO)")
    return parser


def parse_partition_keys(values: List[str]) -> Dict[str, ContainerMetadata]:
    """
    "orders=/customerId" → {"orders": ContainerMetadata(partition_key="/customerId")}

    Raises:
        FatalConfigurationError: on a value without "="
    """
    metadata: Dict[str, ContainerMetadata] = {}
    for value in values:
        name, sep, path = value.partition("=")
        if not sep or not name.strip() or not path.strip():
            raise FatalConfigurationError(f"--partition-key expects NAME=/path (got '{value}')")
        metadata[name.strip()] = ContainerMetadata(name=name.strip(), partition_key=path.strip())
    return metadata


def build_source(args: argparse.Namespace, stack: ExitStack) -> SampleSource:
    config = get_config()
    if args.source == "json":
        if not args.path:
            raise FatalConfigurationError("--path is required for the json source")
        return JsonFileSampleSource(args.path)
    if args.source == "http":
        return HttpSampleSource(args.url or config.http.base_url, timeout=config.http.timeout_seconds)
    return stack.enter_context(MongoSampleSource.from_config(config.mongo))


def print_summary(result: AssessmentResult) -> None:
    summary = result.quality_summary
    complexity = result.complexity

    print("\n📊 Summary:")
    print(f"   → Containers: {len(result.completed)} assessed, {len(result.failed_containers)} failed")
    print(f"   → Quality: {summary.overall_quality_score} ({summary.quality_rating})")
    print(f"   → Issues: {summary.critical_issues} critical, {summary.warning_issues} warning, {summary.info_issues} info")
    print(f"   → Shared schemas: {len(result.shared_schemas)}")
    if complexity is not None:
        print(f"   → Complexity: {complexity.overall_complexity} (~{complexity.estimated_migration_days} days)")

    for name in result.failed_containers:
        outcome = result.container(name)
        print(f"⚠ {name}: {outcome.error}")
    for blocking in summary.blocking_issues:
        print(f"✗ {blocking}")

    if result.ready_for_migration:
        print("\n✓ Ready for migration")
    else:
        print("\n✗ Not ready for migration")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = get_config()
        if args.sample_size is not None:
            config.analysis.sample_size = args.sample_size
        if args.workers is not None:
            config.runner.max_parallel_containers = args.workers
        if args.log_level:
            config.log_level = args.log_level
        config.validate()
        logging.basicConfig(
            level=config.log_level.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        runner = AssessmentRunner(config)
        metadata = parse_partition_keys(args.partition_key)
    except FatalConfigurationError as e:
        print(f"✗ Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    with ExitStack() as stack:
        try:
            source = build_source(args, stack)
        except FatalConfigurationError as e:
            print(f"✗ Configuration error: {e}", file=sys.stderr)
            return EXIT_CONFIG_ERROR

        containers = args.containers or source.list_containers()
        if not containers:
            print("✗ No containers to assess", file=sys.stderr)
            return EXIT_CONFIG_ERROR

        print(f"🚀 Assessing {len(containers)} container(s) from the {args.source} source")
        cancellation = CancellationToken()
        try:
            result = runner.assess(source, containers, cancellation=cancellation, metadata=metadata)
        except (AssessmentCancelled, KeyboardInterrupt):
            cancellation.cancel()
            print("\n⚠ Interrupted by user")
            return EXIT_BLOCKED

    print_summary(result)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, indent=2)
        print(f"   → Assessment written to {args.output}")
    if args.ddl:
        with open(args.ddl, "w", encoding="utf-8") as f:
            f.write(result.ddl())
        print(f"   → DDL written to {args.ddl}")

    return EXIT_READY if result.ready_for_migration else EXIT_BLOCKED


if __name__ == "__main__":
    sys.exit(main())
