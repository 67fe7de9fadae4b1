from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

from strata_core.accounting import DiskState, measure_usage
from strata_core.config import Config
from strata_core.logging import configure_logging
from strata_core.orchestrator import (
    SERVICE_NAME,
    PassReport,
    predict_for_store,
    release_stale,
    run_pass,
)
from strata_core.records import list_pinned, load_pinned, purge_pinned
from strata_core.storage import RecordStore

DEFAULT_ENV_FILE = ".env"


def _print_json(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _read_env_file(path: Path) -> dict[str, str]:
    env: dict[str, str] = {}
    if not path.exists():
        return env
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        env[key.strip()] = value.strip()
    return env


def _apply_env(env: dict[str, str], *, override: bool = False) -> None:
    for key, value in env.items():
        if value == "":
            continue
        if not override and key in os.environ:
            continue
        os.environ[key] = value


def _load_config(args: argparse.Namespace) -> Config:
    env_file = getattr(args, "env_file", None) or os.getenv(
        "STRATA_ENV_FILE", DEFAULT_ENV_FILE
    )
    _apply_env(_read_env_file(Path(env_file)))
    config = Config.from_env().with_dirs(
        results_dir=getattr(args, "results_dir", None),
        archive_dir=getattr(args, "archive_dir", None),
    )
    configure_logging(
        service=SERVICE_NAME,
        env=config.env,
        version=config.version,
        level=config.log_level,
    )
    return config


def _store_for(config: Config) -> RecordStore:
    return RecordStore.from_dirs(config.results_dir, config.archive_dir)


def _format_bytes(value: float) -> str:
    amount = float(value)
    for unit in ("B", "KB", "MB", "GB"):
        if abs(amount) < 1024 or unit == "GB":
            return f"{amount:.1f} {unit}" if unit != "B" else f"{int(amount)} B"
        amount /= 1024
    return f"{amount:.1f} GB"


def _warn_if_critical(state: DiskState, used: int, max_bytes: int) -> None:
    if state != DiskState.CRITICAL:
        return
    print(
        "CRITICAL: disk budget exceeded "
        f"({_format_bytes(used)} of {_format_bytes(max_bytes)}); "
        "the retention policy cannot keep up with the ingestion rate",
        file=sys.stderr,
    )


def _print_pass_summary(report: PassReport) -> None:
    counts = report.counts
    after = report.usage_after
    print(f"Retention pass {report.run_id}")
    print(f"  processed:  {counts['processed']}")
    print(f"  errored:    {report.errored}")
    print(f"  compressed: {counts['compressed']}")
    print(f"  summarized: {counts['summarized']}")
    print(f"  deleted:    {counts['deleted']}")
    print(f"  pinned:     {counts['pinned']}")
    print(f"  freed:      {_format_bytes(report.bytes_freed)}")
    if counts.get("reports_pruned"):
        print(f"  pruned:     {counts['reports_pruned']} old reports")
    print(
        f"  disk:       {after.state.value} "
        f"({_format_bytes(after.budget_bytes_used)} of "
        f"{_format_bytes(after.max_budget_bytes)})"
    )
    prediction = report.prediction
    if prediction.has_prediction:
        print(f"  full in:    {prediction.days_until_full} days (rough estimate)")
    else:
        print(f"  full in:    {prediction.status.replace('_', ' ')}")
    if report.report_uri:
        print(f"  report:     {report.report_uri}")
    if report.errors:
        print("Errors:")
        for error in report.errors:
            print(f"  [{error.kind}] {error.tier}/{error.record_id}: {error.message}")


def cmd_check(args: argparse.Namespace) -> int:
    config = _load_config(args)
    usage = measure_usage(_store_for(config), config.policy)
    _print_json(usage.to_dict())
    _warn_if_critical(usage.state, usage.budget_bytes_used, usage.max_budget_bytes)
    return 0


def cmd_predict(args: argparse.Namespace) -> int:
    config = _load_config(args)
    sample_size = args.sample_size or config.prediction_sample_size
    prediction = predict_for_store(
        _store_for(config),
        config.policy,
        sample_size=sample_size,
    )
    _print_json(prediction.to_dict())
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    config = _load_config(args)
    report = run_pass(
        _store_for(config),
        config.policy,
        sample_size=config.prediction_sample_size,
        write_report=config.write_reports and not args.no_report,
    )
    if args.json:
        _print_json(report.to_dict())
    else:
        _print_pass_summary(report)
    after = report.usage_after
    _warn_if_critical(after.state, after.budget_bytes_used, after.max_budget_bytes)
    return 0


def cmd_pinned(args: argparse.Namespace) -> int:
    config = _load_config(args)
    store = _store_for(config)
    entries = []
    for record in list_pinned(store):
        finding = load_pinned(store, record.record_id)
        if finding is None:
            continue
        entries.append(
            {
                "record_id": finding.record_id,
                "severity": finding.severity,
                "tests": len(finding.tests),
                "pinned_at": finding.pinned_at,
            }
        )
    _print_json({"count": len(entries), "pinned": entries})
    return 0


def cmd_purge_pinned(args: argparse.Namespace) -> int:
    config = _load_config(args)
    if purge_pinned(_store_for(config), args.record_id):
        print(f"Purged pinned finding {args.record_id}")
        return 0
    print(f"No pinned finding for {args.record_id}", file=sys.stderr)
    return 1


def cmd_unlock(args: argparse.Namespace) -> int:
    config = _load_config(args)
    store = _store_for(config)
    info = release_stale(store.paths.lock_path)
    if info is None:
        print("No pass lock present")
        return 0
    print(
        f"Removed pass lock held by {info.get('holder', 'unknown')} "
        f"since {info.get('acquired_at', 'unknown')}"
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--results-dir", help="Raw tier directory")
    common.add_argument("--archive-dir", help="Compressed/summary/critical root")
    common.add_argument("--env-file", help="KEY=VALUE file applied to the environment")

    parser = argparse.ArgumentParser(prog="strata")
    subparsers = parser.add_subparsers(dest="command")

    check_parser = subparsers.add_parser(
        "check", parents=[common], help="Print current disk usage per tier"
    )
    check_parser.set_defaults(func=cmd_check)

    predict_parser = subparsers.add_parser(
        "predict", parents=[common], help="Predict when the budget will be full"
    )
    predict_parser.add_argument("--sample-size", type=int)
    predict_parser.set_defaults(func=cmd_predict)

    for name in ("run", "manage"):
        run_parser = subparsers.add_parser(
            name, parents=[common], help="Run one retention pass"
        )
        run_parser.add_argument("--json", action="store_true", help="Print full report")
        run_parser.add_argument(
            "--no-report", action="store_true", help="Skip the report artifact"
        )
        run_parser.set_defaults(func=cmd_run)

    pinned_parser = subparsers.add_parser(
        "pinned", parents=[common], help="List pinned critical findings"
    )
    pinned_parser.set_defaults(func=cmd_pinned)

    purge_parser = subparsers.add_parser(
        "purge-pinned", parents=[common], help="Remove one pinned finding"
    )
    purge_parser.add_argument("--record-id", required=True)
    purge_parser.set_defaults(func=cmd_purge_pinned)

    unlock_parser = subparsers.add_parser(
        "unlock", parents=[common], help="Remove a pass lock left by a killed pass"
    )
    unlock_parser.set_defaults(func=cmd_unlock)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "command", None):
        parser.print_help()
        return 2
    try:
        return args.func(args)
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
