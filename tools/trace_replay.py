#!/usr/bin/env python3
"""
Trace replay harness (imperative shell).

Goal: replay Quint/ITF traces of the lockup model against the in-process
chain and report, per trace, whether every step's outcome and state matched.

This is NOT a proof of correctness. It checks the model's traces only, and
only the state the model mentions (SUT-only state is never flagged).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Optional, Sequence

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from src.integration.lockup_chain import LockupChain  # noqa: E402
from src.replay import (  # noqa: E402
    ConfigError,
    ReplayConfig,
    ReplayError,
    ReplayReport,
    ReplayStatus,
    config_for_variant,
    known_actions,
    load_replay_config,
    replay,
)
from src.trace import TraceVariant, load_trace_file  # noqa: E402


def run_trace(path: Path, config: ReplayConfig) -> ReplayReport:
    """Decode one trace and replay it against a fresh chain."""
    try:
        trace = load_trace_file(
            path,
            config.variant,
            known_actions=known_actions(config) if config.strict_actions else None,
        )
    except ReplayError as exc:
        return ReplayReport(status=ReplayStatus.FAILED, steps_total=0, failure=exc)
    return replay(trace, LockupChain(), config)


def _resolve_config(args: argparse.Namespace) -> ReplayConfig:
    if args.config:
        config = load_replay_config(Path(args.config))
        if args.variant and TraceVariant(args.variant) is not config.variant:
            raise ConfigError(f"--variant {args.variant} conflicts with config variant {config.variant.value}")
    else:
        config = config_for_variant(TraceVariant(args.variant or TraceVariant.RESULT.value))
    known_actions(config)  # rejects assert-only ids that shadow dispatched ones
    return config


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Replay ITF traces against the in-process lockup chain.")
    p.add_argument("traces", nargs="+", help="ITF trace files (*.itf.json)")
    p.add_argument("--variant", choices=[v.value for v in TraceVariant], default="", help="Trace shape (default: result)")
    p.add_argument("--config", default="", help="YAML replay config (overrides the variant preset)")
    p.add_argument("--json-out", default="", help="Write a JSON report to this path")
    p.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = p.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    try:
        config = _resolve_config(args)
    except ConfigError as exc:
        print(f"ERROR: replay config invalid: {exc}", file=sys.stderr)
        return 2

    results: list[dict[str, Any]] = []
    ok_all = True
    for raw in args.traces:
        path = Path(raw)
        start = time.perf_counter()
        report = run_trace(path, config)
        elapsed_s = time.perf_counter() - start
        ok_all = ok_all and report.ok

        status = "PASS" if report.ok else "FAIL"
        print(
            f"[{status}] {path} ({config.variant.value}) "
            f"steps={report.steps_total} checked={report.steps_checked} "
            f"skipped={report.steps_skipped} elapsed_s={elapsed_s:.2f}"
        )
        if report.failure is not None:
            print(f"  {report.failure.kind}: {report.failure}")
        results.append({"trace": str(path), "elapsed_s": elapsed_s, **report.to_dict()})

    if args.json_out:
        out_path = Path(args.json_out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps({"ok": ok_all, "results": results}, indent=2), encoding="utf-8")
        print(f"wrote {out_path}")

    return 0 if ok_all else 1


if __name__ == "__main__":
    raise SystemExit(main())
