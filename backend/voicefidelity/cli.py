"""
Voice regression CLI.

Usage:
    voice-regression                               Gate against the stored baseline
    voice-regression --save-baseline               Store current metrics as the baseline
    voice-regression --skip-embeddings             Lexical similarity only, no API calls
    voice-regression --baseline-file baseline.json Keep baseline and runs in a local file
    voice-regression --live                        Also drive the corpus through the generator (slow)

Exits 1 when the gate fails so CI can block the deploy.
"""

import argparse
import asyncio
import logging
import sys

from .config import settings
from .services.generator import get_generator
from .services.regression import (
    JsonFileRegressionStore,
    RegressionGate,
    RegressionStore,
    SupabaseRegressionStore,
    compute_live_metrics,
    compute_metrics,
    format_report,
)

DO_NOT_DEPLOY_BANNER = "\n".join([
    "=" * 60,
    "  VOICE REGRESSION GATE FAILED: DO NOT DEPLOY",
    "=" * 60,
])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="voice-regression",
        description="Replay the calibration corpus and gate against the regression baseline.",
    )
    parser.add_argument("--save-baseline", action="store_true", help="Save current metrics as the new baseline")
    parser.add_argument(
        "--skip-embeddings",
        action="store_true",
        help="Use lexical semantic similarity only (fast, no API calls)",
    )
    parser.add_argument(
        "--baseline-file",
        metavar="PATH",
        help="Read and write the baseline and run history in a JSON file instead of the database",
    )
    parser.add_argument(
        "--live",
        action="store_true",
        help="Run every calibration original through generation, selection and correction and gate those metrics too",
    )
    return parser


def make_store(baseline_file=None) -> RegressionStore:
    if baseline_file:
        return JsonFileRegressionStore(baseline_file)
    return SupabaseRegressionStore()


async def run(args: argparse.Namespace) -> int:
    gate = RegressionGate(
        store=make_store(args.baseline_file),
        generator=get_generator() if args.live else None,
    )
    print("Voice Regression Suite")
    print(f"Dataset: {len(gate.dataset)} examples")
    print(f"Embeddings: {'skipped (lexical only)' if args.skip_embeddings else 'enabled when configured'}")
    print(f"Live regression: {'enabled' if args.live else 'disabled'}")

    if args.save_baseline:
        metrics = compute_metrics(await gate.score_corpus(args.skip_embeddings))
        live = compute_live_metrics(await gate.replay_pipeline(args.skip_embeddings)) if args.live else None
        baseline = await gate.save_baseline(metrics, live=live)
        print(f"\nBaseline saved ({baseline.config_hash[:12]}), good_win_rate={metrics.good_win_rate:.4f}")
        return 0

    baseline = await gate.store.get_baseline()
    result = await gate.run(skip_embeddings=args.skip_embeddings, live=args.live)
    print(format_report(result, baseline))
    if baseline is None:
        print("\nNo baseline stored; run with --save-baseline to enable gating.")

    if not result.passed:
        print(DO_NOT_DEPLOY_BANNER, file=sys.stderr)
        return 1
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
