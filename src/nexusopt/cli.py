"""Command-line interface for generating LoL captain-mode lineups."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from nexusopt.config import OptimizerConfig
from nexusopt.config_loader import OptimizerProfile
from nexusopt.optimizer import OptimizationCancelled, OptimizerError, optimize


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate DraftKings LoL captain-mode lineups")
    parser.add_argument("players", type=Path, help="Path to players JSON (list of player records)")
    parser.add_argument("--exposures", type=Path, default=None, help="Optional exposure settings JSON")
    parser.add_argument("--seed-lineups", type=Path, default=None, help="Optional existing lineups JSON")
    parser.add_argument("--lineups", type=int, default=20, help="Number of lineups to build")
    parser.add_argument(
        "--mode",
        choices=("simulation", "genetic"),
        default="simulation",
        help="Greedy simulation or genetic optimization",
    )
    parser.add_argument("--iterations", type=int, default=None, help="Monte Carlo iterations per player")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible runs")
    parser.add_argument("--population", type=int, default=None, help="Genetic population size")
    parser.add_argument("--generations", type=int, default=None, help="Genetic generation count")
    parser.add_argument(
        "--roi-mode",
        choices=("self", "field"),
        default=None,
        help="Score ROI against each lineup's own distribution or against the pooled field",
    )
    parser.add_argument("--load-profile", type=Path, help="Load optimizer profile JSON", default=None)
    parser.add_argument("--save-profile", type=Path, help="Save optimizer profile JSON", default=None)
    parser.add_argument("--output", type=Path, default=Path("lineups.json"), help="Output JSON path")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (e.g., INFO, DEBUG)")
    return parser.parse_args(argv)


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise SystemExit(f"Could not read {path}: {exc}") from exc


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if args.iterations is not None:
        overrides["iterations"] = args.iterations
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.roi_mode is not None:
        overrides["roi_mode"] = args.roi_mode
    genetic: dict[str, Any] = {}
    if args.population is not None:
        genetic["population_size"] = args.population
    if args.generations is not None:
        genetic["generations"] = args.generations
    if genetic:
        overrides["genetic"] = genetic
    return overrides


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    players = _read_json(args.players)
    if not isinstance(players, list):
        raise SystemExit(f"{args.players} must contain a JSON list of player records")
    exposure_settings = _read_json(args.exposures) if args.exposures else {}
    if not isinstance(exposure_settings, dict):
        raise SystemExit(f"{args.exposures} must contain a JSON object of exposure settings")
    seed_lineups = _read_json(args.seed_lineups) if args.seed_lineups else None

    overrides = _overrides(args)
    if args.load_profile:
        profile = OptimizerProfile.load(args.load_profile)
        nested = {**profile.config_overrides.get("genetic", {}), **overrides.get("genetic", {})}
        overrides = profile.config_overrides | overrides
        if nested:
            overrides["genetic"] = nested
        exposure_settings = profile.exposure_settings | exposure_settings
        print(f"Loaded optimizer profile from {args.load_profile}")
    if args.save_profile:
        OptimizerProfile(overrides, exposure_settings).save(args.save_profile)
        print(f"Saved optimizer profile to {args.save_profile}")

    try:
        config = OptimizerConfig.from_env(**overrides)
    except ValidationError as exc:
        raise SystemExit(f"Invalid optimizer settings: {exc}") from exc

    def on_status(message: str) -> None:
        logging.getLogger("nexusopt.cli").info(message)

    try:
        result = optimize(
            players,
            args.lineups,
            mode=args.mode,
            exposure_settings=exposure_settings or None,
            seed_lineups=seed_lineups,
            config=config,
            on_status=on_status,
        )
    except OptimizationCancelled as exc:
        raise SystemExit(f"Optimization cancelled at {exc.stage} ({exc.percent:.0f}%)") from exc
    except OptimizerError as exc:
        raise SystemExit(f"Optimization failed: {exc}") from exc

    args.output.write_text(json.dumps(result.to_payload(), indent=2), encoding="utf-8")
    summary = result.summary
    print(
        f"Built {summary.generated}/{summary.requested} {args.mode} lineups "
        f"(seed {summary.seed}, top ROI {summary.top_roi:.2f}, top NexusScore {summary.top_nexus:.1f}) "
        f"-> {args.output}"
    )
    for warning in summary.warnings:
        print(f"Warning: {warning}", file=sys.stderr)


if __name__ == "__main__":
    main()
