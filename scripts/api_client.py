"""Lightweight REST client for the nexusopt API."""

from __future__ import annotations

import argparse
import json
import time
from pathlib import Path

import httpx


def load_json(path: Path | None):
    if path is None:
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Invalid JSON in {path}: {exc}") from exc


def main() -> None:
    parser = argparse.ArgumentParser(description="Interact with the nexusopt REST API")
    parser.add_argument("base_url", help="Base URL of the API, e.g. http://localhost:8000")
    parser.add_argument("players", type=Path, nargs="?", help="Players JSON")
    parser.add_argument("--exposures", type=Path, default=None, help="Exposure settings JSON")
    parser.add_argument("--seed-lineups", type=Path, default=None, help="Existing lineups JSON")
    parser.add_argument("--lineups", type=int, default=20, help="Number of lineups to request")
    parser.add_argument("--mode", choices=("simulation", "genetic"), default="simulation")
    parser.add_argument("--config", default="", help="JSON object of optimizer config overrides")
    parser.add_argument("--background", action="store_true", help="Submit as a job and poll until it finishes")
    parser.add_argument("--poll-interval", type=float, default=1.0, help="Seconds between job polls")
    parser.add_argument("--get-job", metavar="JOB_ID", help="Fetch a job and exit")
    parser.add_argument("--cancel-job", metavar="JOB_ID", help="Cancel a job and exit")
    args = parser.parse_args()

    if args.get_job or args.cancel_job:
        with httpx.Client(base_url=args.base_url) as client:
            if args.get_job:
                resp = client.get(f"/jobs/{args.get_job}")
            else:
                resp = client.post(f"/jobs/{args.cancel_job}/cancel")
            if resp.status_code == 404:
                raise SystemExit(f"job {args.get_job or args.cancel_job} not found")
            resp.raise_for_status()
            print(json.dumps(resp.json(), indent=2))
        return

    if args.players is None:
        raise SystemExit("players file is required unless using --get-job/--cancel-job")

    try:
        config = json.loads(args.config) if args.config else None
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Invalid config JSON: {exc}") from exc

    payload = {
        "players": load_json(args.players),
        "exposureSettings": load_json(args.exposures),
        "seedLineups": load_json(args.seed_lineups),
        "lineups": args.lineups,
        "config": config,
    }

    with httpx.Client(base_url=args.base_url, timeout=None) as client:
        if not args.background:
            resp = client.post(f"/optimize/{args.mode}", json=payload)
            if resp.status_code >= 400:
                raise SystemExit(f"Request failed ({resp.status_code}): {resp.text}")
            result = resp.json()
        else:
            resp = client.post("/jobs", json={**payload, "mode": args.mode})
            resp.raise_for_status()
            job = resp.json()
            print(f"Submitted job {job['job_id']}")
            while job["state"] in {"queued", "running"}:
                time.sleep(args.poll_interval)
                resp = client.get(f"/jobs/{job['job_id']}")
                resp.raise_for_status()
                job = resp.json()
                print(f"{job['state']}: {job['stage']} {job['percent']:.1f}% {job.get('message') or ''}")
            if job["state"] != "completed":
                raise SystemExit(f"Job {job['job_id']} ended as {job['state']}: {job.get('message')}")
            result = job["result"]

    summary = result["summary"]
    print(f"Received {len(result['lineups'])} lineups (top ROI {summary['topLineupROI']})")
    if result["lineups"]:
        print(json.dumps(result["lineups"][0], indent=2))


if __name__ == "__main__":
    main()
