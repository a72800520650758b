"""
Seed script for the bulk worker.

Implements deterministic pseudo-random user generation, CSV emission, and
Postgres COPY loading, so a fresh database has active and inactive users with
spread-out creation dates for the worker to read.
"""

from __future__ import annotations

import csv
import random
import sys
import tempfile
import time
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import psycopg
import typer

from bulk_worker.domain.generator import EMAIL_DOMAINS, FIRST_NAMES, LAST_NAMES
from bulk_worker.infrastructure.db_factory import build_dsn

app = typer.Typer(help="Generate seed users and load them into Postgres (CSV + COPY).")

CSV_HEADER = ["id", "name", "email", "created_date", "is_active"]


def _build_dsn(dsn_override: Optional[str]) -> str:
    if dsn_override:
        return dsn_override
    return build_dsn()


def _generate_users_csv(
    csv_path: Path, rows: int, seed: int, active_ratio: float = 0.8, days: int = 30
) -> None:
    rng = random.Random(seed)
    now = datetime.now(timezone.utc)

    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        for _ in range(rows):
            first = rng.choice(FIRST_NAMES)
            last = rng.choice(LAST_NAMES)
            user_id = uuid.UUID(int=rng.getrandbits(128), version=4)
            created = now - timedelta(seconds=rng.randint(0, days * 86_400))
            writer.writerow(
                [
                    str(user_id),
                    f"{first} {last}",
                    f"{first}.{last}.{user_id.hex[:8]}@{rng.choice(EMAIL_DOMAINS)}".lower(),
                    created.isoformat(),
                    "t" if rng.random() < active_ratio else "f",
                ]
            )


def _copy_into_db(dsn: str, csv_path: Path) -> int:
    with psycopg.connect(dsn) as conn:
        with conn.cursor() as cur:
            with cur.copy(
                """
                COPY public.users (id, name, email, created_date, is_active)
                FROM STDIN WITH (FORMAT csv, HEADER TRUE)
                """
            ) as copy:
                with csv_path.open("r", encoding="utf-8") as f:
                    for line in f:
                        copy.write(line)
            loaded = cur.rowcount
        conn.commit()
    return loaded


@app.command()
def main(
    rows: int = typer.Option(500, "--rows", "-r", help="Number of users to generate."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    active_ratio: float = typer.Option(
        0.8, "--active-ratio", help="Fraction of generated users that are active."
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Optional CSV output path (if omitted, a temp file will be used).",
    ),
    dsn: Optional[str] = typer.Option(None, "--dsn", help="Optional DSN override for Postgres."),
    no_load: bool = typer.Option(
        False, "--no-load", help="Only generate CSV; skip loading into Postgres."
    ),
) -> None:
    """
    Generate seed users and optionally load them into Postgres using COPY.
    """
    start = time.perf_counter()
    if output:
        csv_path = output
        csv_path.parent.mkdir(parents=True, exist_ok=True)
    else:
        tmpdir = Path(tempfile.mkdtemp(prefix="bulk_worker_seed_"))
        csv_path = tmpdir / "users.csv"

    typer.echo(f"Generating {rows:,} users -> {csv_path} (seed={seed})")
    _generate_users_csv(csv_path, rows=rows, seed=seed, active_ratio=active_ratio)
    typer.echo(f"CSV generation completed in {time.perf_counter() - start:.2f}s")

    if no_load:
        typer.echo("Skipping load (no-load flag set).")
        return

    load_start = time.perf_counter()
    typer.echo("Loading CSV into Postgres via COPY...")
    loaded = _copy_into_db(_build_dsn(dsn), csv_path)
    typer.echo(f"Loaded {loaded:,} users in {time.perf_counter() - load_start:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
