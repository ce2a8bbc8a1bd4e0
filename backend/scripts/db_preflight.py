"""Deployment preflight checks.

Usage:
    python scripts/db_preflight.py

Reads the same environment the service does and verifies the production
safety controls plus the engine tunables that would otherwise only fail at
analysis time. Exits non-zero when any required control fails.
"""

from __future__ import annotations

import os
import sys


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _float_env(name: str, default: float) -> float | None:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return None


def run() -> int:
    environment = os.getenv("ENVIRONMENT", "development").strip().lower()
    database_url = os.getenv("DATABASE_URL", "sqlite:///./nimbus_reorder.db")
    auto_create_tables = _bool_env("AUTO_CREATE_TABLES", True)
    job_timeout = _float_env("ANALYSIS_JOB_TIMEOUT_SECONDS", 600.0)
    per_product_budget = _float_env("ANALYSIS_PER_PRODUCT_BUDGET_SECONDS", 0.5)
    high_multiplier = _float_env("URGENCY_HIGH_MULTIPLIER", 1.5)
    medium_multiplier = _float_env("URGENCY_MEDIUM_MULTIPLIER", 3.0)

    checks: list[tuple[str, bool, str]] = [
        (
            "ENVIRONMENT is explicitly set",
            bool(environment),
            f"ENVIRONMENT={environment or '<empty>'}",
        ),
        (
            "ANALYSIS_JOB_TIMEOUT_SECONDS is a positive number",
            job_timeout is not None and job_timeout > 0,
            f"ANALYSIS_JOB_TIMEOUT_SECONDS={os.getenv('ANALYSIS_JOB_TIMEOUT_SECONDS', job_timeout)}",
        ),
        (
            "ANALYSIS_PER_PRODUCT_BUDGET_SECONDS is a positive number",
            per_product_budget is not None and per_product_budget > 0,
            f"ANALYSIS_PER_PRODUCT_BUDGET_SECONDS={os.getenv('ANALYSIS_PER_PRODUCT_BUDGET_SECONDS', per_product_budget)}",
        ),
        (
            "urgency multipliers are ordered (high <= medium)",
            high_multiplier is not None and medium_multiplier is not None and high_multiplier <= medium_multiplier,
            f"high={high_multiplier} medium={medium_multiplier}",
        ),
    ]

    if environment in {"production", "prod"}:
        checks.extend(
            [
                (
                    "DATABASE_URL is not SQLite",
                    "sqlite" not in database_url.lower(),
                    f"DATABASE_URL={database_url}",
                ),
                (
                    "AUTO_CREATE_TABLES is disabled",
                    not auto_create_tables,
                    f"AUTO_CREATE_TABLES={auto_create_tables}",
                ),
            ]
        )

    has_failures = False
    print("NIMBUS Reorder Engine Preflight")
    print(f"- environment: {environment}")
    for title, ok, detail in checks:
        marker = "PASS" if ok else "FAIL"
        print(f"[{marker}] {title} ({detail})")
        if not ok:
            has_failures = True

    if has_failures:
        print("\nPreflight failed. Resolve failed checks before deployment.")
        return 1

    print("\nPreflight passed.")
    return 0


if __name__ == "__main__":
    sys.exit(run())
