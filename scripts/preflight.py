"""Pre-deploy checks for the research service configuration.

Loads settings the same way the API does, then confirms each runtime
collaborator can be built from them: the fund profile, the CRM backend and the
upload limits. Nothing here calls Gemini or Attio.

Example usages::

    python -m scripts.preflight
    python -m scripts.preflight --env-file /opt/research/.env
"""

from __future__ import annotations

import argparse
import json
import sqlite3
import sys
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from app.clients.local_crm import SQLiteCRMClient
from app.core.config import AppSettings, _load_env_file
from app.core.fund_profile import load_fund_profile

EXIT_OK = 0
EXIT_CHECK_FAILED = 1
EXIT_SETTINGS_INVALID = 2


@dataclass(frozen=True)
class CheckResult:
    name: str
    ok: bool
    detail: str

    def render(self) -> str:
        return f"[{'ok' if self.ok else 'FAIL'}] {self.name:<12} {self.detail}"


def load_settings(env_file: Path | None) -> AppSettings:
    """Build ``AppSettings`` after merging ``env_file`` into the environment."""
    if env_file is not None:
        if not env_file.exists():
            raise FileNotFoundError(f"Environment file {env_file} does not exist.")
        _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def check_research(settings: AppSettings) -> CheckResult:
    if settings.serpapi_api_key:
        mode = f"serpapi tool loop, at most {settings.gemini.research_max_steps} steps"
    else:
        mode = "gemini search grounding"
    timeout = settings.pipeline.topic_timeout_seconds
    limit = f"{timeout:g}s per topic" if timeout else "no topic timeout"
    return CheckResult("research", True, f"{settings.gemini.research_model_name} ({mode}; {limit})")


def check_fund_profile(settings: AppSettings) -> CheckResult:
    source = settings.fund_profile_path or "built-in profile"
    try:
        profile = load_fund_profile(settings.fund_profile_path)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        return CheckResult("fund profile", False, f"{source} could not be loaded: {exc}")
    return CheckResult(
        "fund profile",
        True,
        f"'{profile.thesis.name}' with {len(profile.partners)} partners from {source}",
    )


def check_crm(settings: AppSettings) -> CheckResult:
    if settings.crm.attio_api_key:
        return CheckResult("crm", True, f"attio at {settings.crm.attio_base_url}")
    try:
        SQLiteCRMClient(settings.crm.local_db_path)
    except (OSError, sqlite3.Error) as exc:
        return CheckResult("crm", False, f"sqlite at {settings.crm.local_db_path} is unusable: {exc}")
    return CheckResult("crm", True, f"sqlite at {settings.crm.local_db_path}")


def check_uploads(settings: AppSettings) -> CheckResult:
    limits = settings.uploads
    if limits.max_file_bytes > limits.max_total_bytes:
        return CheckResult(
            "uploads",
            False,
            f"per-file limit {limits.max_file_bytes} exceeds total limit {limits.max_total_bytes}",
        )
    return CheckResult(
        "uploads", True, f"{limits.max_file_bytes} bytes per file, {limits.max_total_bytes} total"
    )


CHECKS = (check_research, check_fund_profile, check_crm, check_uploads)


def run_checks(settings: AppSettings) -> list[CheckResult]:
    return [check(settings) for check in CHECKS]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Validate research service configuration.")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Environment file merged before settings load (default: the process environment and ./.env).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        settings = load_settings(args.env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_SETTINGS_INVALID
    except ValidationError as exc:
        missing = ", ".join(
            str(error["loc"][-1]) for error in exc.errors(include_url=False) if error.get("loc")
        )
        print(f"Settings are invalid ({missing}):\n{exc}", file=sys.stderr)
        return EXIT_SETTINGS_INVALID

    results = run_checks(settings)
    for result in results:
        print(result.render(), file=sys.stdout if result.ok else sys.stderr)
    return EXIT_OK if all(result.ok for result in results) else EXIT_CHECK_FAILED


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
