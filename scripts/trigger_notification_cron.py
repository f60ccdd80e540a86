#!/usr/bin/env python3
"""Trigger the scheduled expiry reminder run.

Meant for an external scheduler, e.g. daily at 07:00:
    0 7 * * *  python scripts/trigger_notification_cron.py

Usage:
    python scripts/trigger_notification_cron.py
    python scripts/trigger_notification_cron.py --url https://certs.example.com
    python scripts/trigger_notification_cron.py --json     # print raw response

Reads CRON_SECRET and APP_API_URL from the environment / .env.

Exit codes:
    0 = run completed
    1 = the API rejected or failed the run
    2 = API unreachable
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

import requests
from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
env_path = PROJECT_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("trigger_notification_cron")

CRON_PATH = "/api/v1/notifications/cron"


def trigger(base_url: str, secret: str, timeout: int) -> requests.Response:
    headers = {"X-Cron-Secret": secret} if secret else {}
    return requests.get(base_url.rstrip("/") + CRON_PATH, headers=headers, timeout=timeout)


def main():
    parser = argparse.ArgumentParser(
        description="Trigger the scheduled certificate expiry reminders",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--url", type=str,
                        default=os.getenv("APP_API_URL", "http://localhost:8000"),
                        help="API base URL")
    parser.add_argument("--timeout", type=int, default=120,
                        help="Request timeout in seconds")
    parser.add_argument("--json", dest="output_json", action="store_true",
                        help="Print the raw JSON response")
    args = parser.parse_args()

    secret = os.getenv("CRON_SECRET", "")
    if not secret:
        logger.warning("CRON_SECRET is not set; the request is sent without a secret")

    try:
        response = trigger(args.url, secret, args.timeout)
    except requests.RequestException as exc:
        logger.error("Cannot reach %s: %s", args.url, exc)
        sys.exit(2)

    try:
        body = response.json()
    except ValueError:
        body = {"detail": response.text[:500]}

    if args.output_json:
        print(json.dumps(body, indent=2))

    if response.status_code != 200:
        logger.error("Cron run failed (HTTP %d): %s", response.status_code, body.get("detail", body))
        sys.exit(1)

    stats = body.get("stats", {})
    logger.info(
        "Cron run complete: found=%s sent=%s failed=%s no_email=%s",
        stats.get("certificates_found"),
        stats.get("emails_sent"),
        stats.get("emails_failed"),
        stats.get("no_email_count"),
    )


if __name__ == "__main__":
    main()
