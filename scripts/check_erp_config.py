#!/usr/bin/env python
"""ERP configuration verification.

Loads the gateway configuration the same way the server does and reports
what survives sanitization. Invisible characters pasted into environment
variables (e.g. U+200E) are the usual reason for "cannot encode header"
failures, so they are listed explicitly.

Usage:
    python scripts/check_erp_config.py
"""

import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from dotenv import load_dotenv

from core.config import GatewayConfig
from core.errors import ConfigurationError
from core.security.credentials import FORBIDDEN_CHARACTERS

env_path = Path(__file__).resolve().parents[1] / ".env"
if env_path.exists():
    load_dotenv(env_path)

CHECKED_VARIABLES = [
    "ERP_BASE_URL",
    "ERP_TOKEN_KEY",
    "ERP_TOKEN_SECRET",
    "ERP_SESSION_ID",
    "ALLOWED_ORIGIN",
    "ALLOWED_HEADERS",
]


def report_removed_characters() -> int:
    """Print every character sanitization will strip. Returns the count."""
    removed_total = 0
    for name in CHECKED_VARIABLES:
        raw = os.getenv(name)
        if raw is None:
            continue
        removed = FORBIDDEN_CHARACTERS.findall(raw)
        if removed:
            removed_total += len(removed)
            codes = ", ".join(f"U+{ord(c):04X}" for c in removed)
            print(f"~ {name}: removing {len(removed)} invisible/non-ASCII character(s): {codes}")
    return removed_total


def check_erp_config() -> bool:
    """Check ERP configuration status."""
    print("\n" + "=" * 70)
    print("ERP GATEWAY CONFIGURATION CHECK")
    print("=" * 70 + "\n")

    removed = report_removed_characters()
    if removed:
        print()

    try:
        config = GatewayConfig.from_mapping(os.environ)
    except ConfigurationError as e:
        print(f"✗ CONFIGURATION ERROR: {e.message}")
        return False

    for key, value in config.describe().items():
        check = "✓" if value else "✗"
        print(f"{check} {key}: {value if value is not None else 'NOT SET'}")

    print("\n" + "=" * 70)

    if config.is_configured:
        print("✓ READY: gateway will call", config.endpoint.base_url)
        if not config.credentials.has_token:
            print("  (no ERP_TOKEN_KEY/ERP_TOKEN_SECRET pair: relying on session auth)")
        return True

    print("✗ NOT CONFIGURED: set ERP_BASE_URL in .env or the environment")
    return False


if __name__ == "__main__":
    ok = check_erp_config()
    sys.exit(0 if ok else 1)
