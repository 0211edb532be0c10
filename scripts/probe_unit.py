#!/usr/bin/env python
"""Run one gateway operation against the configured ERP.

Useful to confirm credentials and the custom ERP methods from a shell,
without starting the API server.

Usage:
    python scripts/probe_unit.py --unit-id RV-001
    python scripts/probe_unit.py --unit-id RV-001 --reserve --agent "Ana Souza"
    python scripts/probe_unit.py --unit-id RV-001 --release
"""

import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.config import GatewayConfig
from core.errors import GatewayError
from reservation import ReservationGateway


async def probe(args) -> int:
    config = GatewayConfig.from_env()

    async with ReservationGateway(config) as gateway:
        try:
            if args.reserve:
                result = await gateway.reserve(args.unit_id, {
                    "agent_name": args.agent,
                    "client_name": args.client,
                    "notes": args.notes,
                })
            elif args.release:
                result = await gateway.release(args.unit_id)
            elif args.sold:
                result = await gateway.mark_sold(args.unit_id)
            elif args.status_only:
                result = await gateway.get_status(args.unit_id)
            else:
                result = await gateway.lookup_unit(args.unit_id)
        except GatewayError as e:
            print(json.dumps(e.to_dict(), indent=2, ensure_ascii=False))
            return 1

    print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
    return 0


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Probe a unit through the reservation gateway")
    parser.add_argument("--unit-id", required=True, help="ERP row identifier of the unit")

    action = parser.add_mutually_exclusive_group()
    action.add_argument("--status-only", action="store_true", help="Only fetch the status")
    action.add_argument("--reserve", action="store_true", help="Reserve the unit")
    action.add_argument("--release", action="store_true", help="Release the reservation")
    action.add_argument("--sold", action="store_true", help="Mark the unit as sold")

    parser.add_argument("--agent", default=None, help="Agent holding the reservation")
    parser.add_argument("--client", default=None, help="Client name")
    parser.add_argument("--notes", default=None, help="Reservation notes")

    args = parser.parse_args()
    sys.exit(asyncio.run(probe(args)))


if __name__ == "__main__":
    main()
