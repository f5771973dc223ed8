#!/usr/bin/env python3
"""Register a webhook subscription with Calendly from the command line."""

import argparse
import asyncio
import json
import sys

from dotenv import load_dotenv
from loguru import logger

from config import load_settings
from tools.calendly import CalendlyClient, CalendlyError


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("url", help="Public URL of the /api/webhook endpoint")
    parser.add_argument("--organization", required=True, help="Calendly organization URI")
    parser.add_argument("--scope", default="organization", choices=["organization", "user"])
    parser.add_argument("--user", help="Calendly user URI (required by Calendly for user scope)")
    args = parser.parse_args(argv)

    load_dotenv()
    client = CalendlyClient(load_settings())

    try:
        data = asyncio.run(
            client.create_webhook_subscription(args.url, args.organization, scope=args.scope, user=args.user)
        )
    except CalendlyError as e:
        logger.error(f"Registration error: {e}")
        if e.details:
            print(json.dumps(e.details, indent=2), file=sys.stderr)
        return 1

    print(json.dumps(data, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
