"""Command line entry point for sending channel summaries and exporting transcripts.

    python run_digest.py email CHANNEL_ID --to a@example.com --to b@example.com --since 24h
    python run_digest.py export CHANNEL_ID --start 2025-04-03T00:00:00+00:00 --end 2025-04-04T00:00:00+00:00
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime

from digest_service import DigestService
from schemas import EmailSummaryResult

logger = logging.getLogger(__name__)


async def send_summaries(
    service: DigestService,
    channel_id: str,
    recipients: list[str],
    since: str,
    format: str = "html",
) -> list[EmailSummaryResult]:
    """Email a channel summary to each recipient, continuing past individual failures."""
    results = []
    for recipient in recipients:
        try:
            result = await service.email_channel_summary(channel_id, to=recipient, since=since, format=format)
        except Exception as e:
            logger.error(f"Error sending summary to {recipient}: {e}", exc_info=True)
            continue
        logger.info(f"Daily summary sent to {recipient}")
        results.append(result)
    return results


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Discord channel digests")
    subparsers = parser.add_subparsers(dest="command", required=True)

    email = subparsers.add_parser("email", help="Email a channel summary")
    email.add_argument("channel_id")
    email.add_argument("--to", action="append", required=True, help="Recipient, may be repeated")
    email.add_argument("--since", default="24h", help='Look-back period such as "24h" or "7d"')
    email.add_argument("--format", default="html", choices=["html", "text"])

    export = subparsers.add_parser("export", help="Print a channel transcript")
    export.add_argument("channel_id")
    export.add_argument("--start", type=datetime.fromisoformat)
    export.add_argument("--end", type=datetime.fromisoformat)
    export.add_argument("--format", default="txt", choices=["txt", "json"])

    return parser


async def run(args: argparse.Namespace) -> int:
    from container import container

    service = container.digest_service
    try:
        if args.command == "email":
            results = await send_summaries(service, args.channel_id, args.to, args.since, args.format)
            return 0 if len(results) == len(args.to) else 1

        output = await service.export_messages(args.channel_id, start=args.start, end=args.end, format=args.format)
        if args.format == "json":
            output = json.dumps([message.to_dict() for message in output], indent=2)
        print(output)
        return 0
    finally:
        await container.store.close()


def main() -> None:
    args = build_parser().parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
