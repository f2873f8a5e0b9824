import argparse
import json
import logging
import sys
import asyncio

from .config import get_settings
from .core import generate_report, human_report
from .message import ParsedMessage


def read_message(path):
    if path == "-":
        return sys.stdin.buffer.read()
    with open(path, "rb") as f:
        return f.read()


def main(argv=None):
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Email authentication (SPF/DKIM/ARC) analyzer")
    parser.add_argument("message", help="RFC 5322 message file to analyze ('-' for stdin)")
    parser.add_argument("--authserv-id", default=settings.authserv_id,
                        help="Only trust Authentication-Results added by this server")
    parser.add_argument("--no-dns", action="store_true", help="Skip DKIM record and DNSSEC lookups")
    parser.add_argument("--timeout", type=float, default=settings.dns_timeout, help="DNS timeout in seconds")
    parser.add_argument("--json-out", help="Write JSON summary to this file")
    parser.add_argument("--quiet", action="store_true", help="Only output JSON or minimal info")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log DNS activity")
    args = parser.parse_args(argv)
    if args.timeout <= 0:
        parser.error("--timeout must be greater than 0")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = settings.model_copy(update={"authserv_id": args.authserv_id, "dns_timeout": args.timeout})

    try:
        message = ParsedMessage.from_bytes(read_message(args.message))
        result = asyncio.run(generate_report(message, settings=settings, check_dns=not args.no_dns))
    except (OSError, ValueError) as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        sys.exit(2)

    if args.json_out:
        with open(args.json_out, "w", encoding="utf-8") as f:
            json.dump(result, f, indent=2)
        if not args.quiet:
            print(f"Wrote JSON summary to {args.json_out}")

    if not args.quiet:
        print(human_report(result))
    else:
        print(json.dumps(result))

if __name__ == "__main__":
    main()
