import asyncio
import argparse
import json
import logging
import sys

from core.audience import get_classifier
from core.browser import get_browser_pool
from core.config import load_settings
from core.engine import Aggregator
from core.errors import InvalidInput, ScanTotalFailure
from models.report import report_to_dict
from remediation.cache import RemediationCache
from remediation.client import RemediationClient


def _stream_to_stderr():
    """Progress callback that writes only the newly arrived text."""
    shown = {"text": ""}

    def on_progress(state: str) -> None:
        previous = shown["text"]
        if state.startswith(previous):
            sys.stderr.write(state[len(previous):])
        else:
            # fallback answer replaced the streamed text
            sys.stderr.write("\n" + state)
        sys.stderr.flush()
        shown["text"] = state

    return on_progress


async def _scan(args, settings) -> int:
    logger = logging.getLogger(__name__)
    aggregator = Aggregator(settings=settings)
    try:
        logger.info(f"Starting accessibility scan of {args.url}")
        try:
            report = await aggregator.aggregate(args.url)
        except InvalidInput as e:
            logger.error(f"Invalid URL {args.url!r}: {e}")
            return 2
        except ScanTotalFailure as e:
            logger.error(f"Scan failed: {e}")
            return 1

        classifier = get_classifier() if args.audience else None
        data = report_to_dict(report, classifier=classifier)

        if args.remediate and report.violations:
            client = RemediationClient.from_settings(settings)
            cache = RemediationCache()
            logger.info(f"Requesting remediation for {len(report.violations)} violations")
            for item, violation in zip(data["violations"], report.violations):
                node = violation.nodes[0]
                sys.stderr.write(f"\n=== {violation.rule_id} ({violation.severity}) ===\n")
                entry = await cache.get_or_request(
                    violation.rule_id, violation.description, 0, node.html, client,
                    on_progress=_stream_to_stderr(),
                )
                item["remediation"] = entry.text
            sys.stderr.write("\n")

        print(json.dumps(data, indent=2))
        return 0
    finally:
        await get_browser_pool().close()


def _serve(args, settings) -> int:
    import uvicorn
    from api.server import create_app

    app = create_app(settings=settings)
    uvicorn.run(app, host=args.host or settings.host, port=args.port or settings.port, log_level=settings.log_level.lower())
    return 0


def _list_audiences() -> int:
    classifier = get_classifier()
    print("Audience table:")
    for rule_id in sorted(classifier.rule_ids()):
        print(f"  - {rule_id}: {', '.join(classifier.classify(rule_id))}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="Website accessibility scanner (axe-core + HTML_CodeSniffer)")
    parser.add_argument("--log-level", type=str, default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging verbosity level (default: LOG_LEVEL or INFO)")
    parser.add_argument("--env-file", type=str, help="Path to a .env file with GROQ_API_KEY and other settings")
    subparsers = parser.add_subparsers(dest="command")

    scan_parser = subparsers.add_parser("scan", help="Scan a URL and print the merged report as JSON")
    scan_parser.add_argument("url", help="Target URL (e.g., https://example.com)")
    scan_parser.add_argument("--audience", action="store_true", help="Attach impacted user groups to each violation")
    scan_parser.add_argument("--remediate", action="store_true", help="Ask the LLM for a fix for every violation (streams to stderr)")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service")
    serve_parser.add_argument("--host", type=str, help="Bind address (default: HOST or 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, help="Listen port (default: PORT or 5000)")

    subparsers.add_parser("audiences", help="List the rule id to audience table and exit")

    args = parser.parse_args(argv)
    settings = load_settings(args.env_file)

    # Configure logging
    logging.basicConfig(
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        level=getattr(logging, args.log_level or settings.log_level, logging.INFO),
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if args.command == "scan":
        code = asyncio.run(_scan(args, settings))
    elif args.command == "serve":
        code = _serve(args, settings)
    elif args.command == "audiences":
        code = _list_audiences()
    else:
        parser.print_help()
        code = 2
    sys.exit(code)


if __name__ == "__main__":
    main()
