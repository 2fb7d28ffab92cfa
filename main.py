"""
RiskScope command line: analyze a handle, browse history, or run the API.

    python main.py analyze @cryptoking --platform x --save
    python main.py history --limit 5
    python main.py serve

Report JSON goes to stdout; structured logs go to stderr.
Env: OPENAI_API_KEY, TWITTER_BEARER_TOKEN, BSC_API_KEY, DATABASE_URL, API_HOST, API_PORT, etc.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from backend_riskscope.config import get_settings
from backend_riskscope.core.exceptions import GenerationCancelledError, InvalidSubjectError
from backend_riskscope.riskscope_logging import get_logger

logger = get_logger("main")


def _cmd_analyze(args: argparse.Namespace) -> int:
    from backend_riskscope.analytics.analytics_pipeline import build_report
    from backend_riskscope.api_server.server import build_services

    settings = get_settings()
    services = build_services(settings)
    try:
        report = asyncio.run(
            build_report(
                args.handle,
                args.platform,
                services.social_provider,
                services.blockchain_provider,
                services.text_generator,
                address=args.address,
                config=services.config,
            )
        )
    except InvalidSubjectError as e:
        print(f"Invalid handle: {e.message}", file=sys.stderr)
        return 2
    except GenerationCancelledError as e:
        print(f"Report generation cancelled: {e.message}", file=sys.stderr)
        return 3

    if args.save:
        from backend_riskscope.database import ReportStore, SubjectStore, init_db

        init_db()
        SubjectStore().save(report.subject)
        ReportStore().save(report)
        logger.info("main_report_saved", report_id=report.id)

    print(json.dumps(report.to_dict(), indent=2))
    return 0


def _cmd_history(args: argparse.Namespace) -> int:
    from backend_riskscope.database import ReportStore, init_db

    init_db()
    limit = args.limit if args.limit is not None else get_settings().history_limit
    reports = ReportStore().list(limit)
    print(json.dumps([r.to_dict() for r in reports], indent=2))
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from backend_riskscope.api_server.server import app

    settings = get_settings()
    host = args.host or settings.api_host
    port = args.port or settings.api_port
    logger.info("main_server_starting", host=host, port=port)
    uvicorn.run(app, host=host, port=port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Crypto influencer risk reports.")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Build a report for one handle and print it as JSON.")
    analyze.add_argument("handle", help="Influencer handle, with or without @")
    analyze.add_argument("--platform", default="x", help="x, instagram, telegram, or other (default: x)")
    analyze.add_argument("--address", default=None, help="Influencer wallet address; derived from the handle if omitted")
    analyze.add_argument("--save", action="store_true", help="Persist the subject and report to the database")
    analyze.set_defaults(func=_cmd_analyze)

    history = sub.add_parser("history", help="Print stored reports, newest first.")
    history.add_argument("--limit", type=int, default=None, help="Max reports (default: HISTORY_LIMIT)")
    history.set_defaults(func=_cmd_history)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn.")
    serve.add_argument("--host", default=None, help="Bind host (default: API_HOST)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: API_PORT)")
    serve.set_defaults(func=_cmd_serve)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
