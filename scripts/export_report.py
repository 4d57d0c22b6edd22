#!/usr/bin/env python3
"""Export the period report of one management context.

Signs in with BACKEND_EMAIL / BACKEND_PASSWORD, loads the user's
permissions and writes the report to disk.

Usage:
    python scripts/export_report.py --start 2024-01-01 --end 2024-01-31
    python scripts/export_report.py --context casa --type pagas --txt -o pagas.txt
"""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path
from uuid import UUID

from gestao_contas.backend import BackendClient
from gestao_contas.config import configure_logging, get_logger
from gestao_contas.dashboard import ReportType
from gestao_contas.errors import GestaoContasError
from gestao_contas.models import ManagementContext
from gestao_contas.pdf import AttachmentEmbedder
from gestao_contas.services import AccountService, PermissionService

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Export a period report of accounts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Report types:
  completo   Every account due in the period (default)
  pagas      Paid accounts
  vencidas   Overdue accounts
  a_pagar    Accounts still to pay
""",
    )
    parser.add_argument("--start", type=date.fromisoformat, required=True, help="YYYY-MM-DD")
    parser.add_argument("--end", type=date.fromisoformat, required=True, help="YYYY-MM-DD")
    parser.add_argument(
        "--context",
        choices=[m.value for m in ManagementContext],
        default=ManagementContext.PERSONAL.value,
        help="Management context (default: pessoal)",
    )
    parser.add_argument(
        "--type",
        dest="report_type",
        choices=[t.value for t in ReportType],
        default=ReportType.FULL.value,
    )
    parser.add_argument("--txt", action="store_true", help="Write plain text instead of PDF")
    parser.add_argument("-o", "--output", type=Path, help="Output file (default: generated name)")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    configure_logging()
    args = parse_args(argv)

    async with BackendClient() as client:
        if client.user_id is None:
            print("✗ Sign-in did not return a user", file=sys.stderr)
            return 1

        context = await PermissionService(client).session_for(
            UUID(client.user_id), ManagementContext(args.context), email=client.user.get("email")
        )
        async with AttachmentEmbedder() as embedder:
            service = AccountService(client, context, embedder=embedder)
            try:
                report = await service.export_period_report(
                    args.start,
                    args.end,
                    ReportType(args.report_type),
                    as_text=args.txt,
                )
            except GestaoContasError as e:
                print(f"✗ {e}", file=sys.stderr)
                return 1

    output = args.output or Path(report.filename)
    output.write_bytes(report.content)
    logger.info("report_written", path=str(output), report_type=args.report_type)
    print(f"✓ Wrote {output} ({len(report.content)} bytes)")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
