"""Command line entry points for the loyalty insights toolkit."""

from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loyalty_insights.analyses.customer_insight import build_customer_insights
from loyalty_insights.analyses.customer_listing import CSV_HEADERS, listing_rows
from loyalty_insights.analyses.merchant_summary import DashboardRange, summarize_merchant
from loyalty_insights.config import InsightConfig
from loyalty_insights.errors import LoyaltyError, ValidationError
from loyalty_insights.foundation.records import (
    CustomerContract,
    TransactionContract,
    to_naive_utc,
)
from loyalty_insights.logging_config import configure_logging
from loyalty_insights.services.schemas import (
    CustomerInsightPayload,
    MerchantSummaryPayload,
)

logger = logging.getLogger(__name__)


MAX_INPUT_BYTES = 25 * 1024 * 1024  # 25 MiB cap to avoid accidental OOM


def _load_payload(path: Path) -> dict[str, list[dict[str, Any]]]:
    resolved = path.resolve()
    try:
        size = resolved.stat().st_size
    except OSError as exc:
        raise ValidationError(
            f"Cannot read input file {resolved}: {exc.strerror}",
            {"path": str(resolved)},
        ) from exc
    if size > MAX_INPUT_BYTES:
        raise ValidationError(
            f"Input file {resolved} is {size} bytes; exceeds limit of {MAX_INPUT_BYTES} bytes",
            {"path": str(resolved), "size": size},
        )
    try:
        with path.open("r", encoding="utf-8") as fh:
            payload = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ValidationError(
            f"Input file {resolved} is not valid JSON: {exc.msg} (line {exc.lineno})",
            {"path": str(resolved), "line": exc.lineno},
        ) from exc
    except UnicodeDecodeError as exc:
        raise ValidationError(
            f"Input file {resolved} is not UTF-8 text", {"path": str(resolved)}
        ) from exc
    except OSError as exc:
        raise ValidationError(
            f"Cannot read input file {resolved}: {exc.strerror}",
            {"path": str(resolved)},
        ) from exc
    if isinstance(payload, list):
        # A bare list is a transactions-only export.
        payload = {"customers": [], "transactions": payload}
    if not isinstance(payload, dict):
        raise ValidationError("Expected an object with customers and transactions")
    return {
        "customers": list(payload.get("customers") or []),
        "transactions": list(payload.get("transactions") or []),
    }


def _parse_now(value: str | None) -> datetime:
    # Naive UTC, matching the timestamps the record contracts produce.
    if not value:
        return datetime.now(timezone.utc).replace(tzinfo=None)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError(
            f"--now is not an ISO timestamp: {value!r}", {"now": value}
        ) from exc
    return to_naive_utc(parsed)


def _resolve_output(path: Path) -> Path:
    output_path = path.resolve()
    cwd = Path.cwd().resolve()
    try:
        output_path.relative_to(cwd)
    except ValueError:
        raise ValidationError(
            f"Output path {output_path} must reside within the current working directory",
            {"path": str(output_path)},
        )
    output_path.parent.mkdir(parents=True, exist_ok=True)
    return output_path


def _write_json(payload: Any, output: Path | None) -> None:
    if output:
        with _resolve_output(output).open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2, sort_keys=True)
    else:  # stdout fallback enables piping in shell usage.
        json.dump(payload, fp=sys.stdout, indent=2, sort_keys=True)
        print()


def customer_insights_cli(argv: list[str] | None = None) -> int:
    """Derive per-customer insights from a JSON export.

    The input is ``{"customers": [...], "transactions": [...]}`` as exported
    from the merchant store. Output is JSON (one object per customer) or
    the customer-list CSV.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(
        description="Derive customer insights from merchant transactions"
    )
    parser.add_argument("input", type=Path, help="Path to JSON export")
    parser.add_argument(
        "--now",
        type=str,
        help="Reference instant (ISO format). Defaults to the current UTC time.",
    )
    parser.add_argument(
        "--format",
        choices=["json", "csv"],
        default="json",
        help="Output format (default: json)",
    )
    parser.add_argument("--output", type=Path, help="Optional output path")

    args = parser.parse_args(argv)
    config = InsightConfig.from_env()
    now = _parse_now(args.now)

    logger.info(f"Loading export from {args.input}")
    payload = _load_payload(args.input)
    customers = CustomerContract().validate_records(payload["customers"])
    transactions = TransactionContract().validate_records(payload["transactions"])

    if not customers:
        logger.error("No customers found in input file")
        return 1

    logger.info(
        f"Building insights for {len(customers)} customers "
        f"from {len(transactions)} transactions"
    )
    insights = build_customer_insights(customers, transactions, now, config=config)

    if args.format == "csv":
        rows = listing_rows(insights)
        if args.output:
            with _resolve_output(args.output).open("w", encoding="utf-8", newline="") as fh:
                writer = csv.writer(fh, quoting=csv.QUOTE_ALL)
                writer.writerow(CSV_HEADERS)
                writer.writerows(rows)
        else:
            writer = csv.writer(sys.stdout, quoting=csv.QUOTE_ALL)
            writer.writerow(CSV_HEADERS)
            writer.writerows(rows)
    else:
        _write_json(
            [
                CustomerInsightPayload.from_insight(insight).model_dump(mode="json")
                for insight in insights
            ],
            args.output,
        )

    logger.info(f"Wrote insights for {len(insights)} customers")
    return 0


def merchant_summary_cli(argv: list[str] | None = None) -> int:
    """Summarise a merchant's recent trading as dashboard JSON."""

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("input", type=Path, help="Path to JSON export")
    parser.add_argument(
        "--range",
        dest="range_",
        choices=[item.value for item in DashboardRange],
        default=DashboardRange.LAST_30_DAYS.value,
        help="Dashboard range (default: 30d)",
    )
    parser.add_argument(
        "--now",
        type=str,
        help="Reference instant (ISO format). Defaults to the current UTC time.",
    )
    parser.add_argument("--output", type=Path, help="Optional output path")

    args = parser.parse_args(argv)
    config = InsightConfig.from_env()
    now = _parse_now(args.now)

    payload = _load_payload(args.input)
    customers = CustomerContract().validate_records(payload["customers"])
    transactions = TransactionContract().validate_records(payload["transactions"])

    summary = summarize_merchant(
        transactions,
        now,
        DashboardRange(args.range_),
        customers={customer.customer_id: customer for customer in customers},
        config=config,
    )
    logger.info(
        f"Summarised {summary.total_transactions} transactions over {summary.range.value}"
    )
    _write_json(MerchantSummaryPayload.from_summary(summary).model_dump(mode="json"), args.output)
    return 0


def _run(entry, argv: list[str] | None = None) -> int:
    configure_logging()
    try:
        return entry(argv)
    except LoyaltyError as exc:
        logger.error(f"{type(exc).__name__}: {exc}")
        return 2


def main() -> None:
    raise SystemExit(_run(customer_insights_cli))


def summary_main() -> None:
    raise SystemExit(_run(merchant_summary_cli))


if __name__ == "__main__":  # pragma: no cover
    main()
