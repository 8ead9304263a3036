import json
from typing import Any, Iterable, List, Sequence, TextIO, Tuple

from .analysis.records import ChangeRecord

MAX_ERRORS_SHOWN = 10
RULE = "=" * 50


def _render_value(value: Any) -> str:
    # CanonicalTimestamp renders as ISO-8601, SERVER_TIMESTAMP as a placeholder
    return str(value)


def render_document(fields: dict) -> str:
    return json.dumps(fields, indent=2, default=_render_value, sort_keys=True)


def format_preview(records: Sequence[ChangeRecord], limit: int) -> List[str]:
    lines = [f"DRY RUN - Showing first {min(limit, len(records))} of {len(records)} changes:"]
    for record in records[:limit]:
        lines.append(f"Document {record.document_id}:")
        lines.append("  Before: " + render_document(record.original))
        lines.append("  After:  " + render_document(record.normalized))
        lines.append("---")
    return lines


def format_errors(errors: Sequence[Tuple[Any, str]], limit: int = MAX_ERRORS_SHOWN) -> List[str]:
    if not errors:
        return []
    lines = ["", "Errors encountered:"]
    for document_id, message in errors[:limit]:
        lines.append(f"  {document_id}: {message}")
    if len(errors) > limit:
        lines.append(f"  ... and {len(errors) - limit} more errors")
    return lines


def format_summary(summary) -> List[str]:
    totals = summary.totals
    lines = [
        "",
        RULE,
        "NORMALIZATION SUMMARY",
        RULE,
        f"Documents scanned: {totals.scanned}",
        f"Documents updated: {totals.updated}",
        f"Documents unchanged: {totals.unchanged}",
        f"Documents failed: {totals.failed}",
    ]
    lines.extend(format_errors(totals.errors))

    fatal = summary.fatal_errors
    if fatal:
        lines.append("")
        lines.append("Collections that could not be processed:")
        for collection_name, message in fatal:
            lines.append(f"  {collection_name}: {message}")

    backups = [(r.collection, r.backup_name) for r in summary.results if r.backup_name]
    for collection_name, backup_name in backups:
        lines.append(f"Backup of {collection_name} available at: {backup_name}")
    return lines


def format_listing(collections: Iterable[Tuple[str, int]]) -> List[str]:
    collections = list(collections)
    if not collections:
        return ["No collections found"]
    lines = ["", "Available collections:"]
    for name, count in collections:
        lines.append(f"  {name}: {count} documents")
    return lines


def print_lines(lines: Iterable[str], stream: TextIO = None) -> None:
    for line in lines:
        print(line, file=stream)
