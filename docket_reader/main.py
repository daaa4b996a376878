import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from .config import LOG_FORMAT, LOG_LEVEL
from .exceptions import ConfigurationError
from .models.document import ExtractionResult
from .processing.correction_learner import CorrectionLearner
from .processing.format_memory_store import (
    FormatMemoryStore,
    JsonFilePersistence,
    default_persistence,
)
from .processing.orchestrator import ExtractionOrchestrator
from .processing.record_export import export_csv
from .utils.statistics import get_memory_statistics

logger = logging.getLogger(__name__)


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stdout)

    # Suppress HTTP request logging from OpenAI/httpx
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


def print_separator() -> None:
    print("=" * 80)


def print_result(result: ExtractionResult) -> None:
    """Pretty print the outcome for one image."""
    print(f"\nImage: {result.image_name}")
    print(f"Status: {result.status.value}")
    if result.error:
        print(f"Error: {result.error}")
        return
    print(result.diagnostics.to_display_string())
    for record in result.records:
        print(
            f"  - {record.product} x {record.qty:g}"
            f"{f' (batch {record.batch_code})' if record.batch_code else ''}"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docket-reader",
        description="Extract line items from photos of receipts, invoices and dockets",
    )
    parser.add_argument(
        "--memory",
        type=str,
        default=None,
        help="Path to the learned format memory file",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract = subparsers.add_parser("extract", help="Extract records from images")
    extract.add_argument("images", nargs="+", help="Image files to read")
    extract.add_argument("--csv", type=str, default=None, help="Write records to CSV")
    extract.add_argument(
        "--append", action="store_true", help="Append to the CSV instead of replacing it"
    )

    subparsers.add_parser("formats", help="List learned document formats")
    subparsers.add_parser("stats", help="Show format memory statistics")
    subparsers.add_parser("reset", help="Forget all learned document formats")
    return parser


def create_memory_store(memory_path: str | None) -> FormatMemoryStore:
    persistence = JsonFilePersistence(memory_path) if memory_path else default_persistence()
    return FormatMemoryStore(persistence)


async def run_extract(args: argparse.Namespace, store: FormatMemoryStore) -> int:
    images = []
    for image in args.images:
        path = Path(image)
        if not path.is_file():
            print(f"Error: Image '{image}' does not exist")
            return 1
        images.append((path.name, path.read_bytes()))

    try:
        orchestrator = ExtractionOrchestrator(store)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 1

    def report_progress(completed: int, total: int, result: ExtractionResult) -> None:
        logger.info(f"[{completed}/{total}] {result.image_name}: {result.status.value}")

    results = await orchestrator.extract_many(images, progress_callback=report_progress)

    print_separator()
    for result in results:
        print_result(result)
    print_separator()

    if args.csv:
        records = [record for result in results for record in result.records]
        export_csv(records, args.csv, append=args.append)
        print(f"Wrote {len(records)} records to {args.csv}")

    return 0 if any(result.success for result in results) else 1


def run_formats(store: FormatMemoryStore) -> int:
    formats = CorrectionLearner(store).get_learned_formats()
    if not formats:
        print("No learned document formats yet")
        return 0
    for fmt in formats:
        print(
            f"{fmt.id}: {fmt.accuracy.extraction_count} extractions, "
            f"{fmt.accuracy.success_rate:.0f}% success, "
            f"dates {fmt.extraction_template.date_format.value}, "
            f"quantities {fmt.extraction_template.quantity_format.value}"
        )
    return 0


def run_stats(store: FormatMemoryStore) -> int:
    statistics = get_memory_statistics(store)
    print(statistics.to_display_string())
    print(json.dumps(statistics.to_dict(), indent=2))
    return 0


async def run_reset(store: FormatMemoryStore) -> int:
    if await CorrectionLearner(store).reset_memory():
        print("Format memory cleared")
        return 0
    print("Error: Could not clear format memory")
    return 1


def main(argv: list[str] | None = None) -> int:
    """Entry point for the docket-reader command."""
    load_dotenv()

    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else LOG_LEVEL)

    store = create_memory_store(args.memory)
    if args.command == "extract":
        return asyncio.run(run_extract(args, store))
    if args.command == "formats":
        return run_formats(store)
    if args.command == "stats":
        return run_stats(store)
    return asyncio.run(run_reset(store))


if __name__ == "__main__":
    sys.exit(main())
