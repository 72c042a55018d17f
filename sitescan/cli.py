"""Command-line interface for single-document and batch OCR runs.

``extract`` prints (or writes) the JSON result for one file; ``batch``
processes a folder concurrently against one shared worker pool and
exports a CSV summary.
"""

import argparse
import asyncio
import csv
import json
import sys
from pathlib import Path

from sitescan.exceptions import SiteScanError
from sitescan.extraction.fields import CATEGORIES
from sitescan.jobs.controller import JobController, Submission
from sitescan.jobs.models import DocumentResult
from sitescan.ocr.worker_pool import EngineFactory
from sitescan.utils.config import AppConfig, load_config
from sitescan.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = ("*.pdf", "*.jpg", "*.jpeg", "*.png", "*.tiff", "*.bmp")
_COLUMNS = [
    "filename",
    "job_id",
    "status",
    "processing_time_ms",
    "confidence",
    "project_name",
    "contract_number",
    *CATEGORIES,
    "error",
]


def _find_documents(input_dir: Path) -> list[Path]:
    """Find all supported document files in a directory.

    Args:
        input_dir: Directory to scan for documents.

    Returns:
        Sorted list of document file paths.
    """
    files: list[Path] = []
    for ext in _SUPPORTED_EXTENSIONS:
        files.extend(input_dir.glob(ext))
        files.extend(input_dir.glob(ext.upper()))
    return sorted(set(files))


def _summary_row(path: Path, outcome: DocumentResult | BaseException) -> dict[str, object]:
    if isinstance(outcome, DocumentResult):
        row: dict[str, object] = {
            "filename": path.name,
            "job_id": outcome.id,
            "status": outcome.status.value,
            "processing_time_ms": round(outcome.processing_time_ms, 1),
            "confidence": round(outcome.confidence, 3),
            "project_name": outcome.extracted_data.project_name or "",
            "contract_number": outcome.extracted_data.contract_number or "",
            "error": "",
        }
        for name in CATEGORIES:
            row[name] = len(getattr(outcome.extracted_data, name))
        return row

    return {
        "filename": path.name,
        "job_id": getattr(outcome, "job_id", None) or "",
        "status": "failed",
        "error": str(outcome),
    }


def _write_csv(rows: list[dict[str, object]], output_path: Path) -> None:
    """Write per-document summary rows to a CSV file."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)


def _print_summary(summary: dict[str, int], output_csv: Path) -> None:
    print(f"\n{'=' * 50}")
    print("Batch Processing Complete")
    print(f"{'=' * 50}")
    print(f"Total:      {summary['total']}")
    print(f"Successful: {summary['successful']}")
    print(f"Failed:     {summary['failed']}")
    print(f"Output:     {output_csv}")


async def _run_batch(
    controller: JobController, files: list[Path], concurrency: int
) -> list[DocumentResult | BaseException]:
    semaphore = asyncio.Semaphore(concurrency)

    async def _one(path: Path) -> DocumentResult | BaseException:
        async with semaphore:
            try:
                return await controller.start(path.read_bytes(), path.name, path.stem)
            except Exception as exc:
                logger.error("Failed to process %s: %s", path.name, exc)
                return exc

    return await asyncio.gather(*(_one(path) for path in files))


def process_folder(
    input_dir: Path,
    output_csv: Path,
    concurrency: int = 4,
    config: AppConfig | None = None,
    engine_factory: EngineFactory | None = None,
) -> dict[str, int]:
    """Process all documents in a folder and export a CSV summary.

    Each file's stem is used as its document id.

    Args:
        input_dir: Directory containing document files.
        output_csv: Path for the output CSV file.
        concurrency: Maximum number of documents in flight.
        config: Application configuration; loaded from YAML when omitted.
        engine_factory: Recognition engine factory; Tesseract by default.

    Returns:
        Summary dict with total, successful, and failed counts.
    """
    config = config or load_config()
    files = _find_documents(input_dir)
    if not files:
        logger.warning("No documents found in %s", input_dir)
        return {"total": 0, "successful": 0, "failed": 0}

    logger.info("Found %d documents to process", len(files))
    controller = JobController.from_config(config, engine_factory)
    controller.startup()
    try:
        outcomes = asyncio.run(_run_batch(controller, files, max(concurrency, 1)))
    finally:
        controller.shutdown()

    rows = [_summary_row(path, outcome) for path, outcome in zip(files, outcomes)]
    _write_csv(rows, output_csv)
    logger.info("Results written to %s", output_csv)

    successful = sum(1 for o in outcomes if isinstance(o, DocumentResult))
    summary = {
        "total": len(files),
        "successful": successful,
        "failed": len(files) - successful,
    }
    _print_summary(summary, output_csv)
    return summary


def extract_single(
    file_path: Path,
    document_id: str | None = None,
    config: AppConfig | None = None,
    engine_factory: EngineFactory | None = None,
) -> dict[str, object]:
    """Process a single document and return its serialized result.

    Raises:
        SiteScanError: If the job fails.
    """
    config = config or load_config()
    controller = JobController.from_config(config, engine_factory)
    controller.startup()
    try:
        result = asyncio.run(
            controller.start(file_path.read_bytes(), file_path.name, document_id or file_path.stem)
        )
    finally:
        controller.shutdown()
    return result.to_dict()


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="Construction Document OCR",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-c", "--config", type=Path, help="YAML configuration file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    batch_parser = subparsers.add_parser("batch", help="Process a folder of documents")
    batch_parser.add_argument("input_dir", type=Path, help="Input directory with documents")
    batch_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("results.csv"),
        help="Output CSV file (default: results.csv)",
    )
    batch_parser.add_argument(
        "-j",
        "--concurrency",
        type=int,
        default=4,
        help="Documents processed at once (default: 4)",
    )

    single_parser = subparsers.add_parser("extract", help="Process a single document")
    single_parser.add_argument("file", type=Path, help="Document file to process")
    single_parser.add_argument("-d", "--document-id", help="Document identifier")
    single_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_logging(config.log_level)

    if args.command == "batch":
        if not args.input_dir.is_dir():
            print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
            sys.exit(1)
        process_folder(args.input_dir, args.output, args.concurrency, config)
    elif args.command == "extract":
        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        try:
            result = extract_single(args.file, args.document_id, config)
        except SiteScanError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)
        output_str = json.dumps(result, indent=2, ensure_ascii=False)
        if args.output:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(output_str)
            print(f"Output written to {args.output}")
        else:
            print(output_str)
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
