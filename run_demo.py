#!/usr/bin/env python3
"""
Contract Risk Pipeline - Demo Runner

This script runs one contract through the full ingestion pipeline:
1. Load a contract file
2. Extract its text, analyze it with the model (or the keyword fallback)
3. Persist the analysis in memory or in Neo4j
4. Print the final status and the analysis as JSON

Usage:
    python run_demo.py                        # Run with default sample contract
    python run_demo.py --file contract.txt    # Run with custom contract
    python run_demo.py --store neo4j          # Persist to Neo4j
    python run_demo.py --verbose              # Enable debug logging
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import NoReturn

# ASCII art banner
BANNER = """
╔═════════════════════════════════════════════════════════╗
║   📑 Contract Risk Pipeline                             ║
║   AI Contract Analysis with Heuristic Fallback          ║
╚═════════════════════════════════════════════════════════╝
"""

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S"
    )


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Contract Risk Pipeline - Analyze a contract for risky terms",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_demo.py                           Run with sample contract
  python run_demo.py -f lease.txt -t "Lease"   Analyze custom contract
  python run_demo.py --store neo4j             Persist to Neo4j
  python run_demo.py -v                        Verbose output
        """
    )
    parser.add_argument(
        "-f", "--file",
        type=Path,
        default=Path("data/sample_contract.txt"),
        help="Path to contract file (default: data/sample_contract.txt)"
    )
    parser.add_argument(
        "-t", "--title",
        default=None,
        help="Document title (default: the file name)"
    )
    parser.add_argument(
        "--store",
        choices=("memory", "neo4j"),
        default="memory",
        help="Where to persist the analysis and status (default: memory)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose debug logging"
    )
    return parser.parse_args()


def load_contract(file_path: Path) -> bytes:
    """
    Load the raw contract upload from file.

    Args:
        file_path: Path to the contract file.

    Returns:
        File content as bytes; extraction happens in the pipeline.

    Raises:
        SystemExit: If file cannot be read.
    """
    try:
        content = file_path.read_bytes()
        logger.info(f"✅ Loaded contract: {file_path} ({len(content):,} bytes)")
        return content
    except FileNotFoundError:
        logger.error(f"❌ File not found: {file_path}")
        sys.exit(1)
    except PermissionError:
        logger.error(f"❌ Permission denied: {file_path}")
        sys.exit(1)


def open_store(kind: str):
    """
    Create the analysis repository / status store.

    Raises:
        SystemExit: If the Neo4j connection fails.
    """
    from contract_risk.collaborators import InMemoryStore
    from contract_risk.exceptions import StorageError
    from contract_risk.graph_store import Neo4jAnalysisStore

    if kind == "memory":
        return InMemoryStore()

    logger.info("🔌 Connecting to Neo4j...")
    try:
        store = Neo4jAnalysisStore()
        store.create_constraints()
        return store
    except StorageError as e:
        logger.error(f"❌ Database connection failed: {e}")
        logger.error("\n💡 Tip: Make sure Neo4j is running and reachable:")
        logger.error("   export NEO4J_URI=bolt://localhost:7687")
        logger.error("   export NEO4J_USER=neo4j NEO4J_PASSWORD=<password>")
        logger.error("   # or run with --store memory")
        sys.exit(1)


def print_result(result) -> None:
    """Print the run outcome and the analysis JSON."""
    print("\n" + "═" * 60)
    print(f"Document:  {result.document_id}")
    print(f"Status:    {result.status.value}")
    if result.analysis_source:
        source = result.analysis_source.value
        if result.quota_exceeded:
            source += " (quota exceeded)"
        print(f"Source:    {source}")
    if result.error:
        print(f"Error:     {result.error}")
    if result.analysis is not None:
        print("─" * 60)
        print(json.dumps(result.analysis.to_document(), indent=2))
    print("═" * 60 + "\n")


def main() -> NoReturn | None:
    """
    Main entry point for the demo script.

    Exits with status 1 when the document ends in the failed state.
    """
    args = parse_args()
    setup_logging(args.verbose)

    print(BANNER)

    from contract_risk.pipeline import DocumentPipeline

    content = load_contract(args.file)
    title = args.title or args.file.stem.replace("_", " ").title()
    store = open_store(args.store)
    document_id = uuid.uuid4().hex

    logger.info("🚀 Starting document pipeline...")
    with DocumentPipeline(repository=store, status_store=store) as pipeline:
        result = pipeline.run(document_id, content, title)

    if result.errors:
        logger.warning(f"⚠️  {len(result.errors)} issue(s) occurred during processing")
        for err in result.errors:
            logger.warning(f"   • {err}")

    print_result(result)

    if not result.succeeded:
        sys.exit(1)

    logger.info("✅ Demo completed successfully!")
    if args.store == "neo4j":
        logger.info("🔍 View the analysis in Neo4j Browser: http://localhost:7474")
    return None


if __name__ == "__main__":
    main()
