#!/usr/bin/env python
"""Ingest text documents into the persisted vector index.

Usage:
    python scripts/ingest.py person1.txt              # Add a document
    python scripts/ingest.py docs/*.txt --rebuild     # Clear the index first
    python scripts/ingest.py notes.txt --verbose      # Show per-file results
"""
import argparse
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from persona_rag import config
from persona_rag.errors import QuotaExceededError, RAGError
from persona_rag.rag.store_faiss import FAISSVectorIndex
from persona_rag.service import build_service
import structlog

logger = structlog.get_logger()


class ProgressReporter:
    """Simple progress reporter for CLI."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.start_time = None

    def start(self, message: str):
        """Start progress reporting."""
        self.start_time = datetime.now()
        print(f"\n{'=' * 60}")
        print(f"  {message}")
        print(f"{'=' * 60}\n")

    def update(self, current: int, total: int, file_path: Path, chunks: int):
        """Update progress."""
        percentage = (current / total) * 100 if total > 0 else 0
        bar_length = 40
        filled = int(bar_length * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_length - filled)

        print(
            f"\r  [{bar}] {percentage:5.1f}% ({current}/{total}) {file_path.name[:30]:<30}",
            end="",
            flush=True,
        )

        if self.verbose:
            print(f"\n    {chunks} chunk(s) indexed")

    def finish(self, stats: dict, persist_dir: Path):
        """Finish progress reporting."""
        print("\n")
        elapsed_seconds = (datetime.now() - self.start_time).total_seconds()

        print(f"{'=' * 60}")
        print("  Ingest Complete!")
        print(f"{'=' * 60}\n")
        print(f"  Documents indexed:  {stats['documents_indexed']}")
        print(f"  Documents failed:   {stats['documents_failed']}")
        print(f"  Chunks created:     {stats['chunks_created']}")
        print(f"  Index size:         {stats['total_chunks']}")
        print(f"  Time elapsed:       {elapsed_seconds:.1f}s")
        print(f"\n{'=' * 60}\n")

        if stats["documents_failed"] > 0:
            print(f"Warning: {stats['documents_failed']} document(s) failed to index.")
            print("   Check logs for details.\n")

        if stats["documents_indexed"] > 0:
            print(f"Index ready at: {persist_dir}\n")


async def ingest(paths, persist_dir: Path, rebuild: bool, progress: ProgressReporter) -> dict:
    index = FAISSVectorIndex(persist_dir=persist_dir)
    if rebuild:
        await index.reset()

    service = build_service(vector_index=index)

    stats = {"documents_indexed": 0, "documents_failed": 0, "chunks_created": 0}

    for position, path in enumerate(paths, 1):
        metadata = {
            "source": path.name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        try:
            content = path.read_text(encoding="utf-8")
            result = await service.upload_document(content, metadata)
        except QuotaExceededError:
            # Every later document would fail the same way
            raise
        except (OSError, RAGError) as e:
            logger.error("document_ingest_failed", path=str(path), error=str(e))
            stats["documents_failed"] += 1
            continue

        stats["documents_indexed"] += 1
        stats["chunks_created"] += result["chunks"]
        progress.update(position, len(paths), path, result["chunks"])

    stats["total_chunks"] = await index.count()
    return stats


async def main():
    """Main entry point for the ingest script."""
    parser = argparse.ArgumentParser(
        description="Ingest text documents into the persona RAG index",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/ingest.py person1.txt
  python scripts/ingest.py docs/*.txt --rebuild
        """,
    )

    parser.add_argument("files", nargs="+", type=Path, help="Text files to ingest")

    parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Clear the existing index before ingesting",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show verbose progress output",
    )

    parser.add_argument(
        "--persist-dir",
        type=Path,
        default=None,
        help=f"Index directory (default: VECTOR_PERSIST_DIR or {config.DATA_DIR / 'index'})",
    )

    args = parser.parse_args()
    persist_dir = args.persist_dir or Path(config.VECTOR_PERSIST_DIR or config.DATA_DIR / "index")

    progress = ProgressReporter(verbose=args.verbose)

    try:
        print("\nConfiguration:")
        print(f"   Index directory:  {persist_dir}")
        print(f"   Embedding model:  {config.EMBEDDING_MODEL}")
        print(f"   Chunk size:       {config.CHUNK_SIZE} chars")
        print(f"   Chunk overlap:    {config.CHUNK_OVERLAP} chars")

        if args.rebuild:
            print("\nRebuild mode: Will clear the existing index!")
            print("   Press Ctrl+C within 3 seconds to cancel...")
            await asyncio.sleep(3)

        progress.start("Rebuilding Index" if args.rebuild else "Ingesting Documents")

        stats = await ingest(args.files, persist_dir, args.rebuild, progress)

        progress.finish(stats, persist_dir)

        if stats["documents_failed"] > 0:
            sys.exit(1)

    except KeyboardInterrupt:
        print("\n\nIngest cancelled by user.\n")
        sys.exit(1)

    except RAGError as e:
        print(f"\nError: {e.message}\n")
        logger.error("ingest_script_failed", error=e.message, error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
