#!/usr/bin/env python
"""Load local documents into the permanent (durable) partition.

Usage:
    python scripts/ingest.py docs/*.pdf notes.txt     # Add files
    python scripts/ingest.py --clear docs/            # Clear first, then add a directory
    python scripts/ingest.py --list                   # Show stored documents
"""
import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import List

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from ragchat import config
from ragchat.errors import RagChatError
from ragchat.extract import extract_text
from ragchat.rag.documents import Document, StorageMode
from ragchat.services import RagServices
import structlog

logger = structlog.get_logger()

SUPPORTED_SUFFIXES = {".pdf", ".txt", ".md"}


def discover_files(paths: List[Path]) -> List[Path]:
    """Expand directories into the supported files they contain."""
    files = []
    for path in paths:
        if path.is_dir():
            files.extend(
                sorted(p for p in path.rglob("*") if p.suffix.lower() in SUPPORTED_SUFFIXES)
            )
        elif path.exists():
            files.append(path)
        else:
            raise FileNotFoundError(f"No such file or directory: {path}")
    return files


async def ingest_file(services: RagServices, file_path: Path) -> Document:
    """Extract, embed and store one file in the durable partition."""
    text = extract_text(file_path.read_bytes(), file_path.name)
    if not text.strip():
        raise RagChatError(f"{file_path.name} is empty or text could not be extracted")

    embedding = await services.embedder.embed(text)
    doc = Document.create(
        text=text,
        embedding=embedding,
        filename=file_path.name,
        mode=StorageMode.DURABLE,
    )
    await services.store.add(doc, StorageMode.DURABLE)
    return doc


async def run(args: argparse.Namespace) -> int:
    services = RagServices.create(durable_path=args.store)
    failed = 0

    try:
        if args.clear:
            await services.store.clear(StorageMode.DURABLE)
            print("🧹 Permanent storage cleared")

        files = discover_files(args.paths)
        start = datetime.now()

        for idx, file_path in enumerate(files, 1):
            print(f"  [{idx}/{len(files)}] {file_path.name[:40]:<40}", end=" ", flush=True)
            try:
                doc = await ingest_file(services, file_path)
                print(f"✅ {doc.id}")
            except Exception as e:
                failed += 1
                print(f"❌ {e}")
                logger.error("file_ingestion_failed", path=str(file_path), error=str(e))

        if files:
            elapsed = (datetime.now() - start).total_seconds()
            print(f"\n  📁 Files stored: {len(files) - failed}")
            print(f"  ❌ Files failed: {failed}")
            print(f"  ⏱️  Time elapsed: {elapsed:.1f}s\n")

        if args.list:
            listing = await services.store.list()
            print(f"📚 Permanent documents ({len(listing.durable)}):")
            for doc in listing.durable:
                uploaded = datetime.fromtimestamp(doc.metadata.uploaded_at / 1000)
                print(f"  - {doc.id}  {doc.metadata.filename}  ({uploaded:%Y-%m-%d %H:%M})")

    finally:
        await services.shutdown()

    return 1 if failed else 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Load documents into permanent storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("paths", nargs="*", type=Path, help="Files or directories to ingest")
    parser.add_argument("--clear", action="store_true", help="Clear permanent storage first")
    parser.add_argument("--list", action="store_true", help="List stored documents afterwards")
    parser.add_argument(
        "--store",
        type=Path,
        default=config.DURABLE_STORE_PATH,
        help=f"Store file (default: {config.DURABLE_STORE_PATH})",
    )
    args = parser.parse_args()

    if not args.paths and not args.list and not args.clear:
        parser.error("nothing to do: give paths, --clear or --list")

    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        print("\n\n⚠️  Ingestion cancelled by user.\n")
        sys.exit(1)
    except (FileNotFoundError, RagChatError) as e:
        print(f"\n❌ Error: {e}\n")
        sys.exit(1)


if __name__ == "__main__":
    main()
