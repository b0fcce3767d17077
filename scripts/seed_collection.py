"""
Load reference documents into a vector collection.

Every text/markdown file is split on blank lines into passages of at most
--max-chars characters, embedded, and inserted into the passages table.

Usage:
    python scripts/seed_collection.py docs/ --collection handbook
    python scripts/seed_collection.py docs/faq.md --collection handbook --replace
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from ragbot.config import settings
from ragbot.database.connection import init_models
from ragbot.memory.vector_store import VectorStore
from ragbot.utils.embeddings import embed_texts

SUFFIXES = {".txt", ".md"}


def split_into_passages(text: str, max_chars: int) -> List[str]:
    """Group paragraphs into passages no longer than max_chars where possible."""
    passages: List[str] = []
    current = ""
    for paragraph in (p.strip() for p in text.split("\n\n")):
        if not paragraph:
            continue
        if current and len(current) + 2 + len(paragraph) > max_chars:
            passages.append(current)
            current = ""
        current = f"{current}\n\n{paragraph}" if current else paragraph
        while len(current) > max_chars:
            passages.append(current[:max_chars])
            current = current[max_chars:]
    if current:
        passages.append(current)
    return passages


def collect_files(target: Path) -> List[Path]:
    if target.is_file():
        return [target]
    return sorted(p for p in target.rglob("*") if p.suffix.lower() in SUFFIXES)


async def seed_collection(target: Path, collection: str, max_chars: int, replace: bool) -> int:
    await init_models()
    vector_store = VectorStore()

    if replace:
        removed = await vector_store.delete_collection(collection)
        print(f"Removed {removed} existing passages from '{collection}'")

    inserted = 0
    for path in collect_files(target):
        passages = split_into_passages(path.read_text(encoding="utf-8"), max_chars)
        if not passages:
            continue
        print(f"{path}: {len(passages)} passage(s)")
        embeddings = await embed_texts(passages)
        for passage, embedding in zip(passages, embeddings):
            await vector_store.insert_passage(
                collection=collection,
                text_value=passage,
                embedding=embedding,
                metadata={"source": str(path)},
            )
            inserted += 1

    total = await vector_store.count_passages(collection)
    print(f"Inserted {inserted} passage(s); '{collection}' now holds {total}")
    return inserted


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Seed a vector collection from text files")
    parser.add_argument("path", help="File or directory of .txt/.md documents")
    parser.add_argument(
        "--collection",
        default=settings.collection_name,
        help="Collection name (defaults to COLLECTION_NAME)",
    )
    parser.add_argument(
        "--max-chars",
        type=int,
        default=1500,
        help="Maximum characters per passage",
    )
    parser.add_argument(
        "--replace",
        action="store_true",
        help="Delete the collection's existing passages first",
    )
    return parser


if __name__ == "__main__":
    args = build_parser().parse_args()
    if not args.collection:
        sys.exit("A collection name is required (--collection or COLLECTION_NAME)")
    asyncio.run(
        seed_collection(Path(args.path), args.collection, args.max_chars, args.replace)
    )
