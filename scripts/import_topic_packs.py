"""
Topic Pack Import Script
Embeds seed topic packs and loads them into the retrieval corpus

Usage:
    python scripts/import_topic_packs.py [--dir seed/topic_packs] [--batch-size 64]
"""

import argparse
import asyncio

from tutorgen.adapters.llm import get_adapter
from tutorgen.config import get_settings
from tutorgen.services.corpus_indexer import import_topic_pack, load_topic_packs
from tutorgen.utils.database import close_db, get_session_factory, init_db


async def import_all(seed_dir: str, batch_size: int) -> int:
    await init_db()
    session_factory = get_session_factory()
    adapter = get_adapter("openai")

    packs = load_topic_packs(seed_dir)
    print(f"Found {len(packs)} topic packs in {seed_dir}")

    total = 0
    try:
        for pack in packs:
            inserted = await import_topic_pack(session_factory, adapter, pack, batch_size=batch_size)
            print(f"  {pack.id}: {inserted} new chunks ({len(pack.chunks)} in pack)")
            total += inserted
    finally:
        await close_db()

    print(f"Imported {total} chunks")
    return total


def main():
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Import topic packs into the retrieval corpus")
    parser.add_argument("--dir", default=settings.RAG_SEED_DIR, help="Directory of *.json topic packs")
    parser.add_argument("--batch-size", type=int, default=64, help="Texts per embedding request")
    args = parser.parse_args()

    asyncio.run(import_all(args.dir, args.batch_size))


if __name__ == "__main__":
    main()
