"""
Validate, store and optionally activate a content pack file from the command line.
Run: python -m scripts.load_content_pack pack.json --activate
     python -m scripts.load_content_pack pack.json --dry-run
"""
import argparse
import json
import logging
import sys
from pathlib import Path

from contentpacks.core.config import CONTENT_PACK_STORAGE_PATH
from contentpacks.core.errors import ContentPackError
from contentpacks.db.init_db import init_db
from contentpacks.db.session import SessionLocal
from contentpacks.repositories.fallback_repository import FallbackContentPackRepository
from contentpacks.repositories.filesystem_repository import FilesystemContentPackRepository
from contentpacks.repositories.sql_repository import SqlContentPackRepository
from contentpacks.services.content_pack_service import ContentPackService
from contentpacks.services.idempotency_store import InMemoryIdempotencyStore
from contentpacks.services.pack_activation import ContentPackActivation
from contentpacks.services.pack_validator import ContentPackValidator

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def print_result(result):
    print(json.dumps(result.model_dump(mode="json"), indent=2))


def main() -> int:
    parser = argparse.ArgumentParser(description="Load a content pack")
    parser.add_argument("path", type=Path)
    parser.add_argument("--dry-run", action="store_true", help="Validate only, store nothing")
    parser.add_argument("--activate", action="store_true", help="Activate the pack after storing it")
    parser.add_argument("--create-tables", action="store_true", help="Create tables first (local SQLite)")
    args = parser.parse_args()

    raw = args.path.read_bytes()
    validator = ContentPackValidator()

    if args.dry_run:
        try:
            document = json.loads(raw)
        except ValueError:
            print("[ERROR] Invalid JSON file")
            return 1
        result = validator.validate(document)
        print_result(result)
        return 0 if result.is_valid else 1

    if args.create_tables:
        init_db()

    repository = FallbackContentPackRepository(
        primary=SqlContentPackRepository(SessionLocal),
        secondary=FilesystemContentPackRepository(CONTENT_PACK_STORAGE_PATH),
    )
    service = ContentPackService(repository, validator)

    try:
        outcome = service.upload(raw, filename=args.path.name, uploaded_by="cli")
        print_result(outcome.result)
        if outcome.pack is None:
            print("[ERROR] Content pack failed validation and was not stored")
            return 1
        print(f"[SUCCESS] Stored content pack {outcome.pack.id}")

        if args.activate:
            activation = ContentPackActivation(repository, InMemoryIdempotencyStore(), validator=validator)
            pack = activation.activate(outcome.pack.id, activated_by="cli")
            print(f"[SUCCESS] Active content pack is now {pack.id}")
    except ContentPackError as e:
        print(f"[ERROR] {e.code}: {e.message}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
