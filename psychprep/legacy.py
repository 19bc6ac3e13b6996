"""
Import content and accounts from the legacy JSON files.

Usage:
    psychprep-import path/to/InhouseDB

The directory may hold any of user_creds.json, wat_list.json and
srt_list.json. Plaintext passwords are stored as-is with the account marked
as legacy, and re-hashed the first time their owner logs in.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from psychprep.config import settings
from psychprep.db import ContentStore
from psychprep.errors import ValidationError
from psychprep.models import ContentKind

logger = logging.getLogger(__name__)

USERS_FILE = "user_creds.json"
WORDS_FILE = "wat_list.json"
SCENARIOS_FILE = "srt_list.json"


def _load(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def import_users(store: ContentStore, path: Path) -> int:
    imported = 0
    for entry in _load(path).get("users", []):
        try:
            store.create_user(
                username=entry["username"],
                email=entry["email"],
                password=entry["password"],
                is_admin=bool(entry.get("isAdmin", False)),
                last_login=entry.get("lastLogin"),
                legacy_password=True,
            )
        except KeyError as e:
            logger.warning(f"Skipping legacy user without {e.args[0]}")
            continue
        except ValidationError as e:
            logger.warning(f"Skipping legacy user {entry.get('email')}: {e.message}")
            continue
        imported += 1
    return imported


def import_list(store: ContentStore, kind: ContentKind, path: Path, key: str) -> int:
    items = [str(item).strip() for item in _load(path).get(key, []) if str(item).strip()]
    return len(store.merge_content(kind, items))


def import_directory(store: ContentStore, directory: Path) -> dict[str, int]:
    directory = Path(directory)
    counts = {}
    if (directory / USERS_FILE).exists():
        counts["users"] = import_users(store, directory / USERS_FILE)
    if (directory / WORDS_FILE).exists():
        counts["words"] = import_list(store, ContentKind.WAT, directory / WORDS_FILE, "words")
    if (directory / SCENARIOS_FILE).exists():
        counts["scenarios"] = import_list(
            store, ContentKind.SRT, directory / SCENARIOS_FILE, "scenarios"
        )
    return counts


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Import legacy JSON content")
    parser.add_argument("directory", help="Directory holding the legacy JSON files")
    parser.add_argument("--database", default=str(settings.database_path))
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    directory = Path(args.directory)
    if not directory.is_dir():
        print(f"ERROR: {directory} is not a directory", file=sys.stderr)
        return 1

    store = ContentStore(Path(args.database))
    store.init()
    try:
        counts = import_directory(store, directory)
    except (OSError, json.JSONDecodeError) as e:
        print(f"ERROR: import failed: {e}", file=sys.stderr)
        return 1

    if not counts:
        print(f"WARNING: no legacy files found in {directory}", file=sys.stderr)
    for name, count in counts.items():
        print(f"Imported {count} {name}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
