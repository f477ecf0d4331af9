"""Seed vocabulary loading from the bundled JSON word list."""
from __future__ import annotations

import json
from pathlib import Path
from typing import List, Union

from pydantic import ValidationError as PydanticValidationError

from .config import DEFAULT_SEED_PATH
from .domain import VocabularyItem
from .logging import logger
from .models import SeedWord
from .repositories import ItemStore
from .validators import ValidationError, validate_seed_items


def parse_seed_payload(payload: object) -> List[VocabularyItem]:
    """Turn a decoded ``words.json`` document into unsaved vocabulary items."""

    if not isinstance(payload, list):
        raise ValidationError("Seed file must contain a JSON array of words")
    try:
        words = [SeedWord.model_validate(entry) for entry in payload]
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid seed entry: {exc}") from exc
    return validate_seed_items(word.to_item() for word in words)


def load_items_from_json(path: Union[str, Path] = DEFAULT_SEED_PATH) -> List[VocabularyItem]:
    path = Path(path)
    payload = json.loads(path.read_text(encoding="utf-8"))
    items = parse_seed_payload(payload)
    logger.info("seed_parsed", path=str(path), count=len(items))
    return items


async def seed_store(store: ItemStore, path: Union[str, Path] = DEFAULT_SEED_PATH) -> int:
    """Add seed words to ``store`` without touching existing progress."""

    items = load_items_from_json(path)
    written = await store.add_items(items)
    logger.info("seed_loaded", path=str(path), written=written)
    return written


__all__ = ["load_items_from_json", "parse_seed_payload", "seed_store"]
