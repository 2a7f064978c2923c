"""Rules data repository for races, classes, feats, equipment and spells.

Source: local JSON files under the configured SRD data directory. Records
are validated into frozen pydantic models and cached for the process.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import ValidationError

from ..config import settings
from .calculator import ability_modifier
from .errors import RulesDataError
from .models.srd import (
    ClassRecord,
    EquipmentRecord,
    FeatRecord,
    RaceRecord,
    SpellRecord,
    SrdRecord,
)
from .rules import slugify

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=SrdRecord)

COLLECTIONS: Dict[str, Type[SrdRecord]] = {
    "races": RaceRecord,
    "classes": ClassRecord,
    "feats": FeatRecord,
    "equipment": EquipmentRecord,
    "spells": SpellRecord,
}


def _flatten_entries(raw: Any) -> List[Dict[str, Any]]:
    """Recursively flatten nested list/dict payloads into record dicts."""
    result: List[Dict[str, Any]] = []

    if isinstance(raw, dict):
        # Keep dictionary if it looks like a record.
        if "id" in raw or "name" in raw:
            result.append(raw)
            return result

        # Or descend into nested values (e.g. {"weapons": [...], "armor": [...]}).
        for value in raw.values():
            result.extend(_flatten_entries(value))
        return result

    if isinstance(raw, list):
        for entry in raw:
            result.extend(_flatten_entries(entry))

    return result


def _normalize_entry(entry: Dict[str, Any]) -> Dict[str, Any]:
    normalized = dict(entry)
    entity_id = slugify(str(normalized.get("id") or normalized.get("name") or ""))
    normalized["id"] = entity_id
    normalized.setdefault("name", entity_id)
    return normalized


class RulesDataRepository:
    """Read-only SRD rules data, loaded lazily once per collection."""

    def __init__(self, data_dir: Optional[Union[str, Path]] = None) -> None:
        self.data_dir = Path(data_dir) if data_dir is not None else settings.srd_data_dir
        self._cache: Dict[str, List[SrdRecord]] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def list_races(self) -> List[RaceRecord]:
        return self._load("races")

    def list_classes(self) -> List[ClassRecord]:
        return self._load("classes")

    def list_feats(self) -> List[FeatRecord]:
        return self._load("feats")

    def list_equipment(self) -> List[EquipmentRecord]:
        return self._load("equipment")

    def list_spells(self) -> List[SpellRecord]:
        return self._load("spells")

    def get_race(self, name: str) -> Optional[RaceRecord]:
        return self._find("races", name)

    def get_class(self, name: str) -> Optional[ClassRecord]:
        return self._find("classes", name)

    def get_feat(self, name: str) -> Optional[FeatRecord]:
        return self._find("feats", name)

    def get_equipment(self, name: str) -> Optional[EquipmentRecord]:
        return self._find("equipment", name)

    def get_spell(self, name: str) -> Optional[SpellRecord]:
        return self._find("spells", name)

    @staticmethod
    def get_ability_modifier(score: int) -> int:
        return ability_modifier(score)

    def preload(self) -> None:
        """Load every collection now instead of on first access."""
        for collection in COLLECTIONS:
            self._load(collection)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _find(self, collection: str, name: str) -> Optional[RecordT]:
        key = slugify(name)
        if not key:
            return None
        for record in self._load(collection):
            if record.id == key or slugify(record.name) == key:
                return record
        return None

    def _load(self, collection: str) -> List[Any]:
        if collection in self._cache:
            return list(self._cache[collection])

        model = COLLECTIONS[collection]
        path = self.data_dir / f"{collection}.json"
        if not path.exists():
            logger.debug("No %s data at %s", collection, path)
            self._cache[collection] = []
            return []

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise RulesDataError(f"Failed to read {path}: {exc}") from exc

        records = []
        seen = set()
        for entry in _flatten_entries(payload):
            normalized = _normalize_entry(entry)
            if not normalized["id"] or normalized["id"] in seen:
                continue
            try:
                records.append(model.model_validate(normalized))
            except ValidationError as exc:
                raise RulesDataError(
                    f"Invalid {collection} record {normalized['id']!r} in {path}: {exc}"
                ) from exc
            seen.add(normalized["id"])

        logger.info("Loaded %d %s from %s", len(records), collection, path)
        self._cache[collection] = records
        return list(records)
