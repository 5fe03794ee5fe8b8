"""
Award catalog service.

Read-only source of award records, loaded from a JSON file and addressed
by award id.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from award_matcher import Award
from app.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "awards.json"


class AwardCatalog:
    """In-memory award catalog. Insertion order follows the source file."""

    def __init__(self, awards: List[Award]):
        self._awards: Dict[str, Award] = {}
        for award in awards:
            if award.id in self._awards:
                raise ValueError(f"Duplicate award id in catalog: {award.id}")
            self._awards[award.id] = award

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "AwardCatalog":
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        if not isinstance(raw, list):
            raise ValueError(f"Award catalog must be a JSON list: {path}")
        catalog = cls([Award.from_dict(item) for item in raw])
        logger.info(f"Loaded {len(catalog)} awards from {path}")
        return catalog

    def all(self) -> List[Award]:
        return list(self._awards.values())

    def get(self, award_id: str) -> Award:
        """Return the award with this id. Raises KeyError if unknown."""
        try:
            return self._awards[award_id]
        except KeyError:
            raise KeyError(f"Unknown award id: {award_id}")

    def find(self, award_id: str) -> Optional[Award]:
        return self._awards.get(award_id)

    def __contains__(self, award_id: object) -> bool:
        return award_id in self._awards

    def __iter__(self) -> Iterator[Award]:
        return iter(self._awards.values())

    def __len__(self) -> int:
        return len(self._awards)


@lru_cache(maxsize=1)
def get_award_catalog() -> AwardCatalog:
    """FastAPI dependency: the configured catalog, loaded once per process."""
    path = settings.AWARD_CATALOG_PATH or DEFAULT_CATALOG_PATH
    return AwardCatalog.from_file(path)
