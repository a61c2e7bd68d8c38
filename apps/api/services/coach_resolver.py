"""
Coach Resolver

Maps a coach id to the display name, persona text and optional per-intensity
instructions used when prompting the model.

Lookup order is built-in coaches, then user-created coaches, then community
coaches; the first registry holding the id wins.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from services.coach_records import CoachRecord, parse_record
from services.document_store import DocumentStore

logger = logging.getLogger(__name__)

DEFAULT_COACH_NAME = "AI Coach"

# (collection, carries intensity overrides)
COACH_REGISTRIES = (
    ("coaches", False),
    ("user_coaches", True),
    ("community_coaches", True),
)


@dataclass(frozen=True)
class ResolvedCoach:
    coach_id: str
    name: str
    persona: str = ""
    intensity_levels: Dict[str, str] = field(default_factory=dict)


DEFAULT_COACH = ResolvedCoach(coach_id=DEFAULT_COACH_NAME, name=DEFAULT_COACH_NAME)


class CoachResolver:
    """
    Resolves coach ids against the coach registries.

    A failing registry read is logged and treated as a miss. An id found
    nowhere resolves to itself as the name with an empty persona.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    def resolve(self, coach_id: str) -> ResolvedCoach:
        for collection, has_intensity in COACH_REGISTRIES:
            record = self._lookup(collection, coach_id)
            if record is None:
                continue
            logger.debug(f"Resolved coach {coach_id} from {collection}")
            return ResolvedCoach(
                coach_id=coach_id,
                name=record.coach_name or coach_id,
                persona=record.coach_persona or "",
                intensity_levels=dict(record.intensity_levels) if has_intensity else {},
            )

        logger.info(f"Coach {coach_id} not found in any registry, using id as name")
        return ResolvedCoach(coach_id=coach_id, name=coach_id)

    def _lookup(self, collection: str, coach_id: str) -> Optional[CoachRecord]:
        try:
            data = self.store.get(collection, coach_id)
        except Exception as e:
            logger.error(f"Error fetching coach {coach_id} from {collection}: {e}")
            return None
        return parse_record(CoachRecord, data)
