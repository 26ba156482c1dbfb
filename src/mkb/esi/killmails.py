"""
mkb.esi.killmails

Participant extraction from ESI killmail detail.

Responsibilities:
- Turn a `GET /killmails/{id}/{hash}/` payload into (entity, type, side) triples.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mkb.db.models import EntitySide, EntityType
from mkb.observability.logging import get_logger

log = get_logger(__name__)

_VICTIM_FIELDS: tuple[tuple[str, EntityType], ...] = (
    ("character_id", EntityType.character),
    ("corporation_id", EntityType.corporation),
    ("alliance_id", EntityType.alliance),
    ("ship_type_id", EntityType.ship_type),
)

_ATTACKER_FIELDS: tuple[tuple[str, EntityType], ...] = (
    *_VICTIM_FIELDS,
    ("weapon_type_id", EntityType.weapon_type),
)


@dataclass(frozen=True, slots=True)
class Participant:
    entity_id: int
    entity_type: EntityType
    side: EntitySide


def _as_id(value: Any) -> int | None:
    # ESI uses absent fields for NPCs and structures; 0 shows up in older mails.
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return None
    return value


def extract_participants(payload: dict[str, Any]) -> list[Participant]:
    found: list[Participant] = []

    system_id = _as_id(payload.get("solar_system_id"))
    if system_id is None:
        log.warning("killmail_missing_solar_system", killmail_id=payload.get("killmail_id"))
    else:
        found.append(Participant(system_id, EntityType.solar_system, EntitySide.location))

    victim = payload.get("victim")
    if isinstance(victim, dict):
        found.extend(_from_record(victim, _VICTIM_FIELDS, EntitySide.victim))

    attackers = payload.get("attackers")
    if isinstance(attackers, list):
        for attacker in attackers:
            if isinstance(attacker, dict):
                found.extend(_from_record(attacker, _ATTACKER_FIELDS, EntitySide.attacker))

    # Corporations and ship types repeat across attackers; keep first occurrence.
    seen: set[tuple[int, EntitySide]] = set()
    unique: list[Participant] = []
    for p in found:
        if (p.entity_id, p.side) in seen:
            continue
        seen.add((p.entity_id, p.side))
        unique.append(p)
    return unique


def _from_record(
    record: dict[str, Any],
    fields: tuple[tuple[str, EntityType], ...],
    side: EntitySide,
) -> list[Participant]:
    out: list[Participant] = []
    for field, entity_type in fields:
        entity_id = _as_id(record.get(field))
        if entity_id is not None:
            out.append(Participant(entity_id, entity_type, side))
    return out
