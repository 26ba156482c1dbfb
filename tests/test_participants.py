from __future__ import annotations

from mkb.db.models import EntitySide, EntityType
from mkb.esi.killmails import Participant, extract_participants

from fakes import killmail_payload


def test_extracts_location_victim_and_attackers() -> None:
    participants = extract_participants(killmail_payload(130000001))

    assert participants == [
        Participant(30000142, EntityType.solar_system, EntitySide.location),
        Participant(2112000001, EntityType.character, EntitySide.victim),
        Participant(98000001, EntityType.corporation, EntitySide.victim),
        Participant(99000001, EntityType.alliance, EntitySide.victim),
        Participant(587, EntityType.ship_type, EntitySide.victim),
        Participant(2112000002, EntityType.character, EntitySide.attacker),
        Participant(98000002, EntityType.corporation, EntitySide.attacker),
        Participant(11198, EntityType.ship_type, EntitySide.attacker),
        Participant(2488, EntityType.weapon_type, EntitySide.attacker),
        Participant(2112000003, EntityType.character, EntitySide.attacker),
        Participant(23707, EntityType.ship_type, EntitySide.attacker),
    ]


def test_same_entity_on_both_sides_is_kept_per_side() -> None:
    payload = {
        "solar_system_id": 30000142,
        "victim": {"corporation_id": 98000001, "ship_type_id": 587},
        "attackers": [{"corporation_id": 98000001, "ship_type_id": 587}],
    }

    sides = [(p.entity_id, p.side) for p in extract_participants(payload)]

    assert (98000001, EntitySide.victim) in sides
    assert (98000001, EntitySide.attacker) in sides
    assert len(sides) == 5


def test_missing_and_zero_ids_are_skipped() -> None:
    payload = {
        "solar_system_id": 0,
        "victim": {"character_id": 0, "corporation_id": None, "ship_type_id": 670},
        "attackers": "not-a-list",
    }

    assert extract_participants(payload) == [
        Participant(670, EntityType.ship_type, EntitySide.victim)
    ]


def test_empty_payload() -> None:
    assert extract_participants({}) == []
