"""Typed event variants for the two titles.

Every raw GRID event is mapped to exactly one variant. Types we do not know
become ``Unrecognized`` and carry the raw payload for logging only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from gridscout.decoder import EventBatch, parse_timestamp_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Participant:
    type: str
    id: str
    state: Dict[str, Any] = field(default_factory=dict)
    state_delta: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Any) -> "Participant":
        if not isinstance(raw, dict):
            return cls(type="", id="")
        return cls(
            type=str(raw.get("type") or ""),
            id=str(raw.get("id") or ""),
            state=raw.get("state") or {},
            state_delta=raw.get("stateDelta") or {},
        )


@dataclass(frozen=True)
class GridEvent:
    type: str
    occurred_at: str
    time_ms: Optional[int]
    actor: Participant
    target: Participant
    series_state: Dict[str, Any]

    def latest_game_state(self) -> Dict[str, Any]:
        games = self.series_state.get("games") or []
        if not games:
            return {}
        return games[-1] or {}


# Shared variants


@dataclass(frozen=True)
class GameStarted(GridEvent):
    pass


@dataclass(frozen=True)
class GameWon(GridEvent):
    team_id: str


@dataclass(frozen=True)
class PlayerKilled(GridEvent):
    killer_id: str
    victim_id: str
    assist_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Unrecognized(GridEvent):
    raw: Dict[str, Any] = field(default_factory=dict)


# VALORANT variants


@dataclass(frozen=True)
class MapVetoed(GridEvent):
    action: str
    map_id: str
    team_id: Optional[str]
    team_name: Optional[str]


@dataclass(frozen=True)
class FreezetimeStarted(GridEvent):
    pass


@dataclass(frozen=True)
class FreezetimeEnded(GridEvent):
    pass


@dataclass(frozen=True)
class RoundWon(GridEvent):
    team_id: str
    team_name: str
    win_type: str
    sequence_number: Optional[int]


@dataclass(frozen=True)
class RoundEnded(GridEvent):
    pass


@dataclass(frozen=True)
class AbilityUsed(GridEvent):
    player_id: str
    ability_id: str


@dataclass(frozen=True)
class BombPlanted(GridEvent):
    player_id: str


@dataclass(frozen=True)
class BombDefused(GridEvent):
    player_id: str


# League of Legends variants


@dataclass(frozen=True)
class GameClockStarted(GridEvent):
    pass


@dataclass(frozen=True)
class CharacterDrafted(GridEvent):
    action: str
    team_id: str
    champion: str


@dataclass(frozen=True)
class ItemChanged(GridEvent):
    kind: str
    player_id: str
    items: Tuple[Dict[str, Any], ...]


@dataclass(frozen=True)
class LevelIncreased(GridEvent):
    player_id: str
    new_level: Optional[int]


@dataclass(frozen=True)
class MonsterKilled(GridEvent):
    tier: str
    player_id: str
    monster: str


@dataclass(frozen=True)
class StructureDestroyed(GridEvent):
    kind: str
    player_id: str
    structure: str


def _base_fields(raw: Dict[str, Any], batch: EventBatch) -> Dict[str, Any]:
    return {
        "type": str(raw.get("type") or ""),
        "occurred_at": batch.occurred_at,
        "time_ms": parse_timestamp_ms(batch.occurred_at),
        "actor": Participant.from_raw(raw.get("actor")),
        "target": Participant.from_raw(raw.get("target")),
        "series_state": raw.get("seriesState") or {},
    }


def _veto(action: str) -> Callable[[Dict[str, Any], EventBatch], GridEvent]:
    def build(raw: Dict[str, Any], batch: EventBatch) -> GridEvent:
        base = _base_fields(raw, batch)
        actor: Participant = base["actor"]
        is_team = action != "decider" and bool(actor.id)
        return MapVetoed(
            **base,
            action=action,
            map_id=base["target"].id or "unknown",
            team_id=actor.id if is_team else None,
            team_name=(actor.state.get("name") or None) if is_team else None,
        )

    return build


def _round_won(raw: Dict[str, Any], batch: EventBatch) -> GridEvent:
    base = _base_fields(raw, batch)
    actor: Participant = base["actor"]
    round_state = actor.state.get("round") or {}
    sequence = base["target"].state.get("sequenceNumber")
    return RoundWon(
        **base,
        team_id=actor.id,
        team_name=str(actor.state.get("name") or ""),
        win_type=str(round_state.get("winType") or "unknown"),
        sequence_number=int(sequence) if isinstance(sequence, (int, float)) else None,
    )


def _player_killed(raw: Dict[str, Any], batch: EventBatch) -> GridEvent:
    base = _base_fields(raw, batch)
    game_delta = base["actor"].state_delta.get("game") or {}
    assists = game_delta.get("killAssistsReceivedFromPlayer") or []
    return PlayerKilled(
        **base,
        killer_id=base["actor"].id,
        victim_id=base["target"].id,
        assist_ids=tuple(
            str(item.get("playerId")) for item in assists if isinstance(item, dict)
        ),
    )


def _simple(variant: type) -> Callable[[Dict[str, Any], EventBatch], GridEvent]:
    def build(raw: Dict[str, Any], batch: EventBatch) -> GridEvent:
        return variant(**_base_fields(raw, batch))

    return build


def _game_won(raw: Dict[str, Any], batch: EventBatch) -> GridEvent:
    base = _base_fields(raw, batch)
    return GameWon(**base, team_id=base["actor"].id)


def _ability_used(raw: Dict[str, Any], batch: EventBatch) -> GridEvent:
    base = _base_fields(raw, batch)
    return AbilityUsed(**base, player_id=base["actor"].id, ability_id=base["target"].id)


def _bomb(variant: type) -> Callable[[Dict[str, Any], EventBatch], GridEvent]:
    def build(raw: Dict[str, Any], batch: EventBatch) -> GridEvent:
        base = _base_fields(raw, batch)
        return variant(**base, player_id=base["actor"].id)

    return build


def _drafted(action: str) -> Callable[[Dict[str, Any], EventBatch], GridEvent]:
    def build(raw: Dict[str, Any], batch: EventBatch) -> GridEvent:
        base = _base_fields(raw, batch)
        target: Participant = base["target"]
        champion = target.state.get("name") or target.id
        return CharacterDrafted(
            **base, action=action, team_id=base["actor"].id, champion=str(champion)
        )

    return build


def _item(kind: str) -> Callable[[Dict[str, Any], EventBatch], GridEvent]:
    def build(raw: Dict[str, Any], batch: EventBatch) -> GridEvent:
        base = _base_fields(raw, batch)
        inventory = (base["actor"].state_delta.get("game") or {}).get("inventory") or {}
        items = tuple(item for item in inventory.get("items") or [] if isinstance(item, dict))
        return ItemChanged(**base, kind=kind, player_id=base["actor"].id, items=items)

    return build


def _level(raw: Dict[str, Any], batch: EventBatch) -> GridEvent:
    base = _base_fields(raw, batch)
    completions = base["target"].state.get("completionCount")
    new_level = int(completions) + 1 if isinstance(completions, (int, float)) else None
    return LevelIncreased(**base, player_id=base["actor"].id, new_level=new_level)


def _monster(tier: str) -> Callable[[Dict[str, Any], EventBatch], GridEvent]:
    def build(raw: Dict[str, Any], batch: EventBatch) -> GridEvent:
        base = _base_fields(raw, batch)
        return MonsterKilled(
            **base, tier=tier, player_id=base["actor"].id, monster=base["target"].id
        )

    return build


def _structure(kind: str) -> Callable[[Dict[str, Any], EventBatch], GridEvent]:
    def build(raw: Dict[str, Any], batch: EventBatch) -> GridEvent:
        base = _base_fields(raw, batch)
        return StructureDestroyed(
            **base, kind=kind, player_id=base["actor"].id, structure=base["target"].id
        )

    return build


VALORANT_VARIANTS: Dict[str, Callable[[Dict[str, Any], EventBatch], GridEvent]] = {
    "series-started-game": _simple(GameStarted),
    "team-banned-map": _veto("ban"),
    "team-picked-map": _veto("pick"),
    "series-picked-map": _veto("decider"),
    "round-started-freezetime": _simple(FreezetimeStarted),
    "round-ended-freezetime": _simple(FreezetimeEnded),
    "team-won-round": _round_won,
    "game-ended-round": _simple(RoundEnded),
    "player-used-ability": _ability_used,
    "player-killed-player": _player_killed,
    "player-completed-plantBomb": _bomb(BombPlanted),
    "player-completed-defuseBomb": _bomb(BombDefused),
    "team-won-game": _game_won,
}

LOL_VARIANTS: Dict[str, Callable[[Dict[str, Any], EventBatch], GridEvent]] = {
    "series-started-game": _simple(GameStarted),
    "game-started-gameClock": _simple(GameClockStarted),
    "team-banned-character": _drafted("ban"),
    "team-picked-character": _drafted("pick"),
    "player-purchased-item": _item("purchase-item"),
    "player-acquired-item": _item("acquire-item"),
    "player-lost-item": _item("lost-item"),
    "player-sold-item": _item("sold-item"),
    "player-completed-increaseLevel": _level,
    "player-killed-BTierNPC": _monster("kill-btier-monster"),
    "player-killed-ATierNPC": _monster("kill-atier-monster"),
    "player-killed-STierNPC": _monster("kill-stier-monster"),
    "player-killed-player": _player_killed,
    "player-destroyed-tower": _structure("destroy-tower"),
    "player-destroyed-fortifier": _structure("destroy-inhibitor"),
    "team-won-game": _game_won,
}

# Some feeds lower-case the bomb event names.
_CASE_ALIASES = {
    "player-completed-plantbomb": "player-completed-plantBomb",
    "player-completed-defusebomb": "player-completed-defuseBomb",
}


def parse_event(
    raw: Dict[str, Any],
    batch: EventBatch,
    variants: Dict[str, Callable[[Dict[str, Any], EventBatch], GridEvent]],
) -> GridEvent:
    event_type = str(raw.get("type") or "")
    builder = variants.get(event_type)
    if builder is None:
        builder = variants.get(_CASE_ALIASES.get(event_type.lower(), ""))
    if builder is None:
        return Unrecognized(**_base_fields(raw, batch), raw=raw)
    return builder(raw, batch)


def iter_events(
    batches: List[EventBatch],
    variants: Dict[str, Callable[[Dict[str, Any], EventBatch], GridEvent]],
) -> Iterator[GridEvent]:
    unknown = 0
    for batch in batches:
        for raw in batch.events:
            event = parse_event(raw, batch, variants)
            if isinstance(event, Unrecognized):
                unknown += 1
                logger.debug(f"Ignoring unrecognized event type '{event.type}'")
            yield event
    if unknown:
        logger.debug(f"{unknown} unrecognized event(s) ignored")


def iter_valorant_events(batches: List[EventBatch]) -> Iterator[GridEvent]:
    return iter_events(batches, VALORANT_VARIANTS)


def iter_lol_events(batches: List[EventBatch]) -> Iterator[GridEvent]:
    return iter_events(batches, LOL_VARIANTS)
