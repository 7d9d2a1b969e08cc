"""
View Projector - What one seat (or a spectator) may see.

Pure functions over the authoritative GameState. The projection starts
from the serialized state and removes hidden information:

- the opponent's hand, deck and rune deck become counts
- the viewer's own deck and rune deck become counts too
- champion ability states are only shown to their owner
- prompts are only shown to the player they were issued to
- the shuffle RNG and id counters are never shown

A spectator (viewer None) sees every seat the way an opponent would.
"""

from __future__ import annotations
from typing import Any

from .serialization import dump_state
from .state import GameState, PlayerState

HIDDEN_ZONES = ("hand", "deck", "rune_deck")
ORDERED_ZONES = ("deck", "rune_deck")


def _redact_player(record: dict[str, Any]) -> dict[str, Any]:
    for zone in HIDDEN_ZONES:
        record[f"{zone}_count"] = len(record.get(zone) or [])
        record[zone] = []
    record["champion_ability_states"] = {}
    record["selected_battlefield"] = None
    record["battlefield_pool"] = []
    return record


def project_view(state: GameState, viewer_id: str | None = None) -> dict[str, Any]:
    view = dump_state(state)
    view.pop("rng_state", None)
    view.pop("id_counters", None)
    for record in view["players"]:
        if record["player_id"] == viewer_id:
            # Draw order stays hidden even from the owner
            for zone in HIDDEN_ZONES:
                record[f"{zone}_count"] = len(record.get(zone) or [])
            for zone in ORDERED_ZONES:
                record[zone] = []
            continue
        _redact_player(record)
    view["prompts"] = [p for p in view["prompts"] if viewer_id is not None and p["player_id"] == viewer_id]
    view["viewer_id"] = viewer_id
    if viewer_id is not None and state.find_player(viewer_id) is not None:
        view["opponent"] = opponent_summary(state, viewer_id)
    view["combat"] = combat_summary(state)
    return view


def opponent_summary(state: GameState, viewer_id: str) -> dict[str, Any] | None:
    opponent: PlayerState | None = state.opponent_of(viewer_id)
    if opponent is None:
        return None
    board = _public_board(state, opponent.player_id)
    return {
        "player_id": opponent.player_id,
        "name": opponent.name,
        "victory_points": opponent.victory_points,
        "victory_score": opponent.victory_score,
        "hand_size": len(opponent.hand),
        "deck_size": len(opponent.deck),
        "rune_deck_size": len(opponent.rune_deck),
        "channeled_runes": len(opponent.channeled_runes),
        "board": board,
        "champion_legend": opponent.champion_legend.name if opponent.champion_legend else None,
        "champion_leader": opponent.champion_leader.name if opponent.champion_leader else None,
        "legend_exhausted": opponent.legend_exhausted,
        "leader_deployed": opponent.leader_deployed,
    }


def _public_board(state: GameState, player_id: str) -> list[dict[str, Any]]:
    """Flat public listing of a player's permanents."""
    player = state.find_player(player_id)
    if player is None:
        return []
    return [
        {
            "instance_id": card.instance_id,
            "card_id": card.id,
            "name": card.name,
            "type": card.type.value,
            "power": card.power,
            "toughness": card.current_toughness,
            "is_tapped": card.is_tapped,
            "location": card.location.battlefield_id or "base",
        }
        for card in player.board.all_cards()
    ]


def combat_summary(state: GameState) -> dict[str, Any] | None:
    context = state.combat_context
    if context is None:
        return None
    return {
        "battlefield_id": context.battlefield_id,
        "initiated_by": context.initiated_by,
        "defending_player_id": context.defending_player_id,
        "attacking_unit_ids": list(context.attacking_unit_ids),
        "defending_unit_ids": list(context.defending_unit_ids),
        "priority_stage": context.priority_stage.value,
    }
