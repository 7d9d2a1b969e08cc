"""
Setup Sequencing - From decks to the first turn.

    SETUP -> COIN_FLIP -> BATTLEFIELD_SELECTION -> MULLIGAN -> IN_PROGRESS

Initiative is a three-way duel: Doran's Blade beats Doran's Shield,
Shield beats Ring, Ring beats Blade. Matching picks force a rematch. The
winner takes the first turn; the loser channels one bonus rune on their
first turn.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING
import logging

from .cards import Card
from .errors import DataIntegrityError, ErrorCode, PreconditionError
from .lifecycle import (
    DeckEntry,
    build_battlefield_pool,
    build_deck,
    build_rune_deck,
    resolve_card,
)
from .resources import recalculate_resources
from .state import (
    BattlefieldState,
    GamePhase,
    GameStatus,
    PromptType,
)

if TYPE_CHECKING:
    from .engine import MatchEngine

logger = logging.getLogger(__name__)

INITIATIVE_OPTIONS = {
    0: "Doran's Blade",
    1: "Doran's Shield",
    2: "Doran's Ring",
}

# choice -> the choice it beats
BEATS = {0: 1, 1: 2, 2: 0}


@dataclass
class DeckConfig:
    """What a player brings to the table."""
    cards: list[DeckEntry] = field(default_factory=list)
    runes: list[DeckEntry] | None = None
    battlefields: list[DeckEntry] | None = None
    champion_legend: DeckEntry | None = None
    champion_leader: DeckEntry | None = None

    @classmethod
    def coerce(cls, value: Any) -> DeckConfig:
        if isinstance(value, DeckConfig):
            return value
        if isinstance(value, list):
            return cls(cards=value)
        if isinstance(value, dict):
            return cls(
                cards=list(value.get("cards") or value.get("deck") or []),
                runes=value.get("runes") or value.get("rune_deck"),
                battlefields=value.get("battlefields"),
                champion_legend=value.get("champion_legend"),
                champion_leader=value.get("champion_leader"),
            )
        raise DataIntegrityError(f"Unsupported deck configuration: {type(value).__name__}")


def initiative_winner(first: int, second: int) -> int | None:
    """0 if the first choice wins, 1 if the second does, None on a tie."""
    if first == second:
        return None
    return 0 if BEATS[first] == second else 1


class SetupSequencer:

    def __init__(self, engine: MatchEngine):
        self.engine = engine

    @property
    def state(self):
        return self.engine.state

    def initialize(self, decks_by_player: dict[str, Any]):
        engine = self.engine
        state = self.state
        config = engine.config
        if state.status not in (GameStatus.SETUP, GameStatus.WAITING_FOR_PLAYERS):
            raise PreconditionError("Match is already initialized", error_code=ErrorCode.ALREADY_INITIALIZED)
        for player_id in decks_by_player:
            engine.require_player(player_id)
        for player in state.players:
            if player.player_id not in decks_by_player:
                raise PreconditionError(
                    f"No deck submitted for {player.player_id}",
                    error_code=ErrorCode.UNKNOWN_PLAYER,
                )

        for player in state.players:
            deck_config = DeckConfig.coerce(decks_by_player[player.player_id])
            deck = build_deck(deck_config.cards, engine.catalog, lambda card_id: engine.next_id("instance", card_id))
            if len(deck) < config.min_deck_size:
                raise DataIntegrityError(
                    f"{player.player_id}'s deck has {len(deck)} cards, {config.min_deck_size} required",
                    error_code=ErrorCode.DECK_TOO_SMALL,
                    details={"player_id": player.player_id, "size": len(deck)},
                )
            player.deck = deck
            player.rune_deck = build_rune_deck(deck_config.runes, engine.catalog, config.rune_deck_size)
            player.battlefield_pool = build_battlefield_pool(
                deck_config.battlefields, engine.catalog, player.player_id
            )
            player.champion_legend = self._champion(deck_config.champion_legend)
            player.champion_leader = self._champion(deck_config.champion_leader)
            player.victory_score = config.victory_score
            engine.shuffle(player.deck)
            engine.shuffle(player.rune_deck)
            engine.draw_cards(player, config.initial_hand_size)
            recalculate_resources(player)

        state.victory_score = config.victory_score
        state.status = GameStatus.COIN_FLIP
        self._issue_initiative_prompts()
        engine.record_snapshot("initialized")
        logger.info("Match %s initialized", state.match_id)

    def _champion(self, entry: DeckEntry | None) -> Card | None:
        if entry is None:
            return None
        return resolve_card(entry, self.engine.catalog)

    # Initiative

    def _issue_initiative_prompts(self):
        options = [{"choice": k, "label": v} for k, v in INITIATIVE_OPTIONS.items()]
        for player in self.state.players:
            self.engine.priority.create_prompt(player.player_id, PromptType.COIN_FLIP, {"options": options})

    def submit_initiative_choice(self, player_id: str, choice: int):
        engine = self.engine
        state = self.state
        engine.require_player(player_id)
        engine.require_status(GameStatus.COIN_FLIP)
        if choice not in INITIATIVE_OPTIONS:
            raise PreconditionError(
                f"Initiative choice must be one of {sorted(INITIATIVE_OPTIONS)}",
                error_code=ErrorCode.INVALID_CHOICE,
            )
        prompt = engine.priority.require_prompt(player_id, None, PromptType.COIN_FLIP)
        engine.priority.resolve_prompt(prompt, {"choice": choice})
        state.initiative_selections[player_id] = choice
        if len(state.initiative_selections) == len(state.players):
            self._finalize_initiative()

    def _finalize_initiative(self):
        engine = self.engine
        state = self.state
        first, second = state.players
        winner_slot = initiative_winner(
            state.initiative_selections[first.player_id],
            state.initiative_selections[second.player_id],
        )
        if winner_slot is None:
            engine.narrate("Initiative tied, both players choose again")
            state.initiative_selections = {}
            engine.priority.filter_prompts(PromptType.COIN_FLIP)
            self._issue_initiative_prompts()
            return
        winner = state.players[winner_slot]
        loser = state.players[1 - winner_slot]
        state.current_player_index = winner_slot
        loser.first_turn_rune_boost = 1
        state.initiative_winner = winner.player_id
        state.initiative_loser = loser.player_id
        state.initiative_decided_at = engine.now()
        state.status = GameStatus.BATTLEFIELD_SELECTION
        engine.narrate(f"{winner.name or winner.player_id} wins initiative and goes first")
        logger.info("Initiative: %s beats %s", winner.player_id, loser.player_id)
        self._start_battlefield_draft()

    # Battlefield draft

    def _start_battlefield_draft(self):
        for player in self.state.players:
            if len(player.battlefield_pool) <= 1:
                player.selected_battlefield = player.battlefield_pool[0].clone()
                continue
            options = [
                {"id": card.id, "slug": card.slug, "name": card.name}
                for card in player.battlefield_pool
            ]
            self.engine.priority.create_prompt(player.player_id, PromptType.BATTLEFIELD, {"options": options})
        self._maybe_finish_draft()

    def select_battlefield(self, player_id: str, battlefield_id: str):
        engine = self.engine
        player = engine.require_player(player_id)
        engine.require_status(GameStatus.BATTLEFIELD_SELECTION)
        prompt = engine.priority.require_prompt(player_id, None, PromptType.BATTLEFIELD)
        chosen = None
        for card in player.battlefield_pool:
            if card.id == battlefield_id or (card.slug and card.slug == battlefield_id):
                chosen = card
                break
        if chosen is None:
            raise PreconditionError(
                f"{battlefield_id} is not in {player_id}'s battlefield pool",
                error_code=ErrorCode.UNKNOWN_BATTLEFIELD,
            )
        player.selected_battlefield = chosen.clone()
        engine.priority.resolve_prompt(prompt, {"battlefield_id": chosen.id})
        self._maybe_finish_draft()

    def _maybe_finish_draft(self):
        state = self.state
        if any(p.selected_battlefield is None for p in state.players):
            return
        battlefields: list[BattlefieldState] = []
        used: set[str] = set()
        for player in state.players:
            card = player.selected_battlefield.clone()
            battlefield_id = card.id if card.id not in used else f"{card.id}_{player.player_id}"
            used.add(battlefield_id)
            battlefields.append(
                BattlefieldState(
                    battlefield_id=battlefield_id,
                    name=card.name,
                    slug=card.slug,
                    owner_id=player.player_id,
                    card=card,
                )
            )
        state.battlefields = battlefields[: self.engine.config.battlefield_count]
        state.status = GameStatus.MULLIGAN
        self.engine.priority.filter_prompts(PromptType.MULLIGAN)
        for player in state.players:
            self.engine.priority.create_prompt(
                player.player_id,
                PromptType.MULLIGAN,
                {"hand_size": len(player.hand), "max_replacements": self.engine.config.max_mulligan},
            )
        self.engine.record_snapshot("battlefields-selected")

    # Mulligan

    def submit_mulligan(self, player_id: str, indices: list[int]):
        engine = self.engine
        state = self.state
        player = engine.require_player(player_id)
        engine.require_status(GameStatus.MULLIGAN)
        prompt = engine.priority.require_prompt(player_id, None, PromptType.MULLIGAN)
        if any(not isinstance(i, int) or isinstance(i, bool) for i in indices):
            raise PreconditionError("Mulligan indices must be integers", error_code=ErrorCode.INVALID_CHOICE)
        unique = sorted(set(indices), reverse=True)
        limit = prompt.data.get("max_replacements", engine.config.max_mulligan)
        if len(unique) > limit:
            raise PreconditionError(
                f"At most {limit} cards may be set aside",
                error_code=ErrorCode.INVALID_CHOICE,
            )
        if any(i < 0 or i >= len(player.hand) for i in unique):
            raise PreconditionError("Mulligan index out of range", error_code=ErrorCode.INVALID_CHOICE)

        set_aside = [player.hand.pop(i) for i in unique]
        player.deck.extend(set_aside)
        engine.draw_cards(player, len(set_aside))
        engine.priority.resolve_prompt(prompt, {"returned": len(set_aside)})
        engine.narrate(f"{player.name or player_id} replaces {len(set_aside)} card(s)", player_id=player_id)

        mulligans = [p for p in state.prompts if p.prompt_type == PromptType.MULLIGAN]
        if all(p.resolved for p in mulligans):
            state.status = GameStatus.IN_PROGRESS
            state.current_phase = GamePhase.BEGIN
            state.pending_main_phase_entry = False
            logger.info("Match %s starts, %s first", state.match_id, state.current_player.player_id)
            engine.turns.begin_turn()
