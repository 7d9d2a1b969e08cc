"""
Game State - The single authoritative record of a match.

GameState is the only object that is persisted or transmitted. It is
mutated in place by the MatchEngine for the duration of a match and must
be cloned before it leaves the engine.

Design principles:
- Serializable: every field has a default so older snapshots still load
- Two players, order fixed at construction, index meaningful
- Derived values (resources) are recomputed, never edited directly
"""

from __future__ import annotations
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator
import time

from .cards import BoardCard, Card, CardType, RuneCard


def now_ms() -> int:
    """Wall-clock timestamp in milliseconds."""
    return int(time.time() * 1000)


class GameStatus(Enum):
    """Match status state machine."""
    WAITING_FOR_PLAYERS = "waiting_for_players"
    SETUP = "setup"
    COIN_FLIP = "coin_flip"
    BATTLEFIELD_SELECTION = "battlefield_selection"
    MULLIGAN = "mulligan"
    IN_PROGRESS = "in_progress"
    WINNER_DETERMINED = "winner_determined"
    COMPLETED = "completed"  # Terminal alias once the result was reported


TERMINAL_STATUSES = frozenset({GameStatus.WINNER_DETERMINED, GameStatus.COMPLETED})


class GamePhase(Enum):
    """Per-turn phase cycle."""
    BEGIN = "begin"
    MAIN_1 = "main_1"
    COMBAT = "combat"
    MAIN_2 = "main_2"
    END = "end"
    CLEANUP = "cleanup"


MAIN_PHASES = frozenset({GamePhase.MAIN_1, GamePhase.MAIN_2})


class TurnStep(Enum):
    """Sub-steps of the BEGIN phase, then main."""
    AWAKEN = "awaken"
    BEGIN = "begin"
    CHANNEL = "channel"
    DRAW = "draw"
    MAIN = "main"


TURN_STEP_LABELS = {
    TurnStep.AWAKEN: "Awaken step",
    TurnStep.BEGIN: "Begin step",
    TurnStep.CHANNEL: "Channel step",
    TurnStep.DRAW: "Draw step",
    TurnStep.MAIN: "Main Phase 1",
}


class PromptType(Enum):
    MULLIGAN = "mulligan"
    ACTION = "action"
    TARGET = "target"
    REACTION = "reaction"
    PRIORITY = "priority"
    BATTLEFIELD = "battlefield"
    COIN_FLIP = "coin_flip"


class PriorityWindowType(Enum):
    MAIN = "main"
    REACTION = "reaction"
    SHOWDOWN = "showdown"
    COMBAT = "combat"


class CombatStage(Enum):
    ACTION = "action"
    REACTION = "reaction"


class ScoreReason(Enum):
    COMBAT = "combat"
    OBJECTIVE = "objective"
    SUPPORT = "support"
    HOLD = "hold"
    DECKING = "decking"
    CONCEDE = "concede"
    TIMEOUT = "timeout"


class MatchEndReason(Enum):
    VICTORY_POINTS = "victory_points"
    BURN_OUT = "burn_out"
    CONCEDE = "concede"
    TIMEOUT = "timeout"


class DuelLogTone(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class MoveAction(Enum):
    PLAY_CARD = "play_card"
    ATTACK = "attack"
    MOVE = "move"
    PASS = "pass"
    ACTIVATE_ABILITY = "activate_ability"
    END_TURN = "end_turn"


@dataclass
class ResourcePool:
    """Derived from untapped channeled runes."""
    energy: int = 0
    power: dict[str, int] = field(default_factory=dict)  # domain value -> power
    universal_power: int = 0


@dataclass
class TemporaryEffect:
    id: str = ""
    effect_type: str = ""  # "damage_boost", "prevent_damage", "draw_card", "extra_action"
    value: int = 0
    duration: int = 1  # Owner's turns remaining
    affected_card_id: str | None = None
    source_card_id: str | None = None


@dataclass
class PlayerBoard:
    creatures: list[BoardCard] = field(default_factory=list)
    artifacts: list[BoardCard] = field(default_factory=list)
    enchantments: list[BoardCard] = field(default_factory=list)

    def zone_for(self, card_type: CardType) -> list[BoardCard]:
        if card_type == CardType.CREATURE:
            return self.creatures
        if card_type == CardType.ARTIFACT:
            return self.artifacts
        return self.enchantments

    def all_cards(self) -> Iterator[BoardCard]:
        yield from self.creatures
        yield from self.artifacts
        yield from self.enchantments

    def find(self, instance_id: str) -> BoardCard | None:
        for card in self.all_cards():
            if card.instance_id == instance_id:
                return card
        return None

    def remove(self, instance_id: str) -> BoardCard | None:
        for zone in (self.creatures, self.artifacts, self.enchantments):
            for index, card in enumerate(zone):
                if card.instance_id == instance_id:
                    return zone.pop(index)
        return None


@dataclass
class ChampionAbilityState:
    available: bool = False
    reason: str | None = None
    cost_summary: str = "No cost"
    exhausted: bool = False


@dataclass
class PlayerState:
    """One seat at the table."""
    player_id: str = ""
    name: str = ""
    victory_points: int = 0
    victory_score: int = 8

    deck: list[Card] = field(default_factory=list)  # Draw from the front
    rune_deck: list[RuneCard] = field(default_factory=list)
    channeled_runes: list[RuneCard] = field(default_factory=list)
    hand: list[Card] = field(default_factory=list)
    graveyard: list[Card] = field(default_factory=list)
    exile: list[Card] = field(default_factory=list)
    board: PlayerBoard = field(default_factory=PlayerBoard)
    resources: ResourcePool = field(default_factory=ResourcePool)
    temporary_effects: list[TemporaryEffect] = field(default_factory=list)

    battlefield_pool: list[Card] = field(default_factory=list)
    selected_battlefield: Card | None = None
    first_turn_rune_boost: int = 0

    champion_legend: Card | None = None
    champion_leader: Card | None = None
    legend_exhausted: bool = False
    leader_deployed: bool = False
    champion_ability_states: dict[str, ChampionAbilityState] = field(default_factory=dict)


@dataclass
class BattlefieldState:
    battlefield_id: str = ""
    name: str = ""
    slug: str | None = None
    owner_id: str | None = None
    controller_id: str | None = None  # None = neutral
    contested_by: list[str] = field(default_factory=list)
    last_conquered_turn: int | None = None
    last_hold_turn: int | None = None
    last_combat_turn: int | None = None
    last_combat_player_id: str | None = None  # Active player when last_combat_turn was set
    last_hold_scored_turn: int | None = None
    last_hold_scored_by: str | None = None
    card: Card | None = None


@dataclass
class GamePrompt:
    """A per-player request answered exactly once."""
    id: str = ""
    player_id: str = ""
    prompt_type: PromptType = PromptType.ACTION
    data: dict[str, Any] = field(default_factory=dict)
    created_at: int = 0
    resolved: bool = False
    resolved_at: int | None = None
    resolution: dict[str, Any] | None = None


@dataclass
class PriorityWindow:
    """Whose turn it is to act right now. At most one is open."""
    id: str = ""
    window_type: PriorityWindowType = PriorityWindowType.MAIN
    holder_id: str = ""
    opened_at: int = 0
    expires_at: int | None = None
    event: str | None = None


@dataclass
class CombatContext:
    """An open engagement on one battlefield."""
    battlefield_id: str = ""
    initiated_by: str = ""
    defending_player_id: str = ""
    attacking_unit_ids: list[str] = field(default_factory=list)
    defending_unit_ids: list[str] = field(default_factory=list)
    priority_stage: CombatStage = CombatStage.ACTION
    last_actor: str | None = None
    action_pass_count: int = 0


@dataclass
class ScoreEvent:
    player_id: str = ""
    amount: int = 0
    reason: ScoreReason = ScoreReason.OBJECTIVE
    source_id: str | None = None
    turn: int = 0
    timestamp: int = 0


@dataclass
class DuelLogEntry:
    id: str = ""
    message: str = ""
    tone: DuelLogTone = DuelLogTone.INFO
    player_id: str | None = None
    timestamp: int = 0


@dataclass
class ChatMessage:
    id: str = ""
    player_id: str = ""
    player_name: str | None = None
    message: str = ""
    timestamp: int = 0


@dataclass
class GameMove:
    player_id: str = ""
    action: MoveAction = MoveAction.PASS
    card_id: str | None = None
    target_id: str | None = None
    destination_id: str | None = None
    turn: int = 0
    phase: GamePhase = GamePhase.BEGIN
    timestamp: int = 0


@dataclass
class StateSnapshot:
    turn: int = 0
    phase: GamePhase = GamePhase.BEGIN
    timestamp: int = 0
    reason: str = ""
    summary: dict[str, Any] = field(default_factory=dict)


@dataclass
class MatchResult:
    match_id: str = ""
    winner: str = ""
    loser: str = ""
    reason: MatchEndReason = MatchEndReason.VICTORY_POINTS
    duration_ms: int = 0
    turns: int = 0
    moves: int = 0


@dataclass
class GameState:
    """
    Root of a match.

    prompts are appended and resolved; they are only removed by a
    type-scoped filter when a setup sub-phase restarts.
    """
    match_id: str = ""
    players: list[PlayerState] = field(default_factory=list)
    current_player_index: int = 0
    current_phase: GamePhase = GamePhase.BEGIN
    turn_number: int = 1
    status: GameStatus = GameStatus.SETUP
    winner: str | None = None
    loser: str | None = None
    end_reason: MatchEndReason | None = None
    move_history: list[GameMove] = field(default_factory=list)
    timestamp: int = 0
    ended_at: int | None = None
    victory_score: int = 8
    score_log: list[ScoreEvent] = field(default_factory=list)

    prompts: list[GamePrompt] = field(default_factory=list)
    priority_window: PriorityWindow | None = None
    combat_context: CombatContext | None = None
    snapshots: list[StateSnapshot] = field(default_factory=list)
    battlefields: list[BattlefieldState] = field(default_factory=list)

    initiative_winner: str | None = None
    initiative_loser: str | None = None
    initiative_selections: dict[str, int] = field(default_factory=dict)
    initiative_decided_at: int | None = None

    duel_log: list[DuelLogEntry] = field(default_factory=list)
    chat_log: list[ChatMessage] = field(default_factory=list)

    pending_main_phase_entry: bool = False
    turn_step: TurnStep | None = None
    focus_player_id: str | None = None

    # High-water marks of the engine's id sequences and the shuffle RNG
    id_counters: dict[str, int] = field(default_factory=dict)
    rng_state: list[Any] | None = None

    @property
    def current_player(self) -> PlayerState:
        return self.players[self.current_player_index]

    @property
    def is_over(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def find_player(self, player_id: str) -> PlayerState | None:
        for player in self.players:
            if player.player_id == player_id:
                return player
        return None

    def player_index(self, player_id: str) -> int:
        for index, player in enumerate(self.players):
            if player.player_id == player_id:
                return index
        return -1

    def opponent_of(self, player_id: str) -> PlayerState | None:
        for player in self.players:
            if player.player_id != player_id:
                return player
        return None

    def find_battlefield(self, identifier: str) -> BattlefieldState | None:
        for battlefield in self.battlefields:
            if battlefield.battlefield_id == identifier or (
                battlefield.slug and battlefield.slug == identifier
            ):
                return battlefield
        return None

    def find_board_card(self, instance_id: str) -> tuple[PlayerState, BoardCard] | None:
        """Owner scan across both boards."""
        for player in self.players:
            card = player.board.find(instance_id)
            if card is not None:
                return player, card
        return None

    def units_at(self, battlefield_id: str) -> list[tuple[PlayerState, BoardCard]]:
        found = []
        for player in self.players:
            for unit in player.board.creatures:
                if unit.location.is_at(battlefield_id):
                    found.append((player, unit))
        return found

    def open_prompts(self, player_id: str | None = None) -> list[GamePrompt]:
        return [
            p for p in self.prompts
            if not p.resolved and (player_id is None or p.player_id == player_id)
        ]

    def resolved_this_turn(self, battlefield: BattlefieldState) -> bool:
        """Whether the battlefield already resolved during the active player's turn."""
        return (
            battlefield.last_combat_turn == self.turn_number
            and battlefield.last_combat_player_id == self.current_player.player_id
        )

    def clone(self) -> GameState:
        """Recursive value copy; shares no mutable collection with self."""
        return deepcopy(self)
