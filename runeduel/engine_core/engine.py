"""
Match Engine - The public facade over one match.

Every public action method validates legality, mutates the GameState,
runs all cascading effects (abilities, combat, win checks) and returns.
Actions are transactional: if an EngineError escapes, the state, id
counters and RNG are restored to what they were before the call.

The engine owns its id counters and its shuffle RNG. Their high-water
marks are mirrored into the state so that an engine rebuilt from a
snapshot continues exactly where the original left off.
"""

from __future__ import annotations
from functools import wraps
from typing import Any, Callable, Iterable, TypeVar
import logging
import random
import re
import uuid

from ..config import EngineConfig
from .cards import Card, CardLocation, CardType
from .catalog import CardCatalog
from .champions import ChampionController
from .combat import CombatResolver
from .effect_resolver import EffectContext, EffectResolver
from .errors import EngineError, ErrorCode, PreconditionError
from .lifecycle import create_board_card
from .priority import PriorityController
from .resources import Cost, RuneAllocator
from .setup import SetupSequencer
from .state import (
    MAIN_PHASES,
    ChatMessage,
    DuelLogEntry,
    DuelLogTone,
    GamePhase,
    GameMove,
    GameState,
    GameStatus,
    MatchEndReason,
    MatchResult,
    MoveAction,
    PlayerState,
    PriorityWindowType,
    PromptType,
    ScoreEvent,
    ScoreReason,
    StateSnapshot,
    TURN_STEP_LABELS,
    now_ms,
)
from .turns import TurnController

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

ID_SUFFIX = re.compile(r"_(\d+)$")


def transactional(method: F) -> F:
    """Roll the match back if the action raises an EngineError."""

    @wraps(method)
    def wrapper(self: MatchEngine, *args, **kwargs):
        saved_state = self.state.clone()
        saved_counters = dict(self._counters)
        saved_rng = self._rng.getstate()
        try:
            result = method(self, *args, **kwargs)
        except EngineError as exc:
            self.state = saved_state
            self._counters = saved_counters
            self._rng.setstate(saved_rng)
            logger.debug("%s rejected: %s", method.__name__, exc)
            raise
        self.champions.refresh_all()
        return result

    return wrapper  # type: ignore[return-value]


def _coerce_seat(seat: Any) -> PlayerState:
    if isinstance(seat, PlayerState):
        return seat
    if isinstance(seat, str):
        return PlayerState(player_id=seat, name=seat)
    if isinstance(seat, (tuple, list)) and len(seat) == 2:
        return PlayerState(player_id=str(seat[0]), name=str(seat[1]))
    if isinstance(seat, dict):
        player_id = str(seat["player_id"])
        return PlayerState(player_id=player_id, name=str(seat.get("name") or player_id))
    raise PreconditionError(f"Unsupported player seat: {seat!r}", error_code=ErrorCode.UNKNOWN_PLAYER)


class MatchEngine:
    """
    Authoritative rules engine for one two-player match.

    Usage:
        engine = MatchEngine("match-1", ["alice", "bob"], seed=7, catalog=catalog)
        engine.initialize_game({"alice": alice_deck, "bob": bob_deck})
        engine.submit_initiative_choice("alice", 0)
        ...
        state = engine.get_game_state()
    """

    def __init__(
        self,
        match_id: str | None = None,
        players: Iterable[Any] = (),
        config: EngineConfig | None = None,
        seed: int | None = None,
        catalog: CardCatalog | None = None,
        state: GameState | None = None,
    ):
        self.config = config or EngineConfig()
        self.catalog = catalog
        self._counters: dict[str, int] = {}
        self._rng = random.Random(seed)

        if state is None:
            seats = [_coerce_seat(seat) for seat in players]
            if len(seats) != 2 or seats[0].player_id == seats[1].player_id:
                raise PreconditionError(
                    "A match needs exactly two distinct players",
                    error_code=ErrorCode.UNKNOWN_PLAYER,
                )
            state = GameState(
                match_id=match_id or str(uuid.uuid4()),
                players=seats,
                timestamp=now_ms(),
                victory_score=self.config.victory_score,
            )
            for seat in seats:
                seat.victory_score = self.config.victory_score
            state.rng_state = self._dump_rng()
        self.state = state

        self.priority = PriorityController(self)
        self.combat = CombatResolver(self)
        self.effects = EffectResolver(self)
        self.turns = TurnController(self)
        self.setup = SetupSequencer(self)
        self.champions = ChampionController(self)

    # Snapshots

    @classmethod
    def from_snapshot(
        cls,
        data: dict[str, Any] | GameState,
        config: EngineConfig | None = None,
        catalog: CardCatalog | None = None,
    ) -> MatchEngine:
        """Rebuild an engine from a serialized (or live) state."""
        from .serialization import load_state

        state = data.clone() if isinstance(data, GameState) else load_state(data)
        engine = cls(state.match_id, config=config, catalog=catalog, state=state)
        engine._reseed_counters()
        if state.rng_state:
            version, internal, gauss = state.rng_state
            engine._rng.setstate((version, tuple(internal), gauss))
        return engine

    def to_snapshot(self) -> dict[str, Any]:
        from .serialization import dump_state

        return dump_state(self.state)

    def _reseed_counters(self):
        counters = dict(self.state.id_counters)
        derived = {
            "prompt": [p.id for p in self.state.prompts],
            "log": [e.id for e in self.state.duel_log],
            "chat": [m.id for m in self.state.chat_log],
            "instance": list(self._instance_ids()),
        }
        if self.state.priority_window is not None:
            derived["window"] = [self.state.priority_window.id]
        for kind, ids in derived.items():
            for identifier in ids:
                match = ID_SUFFIX.search(identifier or "")
                if match:
                    counters[kind] = max(counters.get(kind, 0), int(match.group(1)))
        self._counters = counters
        self.state.id_counters = dict(counters)

    def _instance_ids(self) -> Iterable[str]:
        for player in self.state.players:
            for zone in (player.deck, player.hand, player.graveyard, player.exile):
                for card in zone:
                    if card.instance_id:
                        yield card.instance_id
            for card in player.board.all_cards():
                yield card.instance_id

    def _dump_rng(self) -> list[Any]:
        version, internal, gauss = self._rng.getstate()
        return [version, list(internal), gauss]

    # Shared helpers

    def now(self) -> int:
        return now_ms()

    def next_id(self, kind: str, prefix: str) -> str:
        value = self._counters.get(kind, 0) + 1
        self._counters[kind] = value
        self.state.id_counters[kind] = value
        return f"{prefix}_{value}"

    def shuffle(self, items: list[Any]):
        self._rng.shuffle(items)
        self.state.rng_state = self._dump_rng()

    def require_player(self, player_id: str) -> PlayerState:
        player = self.state.find_player(player_id)
        if player is None:
            raise PreconditionError(
                f"Unknown player {player_id}",
                error_code=ErrorCode.UNKNOWN_PLAYER,
                details={"player_id": player_id},
            )
        return player

    def require_status(self, status: GameStatus):
        if self.state.status != status:
            code = ErrorCode.MATCH_NOT_ACTIVE if self.state.is_over else ErrorCode.WRONG_PHASE
            raise PreconditionError(
                f"Match is {self.state.status.value}, expected {status.value}",
                error_code=code,
            )

    def require_current_player(self, player_id: str):
        if self.state.current_player.player_id != player_id:
            raise PreconditionError(
                f"It is not {player_id}'s turn",
                error_code=ErrorCode.NOT_YOUR_TURN,
            )

    def deployment_location(self, player: PlayerState, destination_id: str | None) -> CardLocation:
        """Base, or a battlefield the player controls."""
        if destination_id in (None, "", "base"):
            return CardLocation.base()
        battlefield = self.state.find_battlefield(destination_id)
        if battlefield is None:
            raise PreconditionError(
                f"Unknown battlefield {destination_id}",
                error_code=ErrorCode.UNKNOWN_BATTLEFIELD,
            )
        if battlefield.controller_id != player.player_id:
            raise PreconditionError(
                f"{player.player_id} does not control {battlefield.name}",
                error_code=ErrorCode.INVALID_TARGET,
            )
        return CardLocation.at(battlefield.battlefield_id)

    def narrate(self, message: str, player_id: str | None = None, tone: DuelLogTone = DuelLogTone.INFO) -> DuelLogEntry:
        entry = DuelLogEntry(
            id=self.next_id("log", "log"),
            message=message[: self.config.max_log_message_length],
            tone=tone,
            player_id=player_id,
            timestamp=self.now(),
        )
        self.state.duel_log.append(entry)
        overflow = len(self.state.duel_log) - self.config.max_log_entries
        if overflow > 0:
            del self.state.duel_log[:overflow]
        return entry

    def draw_cards(self, player: PlayerState, count: int) -> int:
        """Draw from the front of the deck. An empty deck mid-match burns the player out."""
        drawn = 0
        for _ in range(count):
            if not player.deck:
                if self.state.status == GameStatus.IN_PROGRESS:
                    self.burn_out(player)
                break
            player.hand.append(player.deck.pop(0))
            drawn += 1
        return drawn

    def burn_out(self, player: PlayerState):
        opponent = self.state.opponent_of(player.player_id)
        self.state.score_log.append(
            ScoreEvent(
                player_id=opponent.player_id,
                amount=0,
                reason=ScoreReason.DECKING,
                turn=self.state.turn_number,
                timestamp=self.now(),
            )
        )
        self.narrate(f"{player.name or player.player_id} cannot draw and burns out", tone=DuelLogTone.ERROR)
        self.end_game(opponent.player_id, player.player_id, MatchEndReason.BURN_OUT)

    def award_victory_points(
        self,
        player_id: str,
        amount: int,
        reason: ScoreReason,
        source_id: str | None = None,
    ) -> int:
        """Add points, clamped to the victory score. Returns the points actually gained."""
        state = self.state
        if state.status != GameStatus.IN_PROGRESS:
            return 0
        player = self.require_player(player_id)
        before = player.victory_points
        player.victory_points = min(state.victory_score, before + max(0, amount))
        delta = player.victory_points - before
        state.score_log.append(
            ScoreEvent(
                player_id=player_id,
                amount=delta,
                reason=reason,
                source_id=source_id,
                turn=state.turn_number,
                timestamp=self.now(),
            )
        )
        if delta:
            self.narrate(
                f"{player.name or player_id} scores {delta} ({reason.value}): {player.victory_points}/{state.victory_score}",
                player_id=player_id,
                tone=DuelLogTone.SUCCESS,
            )
        if player.victory_points >= state.victory_score:
            opponent = state.opponent_of(player_id)
            self.end_game(player_id, opponent.player_id, MatchEndReason.VICTORY_POINTS)
        return delta

    def end_game(self, winner_id: str, loser_id: str, reason: MatchEndReason):
        state = self.state
        if state.is_over:
            return
        state.status = GameStatus.WINNER_DETERMINED
        state.winner = winner_id
        state.loser = loser_id
        state.end_reason = reason
        state.ended_at = self.now()
        state.combat_context = None
        self.priority.close_window()
        self.narrate(f"{winner_id} wins ({reason.value})", player_id=winner_id, tone=DuelLogTone.SUCCESS)
        self.record_snapshot("match-ended")
        logger.info("Match %s won by %s (%s)", state.match_id, winner_id, reason.value)

    def record_move(
        self,
        player_id: str,
        action: MoveAction,
        card_id: str | None = None,
        target_id: str | None = None,
        destination_id: str | None = None,
    ):
        self.state.move_history.append(
            GameMove(
                player_id=player_id,
                action=action,
                card_id=card_id,
                target_id=target_id,
                destination_id=destination_id,
                turn=self.state.turn_number,
                phase=self.state.current_phase,
                timestamp=self.now(),
            )
        )

    def record_snapshot(self, reason: str):
        state = self.state
        summary = {
            "current_player": state.current_player.player_id if state.players else None,
            "phase": state.current_phase.value,
            "step": TURN_STEP_LABELS.get(state.turn_step) if state.turn_step else None,
            "status": state.status.value,
            "scores": {
                p.player_id: {
                    "victory_points": p.victory_points,
                    "hand": len(p.hand),
                    "deck": len(p.deck),
                    "board": sum(1 for _ in p.board.all_cards()),
                }
                for p in state.players
            },
        }
        state.snapshots.append(
            StateSnapshot(
                turn=state.turn_number,
                phase=state.current_phase,
                timestamp=self.now(),
                reason=reason,
                summary=summary,
            )
        )

    # Setup actions

    @transactional
    def initialize_game(self, decks_by_player: dict[str, Any]):
        self.setup.initialize(decks_by_player)

    @transactional
    def submit_initiative_choice(self, player_id: str, choice: int):
        self.setup.submit_initiative_choice(player_id, choice)

    @transactional
    def select_battlefield(self, player_id: str, battlefield_id: str):
        self.setup.select_battlefield(player_id, battlefield_id)

    @transactional
    def submit_mulligan(self, player_id: str, indices: list[int]):
        self.setup.submit_mulligan(player_id, indices)

    # Prompt resolutions

    @transactional
    def submit_discard_selection(self, player_id: str, prompt_id: str, card_instance_ids: list[str]):
        player = self.require_player(player_id)
        prompt = self.priority.require_prompt(player_id, prompt_id, PromptType.TARGET)
        if prompt.data.get("kind") != "discard":
            raise PreconditionError(f"{prompt_id} is not a discard prompt", error_code=ErrorCode.UNKNOWN_PROMPT)
        count = min(prompt.data.get("count", 1), len(player.hand))
        chosen = list(dict.fromkeys(card_instance_ids))
        hand_ids = {c.instance_id for c in player.hand}
        if len(chosen) != count or any(c not in hand_ids for c in chosen):
            raise PreconditionError(
                f"Choose exactly {count} card(s) from your hand",
                error_code=ErrorCode.INVALID_CHOICE,
            )
        self.effects.complete_discard(player, chosen, count)
        self.priority.resolve_prompt(prompt, {"card_instance_ids": chosen})
        self.turns.try_auto_advance_from_begin()

    @transactional
    def submit_target_selection(self, player_id: str, prompt_id: str, selection_ids: list[str]):
        player = self.require_player(player_id)
        prompt = self.priority.require_prompt(player_id, prompt_id, PromptType.TARGET)
        options = prompt.data.get("options", [])
        chosen = list(dict.fromkeys(selection_ids))
        if len(chosen) != prompt.data.get("count", 1) or any(c not in options for c in chosen):
            raise PreconditionError("Selection does not match the prompt options", error_code=ErrorCode.INVALID_CHOICE)
        if prompt.data.get("kind") == "search":
            self.effects.complete_search(player, chosen[0])
        elif prompt.data.get("kind") == "discard":
            self.effects.complete_discard(player, chosen, len(chosen))
        self.priority.resolve_prompt(prompt, {"selection_ids": chosen})
        self.turns.try_auto_advance_from_begin()

    # Turn actions

    @transactional
    def begin_turn(self):
        state = self.state
        self.require_status(GameStatus.IN_PROGRESS)
        if state.pending_main_phase_entry or state.current_phase != GamePhase.BEGIN:
            raise PreconditionError("The turn has already begun", error_code=ErrorCode.WRONG_PHASE)
        self.turns.begin_turn()

    @transactional
    def proceed_to_next_phase(self, player_id: str | None = None):
        self.turns.proceed_to_next_phase(player_id)

    @transactional
    def play_card(
        self,
        player_id: str,
        hand_index: int,
        targets: list[str] | None = None,
        destination_id: str | None = None,
    ):
        state = self.state
        player = self.require_player(player_id)
        self.require_status(GameStatus.IN_PROGRESS)
        if not 0 <= hand_index < len(player.hand):
            raise PreconditionError(
                f"No card at hand index {hand_index}",
                error_code=ErrorCode.UNKNOWN_CARD,
            )
        card = player.hand[hand_index]
        if card.type == CardType.RUNE:
            raise PreconditionError("Runes are channeled, not played", error_code=ErrorCode.INVALID_ACTION)
        in_combat = state.combat_context is not None
        window = state.priority_window
        if in_combat:
            self.priority.require_priority(player_id)
            if not self.priority.card_supports_stage(card):
                stage = state.combat_context.priority_stage.value
                raise PreconditionError(
                    f"{card.name} cannot be played during the {stage} stage",
                    error_code=ErrorCode.WRONG_PHASE,
                )
        elif window is not None and window.window_type == PriorityWindowType.REACTION:
            self.priority.require_priority(player_id)
            if "reaction" not in card.timing_keywords():
                raise PreconditionError(f"{card.name} is not a reaction", error_code=ErrorCode.WRONG_PHASE)
        else:
            self.require_current_player(player_id)
            if state.current_phase not in MAIN_PHASES:
                raise PreconditionError(
                    f"Cards cannot be played during {state.current_phase.value}",
                    error_code=ErrorCode.WRONG_PHASE,
                )
            self.priority.require_priority(player_id)

        cost = Cost.of(card)
        allocator = RuneAllocator(player)
        if allocator.allocate(cost) is None:
            raise PreconditionError(
                f"Not enough runes to play {card.name}",
                error_code=ErrorCode.INSUFFICIENT_RESOURCES,
                details={"energy": cost.energy, "power": cost.power},
            )
        context = self._target_context(card, player_id, targets, destination_id)
        self.effects.validate_targets(card, context)
        location = CardLocation.base()
        if card.type == CardType.CREATURE:
            location = self.deployment_location(player, destination_id)

        player.hand.pop(hand_index)
        allocator.allocate(cost, commit=True)
        self.record_move(
            player_id,
            MoveAction.PLAY_CARD,
            card_id=card.id,
            target_id=context.target_unit_id or context.target_player_id,
            destination_id=destination_id,
        )
        self.narrate(f"{player.name or player_id} plays {card.name}", player_id=player_id)
        if card.is_permanent:
            self._deploy_permanent(player, card, location, context)
        else:
            self.effects.resolve_spell(player, card, context)
            player.graveyard.append(card)
        if in_combat and state.combat_context is not None:
            self.priority.record_combat_play(player_id)

    def _target_context(
        self,
        card: Card,
        player_id: str,
        targets: list[str] | None,
        destination_id: str | None,
    ) -> EffectContext:
        context = EffectContext(source=card, controller_id=player_id, label=card.name)
        for target in targets or []:
            if self.state.find_board_card(target) is not None:
                context.target_unit_id = target
            elif self.state.find_player(target) is not None:
                context.target_player_id = target
            elif self.state.find_battlefield(target) is not None:
                context.target_battlefield_id = self.state.find_battlefield(target).battlefield_id
            else:
                raise PreconditionError(
                    f"Unknown target {target}",
                    error_code=ErrorCode.INVALID_TARGET,
                    details={"target": target},
                )
        if destination_id and context.target_battlefield_id is None:
            battlefield = self.state.find_battlefield(destination_id)
            if battlefield is not None:
                context.target_battlefield_id = battlefield.battlefield_id
        return context

    def _deploy_permanent(self, player: PlayerState, card: Card, location: CardLocation, context: EffectContext):
        stateful = self.catalog.activation_template(card.id) if self.catalog else False
        permanent = create_board_card(
            card,
            card.instance_id or self.next_id("instance", card.id),
            self.now(),
            location=CardLocation.base(),
            stateful=stateful,
        )
        player.board.zone_for(card.type).append(permanent)
        if not location.is_base:
            self.combat.place_unit(player, permanent, location)
            self.combat.join_engagement(player, permanent)
        permanent.log_rule_usage("play", self.now())
        context.source = permanent
        # Gear and other non-unit permanents resolve their printed operations on entry
        if card.type != CardType.CREATURE and card.operations and not card.abilities:
            self.effects.execute(card.operations, context)
        self.effects.trigger_abilities(player, permanent, "play", context)

    @transactional
    def move_unit(self, player_id: str, instance_id: str, destination_id: str):
        self.combat.move_unit(player_id, instance_id, destination_id)

    @transactional
    def activate_champion_ability(self, player_id: str, ability: str, destination_id: str | None = None):
        self.champions.activate(player_id, ability, destination_id)

    @transactional
    def pass_priority(self, player_id: str):
        state = self.state
        self.require_player(player_id)
        self.require_status(GameStatus.IN_PROGRESS)
        window = state.priority_window
        if window is None or window.holder_id != player_id:
            raise PreconditionError(
                f"{player_id} does not hold priority",
                error_code=ErrorCode.NO_PRIORITY,
            )
        self.record_move(player_id, MoveAction.PASS)
        if state.combat_context is not None:
            if self.priority.pass_combat_priority(player_id):
                self.combat.resolve_engagement()
            return
        self.turns.proceed_to_next_phase()

    # Conclusion

    @transactional
    def concede_match(self, player_id: str) -> MatchResult:
        return self._forfeit(player_id, ScoreReason.CONCEDE, MatchEndReason.CONCEDE)

    @transactional
    def timeout_match(self, player_id: str) -> MatchResult:
        """The transport layer reports that player_id ran out of time."""
        return self._forfeit(player_id, ScoreReason.TIMEOUT, MatchEndReason.TIMEOUT)

    def _forfeit(self, player_id: str, score_reason: ScoreReason, reason: MatchEndReason) -> MatchResult:
        state = self.state
        self.require_player(player_id)
        if state.is_over:
            raise PreconditionError("Match is already over", error_code=ErrorCode.MATCH_NOT_ACTIVE)
        if state.status in (GameStatus.SETUP, GameStatus.WAITING_FOR_PLAYERS):
            raise PreconditionError("Match has not started", error_code=ErrorCode.MATCH_NOT_ACTIVE)
        opponent = state.opponent_of(player_id)
        state.score_log.append(
            ScoreEvent(
                player_id=opponent.player_id,
                amount=0,
                reason=score_reason,
                turn=state.turn_number,
                timestamp=self.now(),
            )
        )
        self.end_game(opponent.player_id, player_id, reason)
        return self.get_match_result()

    @transactional
    def mark_completed(self):
        if self.state.status != GameStatus.WINNER_DETERMINED:
            raise PreconditionError("Only a decided match can be completed", error_code=ErrorCode.MATCH_NOT_ACTIVE)
        self.state.status = GameStatus.COMPLETED

    # Narration

    @transactional
    def add_duel_log_entry(
        self,
        message: str,
        player_id: str | None = None,
        tone: str | DuelLogTone = DuelLogTone.INFO,
        entry_id: str | None = None,
    ) -> DuelLogEntry:
        text = (message or "").strip()
        if not text:
            raise PreconditionError("Log message is empty", error_code=ErrorCode.INVALID_MESSAGE)
        if player_id is not None:
            self.require_player(player_id)
        if entry_id is not None:
            for existing in self.state.duel_log:
                if existing.id == entry_id:
                    return existing
        try:
            tone = DuelLogTone(tone.value if isinstance(tone, DuelLogTone) else str(tone).lower())
        except ValueError:
            tone = DuelLogTone.INFO
        entry = self.narrate(text, player_id=player_id, tone=tone)
        if entry_id is not None:
            entry.id = entry_id
        return entry

    @transactional
    def add_chat_message(self, player_id: str, message: str, player_name: str | None = None) -> ChatMessage:
        player = self.require_player(player_id)
        text = (message or "").strip()
        if not text:
            raise PreconditionError("Chat message is empty", error_code=ErrorCode.INVALID_MESSAGE)
        entry = ChatMessage(
            id=self.next_id("chat", "chat"),
            player_id=player_id,
            player_name=player_name or player.name,
            message=text[: self.config.max_chat_message_length],
            timestamp=self.now(),
        )
        self.state.chat_log.append(entry)
        overflow = len(self.state.chat_log) - self.config.max_log_entries
        if overflow > 0:
            del self.state.chat_log[:overflow]
        return entry

    # Queries

    def get_game_state(self) -> GameState:
        return self.state.clone()

    def get_match_result(self) -> MatchResult | None:
        state = self.state
        if state.winner is None or state.loser is None or state.end_reason is None:
            return None
        return MatchResult(
            match_id=state.match_id,
            winner=state.winner,
            loser=state.loser,
            reason=state.end_reason,
            duration_ms=max(0, (state.ended_at or self.now()) - state.timestamp),
            turns=state.turn_number,
            moves=len(state.move_history),
        )

    def can_player_act(self, player_id: str) -> bool:
        state = self.state
        if state.status != GameStatus.IN_PROGRESS:
            return False
        if state.priority_window is not None:
            return state.priority_window.holder_id == player_id
        return state.current_player.player_id == player_id

