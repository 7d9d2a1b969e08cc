"""
Engine Core - Authoritative rules engine for a two-player card duel.

The engine is the runtime that:
1. Builds a match from decks and a card catalog
2. Sequences setup (initiative, battlefield draft, mulligan)
3. Runs the turn/phase machine and the priority protocol
4. Pays costs from channeled runes and resolves card effects
5. Resolves combat and battlefield control, and decides the winner
"""

from .errors import EngineError, ErrorCode, PreconditionError, DataIntegrityError
from .cards import Card, BoardCard, RuneCard, CardType, Domain, EffectOperation, OperationType
from .state import GameState, PlayerState, BattlefieldState, GamePhase, GameStatus, MatchResult
from .catalog import CardCatalog, EnrichedCardRecord
from .engine import MatchEngine
from .action import Action, ActionType, ActionPayload, ActionResult
from .reducer import Reducer, apply_action
from .action_generator import ActionGenerator, legal_actions
from .effect_resolver import EffectResolver, EffectContext
from .serialization import dump_state, load_state
from .view import project_view

__all__ = [
    "EngineError",
    "ErrorCode",
    "PreconditionError",
    "DataIntegrityError",
    "Card",
    "BoardCard",
    "RuneCard",
    "CardType",
    "Domain",
    "EffectOperation",
    "OperationType",
    "GameState",
    "PlayerState",
    "BattlefieldState",
    "GamePhase",
    "GameStatus",
    "MatchResult",
    "CardCatalog",
    "EnrichedCardRecord",
    "MatchEngine",
    "Action",
    "ActionType",
    "ActionPayload",
    "ActionResult",
    "Reducer",
    "apply_action",
    "ActionGenerator",
    "legal_actions",
    "EffectResolver",
    "EffectContext",
    "dump_state",
    "load_state",
    "project_view",
]
