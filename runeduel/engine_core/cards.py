"""
Card model - Catalog templates and their runtime instances.

Three kinds of card value live in a match:
- Card: the catalog-level template (cost, stats, keywords, abilities,
  effect profile). Never mutated once it has been handed to the engine.
- BoardCard: a permanent on a player's board. Carries everything a Card
  has plus instance bookkeeping (toughness, tapped, location, counters).
- RuneCard: a rune in a rune deck or in the channeled pool.

Every value here is a plain dataclass so the whole GameState can be dumped
to and rebuilt from a tree of plain records. clone() is always a full
recursive copy: templates are never aliased into runtime state.
"""

from __future__ import annotations
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class CardType(Enum):
    """Rules type of a card."""
    CREATURE = "creature"
    SPELL = "spell"
    ARTIFACT = "artifact"
    ENCHANTMENT = "enchantment"
    RUNE = "rune"


class CardRarity(Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    LEGENDARY = "legendary"
    EPIC = "epic"
    PROMO = "promo"
    SHOWCASE = "showcase"


class Domain(Enum):
    """The six rune domains. Colorless runes and cards have no domain."""
    FURY = "fury"
    CALM = "calm"
    MIND = "mind"
    BODY = "body"
    CHAOS = "chaos"
    ORDER = "order"


class OperationType(Enum):
    """Closed set of declarative effect operations."""
    DRAW_CARDS = "draw_cards"
    DISCARD_CARDS = "discard_cards"
    MODIFY_STATS = "modify_stats"
    DEAL_DAMAGE = "deal_damage"
    HEAL = "heal"
    REMOVE_PERMANENT = "remove_permanent"
    SUMMON_UNIT = "summon_unit"
    CREATE_TOKEN = "create_token"
    GAIN_RESOURCE = "gain_resource"
    SHIELD = "shield"
    CHANNEL_RUNE = "channel_rune"
    MOVE_UNIT = "move_unit"
    RECYCLE_CARD = "recycle_card"
    SEARCH_DECK = "search_deck"
    MANIPULATE_PRIORITY = "manipulate_priority"
    INTERACT_LEGEND = "interact_legend"
    ATTACH_GEAR = "attach_gear"
    TRANSFORM = "transform"
    ADJUST_MULLIGAN = "adjust_mulligan"
    CONTROL_BATTLEFIELD = "control_battlefield"
    GENERIC = "generic"
    UNHANDLED = "unhandled"


class LocationZone(Enum):
    BASE = "base"
    BATTLEFIELD = "battlefield"


PERMANENT_TYPES = frozenset({CardType.CREATURE, CardType.ARTIFACT, CardType.ENCHANTMENT})


@dataclass
class EffectOperation:
    """
    One step of an ability or spell.

    target_hint: "self", "ally", "enemy", "any" or "battlefield"
    magnitude_hint: numeric modifier; each operation has its own default
    """
    type: OperationType = OperationType.UNHANDLED
    target_hint: str | None = None
    zone: str | None = None
    magnitude_hint: int | None = None
    automated: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class EffectProfile:
    classes: list[str] = field(default_factory=list)
    operations: list[EffectOperation] = field(default_factory=list)
    references: list[str] = field(default_factory=list)
    reaction_windows: list[str] = field(default_factory=list)
    priority_hint: str | None = None


@dataclass
class ActivationProfile:
    """How and when a card may be used (timing keyword, triggers)."""
    timing: str | None = None  # "action", "reaction", "static", "triggered"
    triggers: list[str] = field(default_factory=list)
    actions: list[str] = field(default_factory=list)
    requires_target: bool = False
    reaction_windows: list[str] = field(default_factory=list)


@dataclass
class RuleClause:
    id: str = ""
    text: str = ""
    tags: list[str] = field(default_factory=list)


@dataclass
class CardAbility:
    """
    A named ability. trigger_type None means it fires on any trigger.

    When operations is empty the ability is resolved from its name.
    """
    name: str = ""
    description: str = ""
    trigger_type: str | None = None  # "play", "attack", "damage", "heal", "death", "begin", "activate"
    operations: list[EffectOperation] = field(default_factory=list)


@dataclass
class Card:
    """Catalog-level card definition."""
    id: str = ""
    name: str = ""
    type: CardType = CardType.SPELL
    rarity: CardRarity = CardRarity.COMMON
    domain: Domain | None = None
    slug: str | None = None
    energy_cost: int | None = None
    power_cost: dict[str, int] = field(default_factory=dict)  # domain value -> amount
    power: int | None = None
    toughness: int | None = None
    keywords: list[str] = field(default_factory=list)
    abilities: list[CardAbility] = field(default_factory=list)
    rules: list[RuleClause] = field(default_factory=list)
    effect_profile: EffectProfile | None = None
    activation_profile: ActivationProfile | None = None
    text: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    instance_id: str | None = None

    def clone(self) -> Card:
        return deepcopy(self)

    @property
    def is_permanent(self) -> bool:
        return self.type in PERMANENT_TYPES

    @property
    def operations(self) -> list[EffectOperation]:
        if self.effect_profile is None:
            return []
        return self.effect_profile.operations

    def has_keyword(self, keyword: str) -> bool:
        wanted = keyword.lower()
        return any(k.lower() == wanted for k in self.keywords)

    def timing_keywords(self) -> set[str]:
        """Timing tags this card declares ("action", "reaction", ...)."""
        tags = {k.lower() for k in self.keywords}
        if self.activation_profile is not None:
            if self.activation_profile.timing:
                tags.add(self.activation_profile.timing.lower())
            tags.update(w.lower() for w in self.activation_profile.reaction_windows)
        if self.effect_profile is not None:
            tags.update(w.lower() for w in self.effect_profile.reaction_windows)
        return tags

    def requires_target(self) -> bool:
        if self.activation_profile is not None and self.activation_profile.requires_target:
            return True
        return any(op.type == OperationType.DEAL_DAMAGE for op in self.operations)


@dataclass
class CardLocation:
    """Where a permanent sits: its owner's base or a battlefield."""
    zone: LocationZone = LocationZone.BASE
    battlefield_id: str | None = None

    @classmethod
    def base(cls) -> CardLocation:
        return cls(zone=LocationZone.BASE)

    @classmethod
    def at(cls, battlefield_id: str) -> CardLocation:
        return cls(zone=LocationZone.BATTLEFIELD, battlefield_id=battlefield_id)

    @property
    def is_base(self) -> bool:
        return self.zone == LocationZone.BASE

    def is_at(self, battlefield_id: str) -> bool:
        return self.zone == LocationZone.BATTLEFIELD and self.battlefield_id == battlefield_id


@dataclass
class ActivationEvent:
    reason: str = ""
    active: bool = False
    timestamp: int = 0


@dataclass
class ActivationState:
    """Whether a permanent's static ability is currently switched on."""
    card_id: str = ""
    is_stateful: bool = False
    active: bool = False
    history: list[ActivationEvent] = field(default_factory=list)

    def record(self, active: bool, reason: str, timestamp: int):
        self.active = active
        self.history.append(ActivationEvent(reason=reason, active=active, timestamp=timestamp))


@dataclass
class RuleUsage:
    rule_id: str = ""
    context: str = ""
    timestamp: int = 0


@dataclass
class BoardCard(Card):
    """A card on the board. instance_id is unique within the match."""
    current_toughness: int | None = None
    is_tapped: bool = False
    summoned: bool = False
    counters: dict[str, int] = field(default_factory=dict)
    activation_state: ActivationState | None = None
    rule_log: list[RuleUsage] = field(default_factory=list)
    location: CardLocation = field(default_factory=CardLocation)
    attached_to: str | None = None

    def clone(self) -> BoardCard:
        return deepcopy(self)

    def log_rule_usage(self, context: str, timestamp: int):
        for rule in self.rules:
            self.rule_log.append(RuleUsage(rule_id=rule.id, context=context, timestamp=timestamp))

    def to_card(self) -> Card:
        """Strip board bookkeeping, keeping the instance id."""
        template = Card()
        for name in Card.__dataclass_fields__:
            setattr(template, name, deepcopy(getattr(self, name)))
        return template


@dataclass
class RuneCard:
    """A rune. domain None means colorless."""
    id: str = ""
    name: str = ""
    domain: Domain | None = None
    energy_value: int = 1
    power_value: int = 1
    is_tapped: bool = False
    card_snapshot: Card | None = None

    def clone(self) -> RuneCard:
        return deepcopy(self)
