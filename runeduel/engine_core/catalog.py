"""
Card Catalog - Lookup of enriched card records and conversion to Cards.

The catalog is consulted only while decks, rune decks and battlefield
pools are built. Records arrive pre-parsed (effect profile, activation
profile, rule clauses); the only derivation done here is turning triggered
effect text into CardAbility entries, once per card, when the record
carries no explicit abilities.
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Iterable
import json
import logging
import re

from pydantic import BaseModel, Field, TypeAdapter

from .cards import (
    ActivationProfile,
    Card,
    CardAbility,
    CardRarity,
    CardType,
    Domain,
    EffectProfile,
    RuleClause,
)

logger = logging.getLogger(__name__)


TYPE_ALIASES: dict[str, CardType] = {
    "unit": CardType.CREATURE,
    "creature": CardType.CREATURE,
    "champion": CardType.CREATURE,
    "legend": CardType.CREATURE,
    "gear": CardType.ARTIFACT,
    "artifact": CardType.ARTIFACT,
    "equipment": CardType.ARTIFACT,
    "enchantment": CardType.ENCHANTMENT,
    "battlefield": CardType.ENCHANTMENT,
    "field": CardType.ENCHANTMENT,
    "rune": CardType.RUNE,
}

POWER_SYMBOLS: dict[str, Domain] = {
    "r": Domain.FURY,
    "g": Domain.CALM,
    "b": Domain.MIND,
    "o": Domain.BODY,
    "p": Domain.CHAOS,
    "y": Domain.ORDER,
}

RUNE_VARIANT_PATTERN = re.compile(r"^([A-Z]+-\d+)[A-Za-z]$")

TRIGGER_WORDS = (
    (re.compile(r"\b(play|played|enters?)\b", re.I), "play"),
    (re.compile(r"\b(dies|die|destroyed|killed)\b", re.I), "death"),
    (re.compile(r"\battack", re.I), "attack"),
    (re.compile(r"\b(takes? damage|damaged)\b", re.I), "damage"),
    (re.compile(r"\b(start of|beginning of) (your|each) turn\b", re.I), "begin"),
)

_effect_profile_adapter = TypeAdapter(EffectProfile)
_activation_adapter = TypeAdapter(ActivationProfile)
_rules_adapter = TypeAdapter(list[RuleClause])
_abilities_adapter = TypeAdapter(list[CardAbility])


class EnrichedCardRecord(BaseModel):
    """A catalog row as produced by the card data pipeline."""
    id: str
    name: str
    slug: str | None = None
    type: str = "spell"
    rarity: str | None = None
    colors: list[str] = Field(default_factory=list)
    energy_cost: int | None = None
    power_cost: list[str] | dict[str, int] = Field(default_factory=list)
    might: int | None = None
    toughness: int | None = None
    keywords: list[str] = Field(default_factory=list)
    text: str = ""
    abilities: list[dict[str, Any]] = Field(default_factory=list)
    effect_profile: dict[str, Any] | None = None
    activation: dict[str, Any] | None = None
    stateful: bool = False
    rules: list[dict[str, Any]] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


def map_card_type(raw: str | None) -> CardType:
    normalized = (raw or "").strip().lower()
    return TYPE_ALIASES.get(normalized, CardType.SPELL)


def map_rarity(raw: str | None) -> CardRarity:
    try:
        return CardRarity((raw or "").strip().lower())
    except ValueError:
        return CardRarity.COMMON


def map_domain(raw: str | None) -> Domain | None:
    """Accept a domain name or a single power symbol."""
    if not raw:
        return None
    key = raw.strip().lower()
    if key in POWER_SYMBOLS:
        return POWER_SYMBOLS[key]
    try:
        return Domain(key)
    except ValueError:
        return None


def map_power_cost(raw: list[str] | dict[str, int] | None) -> dict[str, int]:
    """Symbols like ["r", "r", "calm"] or a {domain: amount} map."""
    cost: dict[str, int] = {}
    if not raw:
        return cost
    if isinstance(raw, dict):
        items: Iterable[tuple[str, int]] = raw.items()
    else:
        items = ((symbol, 1) for symbol in raw)
    for symbol, amount in items:
        domain = map_domain(str(symbol).strip("[]"))
        if domain is None or amount <= 0:
            continue
        cost[domain.value] = cost.get(domain.value, 0) + amount
    return cost


def derive_abilities(record: EnrichedCardRecord, profile: EffectProfile | None) -> list[CardAbility]:
    """Turn "When ..." trigger text into abilities carrying the effect operations."""
    if record.abilities:
        return _abilities_adapter.validate_python(record.abilities)
    activation = record.activation or {}
    if activation.get("timing") != "triggered" or profile is None or not profile.operations:
        return []
    abilities = []
    for trigger_text in activation.get("triggers") or [record.text]:
        trigger_type = None
        for pattern, label in TRIGGER_WORDS:
            if pattern.search(trigger_text):
                trigger_type = label
                break
        abilities.append(
            CardAbility(
                name=trigger_text[:60],
                description=trigger_text,
                trigger_type=trigger_type,
                operations=[op for op in profile.operations],
            )
        )
    return abilities


def record_to_card(record: EnrichedCardRecord) -> Card:
    """Build a Card template from a catalog record."""
    card_type = map_card_type(record.type)
    domain = None
    for color in record.colors:
        domain = map_domain(color)
        if domain is not None:
            break
    profile = _effect_profile_adapter.validate_python(record.effect_profile) if record.effect_profile else None
    activation = None
    if record.activation:
        activation = _activation_adapter.validate_python(
            {k: v for k, v in record.activation.items() if k in ActivationProfile.__dataclass_fields__}
        )
    metadata = dict(record.metadata)
    if record.stateful:
        metadata["stateful"] = True
    return Card(
        id=record.id,
        name=record.name,
        type=card_type,
        rarity=map_rarity(record.rarity),
        domain=domain,
        slug=record.slug,
        energy_cost=record.energy_cost,
        power_cost=map_power_cost(record.power_cost),
        power=record.might,
        toughness=record.toughness if record.toughness is not None else record.might,
        keywords=list(record.keywords),
        abilities=derive_abilities(record, profile),
        rules=_rules_adapter.validate_python(record.rules),
        effect_profile=profile,
        activation_profile=activation,
        text=record.text,
        metadata=metadata,
    )


class CardCatalog:
    """
    In-memory catalog keyed by id and slug.

    Converted Cards are cached under the lowercased id and slug; every
    lookup returns a fresh clone so callers can never mutate the cache.
    """

    def __init__(self, records: Iterable[EnrichedCardRecord | dict[str, Any]] = ()):
        self._records: dict[str, EnrichedCardRecord] = {}
        self._slugs: dict[str, str] = {}
        self._cache: dict[str, Card] = {}
        for record in records:
            self.add(record)

    @classmethod
    def from_json(cls, path: str | Path) -> CardCatalog:
        """Load a JSON list of records (or {"cards": [...]})."""
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        rows = payload.get("cards", []) if isinstance(payload, dict) else payload
        catalog = cls(rows)
        logger.info("Loaded %d cards from %s", len(catalog), path)
        return catalog

    def __len__(self) -> int:
        return len(self._records)

    def add(self, record: EnrichedCardRecord | dict[str, Any]):
        if not isinstance(record, EnrichedCardRecord):
            record = EnrichedCardRecord.model_validate(record)
        key = record.id.lower()
        self._records[key] = record
        if record.slug:
            self._slugs[record.slug.lower()] = key
        self._cache.pop(key, None)

    def find_record(self, identifier: str) -> EnrichedCardRecord | None:
        key = identifier.lower()
        if key in self._records:
            return self._records[key]
        if key in self._slugs:
            return self._records[self._slugs[key]]
        return None

    def find_by_id(self, card_id: str) -> Card | None:
        key = card_id.lower()
        if key not in self._records:
            return None
        return self._card_for(key)

    def find_by_slug(self, slug: str) -> Card | None:
        key = self._slugs.get(slug.lower())
        if key is None:
            return None
        return self._card_for(key)

    def find(self, identifier: str) -> Card | None:
        """Id, then slug, then the base id of a rune variant ("ABC-12a")."""
        card = self.find_by_id(identifier) or self.find_by_slug(identifier)
        if card is None:
            match = RUNE_VARIANT_PATTERN.match(identifier)
            if match:
                card = self.find_by_id(match.group(1))
        return card

    def activation_template(self, card_id: str) -> bool:
        """Whether a card's static ability is stateful."""
        record = self.find_record(card_id)
        if record is None:
            return False
        return record.stateful or bool((record.activation or {}).get("stateful"))

    def _card_for(self, key: str) -> Card:
        card = self._cache.get(key)
        if card is None:
            card = record_to_card(self._records[key])
            self._cache[key] = card
            record = self._records[key]
            if record.slug:
                self._cache[record.slug.lower()] = card
        return card.clone()
