"""
Card lifecycle - From catalog templates to decks, runes and permanents.

Deck entries accepted by build_deck:
- "card-id"                       a catalog id or slug
- Card(...)                       a full template (cloned)
- {"card_id": ..., "quantity": 3, "overrides": {...}}   a reference
"""

from __future__ import annotations
from dataclasses import replace
from typing import Any, Callable, Iterable
import re

from .cards import (
    ActivationState,
    BoardCard,
    Card,
    CardLocation,
    CardType,
    Domain,
    RuneCard,
)
from .catalog import CardCatalog
from .errors import DataIntegrityError, ErrorCode

DeckEntry = Any  # str | Card | dict
IdFactory = Callable[[str], str]

UNTAPPED_TEXT = re.compile(r"\b(enters?|enter)\b[^.]*\b(untapped|ready)\b", re.I)

FALLBACK_BATTLEFIELD_NAME = "Training Grounds"


def resolve_card(entry: DeckEntry, catalog: CardCatalog | None) -> Card:
    """Resolve a single entry to a cloned Card template."""
    if isinstance(entry, Card):
        return entry.clone()
    if isinstance(entry, str):
        card = catalog.find(entry) if catalog else None
        if card is None:
            raise DataIntegrityError(
                f"Unknown card identifier: {entry}",
                error_code=ErrorCode.CATALOG_LOOKUP_FAILED,
                details={"identifier": entry},
            )
        return card
    if isinstance(entry, dict):
        identifier = entry.get("card_id") or entry.get("slug")
        if not identifier:
            raise DataIntegrityError("Deck reference is missing card_id/slug", details={"entry": entry})
        card = resolve_card(str(identifier), catalog)
        overrides = entry.get("overrides") or {}
        if overrides:
            known = {k: v for k, v in overrides.items() if k in Card.__dataclass_fields__}
            card = replace(card, **known)
        return card
    raise DataIntegrityError(f"Unsupported deck entry: {entry!r}")


def build_deck(
    entries: Iterable[DeckEntry],
    catalog: CardCatalog | None,
    next_instance_id: IdFactory,
) -> list[Card]:
    deck: list[Card] = []
    for entry in entries:
        quantity = 1
        if isinstance(entry, dict):
            quantity = max(1, int(entry.get("quantity", 1)))
        template = resolve_card(entry, catalog)
        for _ in range(quantity):
            card = template.clone()
            card.instance_id = next_instance_id(card.id)
            deck.append(card)
    return deck


def to_rune_card(card: Card) -> RuneCard:
    if card.type != CardType.RUNE:
        raise DataIntegrityError(
            f"{card.name or card.id} is not a rune",
            error_code=ErrorCode.INVALID_RUNE,
            details={"card_id": card.id},
        )
    power_value = sum(card.power_cost.values()) or 1
    return RuneCard(
        id=card.id,
        name=card.name,
        domain=card.domain,
        energy_value=card.energy_cost or 1,
        power_value=power_value,
        card_snapshot=card.clone(),
    )


def fallback_rune_deck(size: int) -> list[RuneCard]:
    """Even split of runes across the domains."""
    domains = list(Domain)
    runes = []
    for index in range(size):
        domain = domains[index % len(domains)]
        runes.append(
            RuneCard(
                id=f"fallback_rune_{index}",
                name=f"{domain.value.title()} Rune",
                domain=domain,
            )
        )
    return runes


def build_rune_deck(
    entries: Iterable[DeckEntry] | None,
    catalog: CardCatalog | None,
    size: int,
) -> list[RuneCard]:
    """
    Normalize a rune deck. A missing deck gets the fallback; a deck that
    is present but shorter than size is an integrity failure.
    """
    entries = list(entries or [])
    if not entries:
        return fallback_rune_deck(size)
    runes: list[RuneCard] = []
    for entry in entries:
        if isinstance(entry, RuneCard):
            runes.append(entry.clone())
            continue
        quantity = max(1, int(entry.get("quantity", 1))) if isinstance(entry, dict) else 1
        rune = to_rune_card(resolve_card(entry, catalog))
        runes.extend(rune.clone() for _ in range(quantity))
    if len(runes) < size:
        raise DataIntegrityError(
            f"Rune deck has {len(runes)} runes, {size} required",
            error_code=ErrorCode.RUNE_DECK_TOO_SMALL,
            details={"size": len(runes), "required": size},
        )
    return runes


def fallback_battlefield(player_id: str) -> Card:
    return Card(
        id=f"fallback_battlefield_{player_id}",
        name=FALLBACK_BATTLEFIELD_NAME,
        type=CardType.ENCHANTMENT,
        slug="training-grounds",
        text="A neutral proving ground.",
    )


def build_battlefield_pool(
    entries: Iterable[DeckEntry] | None,
    catalog: CardCatalog | None,
    player_id: str,
) -> list[Card]:
    pool = [resolve_card(entry, catalog) for entry in (entries or [])]
    if not pool:
        pool.append(fallback_battlefield(player_id))
    return pool


def card_enters_untapped(card: Card) -> bool:
    metadata = card.metadata or {}
    if metadata.get("enter_untapped") or metadata.get("enter_ready"):
        return True
    if card.has_keyword("untapped") or card.has_keyword("ready"):
        return True
    return bool(card.text and UNTAPPED_TEXT.search(card.text))


def create_board_card(
    card: Card,
    instance_id: str,
    timestamp: int,
    location: CardLocation | None = None,
    stateful: bool = False,
) -> BoardCard:
    """Instantiate a permanent. Non-ready permanents enter tapped."""
    fields = {name: getattr(card, name) for name in Card.__dataclass_fields__}
    board_card = BoardCard(**fields)
    board_card = board_card.clone()
    board_card.instance_id = instance_id
    board_card.current_toughness = card.toughness
    board_card.is_tapped = not card_enters_untapped(card)
    board_card.summoned = card.type == CardType.CREATURE
    board_card.location = location or CardLocation.base()
    stateful = stateful or bool(card.metadata.get("stateful"))
    board_card.activation_state = ActivationState(card_id=card.id, is_stateful=stateful, active=False)
    if stateful:
        board_card.activation_state.record(True, "enters-board", timestamp)
    return board_card


def token_card(spec: dict[str, Any] | None, source: Card) -> Card:
    """A unit template for a token created by source."""
    spec = spec or {}
    return Card(
        id=str(spec.get("id") or f"token_{source.id}"),
        name=str(spec.get("name") or "Recruit"),
        type=CardType.CREATURE,
        domain=source.domain,
        power=int(spec.get("power", 1)),
        toughness=int(spec.get("toughness", spec.get("power", 1))),
        keywords=list(spec.get("keywords", [])),
        metadata={"token": True, "source_id": source.id},
    )
