"""
deck_packing.py

Deck list -> packed deck object, the part that has to be right:
1) Collect the distinct card images in first-seen order
2) Pack them onto fixed-capacity sheets (sheet = k div capacity, slot = k mod capacity)
3) Expand every request by its count, each copy pointing at its image's sheet slot
4) Assemble the sheets, the card copies (deck-list order) and the shared back face

Everything here is pure: no file access, no image decoding. Parsing the deck list,
finding image files and writing the saved object live in deck_assets.py / tts_save.py.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Container, Dict, Iterable, List, Sequence, Tuple

logger = logging.getLogger(__name__)

# Tabletop Simulator sheets are 10x7; the last slot is reserved for the hidden card.
DEFAULT_CAPACITY = 69


# ----------------------------
# Errors
# ----------------------------

class DeckBuildError(Exception):
    """Base class for everything build_deck can refuse to do."""


class ConfigurationError(DeckBuildError):
    def __init__(self, message: str, capacity: object = None):
        super().__init__(message)
        self.capacity = capacity


class UnresolvedAssetError(DeckBuildError):
    def __init__(self, asset_id: str, position: int):
        super().__init__(f"No image found for '{asset_id}' (deck list entry {position + 1})")
        self.asset_id = asset_id
        self.position = position


class EmptyDeckError(DeckBuildError):
    pass


# ----------------------------
# Data model
# ----------------------------

@dataclass(frozen=True)
class CardRequest:
    asset_id: str
    count: int
    position: int = 0

    def __post_init__(self) -> None:
        if not self.asset_id:
            raise ValueError(f"Card request at position {self.position} has an empty asset id.")
        if self.count < 0:
            raise ValueError(f"Card request '{self.asset_id}' has a negative count: {self.count}")


@dataclass(frozen=True)
class SheetSlot:
    sheet_index: int
    slot_index: int


@dataclass(frozen=True)
class GridSheet:
    sheet_index: int
    assets_in_order: Tuple[str, ...]


@dataclass(frozen=True)
class CardInstance:
    instance_index: int
    asset_id: str
    sheet_slot: SheetSlot
    composite_id: int


@dataclass(frozen=True)
class DeckObject:
    sheets: Tuple[GridSheet, ...]
    cards: Tuple[CardInstance, ...]
    back_face: str
    capacity: int

    @property
    def is_empty(self) -> bool:
        return not self.cards


@dataclass(frozen=True)
class PackingConfig:
    back_face_asset_id: str
    capacity: int = DEFAULT_CAPACITY
    fail_on_empty: bool = False
    # When False, zero-count requests are dropped before packing and never reserve a slot.
    reserve_zero_count: bool = True

    def validate(self) -> None:
        if isinstance(self.capacity, bool) or not isinstance(self.capacity, int) or self.capacity <= 0:
            raise ConfigurationError(
                f"Sheet capacity must be a positive integer, got {self.capacity!r}.",
                capacity=self.capacity,
            )


# ----------------------------
# Grid packing
# ----------------------------

def unique_assets_in_order(
    requests: Iterable[CardRequest],
    reserve_zero_count: bool = True,
) -> List[str]:
    seen = set()
    out: List[str] = []
    for req in requests:
        if req.count == 0 and not reserve_zero_count:
            continue
        if req.asset_id in seen:
            continue
        seen.add(req.asset_id)
        out.append(req.asset_id)
    return out


def pack_grid(asset_ids: Sequence[str], capacity: int) -> Dict[str, SheetSlot]:
    """
    Assign the k-th distinct asset to sheet k // capacity, slot k % capacity.

    Every sheet but the last ends up exactly full. The returned dict keeps
    insertion (= discovery) order.
    """
    if capacity <= 0:
        raise ConfigurationError(f"Sheet capacity must be positive, got {capacity}.", capacity=capacity)

    slots: Dict[str, SheetSlot] = {}
    for asset_id in asset_ids:
        if asset_id in slots:
            raise ValueError(f"Asset '{asset_id}' listed twice for packing.")
        n = len(slots)
        slots[asset_id] = SheetSlot(sheet_index=n // capacity, slot_index=n % capacity)
    return slots


def composite_id(slot: SheetSlot, capacity: int) -> int:
    return slot.sheet_index * capacity + slot.slot_index


def split_composite_id(cid: int, capacity: int) -> SheetSlot:
    if capacity <= 0:
        raise ConfigurationError(f"Sheet capacity must be positive, got {capacity}.", capacity=capacity)
    if cid < 0:
        raise ValueError(f"Composite id must be non-negative, got {cid}.")
    return SheetSlot(sheet_index=cid // capacity, slot_index=cid % capacity)


def build_sheets(slots: Dict[str, SheetSlot]) -> List[GridSheet]:
    by_sheet: List[List[Tuple[int, str]]] = []
    for asset_id, slot in slots.items():
        while len(by_sheet) <= slot.sheet_index:
            by_sheet.append([])
        by_sheet[slot.sheet_index].append((slot.slot_index, asset_id))

    return [
        GridSheet(sheet_index=i, assets_in_order=tuple(a for _, a in sorted(entries)))
        for i, entries in enumerate(by_sheet)
    ]


# ----------------------------
# Card identities
# ----------------------------

def assign_card_identities(
    requests: Sequence[CardRequest],
    slots: Dict[str, SheetSlot],
    capacity: int,
) -> List[CardInstance]:
    cards: List[CardInstance] = []
    for req in requests:
        slot = slots[req.asset_id] if req.count else None
        for _ in range(req.count):
            cards.append(
                CardInstance(
                    instance_index=len(cards),
                    asset_id=req.asset_id,
                    sheet_slot=slot,
                    composite_id=composite_id(slot, capacity),
                )
            )
    return cards


# ----------------------------
# Deck assembly
# ----------------------------

def check_resolved(requests: Iterable[CardRequest], registry: Container[str]) -> None:
    for req in requests:
        if req.asset_id not in registry:
            raise UnresolvedAssetError(req.asset_id, req.position)


def build_deck(
    requests: Sequence[CardRequest],
    registry: Container[str],
    config: PackingConfig,
) -> DeckObject:
    config.validate()

    requests = sorted(requests, key=lambda r: r.position)
    total = sum(r.count for r in requests)
    if total == 0 and config.fail_on_empty:
        raise EmptyDeckError("Deck list contains no cards.")

    check_resolved(requests, registry)

    order = unique_assets_in_order(requests, reserve_zero_count=config.reserve_zero_count)
    slots = pack_grid(order, config.capacity)
    cards = assign_card_identities(requests, slots, config.capacity)
    sheets = build_sheets(slots)

    logger.info(
        "Packed %d cards (%d distinct images) onto %d sheet(s) of %d",
        len(cards), len(slots), len(sheets), config.capacity,
    )
    return DeckObject(
        sheets=tuple(sheets),
        cards=tuple(cards),
        back_face=config.back_face_asset_id,
        capacity=config.capacity,
    )
