"""Tests for the grid packer, card ids and deck assembly."""

import json
from dataclasses import asdict

import pytest

from deck_packing import (
    CardRequest,
    ConfigurationError,
    EmptyDeckError,
    PackingConfig,
    SheetSlot,
    UnresolvedAssetError,
    build_deck,
    composite_id,
    pack_grid,
    split_composite_id,
    unique_assets_in_order,
)


def _requests(*pairs):
    return [CardRequest(asset_id=a, count=c, position=i) for i, (a, c) in enumerate(pairs)]


def _registry(reqs):
    return {r.asset_id for r in reqs}


def _build(pairs, capacity=69, **kwargs):
    reqs = _requests(*pairs)
    config = PackingConfig(back_face_asset_id="back.png", capacity=capacity, **kwargs)
    return build_deck(reqs, _registry(reqs), config)


class TestScenarios:
    def test_ant_deck_fits_one_sheet(self) -> None:
        deck = _build([("AntQueen", 2), ("LMR", 5), ("DerangedResearcher", 5)], capacity=69)

        assert len(deck.sheets) == 1
        assert deck.sheets[0].assets_in_order == ("AntQueen", "LMR", "DerangedResearcher")
        assert len(deck.cards) == 12
        ids = {c.asset_id: c.composite_id for c in deck.cards}
        assert ids == {"AntQueen": 0, "LMR": 1, "DerangedResearcher": 2}
        assert deck.back_face == "back.png"

    def test_wraps_to_new_sheet_when_full(self) -> None:
        deck = _build([("A", 1), ("B", 1), ("C", 1)], capacity=2)

        assert [s.assets_in_order for s in deck.sheets] == [("A", "B"), ("C",)]
        assert [s.sheet_index for s in deck.sheets] == [0, 1]
        assert [c.composite_id for c in deck.cards] == [0, 1, 2]
        assert deck.cards[2].sheet_slot == SheetSlot(sheet_index=1, slot_index=0)

    def test_empty_deck_allowed(self) -> None:
        deck = _build([], capacity=10)

        assert deck.sheets == ()
        assert deck.cards == ()
        assert deck.is_empty

    def test_empty_deck_rejected_when_required(self) -> None:
        with pytest.raises(EmptyDeckError):
            _build([], capacity=10, fail_on_empty=True)

    def test_duplicates_share_one_slot(self) -> None:
        deck = _build([("X", 3)], capacity=5)

        assert len(deck.sheets) == 1
        assert deck.sheets[0].assets_in_order == ("X",)
        assert [c.composite_id for c in deck.cards] == [0, 0, 0]
        assert [c.instance_index for c in deck.cards] == [0, 1, 2]

    def test_missing_asset_fails_before_packing(self) -> None:
        reqs = _requests(("A", 1), ("Missing", 2))
        config = PackingConfig(back_face_asset_id="back.png", capacity=10)

        with pytest.raises(UnresolvedAssetError) as exc:
            build_deck(reqs, {"A"}, config)

        assert exc.value.asset_id == "Missing"
        assert exc.value.position == 1
        assert "Missing" in str(exc.value)


class TestConfiguration:
    @pytest.mark.parametrize("capacity", [0, -3])
    def test_non_positive_capacity(self, capacity: int) -> None:
        with pytest.raises(ConfigurationError) as exc:
            _build([("A", 1)], capacity=capacity)
        assert exc.value.capacity == capacity

    def test_capacity_checked_before_empty_policy(self) -> None:
        with pytest.raises(ConfigurationError):
            _build([], capacity=0, fail_on_empty=True)

    def test_pack_grid_rejects_zero_capacity(self) -> None:
        with pytest.raises(ConfigurationError):
            pack_grid(["A"], 0)


class TestProperties:
    PAIRS = [("A", 2), ("B", 0), ("C", 4), ("A", 1), ("D", 3), ("E", 1), ("C", 2), ("F", 1)]

    def test_deterministic_output(self) -> None:
        first = _build(self.PAIRS, capacity=3)
        second = _build(self.PAIRS, capacity=3)

        assert first == second
        assert json.dumps(asdict(first), sort_keys=True) == json.dumps(asdict(second), sort_keys=True)

    def test_slots_unique_and_sheets_full(self) -> None:
        deck = _build(self.PAIRS, capacity=4)

        for sheet in deck.sheets[:-1]:
            assert len(sheet.assets_in_order) == 4
        all_assets = [a for s in deck.sheets for a in s.assets_in_order]
        assert len(all_assets) == len(set(all_assets))

    def test_order_preserved(self) -> None:
        deck = _build(self.PAIRS, capacity=4)

        expected = [a for a, c in self.PAIRS for _ in range(c)]
        assert [c.asset_id for c in deck.cards] == expected

    def test_count_fidelity(self) -> None:
        deck = _build(self.PAIRS, capacity=4)

        for asset in {a for a, _ in self.PAIRS}:
            want = sum(c for a, c in self.PAIRS if a == asset)
            assert sum(1 for card in deck.cards if card.asset_id == asset) == want

    def test_composite_id_splits_back(self) -> None:
        deck = _build(self.PAIRS, capacity=4)

        for card in deck.cards:
            assert split_composite_id(card.composite_id, deck.capacity) == card.sheet_slot
            assert composite_id(card.sheet_slot, deck.capacity) == card.composite_id

    def test_every_card_asset_on_exactly_one_sheet(self) -> None:
        deck = _build(self.PAIRS, capacity=4)

        for card in deck.cards:
            sheet = deck.sheets[card.sheet_slot.sheet_index]
            assert sheet.assets_in_order[card.sheet_slot.slot_index] == card.asset_id
            others = [s for s in deck.sheets if s is not sheet]
            assert all(card.asset_id not in s.assets_in_order for s in others)


class TestZeroCount:
    def test_zero_count_reserves_slot_by_default(self) -> None:
        deck = _build([("A", 1), ("B", 0), ("C", 1)], capacity=10)

        assert deck.sheets[0].assets_in_order == ("A", "B", "C")
        assert [c.composite_id for c in deck.cards] == [0, 2]

    def test_zero_count_dropped_when_configured(self) -> None:
        deck = _build([("A", 1), ("B", 0), ("C", 1)], capacity=10, reserve_zero_count=False)

        assert deck.sheets[0].assets_in_order == ("A", "C")
        assert [c.composite_id for c in deck.cards] == [0, 1]

    def test_dropped_zero_count_packs_at_later_occurrence(self) -> None:
        assert unique_assets_in_order(_requests(("B", 0), ("A", 1), ("B", 2)), reserve_zero_count=False) == ["A", "B"]
        assert unique_assets_in_order(_requests(("B", 0), ("A", 1), ("B", 2))) == ["B", "A"]

    def test_all_zero_counts_is_empty(self) -> None:
        with pytest.raises(EmptyDeckError):
            _build([("A", 0)], capacity=10, fail_on_empty=True)


class TestCardRequest:
    def test_negative_count_rejected(self) -> None:
        with pytest.raises(ValueError):
            CardRequest(asset_id="A", count=-1)

    def test_empty_asset_rejected(self) -> None:
        with pytest.raises(ValueError):
            CardRequest(asset_id="", count=1)

    def test_requests_ordered_by_position(self) -> None:
        reqs = [CardRequest("B", 1, position=1), CardRequest("A", 1, position=0)]
        deck = build_deck(reqs, {"A", "B"}, PackingConfig(back_face_asset_id="b", capacity=5))

        assert [c.asset_id for c in deck.cards] == ["A", "B"]
