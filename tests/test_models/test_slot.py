"""Tests for slot kinds and the active-slot pointer"""

import pytest
from pydantic import ValidationError

from models.slot import ActiveSlot, SlotKind, normalize_slot_kind


class TestNormalizeSlotKind:
    """Test free-text slot kind normalization"""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("OPENING", SlotKind.OPENING),
            ("Innlegg", SlotKind.OPENING),
            ("replikk", SlotKind.REBUTTAL),
            ("Rebuttal", SlotKind.REBUTTAL),
            ("svar-replikk", SlotKind.REPLY_TO_REBUTTAL),
            ("SVAR_REPLIKK", SlotKind.REPLY_TO_REBUTTAL),
            ("svar på replikk", SlotKind.REPLY_TO_REBUTTAL),
            ("reply to rebuttal", SlotKind.REPLY_TO_REBUTTAL),
        ],
    )
    def test_known_labels(self, text, expected):
        """Test Norwegian and English labels map to the right kind"""
        assert normalize_slot_kind(text) == expected

    def test_unknown_and_empty_default_to_opening(self):
        """Test unrecognized text is treated as an opening statement"""
        assert normalize_slot_kind("") == SlotKind.OPENING
        assert normalize_slot_kind(None) == SlotKind.OPENING
        assert normalize_slot_kind("closing remarks") == SlotKind.OPENING

    def test_enum_passes_through(self):
        """Test SlotKind values are returned unchanged"""
        assert normalize_slot_kind(SlotKind.REBUTTAL) is SlotKind.REBUTTAL


class TestActiveSlot:
    """Test the active slot model"""

    def test_rebuttal_index_bounds(self):
        """Test only rebuttal slots 0 and 1 exist"""
        ActiveSlot(kind=SlotKind.REBUTTAL, index=1)
        with pytest.raises(ValidationError):
            ActiveSlot(kind=SlotKind.REBUTTAL, index=2)

    def test_labels(self):
        """Test display labels"""
        assert ActiveSlot().label() == "Opening statement"
        assert ActiveSlot(kind=SlotKind.REBUTTAL, index=1).label() == "Rebuttal #2"
        assert ActiveSlot(kind=SlotKind.REPLY_TO_REBUTTAL).label() == "Reply to rebuttal"
