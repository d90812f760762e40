"""
Tests for Admission Control

Run: pytest tests/test_admission.py -v
"""

import pytest

from statarb.lifecycle import AdmissionConfig, ConflictType, Direction, admit, check_capacity, check_overlap
from statarb.lifecycle.admission import asset_exposure

from conftest import build_position


# ========================================
# FIXTURES
# ========================================

@pytest.fixture
def open_positions():
    """Long BTC / short ETH."""
    return [build_position("BTC", "ETH", Direction.LONG)]


class TestOverlap:
    """Test overlap rules against open positions."""

    def test_long_conflict(self, open_positions):
        """Going long the asset that is short elsewhere."""
        result = check_overlap("ETH", "SOL", open_positions)

        assert not result.allowed
        assert result.conflict_type == ConflictType.LONG_CONFLICT
        assert result.conflict_asset == "ETH"

    def test_short_conflict(self, open_positions):
        """Going short the asset that is long elsewhere."""
        result = check_overlap("SOL", "BTC", open_positions)

        assert result.conflict_type == ConflictType.SHORT_CONFLICT
        assert result.conflict_asset == "BTC"

    def test_active_trade_either_order(self, open_positions):
        """The same pair in reverse orientation is already open."""
        result = check_overlap("ETH", "BTC", open_positions)
        assert result.conflict_type == ConflictType.ACTIVE_TRADE

    def test_same_side_allowed(self, open_positions):
        """Long BTC again is not a conflict."""
        assert check_overlap("BTC", "SOL", open_positions).allowed

    def test_max_exposure(self):
        """An asset may appear in at most two positions."""
        positions = [
            build_position("BTC", "ETH", Direction.LONG),
            build_position("BTC", "SOL", Direction.LONG),
        ]
        result = check_overlap("BTC", "AVAX", positions)

        assert asset_exposure(positions, "BTC") == 2
        assert result.conflict_type == ConflictType.MAX_EXPOSURE
        assert result.conflict_asset == "BTC"

    def test_no_positions(self):
        assert check_overlap("BTC", "ETH", []).allowed


class TestCapacity:
    """Test position pool capacity."""

    def test_full(self):
        result = check_capacity(5, 5)
        assert not result.allowed
        assert result.conflict_type == ConflictType.CAPACITY

    def test_free(self):
        assert check_capacity(4, 5).allowed

    def test_admit_checks_capacity_last(self):
        """Overlap violations are reported before capacity."""
        positions = [
            build_position(a1, a2)
            for a1, a2 in [("BTC", "ETH"), ("SOL", "AVAX"), ("ARB", "OP"),
                           ("DOGE", "WIF"), ("LINK", "PYTH")]
        ]

        assert admit("UNI", "AAVE", positions).conflict_type == ConflictType.CAPACITY
        assert admit("ETH", "UNI", positions).conflict_type == ConflictType.LONG_CONFLICT
        assert admit("UNI", "AAVE", positions, AdmissionConfig(max_positions=6)).allowed

    def test_serializes(self, open_positions):
        data = check_overlap("ETH", "SOL", open_positions).to_dict()
        assert data['conflict_type'] == "long_conflict"
        assert data['allowed'] is False
