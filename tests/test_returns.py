"""Tests for creator_checkout.returns."""
from __future__ import annotations

import sys
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from creator_checkout.returns import parse_return


class TestParseReturn:
    """Tests for parse_return."""

    def test_success_with_reference(self):
        """Should read the success flag and keep references."""
        params = parse_return("https://app.test/alice?success=true&session_id=cs_123")

        assert params.success is True
        assert params.cancelled is False
        assert params.references == {"session_id": "cs_123"}
        assert params.is_return

    def test_plain_visit(self):
        """Should report no return for a plain page visit."""
        params = parse_return("https://app.test/alice")

        assert not params.is_return
        assert params.references == {}

    def test_none(self):
        assert not parse_return(None).is_return

    @pytest.mark.parametrize(
        "query",
        ["canceled=true", "cancelled=true", "success=false"],
    )
    def test_cancellation_signals(self, query):
        """Should treat every cancellation spelling alike."""
        params = parse_return(f"https://app.test/alice?{query}")

        assert params.cancelled is True
        assert params.success is False

    def test_cancel_wins_over_success(self):
        """Should not report success alongside a cancellation."""
        params = parse_return({"success": "true", "canceled": "true"})

        assert params.cancelled is True
        assert params.success is False

    def test_blank_references_dropped(self):
        """Should drop empty and whitespace-only parameters."""
        params = parse_return({"success": "true", "reference": "  ", "trxref": " ps_1 "})
        assert params.references == {"trxref": "ps_1"}

    def test_accepts_httpx_url(self):
        url = httpx.URL("https://app.test/alice", params={"success": "true", "reference": "ps_1"})
        params = parse_return(url)

        assert params.success
        assert params.references["reference"] == "ps_1"

    def test_flag_case_insensitive(self):
        assert parse_return({"success": "TRUE"}).success is True
