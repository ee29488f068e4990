"""Unit tests for eventboard.domain.audience_classifier."""

from __future__ import annotations

import pytest

from eventboard.calendar.models import AudienceGroupName
from eventboard.domain.audience_classifier import (
    ALL_AGES,
    DEFAULT_RULES,
    UNKNOWN,
    AudienceClassifier,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def classifier() -> AudienceClassifier:
    return AudienceClassifier()


class TestClassify:
    @pytest.mark.parametrize(
        ("title", "description", "expected"),
        [
            ("Woodshop Open Hours - Adults (19 and up)", "", "adults"),
            ("Adult only welding night", "", "adults"),
            ("Adults (19+) Laser Lab", "", "adults"),
            ("Kids Electronics", "Elementary kids (6-11 years)", "school-age"),
            ("Lego Robotics", "Ages 6-11", "school-age"),
            ("Summer camp for elementary students", "", "school-age"),
            ("Teen Robotics League", "", "teens"),
            ("Middle School Maker Club", "", "teens"),
            ("Game design", "Teens (13-17)", "teens"),
            ("Family Friendly Craft Night", "", "all-ages"),
            ("Intergenerational knitting circle", "", "all-ages"),
            ("Open house", "Everyone welcome!", "all-ages"),
            ("Board meeting", "Quarterly review", "unknown"),
        ],
    )
    def test_classify_when_text_matches_rule_then_expected_group(
        self, classifier: AudienceClassifier, title: str, description: str, expected: str
    ) -> None:
        """Test classification picks the matching audience group."""
        assert classifier.classify(title, description).group == expected

    def test_classify_when_numeric_range_and_broad_phrase_then_range_wins(
        self, classifier: AudienceClassifier
    ) -> None:
        """A teen age range outranks "family friendly" in the same listing."""
        group = classifier.classify("Teen Robotics (13-17)", "Family friendly open house, all ages welcome to watch")
        assert group.group == AudienceGroupName.TEENS.value

    def test_classify_when_rules_reordered_then_ambiguous_text_changes_group(self) -> None:
        """Test rule order decides ambiguous text."""
        broad_first = AudienceClassifier(rules=(DEFAULT_RULES[3], *DEFAULT_RULES[:3]))
        group = broad_first.classify("Teen Robotics (13-17)", "Family friendly open house")
        assert group == ALL_AGES

    @pytest.mark.parametrize("value", ["", None, 42, ["list"], "   "])
    def test_classify_when_any_input_then_exactly_one_group(
        self, classifier: AudienceClassifier, value: object
    ) -> None:
        """Test every input gets exactly one group."""
        group = classifier.classify(value, value)
        assert group.group in {g.value for g in AudienceGroupName}

    def test_classify_when_no_match_then_unknown_metadata(self, classifier: AudienceClassifier) -> None:
        """Test unmatched text maps to the unknown group."""
        group = classifier.classify("", "")
        assert group == UNKNOWN
        assert group.label == "All Welcome"
        assert group.color == "#6b7280"

    def test_classify_when_mixed_case_then_matches(self, classifier: AudienceClassifier) -> None:
        """Test matching ignores case."""
        assert classifier.classify("FAMILY FRIENDLY bingo").group == "all-ages"


class TestGroupMetadata:
    def test_all_groups_when_called_then_rule_order_with_unknown_last(self, classifier: AudienceClassifier) -> None:
        """Test groups are listed in rule order with unknown last."""
        names = [g.group for g in classifier.all_groups()]
        assert names == ["adults", "school-age", "teens", "all-ages", "unknown"]

    def test_get_group_when_known_then_metadata(self, classifier: AudienceClassifier) -> None:
        """Test lookup returns group metadata."""
        teens = classifier.get_group("teens")
        assert teens is not None
        assert teens.label == "Teens (12-18)"
        assert teens.glyph

    def test_get_group_when_unknown_name_then_none(self, classifier: AudienceClassifier) -> None:
        """Test lookup of an unknown name returns None."""
        assert classifier.get_group("seniors") is None

    def test_breakdown_when_events_then_counts_per_group(self, classifier: AudienceClassifier, day_events) -> None:
        """Test breakdown counts events per group."""
        assert classifier.breakdown(day_events) == {"adults": 1, "school-age": 1}
