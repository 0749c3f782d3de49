"""
Unit tests for the deterministic answer matcher.

Run: pytest tests/test_matcher.py -v
"""
import math

import pytest

from comprehension.matcher import key_terms, matches, normalize_answer, required_matches


class TestNormalizeAnswer:
    def test_lowercases_and_trims(self):
        assert normalize_answer("  Waggle Dance  ") == "waggle dance"

    def test_strips_punctuation_set(self):
        assert normalize_answer("queen, bee! really? yes; no: ok.") == "queen bee really yes no ok"

    def test_keeps_other_characters(self):
        assert normalize_answer("bee's-knees") == "bee's-knees"


class TestKeyTerms:
    def test_drops_tokens_of_two_chars_or_less(self):
        assert key_terms("to lay eggs") == ["lay", "eggs"]

    def test_threshold_is_configurable(self):
        assert key_terms("to lay eggs", short_token_max=3) == ["eggs"]

    def test_required_matches(self):
        assert required_matches(1) == 1
        assert required_matches(2) == 1
        assert required_matches(3) == 2
        assert required_matches(5) == 3
        assert required_matches(6) == 4
        assert required_matches(10) == 6


class TestExactMatches:
    @pytest.mark.parametrize("answer", ["waggle dance", "queen bee", "drones", "2000 eggs"])
    def test_reflexive(self, answer):
        assert matches(answer, answer)

    def test_case_insensitive(self):
        assert matches("Waggle Dance", "waggle dance")
        assert matches("QUEEN BEE", "queen bee")
        assert matches("DrOnEs", "drones")

    def test_surrounding_whitespace(self):
        assert matches("  waggle dance  ", "waggle dance")

    def test_ignores_punctuation(self):
        assert matches("waggle dance.", "waggle dance")
        assert matches("queen bee!", "queen bee")
        assert matches("drones,", "drones")

    @pytest.mark.parametrize("answer", ["to lay eggs", "royal jelly", "pushed out of the hive"])
    def test_upper_case_with_full_stop(self, answer):
        assert matches(answer.upper() + ".", answer)


class TestPartialMatches:
    def test_key_terms_inside_longer_answer(self):
        assert matches("the waggle dance", "waggle dance")
        assert matches("its called the waggle dance", "waggle dance")
        assert matches("female worker bees", "worker bees")
        assert matches("they are called drones", "drones")

    def test_one_term_enough_for_two_term_answers(self):
        assert matches("dance", "waggle dance")
        assert matches("bee", "queen bee")

    def test_plural_term_not_found_in_singular(self):
        assert not matches("drone", "drones")

    def test_lay_eggs(self):
        assert matches("lay eggs", "to lay eggs")
        assert matches("laying eggs", "eggs")

    def test_long_answer(self):
        answer = "Bees perform a waggle dance to communicate the location of flowers to other bees in the hive"
        assert matches(answer, "waggle dance")


class TestKeyTermBoundary:
    expected = "worker bees collect nectar pollen from flowers"  # 7 key terms

    def test_term_count(self):
        assert len(key_terms(self.expected)) == 7

    def test_ceil_of_sixty_percent_matches(self):
        needed = math.ceil(0.6 * 7)
        answer = " ".join(key_terms(self.expected)[:needed])
        assert matches(answer, self.expected)

    def test_one_fewer_does_not_match(self):
        needed = math.ceil(0.6 * 7)
        answer = " ".join(key_terms(self.expected)[: needed - 1])
        assert not matches(answer, self.expected)

    def test_three_terms_need_two(self):
        assert matches("nectar pollen", "nectar pollen flowers")
        assert not matches("nectar", "nectar pollen flowers")


class TestIncorrectAnswers:
    def test_wrong_answers(self):
        assert not matches("butterfly", "waggle dance")
        assert not matches("worker", "queen bee")
        assert not matches("honey", "drones")
        assert not matches("something", "to lay eggs")

    @pytest.mark.parametrize("submitted", ["", "   ", "\t\n"])
    def test_empty_never_matches(self, submitted):
        assert not matches(submitted, "waggle dance")
        assert not matches(submitted, "")

    def test_punctuation_only_never_matches(self):
        assert not matches("?!", "waggle dance")


class TestShortExpectedAnswers:
    def test_falls_back_to_containment(self):
        # "ox" has no key terms, so containment decides
        assert matches("an ox", "ox")
        assert not matches("a cow", "ox")

    def test_stricter_threshold(self):
        assert matches("they lay eggs", "to lay eggs", short_token_max=3)
        assert not matches("they lay", "to lay eggs", short_token_max=3)
