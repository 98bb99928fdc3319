import pytest

from product_resolver import (
    ProductResolver, fuzzy_score, match_exact, match_prefix, match_word_overlap,
)


@pytest.fixture
def resolver(catalog):
    return ProductResolver(catalog.list_products())


def test_vocabulary_maps_colloquial_words(resolver):
    assert resolver("chini").id == "p-sugar"
    assert resolver("namak").id == "p-salt"
    assert resolver("chawal").id == "p-rice"


def test_multi_word_vocabulary(resolver):
    assert resolver("sarson tel").id == "p-oil"


def test_exact_is_case_insensitive(resolver):
    assert resolver("RICE").id == "p-rice"


def test_prefix_prefers_longest_name(products):
    assert match_prefix("sugar loose", products).id == "p-sugar"
    assert match_prefix("sugarcane", products) is None


def test_word_overlap(products):
    assert match_word_overlap("oil", products).id == "p-oil"


def test_fuzzy_match_above_threshold(resolver):
    assert resolver("sugr").id == "p-sugar"


def test_fuzzy_score_bonus_for_contained_text():
    assert fuzzy_score("mustard", "mustard oil") > fuzzy_score("mustar", "mustard oil")


def test_phonetic_correction_is_a_last_resort(resolver):
    # "nimak" is only reachable through the mis-hearing table
    assert resolver("nimak").id == "p-salt"


def test_unknown_and_empty(resolver):
    assert resolver("xyzzy") is None
    assert resolver("") is None
    assert resolver(None) is None


def test_empty_catalog():
    assert ProductResolver([]).resolve("sugar") is None


def test_custom_strategy_list(products):
    exact_only = ProductResolver(products, strategies=[("exact", match_exact)])
    assert exact_only("chini") is None
    assert exact_only("salt").id == "p-salt"


def test_deterministic_over_a_snapshot(resolver):
    assert resolver("chini") == resolver("chini")
