from entity_extractor import extract
from order_models import Span
from product_resolver import ProductResolver
from segment_extractor import name_for_entity, bare_mentions
from session_state import ShieldArena


def _named(text, catalog=()):
    entities = extract(text)
    shield = ShieldArena()
    return name_for_entity(entities[0], entities, text, shield, catalog), shield


def test_name_before_entity():
    named, shield = _named("chini 2 kg")
    assert named.spoken_name == "chini"
    assert named.span == Span(0, 10)
    assert shield.covers(Span(0, 10))


def test_name_after_entity_skips_stop_words():
    named, _ = _named("20 rupees of sugar")
    assert named.spoken_name == "sugar"
    assert named.entity.amount == 20


def test_name_window_stops_at_separator():
    named, _ = _named("rice aur 2 kg sugar")
    assert named.spoken_name == "sugar"


def test_multi_word_name():
    named, _ = _named("mustard oil 2 litre")
    assert named.spoken_name == "mustard oil"


def test_nearest_catalog_name_when_windows_are_empty(products):
    text = "sugar and 2 kg"
    entities = extract(text)
    shield = ShieldArena()
    named = name_for_entity(entities[0], entities, text, shield, products)
    assert named.spoken_name == "sugar"


def test_bare_mentions_split_on_separators():
    commands = bare_mentions("salt, sugar and rice", ShieldArena())
    assert [c.spoken_name for c in commands] == ["salt", "sugar", "rice"]
    assert all(c.is_bare for c in commands)


def test_bare_mentions_skip_shielded_text():
    text = "chini 2 kg aur namak"
    shield = ShieldArena()
    shield.shield(Span(0, 10))
    commands = bare_mentions(text, shield)
    assert [c.spoken_name for c in commands] == ["namak"]
    assert shield.covers(commands[0].span)


def test_short_single_segment_is_one_mention(catalog):
    commands = bare_mentions("namak", ShieldArena(), matcher=ProductResolver(catalog.list_products()))
    assert [c.spoken_name for c in commands] == ["namak"]


def test_long_segment_without_separators_is_scanned(catalog):
    resolver = ProductResolver(catalog.list_products())
    commands = bare_mentions("sugar salt rice please", ShieldArena(), matcher=resolver)
    assert [c.spoken_name for c in commands] == ["sugar", "salt", "rice"]


def test_two_word_product_found_in_long_segment(catalog):
    resolver = ProductResolver(catalog.list_products())
    commands = bare_mentions("mustard oil sugar please", ShieldArena(), matcher=resolver)
    assert [c.spoken_name for c in commands] == ["mustard oil", "sugar"]


def test_nothing_left_to_read():
    shield = ShieldArena()
    shield.shield(Span(0, 10))
    assert bare_mentions("chini 2 kg", shield) == []
