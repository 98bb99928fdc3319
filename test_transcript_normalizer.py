from transcript_normalizer import normalize, fold_compound_quantities


def test_lowercases_and_collapses_whitespace():
    assert normalize("  Sugar   2 KG ").text == "sugar 2 kg"


def test_raw_text_is_kept():
    t = normalize("Sugar 2 KG")
    assert t.raw == "Sugar 2 KG"


def test_mixed_compound_is_folded_to_major_unit():
    assert normalize("sugar 500g 200g").text == "sugar 0.7kg"


def test_kg_and_grams_fold():
    assert normalize("1 kg 200 g chini").text == "1.2kg chini"


def test_volume_compound_folds():
    assert fold_compound_quantities("oil 1 l 500 ml") == "oil 1.5l"


def test_different_categories_are_not_folded():
    assert fold_compound_quantities("2 kg 3 l") == "2 kg 3 l"


def test_mismatched_pair_does_not_block_the_next_compound():
    assert normalize("2 kg 1 l 500 ml").text == "2 kg 1.5l"
    assert fold_compound_quantities("oil 1 l 2 kg 300 g") == "oil 1 l 2.3kg"


def test_number_words_before_units_become_digits():
    assert normalize("do kilo chini aur namak").text == "2 kilo chini aur namak"
    assert normalize("aadha kilo chawal").text == "0.5 kilo chawal"
    assert normalize("bees rupees namak").text == "20 rupees namak"


def test_number_word_without_unit_is_left_alone():
    # "chini do" means "give sugar", not "sugar 2"
    assert normalize("chini do").text == "chini do"


def test_rupee_symbol_is_spaced_from_previous_word():
    assert normalize("namak₹20").text == "namak ₹20"


def test_empty_input():
    assert normalize("").text == ""
    assert normalize("   ").text == ""
    assert normalize(None).text == ""
