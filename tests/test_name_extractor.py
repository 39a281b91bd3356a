"""Tests for wildcard pattern -> token extraction."""

from launchscript.name_extractor import extract


def test_word_split_and_whole_pattern():
    tokens = extract(["*Visual Studio Code*", "*VSCode*"])
    for expected in ("Visual", "Studio", "Code", "VSCode"):
        assert expected in tokens


def test_full_cleaned_phrase_kept():
    assert "Visual Studio Code" in extract(["*Visual Studio Code*"])


def test_camel_case_split_after_uppercase_run():
    tokens = extract(["*AngryIPScanner*"])
    assert "Angry" in tokens
    assert "Scanner" in tokens
    # Two-letter pieces are too short to be useful
    assert "IP" not in tokens


def test_deduplicated_in_first_seen_order():
    tokens = extract(["*Visual Studio Code*", "*Visual Studio Code*", "*Code*"])
    assert len(tokens) == len(set(tokens))
    assert tokens.index("Visual") < tokens.index("Studio") < tokens.index("Code")


def test_short_numeric_and_stop_words_dropped():
    tokens = extract(["*Notepad for Windows 64 bit app*"])
    assert "Notepad" in tokens
    assert "Windows" in tokens
    assert "for" not in tokens
    assert "64" not in tokens
    assert "app" not in tokens
    assert "bit" in tokens


def test_separators_split():
    tokens = extract(["*Node.js-Runtime_Tools*"])
    assert "Node" in tokens
    assert "Runtime" in tokens
    assert "Tools" in tokens


def test_pattern_with_no_surviving_words_keeps_cleaned_phrase():
    assert extract(["*7z*"]) == ["7z"]


def test_empty_and_wildcard_only_patterns():
    assert extract([]) == []
    assert extract(["*", "**"]) == []


def test_never_raises_on_bad_input():
    assert extract(None) == []
    assert extract([None, 42, "*Slack*"]) == ["Slack"]
