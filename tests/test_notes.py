import pytest

from core.errors import DecodeError, RangeError, VocabularyError
from core.notes import (
    NOTE_TABLE,
    SONG_LENGTH_LIMIT,
    decode_frequencies,
    encode_tokens,
    format_song,
    frequency_of,
    invalid_notes_message,
    normalize,
    parse_song,
    validate_song,
)


def test_normalize_strips_and_uppercases():
    assert normalize(" c4 , pause,FS5 ") == ["C4", "PAUSE", "FS5"]


def test_normalize_strips_newlines():
    assert normalize("c4,\r\ne4,\ng4\r") == ["C4", "E4", "G4"]


def test_normalize_keeps_empty_tokens():
    assert normalize("C4,,E4,") == ["C4", "", "E4", ""]
    assert normalize("") == [""]


def test_validate_song_returns_only_offending_tokens():
    with pytest.raises(VocabularyError) as ei:
        validate_song(["C4", "ZZ9"])
    assert ei.value.tokens == ["ZZ9"]


def test_validate_song_ok():
    validate_song(["C4", "PAUSE", "GS6"])


def test_empty_token_is_invalid():
    with pytest.raises(VocabularyError) as ei:
        validate_song(normalize("C4,,E4"))
    assert ei.value.tokens == [""]


def test_invalid_message_format():
    assert invalid_notes_message(["X9", "FOO"]) == "Notes 'X9, FOO' invalid."


def test_pause_is_silence_not_unknown():
    assert frequency_of("PAUSE") == 0
    assert frequency_of("pause") == 0
    assert frequency_of("NOPE") is None
    assert frequency_of(None) is None


def test_table_is_read_only():
    with pytest.raises(TypeError):
        NOTE_TABLE["C4"] = 1  # type: ignore[index]


def test_table_has_no_duplicate_frequencies():
    values = list(NOTE_TABLE.values())
    assert len(values) == len(set(values))


def test_decode_first_match_and_holes():
    assert decode_frequencies([262, 0, 4978]) == ["C4", "PAUSE", "DS8"]
    assert decode_frequencies([262, 263]) == ["C4", None]


def test_decode_strict_raises():
    with pytest.raises(DecodeError) as ei:
        decode_frequencies([262, 263, 1], strict=True)
    assert ei.value.frequencies == [263, 1]


def test_catalog_round_trip_revalidates():
    tones = [659, 659, 0, 659, 0, 523, 659, 0, 784, 0, 392]
    tokens = decode_frequencies(tones)
    validate_song(tokens)
    assert encode_tokens(tokens) == tones


def test_encode_unknown_is_silence():
    assert encode_tokens(["C4", "XX", None]) == [262, 0, 0]


def test_format_song():
    assert format_song(["C4", None, "E4"]) == "C4,,E4"


def test_parse_song_length_limit():
    ok_text = ",".join(["C4"] * 81 + ["GS6"] * 2)
    assert len(ok_text) == SONG_LENGTH_LIMIT
    song = parse_song(ok_text, 150)
    assert len(song) == 83
    assert song.tone_duration_ms == 150

    too_long = ",".join(["C4"] * 82 + ["PAUSE"])
    assert len(too_long) == SONG_LENGTH_LIMIT + 1
    with pytest.raises(RangeError):
        parse_song(too_long, 150)


def test_parse_song_length_counts_stored_form():
    # whitespace is stripped before the length check
    text = " ".join(["C4,"] * 100)
    with pytest.raises(RangeError):
        parse_song(text, 100)
    assert parse_song("c4, e4 ,g4", 100).text == "C4,E4,G4"


def test_parse_song_vocabulary():
    with pytest.raises(VocabularyError):
        parse_song("C4,H9", 100)


@pytest.mark.parametrize("ws", ["\x0b", "\x0c", "\xa0", "\u2003", " ", "\t", "\r\n"])
def test_normalize_strips_every_whitespace_kind(ws):
    text = f"C4,{ws}E4{ws},G4"
    assert normalize(text) == ["C4", "E4", "G4"]
    validate_song(normalize(text))
