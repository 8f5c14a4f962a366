"""Unit tests for the model-output reconstruction cascade."""

import json

import pytest

from backend.app.core.reconstructor import (
    ANSWER_FILLER,
    GENERIC_BODY,
    GENERIC_CLOSING,
    GENERIC_OPENING,
    MIN_ANSWER_WORDS,
    decode_json_string,
    extract_field,
    looks_truncated,
    pad_answer,
    parse_direct,
    reconstruct,
    trim_to_sentence,
    wrap_in_template,
    word_count,
)

QUESTION = "Tell us about a project you are proud of."
LONG_ANSWER = " ".join(["I shipped a reliable data pipeline for our analytics team."] * 12)


# ---------- direct parse ----------

@pytest.mark.unit
def test_well_formed_json_round_trips(model_output):
    raw = model_output("well_formed.txt")
    expected = json.loads(raw)["coverLetter"]

    result = reconstruct(raw)

    assert result.cover_letter == expected
    assert result.stage == "direct"
    assert result.question is None
    assert result.answer is None


@pytest.mark.unit
def test_well_formed_json_with_answer_round_trips():
    raw = json.dumps({"coverLetter": "Dear Hiring Manager,\n\nHello.", "answer": LONG_ANSWER})

    result = reconstruct(raw, QUESTION)

    assert result.cover_letter == "Dear Hiring Manager,\n\nHello."
    assert result.answer == LONG_ANSWER
    assert result.question == QUESTION
    assert result.stage == "direct"


@pytest.mark.unit
def test_prose_and_code_fence_around_json_are_dropped(model_output):
    result = reconstruct(model_output("prose_wrapped.txt"))

    assert result.stage == "direct"
    assert result.cover_letter.startswith("Dear Hiring Manager,")
    assert "cut processing time by 40%" in result.cover_letter
    assert "Let me know" not in result.cover_letter


@pytest.mark.unit
def test_parse_direct_rejects_non_objects():
    assert parse_direct('["coverLetter"]') is None
    assert parse_direct("{not json") is None


@pytest.mark.unit
def test_parse_direct_accepts_raw_newlines_inside_strings():
    parsed = parse_direct('{"coverLetter": "line one\nline two"}')
    assert parsed == {"coverLetter": "line one\nline two"}


# ---------- truncation recovery ----------

@pytest.mark.unit
def test_truncated_answer_is_recovered_and_padded(model_output):
    result = reconstruct(model_output("truncated_answer.txt"), QUESTION)

    assert result.stage == "recovered"
    assert result.cover_letter.startswith("Dear Hiring Manager,\n\nI am applying")
    assert result.cover_letter.endswith("Jane Doe")
    assert result.answer.startswith(
        "My proudest project was migrating our monolith to services. "
        "It reduced deploy times from hours to minutes."
    )
    # the dangling fragment is gone
    assert "five teams and" not in result.answer
    assert word_count(result.answer) >= MIN_ANSWER_WORDS


@pytest.mark.unit
def test_truncated_letter_is_cut_back_to_last_sentence(model_output):
    result = reconstruct(model_output("truncated_letter.txt"))

    assert result.stage == "recovered"
    assert result.cover_letter.endswith("I enjoy mentoring junior engineers.")
    assert "responsible for the" not in result.cover_letter


@pytest.mark.unit
def test_unescaped_quotes_are_recovered_by_field_anchors(model_output):
    result = reconstruct(model_output("unescaped_quotes.txt"), "How do you handle conflict?")

    assert 'the "Phoenix" rewrite' in result.cover_letter
    assert result.answer.startswith("I handle conflict by listening first.")
    assert word_count(result.answer) >= MIN_ANSWER_WORDS


@pytest.mark.unit
@pytest.mark.parametrize("cut", [10, 40, 120, 200])
def test_json_cut_at_any_point_never_fails(cut):
    full = json.dumps({"coverLetter": "Dear Hiring Manager,\n\nI build APIs. I lead teams.", "answer": LONG_ANSWER})

    result = reconstruct(full[:cut], QUESTION)

    assert result.cover_letter.strip()
    assert word_count(result.answer) >= MIN_ANSWER_WORDS


@pytest.mark.unit
def test_looks_truncated():
    assert looks_truncated('{"coverLetter": "abc')
    assert not looks_truncated('{"coverLetter": "abc"}\n```')


# ---------- synthesis and fallback ----------

@pytest.mark.unit
def test_missing_answer_field_is_synthesized():
    raw = '{"coverLetter": "Dear Hiring Manager,\\n\\nI am a great fit."}'

    result = reconstruct(raw, QUESTION)

    assert result.stage == "synthesized"
    assert result.cover_letter == "Dear Hiring Manager,\n\nI am a great fit."
    assert result.answer == ANSWER_FILLER


@pytest.mark.unit
def test_wrong_key_falls_back_to_salutation_scrape():
    raw = '{"letter": "Dear Hiring Manager,\\n\\nI would love to join Acme."}'

    result = reconstruct(raw)

    assert result.cover_letter == "Dear Hiring Manager,\n\nI would love to join Acme."


@pytest.mark.unit
def test_prose_without_braces_keeps_salutation_span(model_output):
    result = reconstruct(model_output("prose_only.txt"))

    assert result.stage == "scraped"
    assert result.cover_letter.startswith("Dear Hiring Manager,")
    assert result.cover_letter.endswith("Jane Doe")
    assert "Here is a draft" not in result.cover_letter


@pytest.mark.unit
def test_prose_without_salutation_is_wrapped_in_template():
    raw = "I have strong Python skills and enjoy building backend systems."

    result = reconstruct(raw)

    assert result.stage == "fallback"
    assert result.cover_letter.startswith(GENERIC_OPENING)
    assert result.cover_letter.endswith(GENERIC_CLOSING)
    assert raw in result.cover_letter


@pytest.mark.unit
def test_prose_answer_marker_is_split_out():
    raw = "Dear Hiring Manager,\n\nI am a good fit.\n\nAnswer: I once rebuilt our deploy tooling."

    result = reconstruct(raw, QUESTION)

    assert "Answer" not in result.cover_letter
    assert result.answer.startswith("I once rebuilt our deploy tooling.")
    assert word_count(result.answer) >= MIN_ANSWER_WORDS


@pytest.mark.unit
@pytest.mark.parametrize("raw", ["", "   ", None, "{", "}{", '{"coverLetter": ""}', '{"coverLetter": null}'])
def test_unusable_output_still_yields_a_letter(raw):
    result = reconstruct(raw, QUESTION)

    assert result.cover_letter.strip()
    assert result.cover_letter.startswith("Dear Hiring Manager,")
    assert word_count(result.answer) >= MIN_ANSWER_WORDS


# ---------- helpers ----------

@pytest.mark.unit
def test_trim_to_sentence():
    assert trim_to_sentence("One. Two! Three and") == "One. Two!"
    assert trim_to_sentence('He said "yes." Then') == 'He said "yes."'
    assert trim_to_sentence("no boundary here") == ""
    assert trim_to_sentence("Version 3.5 is out. And") == "Version 3.5 is out."


@pytest.mark.unit
def test_decode_json_string_tolerates_dangling_escapes():
    assert decode_json_string("line\\nnext") == "line\nnext"
    assert decode_json_string("cut here\\") == "cut here"
    assert decode_json_string("caf\\u00e") == "caf"
    assert decode_json_string('say "hi"') == 'say "hi"'


@pytest.mark.unit
def test_extract_field_missing_returns_none():
    assert extract_field('{"other": "x"}', "coverLetter") is None


@pytest.mark.unit
def test_pad_answer_is_deterministic_and_keeps_long_answers():
    short = "I like teamwork."
    assert pad_answer(short) == pad_answer(short)
    assert pad_answer(short).startswith(short)
    assert word_count(pad_answer(short)) >= MIN_ANSWER_WORDS
    assert pad_answer(LONG_ANSWER) == LONG_ANSWER
    assert word_count(ANSWER_FILLER) >= MIN_ANSWER_WORDS


@pytest.mark.unit
def test_letter_cut_before_any_sentence_end_is_not_emitted(model_output):
    result = reconstruct(model_output("truncated_mid_sentence.txt"))

    assert result.stage == "fallback"
    assert result.cover_letter == wrap_in_template(GENERIC_BODY)
    assert "billing platform to" not in result.cover_letter


@pytest.mark.unit
def test_inline_letter_cut_mid_sentence_falls_back_to_template():
    raw = '{"coverLetter": "Dear Hiring Manager, I have built APIs with FastAPI and led the migration of'

    result = reconstruct(raw)

    assert result.stage == "fallback"
    assert result.cover_letter.startswith(GENERIC_OPENING)
    assert "migration of" not in result.cover_letter


@pytest.mark.unit
def test_scraped_letter_on_truncated_text_ends_on_a_sentence():
    raw = '{"letter": "Dear Hiring Manager,\\n\\nI build APIs. I also led the migration of'

    result = reconstruct(raw)

    assert result.stage == "synthesized"
    assert result.cover_letter == "Dear Hiring Manager,\n\nI build APIs."
