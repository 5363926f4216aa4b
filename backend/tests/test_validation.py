"""Tests for template matching and field checks."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from voicelog import constants
from voicelog.models import VoiceMessage
from voicelog.validation import check_fields, is_valid_group_number, validate_transcription

VALID_TEXT = (
    "My name is John Smith and I belong to group 5 and today I met Sarah Johnson "
    "at the coffee shop."
)


def _fields(**overrides) -> VoiceMessage:
    values = {
        "speaker_name": "John Smith",
        "group_number": "5",
        "person_met": "Sarah Johnson",
        "location": "the coffee shop",
    }
    values.update(overrides)
    return VoiceMessage(**values)


class TestTemplateMatching:
    """Tests for validate_transcription."""

    def test_valid_sentence_extracts_fields(self):
        result = validate_transcription(VALID_TEXT)

        assert result.is_valid is True
        assert result.message == constants.VALID_MESSAGE
        assert result.errors == ()
        assert result.extracted_data == VoiceMessage(
            speaker_name="John Smith",
            group_number="5",
            person_met="Sarah Johnson",
            location="the coffee shop",
        )

    @pytest.mark.parametrize("text", ["", "   ", "\n\t "])
    def test_empty_input_is_neutral(self, text):
        result = validate_transcription(text)

        assert result.is_valid is False
        assert result.message == ""
        assert result.extracted_data is None
        assert result.errors == ()

    def test_case_insensitive_keywords(self):
        text = (
            "MY NAME IS John Smith AND I BELONG TO GROUP 5 AND TODAY I MET "
            "Sarah Johnson AT the coffee shop"
        )
        result = validate_transcription(text)

        assert result.is_valid is True
        assert result.extracted_data.location == "the coffee shop"

    def test_trailing_period_is_optional(self):
        with_period = validate_transcription(VALID_TEXT)
        without_period = validate_transcription(VALID_TEXT.rstrip("."))

        assert with_period.extracted_data == without_period.extracted_data

    def test_surrounding_whitespace_is_trimmed(self):
        result = validate_transcription(f"  {VALID_TEXT}  \n")

        assert result.is_valid is True
        assert result.extracted_data.speaker_name == "John Smith"

    def test_non_matching_sentence_returns_format_hint(self):
        result = validate_transcription("Hi, my name is John and I met Sarah today.")

        assert result.is_valid is False
        assert result.extracted_data is None
        assert result.message == constants.FORMAT_HINT_MESSAGE
        assert constants.TEMPLATE_SENTENCE in result.message

    def test_leading_content_is_rejected(self):
        result = validate_transcription(f"Hello. {VALID_TEXT}")

        assert result.is_valid is False
        assert result.extracted_data is None

    def test_short_speaker_name_keeps_extracted_data(self):
        text = (
            "My name is J and I belong to group 5 and today I met Sarah Johnson "
            "at the coffee shop."
        )
        result = validate_transcription(text)

        assert result.is_valid is False
        assert result.extracted_data is not None
        assert result.extracted_data.speaker_name == "J"
        assert result.errors == ("Invalid speaker name",)
        assert result.message == constants.DATA_ISSUES_PREFIX + "Invalid speaker name"

    def test_all_field_errors_reported_in_one_pass(self):
        text = (
            "My name is J4ne and I belong to group abc and today I met B at the shop #3."
        )
        result = validate_transcription(text)

        assert result.is_valid is False
        assert list(result.errors) == [
            "Invalid speaker name",
            "Group number must be a valid number",
            "Invalid person name",
            "Invalid location",
        ]

    def test_result_is_immutable(self):
        result = validate_transcription(VALID_TEXT)

        with pytest.raises(PydanticValidationError):
            result.is_valid = False


class TestFieldChecks:
    """Tests for check_fields and the individual validators."""

    @pytest.mark.parametrize("group", ["1", "5", "999"])
    def test_group_number_in_range(self, group):
        assert is_valid_group_number(group)

    @pytest.mark.parametrize("group", ["0", "1000", "abc", "-5", "", "a5", "1000 people"])
    def test_group_number_out_of_range_or_not_numeric(self, group):
        assert not is_valid_group_number(group)

    @pytest.mark.parametrize("group", ["5,", "5.0", "12 people", "5a", "+7"])
    def test_group_number_uses_leading_integer(self, group):
        assert is_valid_group_number(group)

    def test_group_number_length_capped(self):
        assert is_valid_group_number("0" * 49 + "7")
        assert not is_valid_group_number("0" * 50 + "7")

    def test_comma_after_group_number_accepted(self):
        result = validate_transcription(
            "My name is John Smith and I belong to group 5, and today I met Sarah Johnson "
            "at the coffee shop."
        )

        assert result.is_valid is True
        assert result.extracted_data.group_number == "5,"

    def test_group_number_keeps_original_string(self):
        result = validate_transcription(
            "My name is John Smith and I belong to group 007 and today I met Sarah Johnson "
            "at the coffee shop."
        )

        assert result.is_valid is True
        assert result.extracted_data.group_number == "007"

    @pytest.mark.parametrize("name", ["John2", "R2D2", "Anna 3rd"])
    def test_names_with_digits_rejected(self, name):
        assert check_fields(_fields(speaker_name=name)) == [constants.INVALID_SPEAKER_NAME]
        assert check_fields(_fields(person_met=name)) == [constants.INVALID_PERSON_NAME]

    @pytest.mark.parametrize("name", ["Mary-Jane O'Neil", "Dr. Who", "Al"])
    def test_names_with_allowed_punctuation(self, name):
        assert check_fields(_fields(speaker_name=name, person_met=name)) == []

    def test_name_length_bounds(self):
        assert check_fields(_fields(speaker_name="a" * 100)) == []
        assert check_fields(_fields(speaker_name="a" * 101)) == [constants.INVALID_SPEAKER_NAME]

    @pytest.mark.parametrize("location", ["Room 101, Building B", "St. Mary's park", "the-lab"])
    def test_location_allowed_characters(self, location):
        assert check_fields(_fields(location=location)) == []

    @pytest.mark.parametrize("location", ["cafe #1", "home/office", "x", "l" * 201])
    def test_location_rejected(self, location):
        assert check_fields(_fields(location=location)) == [constants.INVALID_LOCATION]
