"""Template matching and field checks for spoken meeting reports.

A transcription is accepted only when the whole (trimmed) text follows::

    My name is <speaker> and I belong to group <group> and today I met <person> at <location>.

Matching is case-insensitive and tolerates a single trailing period. The
captured spans are then checked individually so every problem is reported
in one pass.
"""

from __future__ import annotations

import re

from . import constants
from .models import ValidationResult, VoiceMessage

TEMPLATE_PATTERN = re.compile(
    r"my name is (.+?) and i belong to group (.+?) and today i met (.+?) at (.+?)\.?",
    re.IGNORECASE,
)

_NAME_CHARS = re.compile(r"[A-Za-z\s\-.']+")
_LOCATION_CHARS = re.compile(r"[A-Za-z0-9\s\-.,']+")
# Leading base-10 integer; anything after it ("5," or "12 people") is ignored
_LEADING_INTEGER = re.compile(r"\s*([+-]?[0-9]+)")


def is_valid_name(name: str) -> bool:
    return (
        constants.NAME_MIN_LENGTH <= len(name) <= constants.NAME_MAX_LENGTH
        and _NAME_CHARS.fullmatch(name) is not None
    )


def is_valid_group_number(group: str) -> bool:
    # Parsed only to validate; callers keep the original string
    if len(group) > constants.GROUP_MAX_LENGTH:
        return False
    match = _LEADING_INTEGER.match(group)
    if match is None:
        return False
    return constants.GROUP_MIN <= int(match.group(1)) <= constants.GROUP_MAX


def is_valid_location(location: str) -> bool:
    return (
        constants.LOCATION_MIN_LENGTH <= len(location) <= constants.LOCATION_MAX_LENGTH
        and _LOCATION_CHARS.fullmatch(location) is not None
    )


def check_fields(message: VoiceMessage) -> list[str]:
    """Return every field problem found, in field order. Empty means valid."""
    errors: list[str] = []

    if not is_valid_name(message.speaker_name):
        errors.append(constants.INVALID_SPEAKER_NAME)

    if not is_valid_group_number(message.group_number):
        errors.append(constants.INVALID_GROUP_NUMBER)

    if not is_valid_name(message.person_met):
        errors.append(constants.INVALID_PERSON_NAME)

    if not is_valid_location(message.location):
        errors.append(constants.INVALID_LOCATION)

    return errors


def validate_transcription(text: str) -> ValidationResult:
    """
    Validate a transcription against the meeting template.

    Empty or whitespace-only input yields a neutral result (not valid, empty
    message) so callers can tell "nothing yet" apart from a format error.
    When the template matches but a field fails its check, ``extracted_data``
    is still populated; callers must rely on ``is_valid``.

    Args:
        text: Raw transcription text

    Returns:
        A fresh, immutable ValidationResult
    """
    trimmed = (text or "").strip()
    if not trimmed:
        return ValidationResult(is_valid=False, message="", extracted_data=None)

    match = TEMPLATE_PATTERN.fullmatch(trimmed)
    if match is None:
        return ValidationResult(
            is_valid=False,
            message=constants.FORMAT_HINT_MESSAGE,
            extracted_data=None,
        )

    extracted = VoiceMessage(
        speaker_name=match.group(1).strip(),
        group_number=match.group(2).strip(),
        person_met=match.group(3).strip(),
        location=match.group(4).strip(),
    )

    errors = check_fields(extracted)
    if errors:
        return ValidationResult(
            is_valid=False,
            message=constants.DATA_ISSUES_PREFIX + ", ".join(errors),
            extracted_data=extracted,
            errors=tuple(errors),
        )

    return ValidationResult(
        is_valid=True,
        message=constants.VALID_MESSAGE,
        extracted_data=extracted,
    )
