"""Translate the values of a .properties document entry by entry."""
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from tqdm.asyncio import tqdm

from properties_translator.escape_codec import escape, unescape
from properties_translator.exceptions import TranslationServiceError
from properties_translator.placeholders import (
    PlaceholderToken,
    contains_marker,
    mask_placeholders,
    restore_placeholders
)
from properties_translator.properties_parser import (
    Entry,
    Segment,
    build_entries,
    extract_key,
    is_comment_or_blank,
    parse_continuation_line,
    parse_first_line,
    reassemble_file,
    split_lines
)
from properties_translator.translation_validator import (
    check_placeholder_parity,
    placeholder_differences
)

logger = logging.getLogger(__name__)

# Joins the segments of a multi-line entry into a single translation unit.
SEGMENT_DELIMITER = '\u241e'

BYTE_ORDER_MARK = '\ufeff'

DEFAULT_BATCH_SIZE = 100

PROBE_TEXT = 'Hello'

TranslateFunc = Callable[[str, str], Awaitable[str]]


@dataclass
class PreparedEntry:
    """An entry that will be sent for translation, already masked and joined."""
    entry: Entry
    key: str
    segments: List[Segment]
    logical_values: List[str]
    tokens: List[PlaceholderToken]
    unit: str


@dataclass
class EntryTranslationResult:
    entry: Entry
    lines: List[str]
    failed: bool = False


@dataclass
class TranslationResult:
    text: str
    failed_entries: int = 0
    translated_entries: int = 0
    skipped_entries: int = 0


def prepare_entry(lines: List[str], entry: Entry) -> Optional[PreparedEntry]:
    """
    Build the translation unit for an entry.

    Args:
        lines (List[str]): All physical lines of the document.
        entry (Entry): The entry to prepare.

    Returns:
        Optional[PreparedEntry]: The prepared entry, or None if the entry is
        copied through untranslated.
    """
    first_index = entry.indexes[0]
    if not entry.is_multiline and is_comment_or_blank(lines[first_index]):
        return None

    first_segment = parse_first_line(lines[first_index])
    if first_segment is None:
        return None

    segments = [first_segment]
    segments.extend(parse_continuation_line(lines[index]) for index in entry.indexes[1:])

    logical_values = [unescape(segment.value) for segment in segments]
    if not any(logical_values):
        return None

    key = extract_key(lines[first_index])
    if any(SEGMENT_DELIMITER in value for value in logical_values):
        logger.debug("Skipping key '%s': its value contains the segment delimiter.", key)
        return None
    if any(contains_marker(value) for value in logical_values):
        logger.debug("Skipping key '%s': its value contains placeholder marker text.", key)
        return None

    counter = 0
    tokens: List[PlaceholderToken] = []
    masked_values = []
    for value in logical_values:
        masked_value, segment_tokens, counter = mask_placeholders(value, counter)
        masked_values.append(masked_value)
        tokens.extend(segment_tokens)

    return PreparedEntry(
        entry=entry,
        key=key,
        segments=segments,
        logical_values=logical_values,
        tokens=tokens,
        unit=SEGMENT_DELIMITER.join(masked_values)
    )


async def translate_entry(
        prepared: PreparedEntry,
        lines: List[str],
        target_language: str,
        translate: TranslateFunc
) -> EntryTranslationResult:
    """
    Translate one prepared entry and rebuild its physical lines.

    Any failure leaves the entry's original lines untouched and marks it failed.
    """
    original_lines = [lines[index] for index in prepared.entry.indexes]

    try:
        translated_unit = await translate(prepared.unit, target_language)
    except Exception as exc:
        logger.error("Translation failed for key '%s': %s", prepared.key, exc)
        return EntryTranslationResult(prepared.entry, original_lines, failed=True)

    pieces = translated_unit.split(SEGMENT_DELIMITER)
    if len(pieces) != len(prepared.segments):
        logger.error(
            "Translation for key '%s' returned %d segment(s), expected %d. Keeping the original.",
            prepared.key, len(pieces), len(prepared.segments)
        )
        return EntryTranslationResult(prepared.entry, original_lines, failed=True)

    restored_pieces = [restore_placeholders(piece, prepared.tokens) for piece in pieces]

    original_value = ''.join(prepared.logical_values)
    translated_value = ''.join(restored_pieces)
    if not check_placeholder_parity(original_value, translated_value):
        missing, extra = placeholder_differences(original_value, translated_value)
        logger.warning(
            "Placeholder mismatch for key '%s' (missing: %s, extra: %s).",
            prepared.key, sorted(missing), sorted(extra)
        )

    new_lines = [
        segment.prefix + escape(piece) + segment.suffix
        for segment, piece in zip(prepared.segments, restored_pieces)
    ]
    logger.debug("Translated key '%s' successfully.", prepared.key)
    return EntryTranslationResult(prepared.entry, new_lines)


async def probe_translation_service(translate: TranslateFunc, target_language: str) -> None:
    """Make one trivial call so an unavailable service fails the whole request."""
    try:
        await translate(PROBE_TEXT, target_language)
    except Exception as exc:
        logger.error("Translation service probe failed: %s", exc)
        raise TranslationServiceError(str(exc), code="service_unavailable") from exc


async def translate_document(
        text: str,
        target_language: str,
        translate: TranslateFunc,
        batch_size: int = DEFAULT_BATCH_SIZE,
        show_progress: bool = False
) -> TranslationResult:
    """
    Translate every translatable entry of a .properties document.

    Entries are translated concurrently in batches of ``batch_size``; one batch
    completes before the next starts. Comments, blank lines and anything else
    that is not translated are reproduced exactly.

    Args:
        text (str): The document content.
        target_language (str): The target language code.
        translate (TranslateFunc): ``async (text, target_language) -> str``.
        batch_size (int): The maximum number of concurrent translation calls.
        show_progress (bool): Whether to show a tqdm progress bar per batch.

    Returns:
        TranslationResult: The translated document and per-entry counts.

    Raises:
        TranslationServiceError: If the probe call to the service fails.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1.")

    # A leading BOM belongs to the file, not to the first line.
    byte_order_mark = BYTE_ORDER_MARK if text.startswith(BYTE_ORDER_MARK) else ''
    lines, newline = split_lines(text[len(byte_order_mark):])
    entries = build_entries(lines)

    prepared_entries = []
    skipped_entries = 0
    for entry in entries:
        prepared = prepare_entry(lines, entry)
        if prepared is None:
            skipped_entries += 1
        else:
            prepared_entries.append(prepared)

    if not prepared_entries:
        logger.info("No translatable entries found (%d entries skipped).", skipped_entries)
        return TranslationResult(text=text, skipped_entries=skipped_entries)

    await probe_translation_service(translate, target_language)

    logger.info(
        "Translating %d entries into '%s' (%d skipped).",
        len(prepared_entries), target_language, skipped_entries
    )

    output_lines = list(lines)
    failed_entries = 0
    batch_count = (len(prepared_entries) + batch_size - 1) // batch_size
    for batch_number, start in enumerate(range(0, len(prepared_entries), batch_size), 1):
        batch = prepared_entries[start:start + batch_size]
        results = await tqdm.gather(
            *(translate_entry(prepared, lines, target_language, translate) for prepared in batch),
            desc=f"Batch {batch_number}/{batch_count}",
            unit="entry",
            disable=not show_progress
        )
        for result in results:
            for index, line in zip(result.entry.indexes, result.lines):
                output_lines[index] = line
            if result.failed:
                failed_entries += 1

    if failed_entries:
        logger.warning("%d of %d entries could not be translated.", failed_entries, len(prepared_entries))
    else:
        logger.info("All %d entries translated.", len(prepared_entries))

    return TranslationResult(
        text=byte_order_mark + reassemble_file(output_lines, newline),
        failed_entries=failed_entries,
        translated_entries=len(prepared_entries) - failed_entries,
        skipped_entries=skipped_entries
    )
