import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

# Whitespace as defined by java.util.Properties.
PROPERTIES_WHITESPACE = ' \t\f'

_TRAILING_WHITESPACE = re.compile(r'(.*?)([ \t\f]*)\Z', re.DOTALL)


@dataclass(frozen=True)
class Segment:
    """One physical line split into its immutable prefix/suffix and its value."""
    prefix: str
    value: str
    suffix: str

    @property
    def line(self) -> str:
        return self.prefix + self.value + self.suffix


@dataclass(frozen=True)
class Entry:
    """One logical record: the indexes of its consecutive physical lines."""
    indexes: Tuple[int, ...]

    @property
    def is_multiline(self) -> bool:
        return len(self.indexes) > 1


def _count_trailing_backslashes(s: str) -> int:
    count = 0
    i = len(s) - 1
    while i >= 0 and s[i] == '\\':
        count += 1
        i -= 1
    return count


def _has_unescaped_trailing_backslash(s: str) -> bool:
    """Check if a string ends with an odd number of backslashes."""
    return _count_trailing_backslashes(s) % 2 == 1


def line_has_continuation(line: str) -> bool:
    """Return True if the physical line continues onto the next one."""
    return _has_unescaped_trailing_backslash(line.rstrip(PROPERTIES_WHITESPACE))


def is_comment_or_blank(line: str) -> bool:
    stripped_line = line.strip()
    return not stripped_line or stripped_line.startswith(('#', '!'))


def find_separator_index(line: str) -> Optional[Tuple[int, bool]]:
    """
    Find the key/value separator of a line.

    An unescaped ``=`` or ``:`` wins. Otherwise the first unescaped whitespace
    following some key text is used.

    Args:
        line (str): The physical line.

    Returns:
        Optional[Tuple[int, bool]]: The separator index and whether it is
        whitespace, or None if the line has no key/value structure.
    """
    escaped = False
    seen_non_whitespace = False
    for j, char in enumerate(line):
        if escaped:
            escaped = False
            continue
        if char == '\\':
            escaped = True
            seen_non_whitespace = True
            continue
        if char in PROPERTIES_WHITESPACE and not seen_non_whitespace:
            continue
        if char in ('=', ':'):
            return j, False
        seen_non_whitespace = True

    escaped = False
    seen_non_whitespace = False
    for j, char in enumerate(line):
        if escaped:
            escaped = False
            continue
        if char == '\\':
            escaped = True
            seen_non_whitespace = True
            continue
        if char in PROPERTIES_WHITESPACE:
            if seen_non_whitespace:
                return j, True
            continue
        seen_non_whitespace = True

    return None


def extract_key(line: str) -> Optional[str]:
    """Return the unescaped key of a key/value line, or None if it has none."""
    separator = find_separator_index(line)
    if separator is None:
        return None
    key_raw = line[:separator[0]]
    # Unescape common escapes used in .properties keys
    return re.sub(r'\\([:=\s])', r'\1', key_raw.strip())


def _find_inline_comment(rest: str) -> int:
    escaped = False
    for j, char in enumerate(rest):
        if escaped:
            escaped = False
            continue
        if char == '\\':
            escaped = True
            continue
        if char in ('#', '!') and (j == 0 or rest[j - 1] in PROPERTIES_WHITESPACE):
            return j
    return -1


def extract_value_and_suffix(rest: str) -> Tuple[str, str]:
    """
    Split the part of a line after the value start into value and suffix.

    The suffix holds trailing whitespace, the continuation marker and any
    trailing inline comment, all verbatim.

    Args:
        rest (str): The line from the value start to the end.

    Returns:
        Tuple[str, str]: The escaped value and the suffix.
    """
    comment = ''
    comment_index = _find_inline_comment(rest)
    if comment_index != -1:
        comment = rest[comment_index:]
        rest = rest[:comment_index]

    body, trailing_whitespace = _TRAILING_WHITESPACE.match(rest).groups()

    continuation = ''
    if _has_unescaped_trailing_backslash(body):
        body = body[:-1]
        continuation = '\\'

    return body, continuation + trailing_whitespace + comment


def _skip_whitespace(line: str, index: int) -> int:
    while index < len(line) and line[index] in PROPERTIES_WHITESPACE:
        index += 1
    return index


def parse_first_line(line: str) -> Optional[Segment]:
    """
    Parse the first physical line of a key/value entry.

    Returns:
        Optional[Segment]: The segment, or None if the line has no separator.
    """
    separator = find_separator_index(line)
    if separator is None:
        return None
    sep_index, is_whitespace = separator

    if is_whitespace:
        value_start = _skip_whitespace(line, sep_index)
    else:
        value_start = _skip_whitespace(line, sep_index + 1)

    value, suffix = extract_value_and_suffix(line[value_start:])
    return Segment(prefix=line[:value_start], value=value, suffix=suffix)


def parse_continuation_line(line: str) -> Segment:
    """Parse a continuation line; its leading indentation stays in the prefix."""
    value_start = _skip_whitespace(line, 0)
    value, suffix = extract_value_and_suffix(line[value_start:])
    return Segment(prefix=line[:value_start], value=value, suffix=suffix)


def build_entries(lines: List[str]) -> List[Entry]:
    """
    Group physical lines into logical entries.

    Args:
        lines (List[str]): The physical lines, without line terminators.

    Returns:
        List[Entry]: Entries covering every line index exactly once, in order.
    """
    entries = []
    i = 0
    while i < len(lines):
        if is_comment_or_blank(lines[i]):
            entries.append(Entry((i,)))
            i += 1
            continue

        indexes = [i]
        while line_has_continuation(lines[indexes[-1]]) and indexes[-1] + 1 < len(lines):
            indexes.append(indexes[-1] + 1)
        entries.append(Entry(tuple(indexes)))
        i = indexes[-1] + 1
    return entries


def split_lines(text: str) -> Tuple[List[str], str]:
    """
    Split file content into physical lines and detect its newline convention.

    Returns:
        Tuple[List[str], str]: The lines and ``'\\r\\n'`` if any CRLF was
        present, else ``'\\n'``.
    """
    newline = '\r\n' if '\r\n' in text else '\n'
    return re.split(r'\r?\n', text), newline


def reassemble_file(lines: List[str], newline: str = '\n') -> str:
    """Join physical lines back into file content."""
    return newline.join(lines)
