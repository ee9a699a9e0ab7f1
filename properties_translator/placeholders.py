import re
from dataclasses import dataclass
from typing import List, Tuple

# ${template.var}, {0} / {name} / {0,number,#.##}, and printf tokens like %s or %1$d.
PLACEHOLDER_PATTERN = re.compile(
    r'\$\{[\w.:\-]+\}'
    r'|\{[\w,.#: ]+\}'
    r'|%(?:\d+\$)?[-#+0,(]*\d*(?:\.\d+)?[a-zA-Z]'
)

MARKER_TEMPLATE = '__PH_{}__'
MARKER_PATTERN = re.compile(r'__PH_\d+__')


@dataclass(frozen=True)
class PlaceholderToken:
    marker: str
    original: str


def find_placeholders(text: str) -> List[str]:
    return PLACEHOLDER_PATTERN.findall(text)


def contains_marker(text: str) -> bool:
    """True if ``text`` already holds something that looks like a marker."""
    return MARKER_PATTERN.search(text) is not None


def mask_placeholders(text: str, counter: int = 0) -> Tuple[str, List[PlaceholderToken], int]:
    """
    Replace placeholders in the text with unique markers.

    Markers are numbered from ``counter`` so that several segments of one entry
    can be masked without their markers colliding once joined.

    Args:
        text (str): The logical (unescaped) value.
        counter (int): The first marker number to use.

    Returns:
        Tuple[str, List[PlaceholderToken], int]: The masked text, the tokens
        created, and the next unused marker number.
    """
    if not isinstance(text, str):
        raise ValueError("Input text must be a string.")

    tokens: List[PlaceholderToken] = []

    def replace_placeholder(match):
        marker = MARKER_TEMPLATE.format(counter + len(tokens))
        tokens.append(PlaceholderToken(marker=marker, original=match.group(0)))
        return marker

    masked_text = PLACEHOLDER_PATTERN.sub(replace_placeholder, text)
    return masked_text, tokens, counter + len(tokens)


def restore_placeholders(text: str, tokens: List[PlaceholderToken]) -> str:
    """
    Put the original placeholders back in place of their markers.

    Markers missing from the text are ignored.
    """
    for token in tokens:
        text = text.replace(token.marker, token.original)
    return text
