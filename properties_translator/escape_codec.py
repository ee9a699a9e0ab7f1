"""Conversion between on-disk .properties values and their logical strings."""

_ESCAPE_TO_CONTROL = {'t': '\t', 'r': '\r', 'n': '\n', 'f': '\f'}
_CONTROL_TO_ESCAPE = {'\t': '\\t', '\r': '\\r', '\n': '\\n', '\f': '\\f'}

# Escaped on output so a value can never be re-read as a separator or comment.
_STRUCTURAL_CHARS = frozenset('=:#!')

_HEX_DIGITS = frozenset('0123456789abcdefABCDEF')


def _read_unicode_escape(value: str, index: int):
    """Return the code unit of a ``\\uXXXX`` escape starting at ``index``, or None."""
    digits = value[index + 2:index + 6]
    if value[index + 1:index + 2] != 'u' or len(digits) != 4:
        return None
    if not all(ch in _HEX_DIGITS for ch in digits):
        return None
    return int(digits, 16)


def unescape(value: str) -> str:
    """
    Decode an escaped .properties value into its logical string.

    Malformed sequences are preserved rather than rejected: ``\\u`` without four
    hex digits is kept as ``\\u`` and a trailing lone backslash is kept as is.

    Args:
        value (str): The value as it appears in the file.

    Returns:
        str: The logical value.
    """
    result = []
    i = 0
    length = len(value)
    while i < length:
        ch = value[i]
        if ch != '\\':
            result.append(ch)
            i += 1
            continue

        if i + 1 >= length:
            result.append('\\')
            break

        next_ch = value[i + 1]
        if next_ch in _ESCAPE_TO_CONTROL:
            result.append(_ESCAPE_TO_CONTROL[next_ch])
            i += 2
        elif next_ch == 'u':
            code_unit = _read_unicode_escape(value, i)
            if code_unit is None:
                result.append('\\u')
                i += 2
                continue
            i += 6
            # Java writes astral characters as a pair of UTF-16 surrogate escapes.
            if 0xD800 <= code_unit <= 0xDBFF and value[i:i + 1] == '\\':
                low = _read_unicode_escape(value, i)
                if low is not None and 0xDC00 <= low <= 0xDFFF:
                    code_unit = 0x10000 + ((code_unit - 0xD800) << 10) + (low - 0xDC00)
                    i += 6
            result.append(chr(code_unit))
        else:
            result.append(next_ch)
            i += 2
    return ''.join(result)


def escape(text: str) -> str:
    """
    Encode a logical string into its escaped .properties form.

    Args:
        text (str): The logical value.

    Returns:
        str: The value ready to be written to a .properties file.
    """
    result = []
    for ch in text:
        code_point = ord(ch)
        if ch in _CONTROL_TO_ESCAPE:
            result.append(_CONTROL_TO_ESCAPE[ch])
        elif ch == '\\':
            result.append('\\\\')
        elif ch in _STRUCTURAL_CHARS:
            result.append('\\' + ch)
        elif code_point > 0xFFFF:
            offset = code_point - 0x10000
            result.append('\\u%04x' % (0xD800 + (offset >> 10)))
            result.append('\\u%04x' % (0xDC00 + (offset & 0x3FF)))
        elif code_point < 0x20 or code_point > 0x7E:
            result.append('\\u%04x' % code_point)
        else:
            result.append(ch)
    return ''.join(result)
