from collections import Counter
from typing import Set, Tuple

from properties_translator.placeholders import find_placeholders


def check_placeholder_parity(base_string: str, target_string: str) -> bool:
    """
    Checks if the placeholders are identical between a base and a target string.
    Placeholders may be reordered, but each must keep its exact literal text.

    Args:
        base_string: The source string.
        target_string: The translated string.

    Returns:
        True if both strings hold the same multiset of placeholders, False otherwise.
    """
    return Counter(find_placeholders(base_string)) == Counter(find_placeholders(target_string))


def placeholder_differences(base_string: str, target_string: str) -> Tuple[Set[str], Set[str]]:
    """
    Returns the placeholders lost and gained by a translation.

    Returns:
        A tuple containing two sets:
        - missing: Placeholders present in the base string but not the target.
        - extra: Placeholders present in the target string but not the base.
    """
    base_placeholders = Counter(find_placeholders(base_string))
    target_placeholders = Counter(find_placeholders(target_string))
    missing = set((base_placeholders - target_placeholders).keys())
    extra = set((target_placeholders - base_placeholders).keys())
    return missing, extra
