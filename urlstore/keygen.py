"""Short key generation.

Keys are the base62 rendering of an ordinal, most-significant symbol first::

    0  -> "0"      10 -> "A"      36 -> "a"
    61 -> "z"      62 -> "10"     3843 -> "zz"

The store passes its current entry count, so the generator never has to
remember anything. Two writers racing on the same count produce the same
candidate; that is resolved by the store's insert-if-absent, not here.
"""

import string

__all__ = ["KEY_ALPHABET", "generate_key"]

KEY_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase


def generate_key(number: int) -> str:
    """Return the key for the ``number``-th entry.

    Distinct ordinals always give distinct keys, and keys grow in length only
    when the previous length is used up ("z" is followed by "10").

    Args:
        number: Entry ordinal, usually the store's current count

    Returns:
        str: Key drawn from KEY_ALPHABET, never zero-padded

    Example:
        >>> generate_key(12345)
        '3D7'
    """
    if number < 0:
        raise ValueError("Number must be non-negative")

    if number == 0:
        return KEY_ALPHABET[0]

    base = len(KEY_ALPHABET)
    result = []

    while number > 0:
        number, remainder = divmod(number, base)
        result.append(KEY_ALPHABET[remainder])

    return "".join(result[::-1])
