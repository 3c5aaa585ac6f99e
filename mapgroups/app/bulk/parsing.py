"""Parse pasted address text into a clean, bounded list of addresses."""

import re

MAX_INPUT_LENGTH = 10_000
MAX_ADDRESS_LENGTH = 200
MAX_ADDRESSES = 50

_MARKUP_CHARS = re.compile(r'[<>]')


def _candidates(text: str) -> list[str]:
    """Split input into raw, trimmed, non-empty candidate lines."""
    text = text.strip()[:MAX_INPUT_LENGTH]
    lines = [line.strip() for line in text.split('\n') if line.strip()]

    # A single pasted line of comma-separated addresses
    if len(lines) == 1 and ',' in lines[0]:
        lines = [part.strip() for part in lines[0].split(',') if part.strip()]
    return lines


def _sanitize(address: str) -> str:
    return _MARKUP_CHARS.sub('', address)[:MAX_ADDRESS_LENGTH].strip()


def parse_addresses(text: str) -> list[str]:
    """Turn pasted text into at most 50 unique addresses in first-seen order.

    Lines are split on newlines; when only one line remains and it contains
    commas, it is split on commas instead. Angle brackets are stripped and
    each address is truncated to 200 characters. Duplicates (exact match)
    are dropped and anything past the 50th address is discarded.

    Args:
        text: Raw text as pasted by the user.

    Returns:
        The addresses to geocode, in input order.
    """
    if not text.strip():
        return []

    addresses: list[str] = []
    seen: set[str] = set()
    for candidate in _candidates(text):
        address = _sanitize(candidate)
        if not address or address in seen:
            continue
        seen.add(address)
        addresses.append(address)
    return addresses[:MAX_ADDRESSES]


def count_label(text: str) -> str:
    """Return the address count shown while the user types.

    Shows "50 (max)" when the pasted text holds more addresses than will
    be imported.
    """
    unique = {
        address for address in (_sanitize(c) for c in _candidates(text)) if address
    }
    if len(unique) > MAX_ADDRESSES:
        return f'{MAX_ADDRESSES} (max)'
    return str(len(unique))
