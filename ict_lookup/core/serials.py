"""Serial codec — board positions from log names, sibling serials from one serial."""

from __future__ import annotations

import re

from ict_lookup.core.errors import MalformedReference, MalformedSerial

# Byte range of the zero-padded sequence number inside a serial / DMC.
SEQUENCE_START = 6
SEQUENCE_END = 13
SEQUENCE_WIDTH = SEQUENCE_END - SEQUENCE_START

_PATH_SEPARATORS = re.compile(r"[/\\]")
_DIGITS = re.compile(r"[0-9]+")


def derive_position(log_reference: str) -> int:
    """Return the 0-based panel position encoded in a log file name.

    The final path segment looks like ``"<position+1>-<rest>"``, e.g.
    ``C:\\logs\\3-20240101-xyz.log`` is position 2.
    """
    filename = _PATH_SEPARATORS.split(log_reference)[-1]
    prefix, sep, _rest = filename.partition("-")
    if not sep:
        raise MalformedReference(
            f"Log reference {log_reference!r} has no '-' in {filename!r}"
        )
    if not _DIGITS.fullmatch(prefix):
        raise MalformedReference(
            f"Log reference {log_reference!r}: {prefix!r} is not a position"
        )
    position = int(prefix) - 1
    if position < 0:
        raise MalformedReference(
            f"Log reference {log_reference!r}: positions start at 1"
        )
    return position


def sequence_number(serial: str) -> int:
    """Parse the 7-digit sequence field of a serial."""
    if len(serial) < SEQUENCE_END:
        raise MalformedSerial(
            f"Serial {serial!r} is shorter than {SEQUENCE_END} characters"
        )
    field = serial[SEQUENCE_START:SEQUENCE_END]
    if not _DIGITS.fullmatch(field):
        raise MalformedSerial(
            f"Serial {serial!r} has a non-numeric sequence field {field!r}"
        )
    return int(field)


def with_sequence(serial: str, sequence: int) -> str:
    """Return ``serial`` with its sequence field replaced by ``sequence``."""
    return (
        serial[:SEQUENCE_START]
        + f"{sequence:0{SEQUENCE_WIDTH}d}"
        + serial[SEQUENCE_END:]
    )


def generate_siblings(serial: str, position: int, panel_size: int) -> list[str]:
    """Build every serial on the panel from one serial and its position.

    Boards on a panel carry consecutive sequence numbers, so position 0
    holds ``sequence(serial) - position``. Index ``i`` of the result is
    the serial of the board at position ``i``.
    """
    if position < 0:
        raise MalformedSerial(f"Position {position} is negative")
    sequence = sequence_number(serial)
    if sequence < position:
        raise MalformedSerial(
            f"Serial {serial!r} sequence {sequence} is below position {position}"
        )
    base = sequence - position
    if base + panel_size - 1 >= 10 ** SEQUENCE_WIDTH:
        raise MalformedSerial(
            f"Serial {serial!r} cannot hold {panel_size} consecutive sequences"
        )
    return [with_sequence(serial, base + i) for i in range(panel_size)]
