"""Hex/ASCII rendering of binary payloads attached to event records."""

from typing import List

BYTES_PER_ROW = 8

# Width of a full row of hex cells: 8 * "xx" plus 7 separating spaces
_HEX_WIDTH = BYTES_PER_ROW * 3 - 1


def _ascii_cell(value: int) -> str:
    if value == 0:
        return " ."
    if value < 0x20 or value > 0x7E:
        return " _"
    return " " + chr(value)


def dump_lines(data: bytes) -> List[str]:
    """Render ``data`` as rows of offset, hex and ASCII columns.

    Each row covers 8 bytes. A short final row is padded in the hex column
    so the ASCII column lines up with the rows above it.

    Example row:
        00000008  41 42 00 ff              A B . _
    """
    lines = []
    for offset in range(0, len(data), BYTES_PER_ROW):
        row = data[offset:offset + BYTES_PER_ROW]
        hex_cells = " ".join(f"{value:02x}" for value in row).ljust(_HEX_WIDTH)
        ascii_cells = "".join(_ascii_cell(value) for value in row)
        lines.append(f"{offset:08x}  {hex_cells}  {ascii_cells}")
    return lines


def dump(data: bytes) -> str:
    """Render ``data`` as a newline-terminated block; empty for no data."""
    return "".join(line + "\n" for line in dump_lines(data))
