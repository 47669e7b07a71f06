"""
Cell Identifier Encoding
========================

Bit-field encoding of detector cell identifiers.

Encoding strings follow the LCIO convention: a comma separated list of
fields, each either ``name:width`` (placed right after the previous field)
or ``name:offset:width``. A negative width marks a signed field stored in
two's complement.

Example:
    encoder = CellIDEncoder("subdet:5,side:-2,layer:9,module:8,sensor:8")
    cell_id = encoder.encode(subdet=1, layer=2, module=7, sensor=3)
    encoder.decode(cell_id)["module"]   # 7

Fields not given to ``encode`` are stored as zero.
"""

from dataclasses import dataclass
from typing import Dict, List


DEFAULT_ENCODING = "subdet:5,side:-2,layer:9,module:8,sensor:8"


class CellIDError(ValueError):
    """Malformed encoding string or value out of range for its field."""


@dataclass(frozen=True, slots=True)
class BitField:
    """One named field of a cell identifier."""

    name: str
    offset: int
    width: int
    signed: bool

    @property
    def mask(self) -> int:
        return ((1 << self.width) - 1) << self.offset

    @property
    def min_value(self) -> int:
        return -(1 << (self.width - 1)) if self.signed else 0

    @property
    def max_value(self) -> int:
        return (1 << (self.width - 1)) - 1 if self.signed else (1 << self.width) - 1


class CellIDEncoder:
    """
    Encoder/decoder for one cell identifier format.

    Attributes:
        encoding: The encoding string this encoder was built from
        fields: Parsed bit fields in declaration order
    """

    def __init__(self, encoding: str = DEFAULT_ENCODING) -> None:
        self.encoding = encoding
        self.fields: List[BitField] = self._parse(encoding)
        self._by_name: Dict[str, BitField] = {f.name: f for f in self.fields}

    @staticmethod
    def _parse(encoding: str) -> List[BitField]:
        fields: List[BitField] = []
        used = 0
        next_offset = 0
        for token in encoding.split(","):
            token = token.strip()
            if not token:
                continue
            parts = [p.strip() for p in token.split(":")]
            if len(parts) not in (2, 3):
                raise CellIDError(f"Bad field '{token}' in '{encoding}'")
            try:
                numbers = [int(p) for p in parts[1:]]
            except ValueError as e:
                raise CellIDError(f"Bad field '{token}' in '{encoding}'") from e

            name = parts[0]
            if len(numbers) == 1:
                offset, width = next_offset, numbers[0]
            else:
                offset, width = numbers
            if not name or width == 0 or offset < 0:
                raise CellIDError(f"Bad field '{token}' in '{encoding}'")

            bit_field = BitField(name=name, offset=offset, width=abs(width), signed=width < 0)
            if used & bit_field.mask:
                raise CellIDError(f"Field '{name}' overlaps another field in '{encoding}'")
            if any(f.name == name for f in fields):
                raise CellIDError(f"Duplicate field '{name}' in '{encoding}'")

            used |= bit_field.mask
            next_offset = offset + bit_field.width
            fields.append(bit_field)

        if not fields:
            raise CellIDError("Empty cell ID encoding string")
        return fields

    def has_field(self, name: str) -> bool:
        return name in self._by_name

    def encode(self, **values: int) -> int:
        """
        Pack field values into a cell identifier.

        Raises:
            CellIDError: Unknown field or value out of range
        """
        cell_id = 0
        for name, value in values.items():
            bit_field = self._by_name.get(name)
            if bit_field is None:
                raise CellIDError(f"Unknown field '{name}' for encoding '{self.encoding}'")
            if not bit_field.min_value <= value <= bit_field.max_value:
                raise CellIDError(
                    f"Value {value} out of range for field '{name}' "
                    f"[{bit_field.min_value}, {bit_field.max_value}]"
                )
            raw = value & ((1 << bit_field.width) - 1)
            cell_id |= raw << bit_field.offset
        return cell_id

    def decode(self, cell_id: int) -> Dict[str, int]:
        """Unpack a cell identifier into its field values."""
        values = {}
        for bit_field in self.fields:
            raw = (cell_id & bit_field.mask) >> bit_field.offset
            if bit_field.signed and raw & (1 << (bit_field.width - 1)):
                raw -= 1 << bit_field.width
            values[bit_field.name] = raw
        return values

    def __repr__(self) -> str:
        return f"CellIDEncoder('{self.encoding}')"
