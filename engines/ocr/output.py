"""
Parsing of Tesseract result artifacts.

Text mode: <stem>.txt holds the transcription verbatim.

Box mode: <stem>.box holds one glyph per line,

    <char> <x0> <y0> <x1> <y1>[ <page>]

which becomes a multi-valued mapping (the same character recurs with
different boxes) and one integer column per line, named by its character.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from .errors import ArtifactReadError, CoordinateParseError, TesseractError

# Box coordinates are signed 32-bit integers written in ASCII digits
_COORDINATE_RE = re.compile(r"-?[0-9]+")
INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1


@dataclass(eq=False)
class BoxColumn:
    """Box coordinates of one recognized glyph occurrence."""
    name: str
    values: np.ndarray

    def tolist(self) -> List[int]:
        return self.values.tolist()

    def __repr__(self) -> str:
        return f"BoxColumn({self.name!r}, {self.tolist()})"


@dataclass
class ModelOutput:
    """
    Structured result of one pipeline call.

    Attributes:
        output_info: Engine stdout (or stderr when stdout was empty)
        output_bytes: Raw bytes of the result artifact
        output_string: Decoded result artifact
        output_dict: Box mode only: character -> coordinate strings, in file order
        output_dataframe: Box mode only: one BoxColumn per box line
    """
    output_info: str = ""
    output_bytes: bytes = b""
    output_string: str = ""
    output_dict: Dict[str, List[str]] = field(default_factory=dict)
    output_dataframe: List[BoxColumn] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.output_info or self.output_bytes or self.output_dict or self.output_dataframe)

    def column_names(self) -> List[str]:
        return [column.name for column in self.output_dataframe]

    def columns_for(self, character: str) -> List[BoxColumn]:
        return [column for column in self.output_dataframe if column.name == character]

    def to_records(self) -> List[dict]:
        """One dict per glyph, ready for a table library (page is None when absent)."""
        records = []
        for column in self.output_dataframe:
            coords = column.tolist()
            records.append({
                'char': column.name,
                'x0': coords[0] if len(coords) > 0 else None,
                'y0': coords[1] if len(coords) > 1 else None,
                'x1': coords[2] if len(coords) > 2 else None,
                'y1': coords[3] if len(coords) > 3 else None,
                'page': coords[4] if len(coords) > 4 else None,
            })
        return records

    def __str__(self) -> str:
        return self.output_string


@dataclass
class OcrResult:
    """
    Result-or-error of one facade call.

    output is always a valid ModelOutput (empty on failure); error names the
    failure kind, or is None on success.
    """
    output: ModelOutput = field(default_factory=ModelOutput)
    error: Optional[TesseractError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> ModelOutput:
        """Return the output, raising the recorded error if there is one."""
        if self.error is not None:
            raise self.error
        return self.output

    def __str__(self) -> str:
        return str(self.output)


def read_output_file(filename: str) -> bytes:
    """
    Raises:
        ArtifactReadError: If the file is missing or unreadable
    """
    try:
        with open(filename, 'rb') as f:
            return f.read()
    except OSError as e:
        raise ArtifactReadError(f"Could not read Tesseract output '{filename}': {e}") from e


def parse_text_output(raw: bytes, info: str = "") -> ModelOutput:
    return ModelOutput(
        output_info=info,
        output_bytes=raw,
        output_string=raw.decode('utf-8', errors='replace'),
    )


def parse_box_line(line: str, line_number: int):
    """
    Split one box line into (character, coordinate string, coordinates).

    The character is whatever precedes the first space, so multi-character
    tokens are kept whole.

    Raises:
        CoordinateParseError: If the coordinates are missing, are not plain
            ASCII integers, or do not fit in 32 bits
    """
    character, rest = line.split(" ", 1)
    tokens = rest.split()
    if not tokens:
        raise CoordinateParseError(f"Box line {line_number} has no coordinates: {line!r}")
    coords = []
    for token in tokens:
        if not _COORDINATE_RE.fullmatch(token):
            raise CoordinateParseError(f"Box line {line_number} has a malformed coordinate: {line!r}")
        value = int(token)
        if not INT32_MIN <= value <= INT32_MAX:
            raise CoordinateParseError(f"Box line {line_number} has an out-of-range coordinate: {line!r}")
        coords.append(value)
    return character, rest, coords


def parse_box_output(raw: bytes, info: str = "") -> ModelOutput:
    """
    Parse a box file. A single malformed line fails the whole parse.

    Raises:
        CoordinateParseError: If any coordinate token is not an integer
    """
    output = parse_text_output(raw, info)

    for line_number, line in enumerate(output.output_string.splitlines(), 1):
        if not line.strip() or " " not in line:
            continue
        character, rest, coords = parse_box_line(line, line_number)
        output.output_dict.setdefault(character, []).append(rest)
        output.output_dataframe.append(BoxColumn(character, np.array(coords, dtype=np.int32)))

    return output
