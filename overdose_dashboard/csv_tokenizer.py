"""Character-level CSV tokenizer.

Splits raw text into rows of string fields using RFC-4180 style quoting:

* ``"`` toggles quoted mode; ``""`` inside a quoted field is a literal quote.
* ``,`` and ``\\n`` only separate fields/rows outside quoted mode.
* ``\\r`` is dropped everywhere, including inside quoted fields, so CRLF
  exports behave like LF exports.  A quoted value that legitimately contains
  a carriage return loses it.

Trailing rows made only of empty fields are removed, which absorbs the blank
last line most exporters write.
"""

from typing import List

Row = List[str]

QUOTE = '"'
DELIMITER = ","
NEWLINE = "\n"
CARRIAGE_RETURN = "\r"


def parse(text: str) -> List[Row]:
    """Tokenize ``text`` into rows of fields.

    Parameters
    ----------
    text : str
        The full document, already decoded.

    Returns
    -------
    List[Row]
        One list of fields per logical record (header included), in input
        order.  No returned row is empty.
    """
    rows: List[Row] = []
    row: Row = []
    field: List[str] = []
    in_quotes = False

    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        i += 1

        if c == QUOTE:
            # Escaped quote inside quoted field: "" -> "
            if in_quotes and i < n and text[i] == QUOTE:
                field.append(QUOTE)
                i += 1
                continue
            in_quotes = not in_quotes
            continue

        if c == DELIMITER and not in_quotes:
            row.append("".join(field))
            field = []
            continue

        if c == NEWLINE and not in_quotes:
            row.append("".join(field))
            field = []
            rows.append(row)
            row = []
            continue

        if c == CARRIAGE_RETURN:
            continue

        field.append(c)

    # Flush last field/row
    if field or row:
        row.append("".join(field))
        rows.append(row)

    while rows and all(value == "" for value in rows[-1]):
        rows.pop()

    return rows
