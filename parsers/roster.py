"""Delegate roster parser for pasted spreadsheet text."""

import csv
import logging
import re

from models.session import Delegate

logger = logging.getLogger(__name__)


class RosterParser:
    """Parses delimited roster text (number, name, organization) into delegates."""

    DELIMITERS = ",;\t|"

    # Header cells are compared after lowercasing and removing non-letters
    HEADER_ALIASES = {
        "number": {"nr", "no", "num", "number", "nummer", "delegate", "delegat", "id"},
        "name": {"name", "navn", "fullname", "delegatename"},
        "organization": {
            "org",
            "organization",
            "organisation",
            "organisasjon",
            "party",
            "parti",
            "representerer",
            "represents",
            "lag",
        },
    }

    POSITIONAL = ("number", "name", "organization")

    def parse(self, text: str) -> list[Delegate]:
        """
        Parse roster text.

        Args:
            text: Rows separated by newlines, cells by one of , ; TAB |

        Returns:
            Delegates in first-seen order; a repeated number keeps the last row
        """
        lines = [line for line in (text or "").splitlines() if line.strip()]
        if not lines:
            return []

        delimiter = self.detect_delimiter(lines)
        rows = [[cell.strip() for cell in row] for row in csv.reader(lines, delimiter=delimiter)]

        columns = self.header_columns(rows[0])
        if columns is None:
            columns = {field: position for position, field in enumerate(self.POSITIONAL)}
        else:
            rows = rows[1:]

        delegates: dict[str, Delegate] = {}
        for line_no, row in enumerate(rows, start=1):
            number = self._cell(row, columns.get("number"))
            if not number:
                logger.debug(f"Skipping roster row {line_no}: no delegate number")
                continue
            delegates[number] = Delegate(
                number=number,
                name=self._cell(row, columns.get("name")),
                organization=self._cell(row, columns.get("organization")),
            )

        logger.info(f"Parsed {len(delegates)} delegates using {delimiter!r} as delimiter")
        return list(delegates.values())

    def detect_delimiter(self, lines: list[str]) -> str:
        """Sniff the delimiter; fall back to the most frequent candidate."""
        sample = "\n".join(lines[:20])
        try:
            return csv.Sniffer().sniff(sample, delimiters=self.DELIMITERS).delimiter
        except csv.Error:
            counts = {delimiter: sample.count(delimiter) for delimiter in self.DELIMITERS}
            best = max(counts, key=counts.get)
            return best if counts[best] > 0 else ","

    def header_columns(self, row: list[str]) -> dict[str, int] | None:
        """Column positions by field if ``row`` is a header row, else None."""
        columns: dict[str, int] = {}
        for position, cell in enumerate(row):
            key = re.sub(r"[^a-zæøå]", "", cell.lower())
            for field, aliases in self.HEADER_ALIASES.items():
                if key in aliases and field not in columns:
                    columns[field] = position
                    break

        # A lone "id"/"nr" cell next to data is not enough to call it a header
        if "name" in columns or "organization" in columns:
            return columns
        return None

    @staticmethod
    def _cell(row: list[str], position: int | None) -> str:
        if position is None or position >= len(row):
            return ""
        return row[position]


def parse_roster(text: str) -> list[Delegate]:
    """Parse roster text with the default parser."""
    return RosterParser().parse(text)
