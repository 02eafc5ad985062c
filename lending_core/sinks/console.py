"""Console sink for inspecting a loan book during development."""

import json
import sys
from typing import Any, Sequence, TextIO

from lending_core.sinks.serialization import to_dict


class ConsoleSink:
    """Print records as JSON, one banner per entity batch.

    Parameters
    ----------
    pretty : bool
        Indent JSON output.
    max_records : int | None
        Maximum records to print per batch (None for all).
    fields : Sequence[str] | None
        Only print these keys of each record.
    stream : TextIO | None
        Destination; defaults to stdout.
    """

    def __init__(
        self,
        pretty: bool = True,
        max_records: int | None = None,
        fields: Sequence[str] | None = None,
        stream: TextIO | None = None,
    ) -> None:
        self.pretty = pretty
        self.max_records = max_records
        self.fields = tuple(fields) if fields else None
        self.stream = stream or sys.stdout
        self._counts: dict[str, int] = {}

    def _banner(self, title: str) -> None:
        rule = "=" * 60
        print(f"\n{rule}\n{title}\n{rule}", file=self.stream)

    def _render(self, record: Any) -> str:
        data = to_dict(record)
        if self.fields:
            data = {key: data[key] for key in self.fields if key in data}
        return json.dumps(data, indent=2 if self.pretty else None, ensure_ascii=False)

    def write_batch(self, entity_type: str, records: list[Any]) -> None:
        """Print a batch of records under an ``entity (n records)`` banner."""
        self._banner(f"Entity: {entity_type} ({len(records)} records)")

        shown = records if self.max_records is None else records[: self.max_records]
        for record in shown:
            print(self._render(record), file=self.stream)

        hidden = len(records) - len(shown)
        if hidden > 0:
            print(f"... and {hidden} more records", file=self.stream)

        self._counts[entity_type] = self._counts.get(entity_type, 0) + len(records)

    def close(self) -> None:
        """Print per-entity totals."""
        self._banner("Console Sink Summary")
        for entity_type, count in self._counts.items():
            print(f"  {entity_type}: {count} records", file=self.stream)
