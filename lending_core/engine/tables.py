"""Ordered integer range tables.

Policy rules (score bands, tenure adjustments, DPD buckets, provisioning
classes) are declared as rows of ``(lower, upper, value)`` with inclusive
bounds. A table is validated once at construction: rows must be ordered,
non-overlapping and gap-free, and only the last row may be open-ended
(``upper=None``).
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from typing import Generic, Iterable, Iterator, TypeVar

from lending_core.exceptions import ConfigurationError, ValidationError

T = TypeVar("T")


@dataclass(frozen=True)
class Band(Generic[T]):
    """One row of a range table."""

    lower: int
    upper: int | None
    value: T

    def contains(self, key: int) -> bool:
        return key >= self.lower and (self.upper is None or key <= self.upper)


class RangeTable(Generic[T]):
    """Validated lookup table from integer ranges to values.

    Parameters
    ----------
    name : str
        Table name used in error messages.
    rows : Iterable[tuple[int, int | None, T]]
        ``(lower, upper, value)`` rows; bounds are inclusive.
    domain_min : int | None
        If given, the first row must start exactly here.
    domain_max : int | None
        If given, the last row must end exactly here (or be open-ended).
    """

    def __init__(
        self,
        name: str,
        rows: Iterable[tuple[int, int | None, T]],
        domain_min: int | None = None,
        domain_max: int | None = None,
    ) -> None:
        self.name = name
        self.bands: tuple[Band[T], ...] = tuple(Band(lo, hi, value) for lo, hi, value in rows)
        self._validate(domain_min, domain_max)
        self._lowers = [band.lower for band in self.bands]

    def _validate(self, domain_min: int | None, domain_max: int | None) -> None:
        if not self.bands:
            raise ConfigurationError(f"Range table '{self.name}' is empty")

        for index, band in enumerate(self.bands):
            is_last = index == len(self.bands) - 1
            if band.upper is None and not is_last:
                raise ConfigurationError(
                    f"Range table '{self.name}': only the last row may be open-ended"
                )
            if band.upper is not None and band.upper < band.lower:
                raise ConfigurationError(
                    f"Range table '{self.name}': row {band.lower}..{band.upper} is inverted"
                )
            if index > 0:
                previous = self.bands[index - 1]
                expected = previous.upper + 1  # type: ignore[operator]
                if band.lower < expected:
                    raise ConfigurationError(
                        f"Range table '{self.name}': rows overlap at {band.lower}"
                    )
                if band.lower > expected:
                    raise ConfigurationError(
                        f"Range table '{self.name}': gap between {previous.upper} and {band.lower}"
                    )

        if domain_min is not None and self.bands[0].lower != domain_min:
            raise ConfigurationError(
                f"Range table '{self.name}' must start at {domain_min}, starts at {self.bands[0].lower}"
            )
        last_upper = self.bands[-1].upper
        if domain_max is not None and last_upper is not None and last_upper != domain_max:
            raise ConfigurationError(
                f"Range table '{self.name}' must end at {domain_max}, ends at {last_upper}"
            )

    def band_for(self, key: int) -> Band[T]:
        """Return the band containing ``key``."""
        index = bisect_right(self._lowers, key) - 1
        if index >= 0:
            band = self.bands[index]
            if band.contains(key):
                return band
        raise ValidationError(
            f"{key} is outside the '{self.name}' table range",
            field=self.name,
            limit=(self.bands[0].lower, self.bands[-1].upper),
        )

    def lookup(self, key: int) -> T:
        """Return the value of the band containing ``key``."""
        return self.band_for(key).value

    @property
    def values(self) -> list[T]:
        return [band.value for band in self.bands]

    def __iter__(self) -> Iterator[Band[T]]:
        return iter(self.bands)

    def __len__(self) -> int:
        return len(self.bands)

    def __repr__(self) -> str:
        return f"RangeTable({self.name!r}, {len(self.bands)} bands)"
