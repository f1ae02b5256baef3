"""Counter name translation for pysysinfo."""

from collections.abc import Callable, Iterable, Sequence

# The index of a counter sits right before its English name in the table.
INDEX_OFFSET = -1


class CounterCatalog:
    """
    Resolves canonical English counter names into the names the host expects.

    The host supplies a flat table of alternating ``index, english_name``
    strings, loaded once. A lookup callable maps an index to its localized
    name; without one the catalog is English-only.
    """

    def __init__(
        self,
        table: Sequence[str],
        lookup: Callable[[int], str | None] | None = None,
    ) -> None:
        """
        Initialize the CounterCatalog.

        Args:
            table: Alternating index and English name entries.
            lookup: Maps a counter index to its localized name.
        """
        self._lookup = lookup
        self._indices: dict[str, int] = {}
        for pos in range(1, len(table), 2):
            raw_index = table[pos + INDEX_OFFSET]
            if not raw_index.isdigit():
                continue
            # Keep the first occurrence, later duplicates are aliases
            self._indices.setdefault(table[pos], int(raw_index))

    @classmethod
    def english(cls, names: Iterable[str]) -> "CounterCatalog":
        """Build an English-only catalog that knows the given names."""
        table: list[str] = []
        for index, name in enumerate(names, start=1):
            table.extend((str(index), name))
        return cls(table)

    def translate(self, name: str) -> str | None:
        """
        Translate a canonical English counter name.

        Returns:
            The localized name, or None if the table does not contain it.
        """
        index = self._indices.get(name)
        if index is None:
            return None
        if self._lookup is None:
            return name
        return self._lookup(index)
