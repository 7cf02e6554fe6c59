from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

SymbolCounts = Dict[str, int]


@dataclass(frozen=True)
class Row:
    """A canonical row: sorted symbols padded to ``width`` with empty slots."""

    symbols: Tuple[str, ...]
    width: int
    usage: Tuple[Tuple[str, int], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not 1 <= len(self.symbols) <= self.width:
            raise ValueError(
                f"row must hold between 1 and {self.width} symbols, got {len(self.symbols)}"
            )
        if list(self.symbols) != sorted(self.symbols):
            raise ValueError(f"row symbols are not canonical: {self.symbols!r}")
        object.__setattr__(self, "usage", tuple(Counter(self.symbols).items()))

    @classmethod
    def canonical(cls, symbols: Iterable[str], width: int) -> "Row":
        return cls(tuple(sorted(symbols)), width)

    def cells(self) -> List[Optional[str]]:
        return list(self.symbols) + [None] * (self.width - len(self.symbols))

    def fits(self, remaining: SymbolCounts) -> bool:
        return all(remaining.get(sym, 0) >= n for sym, n in self.usage)


Table = Tuple[Row, ...]


def table_cells(table: Iterable[Row]) -> List[List[Optional[str]]]:
    return [row.cells() for row in table]


def table_usage(table: Iterable[Row]) -> SymbolCounts:
    total: Counter = Counter()
    for row in table:
        total.update(row.symbols)
    return dict(total)


@dataclass
class RunMeta:
    elapsed_sec: float
    output_path: str

    def template_vars(self, **kw):
        elapsed = f"{int(self.elapsed_sec//60)}m {int(self.elapsed_sec%60)}s"
        return dict(elapsed_str=elapsed, output_path=self.output_path, **kw)
