"""
Entry/exit signal sets consumed by the simulation engine.

A signal set is the strategy's decision reduced to bar indices: a list of
closed positions (entry index, exit index) and at most one trailing open
entry. Positions never overlap, so at most one position is active at any
bar.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from quantback.exceptions import DataValidationError


@dataclass(frozen=True)
class PositionSignal:
    """A closed position: open at ``entry_index``, close at ``exit_index``."""

    entry_index: int
    exit_index: int

    def __post_init__(self):
        if self.entry_index < 0:
            raise DataValidationError(
                "Entry index cannot be negative",
                field="entry_index",
                value=self.entry_index,
                expected=">= 0",
            )
        if self.entry_index >= self.exit_index:
            raise DataValidationError(
                "Entry index must come before exit index",
                field="exit_index",
                value=self.exit_index,
                expected=f"> {self.entry_index}",
            )


@dataclass(frozen=True)
class SignalSet:
    """
    Closed position pairs plus an optional trailing open entry.

    Attributes:
        positions: Closed positions in chronological order
        open_entry: Entry index of a position still open at the end of
            the series, or None
    """

    positions: Tuple[PositionSignal, ...] = field(default_factory=tuple)
    open_entry: Optional[int] = None

    def __post_init__(self):
        # Accept any sequence but store a tuple
        object.__setattr__(self, "positions", tuple(self.positions))

        previous_exit = None
        for pos in self.positions:
            if previous_exit is not None and pos.entry_index < previous_exit:
                raise DataValidationError(
                    "Positions overlap or are out of order",
                    field="entry_index",
                    value=pos.entry_index,
                    expected=f">= {previous_exit}",
                )
            previous_exit = pos.exit_index

        if self.open_entry is not None:
            floor = previous_exit if previous_exit is not None else 0
            if self.open_entry < floor:
                raise DataValidationError(
                    "Open entry must follow the last closed position",
                    field="open_entry",
                    value=self.open_entry,
                    expected=f">= {floor}",
                )

    @classmethod
    def from_pairs(
        cls,
        pairs: Sequence[Tuple[int, int]],
        open_entry: Optional[int] = None,
    ) -> "SignalSet":
        """Build a signal set from (entry, exit) index tuples."""
        return cls(
            positions=tuple(PositionSignal(int(e), int(x)) for e, x in pairs),
            open_entry=open_entry,
        )

    @classmethod
    def from_rules(cls, entries: Sequence[bool], exits: Sequence[bool]) -> "SignalSet":
        """
        Pair per-bar entry/exit rule outcomes into positions.

        Walks the bars once holding at most one position: while flat a
        satisfied entry rule opens a position, while long a satisfied exit
        rule closes it. A bar that closes a position is not re-examined for
        a new entry.

        Args:
            entries: Entry rule outcome per bar
            exits: Exit rule outcome per bar

        Returns:
            SignalSet with the resulting positions
        """
        if len(entries) != len(exits):
            raise DataValidationError(
                "Entry and exit rules must cover the same bars",
                field="exits",
                value=len(exits),
                expected=str(len(entries)),
            )

        positions: List[PositionSignal] = []
        entry_index: Optional[int] = None

        for i, (enter, leave) in enumerate(zip(entries, exits)):
            if entry_index is None:
                if enter:
                    entry_index = i
            elif leave:
                positions.append(PositionSignal(entry_index, i))
                entry_index = None

        return cls(positions=tuple(positions), open_entry=entry_index)

    def entry_indices(self) -> List[int]:
        """All entry indices, including the open entry."""
        indices = [p.entry_index for p in self.positions]
        if self.open_entry is not None:
            indices.append(self.open_entry)
        return indices

    def exit_positions(self) -> Dict[int, PositionSignal]:
        """Map each exit index to the position it closes."""
        return {p.exit_index: p for p in self.positions}

    def validate_against(self, bar_count: int) -> None:
        """Raise if any index falls outside a series of ``bar_count`` bars."""
        last = max(
            [p.exit_index for p in self.positions] + self.entry_indices(),
            default=-1,
        )
        if last >= bar_count:
            raise DataValidationError(
                "Signal index outside the bar sequence",
                field="index",
                value=last,
                expected=f"< {bar_count}",
            )

    @property
    def is_empty(self) -> bool:
        return not self.positions and self.open_entry is None

    def __len__(self) -> int:
        return len(self.positions) + (1 if self.open_entry is not None else 0)
