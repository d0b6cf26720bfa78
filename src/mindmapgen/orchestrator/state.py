from __future__ import annotations

from dataclasses import dataclass, field

from mindmapgen.models import Outcome, Status


@dataclass
class BatchState:
    """Report slots for one batch, addressed by input row index.

    Each row task writes only its own slot, so concurrent rows never contend.
    """

    run_id: str
    row_count: int
    slots: list[Outcome | None] = field(init=False)
    processed: int = 0
    chunk_index: int = 0

    def __post_init__(self) -> None:
        self.slots = [None] * self.row_count

    def record(self, index: int, outcome: Outcome) -> None:
        if self.slots[index] is not None:
            raise RuntimeError(f"row {index} already has an outcome")
        self.slots[index] = outcome

    def covered(self) -> list[Outcome]:
        """Outcomes for rows 0..processed-1, in input order."""

        out: list[Outcome] = []
        for index in range(self.processed):
            outcome = self.slots[index]
            if outcome is None:
                raise RuntimeError(f"row {index} has no outcome")
            out.append(outcome)
        return out

    def snapshot(self) -> dict[str, str | int]:
        done = [o for o in self.slots if o is not None]
        return {
            "run_id": self.run_id,
            "row_count": self.row_count,
            "processed": self.processed,
            "chunk_index": self.chunk_index,
            "succeeded": sum(1 for o in done if o.status == Status.SUCCESS.value),
            "failed": sum(1 for o in done if o.status == Status.FAILURE.value),
        }
