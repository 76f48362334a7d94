"""Weighted progress estimation from a job status snapshot.

Completed subtasks count for 85% of the bar and in-flight subtasks for 15%.
The percentage is then mapped onto six weighted pipeline stages.
"""

from dataclasses import dataclass

from modelsmith.models.generation import JobStatusSnapshot, ProgressView, SubtaskState

COMPLETED_WEIGHT = 85
PROCESSING_WEIGHT = 15
INITIAL_PERCENTAGE = 5.0
FAILURE_FLOOR = 10.0
FINAL_STAGE_THRESHOLD = 95.0


@dataclass(frozen=True)
class Stage:
    """One named pipeline stage and its share of the progress bar."""

    key: str
    label: str
    weight: int


class StageTable:
    """Ordered pipeline stages whose weights must sum to 100."""

    def __init__(self, stages: list[Stage]):
        if not stages:
            raise ValueError("Stage table cannot be empty")
        if any(stage.weight <= 0 for stage in stages):
            raise ValueError("Stage weights must be positive")
        total = sum(stage.weight for stage in stages)
        if total != 100:
            raise ValueError(f"Stage weights must sum to 100 (got {total})")
        self._stages = tuple(stages)

    def __len__(self) -> int:
        return len(self._stages)

    def __getitem__(self, index: int) -> Stage:
        return self._stages[index]

    @property
    def last_index(self) -> int:
        return len(self._stages) - 1

    def index_for(self, percentage: float) -> int:
        """Return the first stage whose cumulative weight reaches percentage."""
        if percentage >= FINAL_STAGE_THRESHOLD:
            return self.last_index
        cumulative = 0
        for index, stage in enumerate(self._stages):
            cumulative += stage.weight
            if cumulative >= percentage:
                return index
        return self.last_index


PIPELINE_STAGES = StageTable(
    [
        Stage("initialization", "Initializing", 10),
        Stage("analysis", "Image Analysis", 15),
        Stage("generation", "3D Generation", 40),
        Stage("enhancement", "Detail Enhancement", 20),
        Stage("texturing", "Texture Generation", 10),
        Stage("finalization", "Finalizing", 5),
    ]
)


def estimate_percentage(snapshot: JobStatusSnapshot) -> float:
    """Compute the 0-100 progress percentage for a snapshot."""
    total = snapshot.total
    if total == 0:
        return INITIAL_PERCENTAGE

    done = snapshot.count(SubtaskState.DONE)
    processing = snapshot.count(SubtaskState.PROCESSING)

    percentage = (done / total) * COMPLETED_WEIGHT + (processing / total) * PROCESSING_WEIGHT

    if snapshot.count(SubtaskState.FAILED) > 0:
        percentage = max(percentage, FAILURE_FLOOR)

    if done == total:
        percentage = 100.0

    return percentage


def estimate(snapshot: JobStatusSnapshot, stages: StageTable = PIPELINE_STAGES) -> ProgressView:
    """Map a status snapshot onto a progress percentage and pipeline stage.

    Pure and deterministic: the same snapshot always yields the same view.
    """
    if snapshot.total == 0:
        return ProgressView(
            percentage=INITIAL_PERCENTAGE, stage_index=0, stage_label=stages[0].label
        )

    percentage = estimate_percentage(snapshot)
    stage_index = stages.index_for(percentage)
    return ProgressView(
        percentage=percentage,
        stage_index=stage_index,
        stage_label=stages[stage_index].label,
    )
