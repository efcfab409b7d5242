import enum
from dataclasses import dataclass, field


class OutcomeStatus(str, enum.Enum):
    applied = "applied"
    reverted = "reverted"
    skipped_missing = "skipped_missing"
    skipped_existing = "skipped_existing"
    failed = "failed"


@dataclass
class TargetOutcome:
    target: str
    status: OutcomeStatus
    rows_backfilled: int = 0
    message: str | None = None

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "status": self.status.value,
            "rows_backfilled": self.rows_backfilled,
            "message": self.message,
        }


@dataclass
class StepReport:
    """Per-target outcomes of one migration step in one direction."""

    step: str
    direction: str = "upgrade"
    outcomes: list[TargetOutcome] = field(default_factory=list)

    def record(
        self,
        target: str,
        status: OutcomeStatus,
        rows_backfilled: int = 0,
        message: str | None = None,
    ) -> TargetOutcome:
        outcome = TargetOutcome(target=target, status=status, rows_backfilled=rows_backfilled, message=message)
        self.outcomes.append(outcome)
        return outcome

    def with_status(self, *statuses: OutcomeStatus) -> list[TargetOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status in statuses]

    def outcome_for(self, target: str) -> TargetOutcome | None:
        for outcome in reversed(self.outcomes):
            if outcome.target == target:
                return outcome
        return None

    @property
    def processed(self) -> list[TargetOutcome]:
        return self.with_status(OutcomeStatus.applied, OutcomeStatus.reverted)

    @property
    def skipped(self) -> list[TargetOutcome]:
        return self.with_status(OutcomeStatus.skipped_missing, OutcomeStatus.skipped_existing)

    @property
    def failures(self) -> list[TargetOutcome]:
        return self.with_status(OutcomeStatus.failed)

    @property
    def succeeded(self) -> bool:
        return not self.failures

    @property
    def rows_backfilled(self) -> int:
        return sum(outcome.rows_backfilled for outcome in self.outcomes)

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "direction": self.direction,
            "summary": {
                "processed": len(self.processed),
                "skipped": len(self.skipped),
                "failed": len(self.failures),
                "rows_backfilled": self.rows_backfilled,
            },
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }
