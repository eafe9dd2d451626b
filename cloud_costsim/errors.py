"""Error types shared across the simulator."""

from dataclasses import dataclass


class ConfigurationError(ValueError):
    """Invalid policy or configuration; the simulation must not start."""


@dataclass(frozen=True)
class SubstrateInconsistency:
    """A command the substrate could not honour.

    Recorded by the broker rather than raised: the run continues and the
    result reporter surfaces these as warnings.
    """
    timestamp: float
    command: str
    resource_id: str
    reason: str

    def __str__(self) -> str:
        return (f"[{self.timestamp:.1f}s] {self.command} {self.resource_id}: "
                f"{self.reason}")
