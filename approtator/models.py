from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class StakeAction(Enum):
    STAKE = "stake"
    UNSTAKE = "unstake"
    TRANSFER = "transfer"

    @property
    def is_transfer(self) -> bool:
        return self is StakeAction.TRANSFER


@dataclass(frozen=True)
class KeyPair:
    """Source and destination keys of an app transfer."""

    source: str
    destination: str

    def __repr__(self):
        return "KeyPair(<redacted>)"


@dataclass(frozen=True)
class Success:
    tx_hash: str


@dataclass(frozen=True)
class Failure:
    error: str


Result = Union[Success, Failure]


@dataclass(frozen=True)
class ActionOutcome:
    action: StakeAction
    address: str
    result: Result
    new_address: Optional[str] = None

    @property
    def success(self) -> bool:
        return isinstance(self.result, Success)

    @property
    def response(self) -> str:
        if isinstance(self.result, Success):
            return self.result.tx_hash
        return self.result.error


@dataclass(frozen=True)
class BatchResult:
    action: StakeAction
    outcomes: tuple

    @property
    def ok(self) -> bool:
        return all(outcome.success for outcome in self.outcomes)

    @property
    def failures(self) -> list:
        return [outcome for outcome in self.outcomes if not outcome.success]

    def __len__(self):
        return len(self.outcomes)

    def __iter__(self):
        return iter(self.outcomes)
