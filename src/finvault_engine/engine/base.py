from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Generic, TypeVar

from finvault_engine.models import Event

EventT = TypeVar("EventT", bound=Event)
ProfileT = TypeVar("ProfileT")


class ProfileStrategy(ABC, Generic[EventT, ProfileT]):
    """Per-domain aggregation plugged into the shared scoring pipeline."""

    def __init__(self, min_samples: int = 5):
        self.min_samples = min_samples

    def is_fit(self, sample_count: int) -> bool:
        return sample_count >= self.min_samples

    @abstractmethod
    def build(self, events: Sequence[EventT]) -> ProfileT:
        """Rebuild the whole profile from the given events. Must not mutate them."""
        pass
