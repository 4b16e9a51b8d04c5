"""Rewards collaborator — points awarded for completed orders.

The rewards service is consumed fire-and-forget through the task outbox;
its failures are recorded on the task and never reach the customer.
"""

from abc import ABC, abstractmethod


class RewardsError(Exception):
    pass


class RewardsPort(ABC):
    @abstractmethod
    def award_order_points(self, order_id: str) -> None: ...


class FakeRewards(RewardsPort):
    def __init__(self) -> None:
        self.should_succeed = True
        self.failure_reason = "Rewards service unavailable"
        self.awarded: list[str] = []

    def configure(self, should_succeed: bool = True, failure_reason: str = "Rewards service unavailable") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def award_order_points(self, order_id: str) -> None:
        if not self.should_succeed:
            raise RewardsError(self.failure_reason)
        self.awarded.append(str(order_id))


_current_rewards: RewardsPort | None = None


def get_rewards() -> RewardsPort:
    global _current_rewards
    if _current_rewards is None:
        _current_rewards = FakeRewards()
    return _current_rewards


def set_rewards(rewards: RewardsPort) -> None:
    global _current_rewards
    _current_rewards = rewards


def reset_rewards() -> None:
    global _current_rewards
    _current_rewards = None
