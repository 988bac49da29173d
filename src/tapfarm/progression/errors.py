"""Progression error taxonomy.

Every ``ProgressionError`` is a validation outcome computed before any write:
the command that raised it left the stored record untouched and retrying it
unchanged will fail the same way. ``ConcurrentUpdateError`` is the one
transient failure owned by this package and is safe to retry.
"""

from __future__ import annotations


class ProgressionError(ValueError):
    """Base class for validation failures of a progression command."""

    code = "ProgressionError"
    status_code = 400

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message())

    @classmethod
    def default_message(cls) -> str:
        return cls.code


class UnknownUser(ProgressionError):
    code = "UnknownUser"
    status_code = 404

    def __init__(self, player_id: int) -> None:
        self.player_id = player_id
        super().__init__(f"Player {player_id} not found")


class UnknownCategory(ProgressionError):
    code = "UnknownCategory"
    status_code = 404

    def __init__(self, category: str) -> None:
        self.category = category
        super().__init__(f"Unknown upgrade category '{category}'")


class InvalidAmount(ProgressionError):
    code = "InvalidAmount"
    status_code = 400


class InsufficientFunds(ProgressionError):
    code = "InsufficientFunds"
    status_code = 409

    def __init__(self, balance: int, required: int) -> None:
        self.balance = balance
        self.required = required
        super().__init__(f"Insufficient funds: balance {balance}, required {required}")


class InsufficientEnergy(ProgressionError):
    code = "InsufficientEnergy"
    status_code = 409

    def __init__(self, available: int, required: int) -> None:
        self.available = available
        self.required = required
        super().__init__(f"Insufficient energy: available {available}, required {required}")


class UpgradeMaxed(ProgressionError):
    code = "UpgradeMaxed"
    status_code = 409

    def __init__(self, category: str, level: int) -> None:
        self.category = category
        self.level = level
        super().__init__(f"'{category}' is already at max level {level}")


class InvalidDay(ProgressionError):
    code = "InvalidDay"
    status_code = 400

    def __init__(self, requested: int, current: int) -> None:
        self.requested = requested
        self.current = current
        super().__init__(f"Day {requested} cannot be collected, current streak day is {current}")


class AlreadyCollected(ProgressionError):
    code = "AlreadyCollected"
    status_code = 409


class InvalidTask(ProgressionError):
    code = "InvalidTask"
    status_code = 404

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Unknown task '{task_id}'")


class TaskNotReady(ProgressionError):
    code = "TaskNotReady"
    status_code = 409

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Task '{task_id}' is not completed yet")


class SelfReferral(ProgressionError):
    code = "SelfReferral"
    status_code = 400

    def __init__(self) -> None:
        super().__init__("A player cannot refer themselves")


class AlreadyReferred(ProgressionError):
    code = "AlreadyReferred"
    status_code = 409

    def __init__(self, player_id: int, referred_by: int | None) -> None:
        self.player_id = player_id
        self.referred_by = referred_by
        super().__init__(f"Player {player_id} was already referred")


class ConcurrentUpdateError(RuntimeError):
    """The record kept changing underneath the command; retry later."""

    code = "ConcurrentUpdate"
