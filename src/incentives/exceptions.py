"""Business-rule errors raised by the incentive services."""


class IncentiveError(ValueError):
    """Base class for incentive rule violations."""


class InvalidStateTransition(IncentiveError):
    """The award is not in a status that allows the requested action."""

    def __init__(self, award_id, current_status: str, action: str):
        self.award_id = award_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} award {award_id}: its status is '{current_status}'."
        )


class DuplicateAwardPeriod(IncentiveError):
    """An active award already exists for the branch and period."""

    def __init__(self, branch_name, period_start, period_end):
        self.branch_name = branch_name
        self.period_start = period_start
        self.period_end = period_end
        if branch_name:
            message = (
                f"An award for {branch_name} covering {period_start} to {period_end} "
                "has already been committed."
            )
        else:
            message = f"An award covering {period_start} to {period_end} has already been committed."
        super().__init__(message)


class InvalidAwardAmount(IncentiveError):
    """Negative target, reward or adjustment."""
