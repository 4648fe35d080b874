# order_flow/exceptions.py


class OrderFlowError(Exception):
    """Base class for every failure the order flow core reports."""

    code = "order_flow_error"


class NotFound(OrderFlowError):
    """An order, mapping row or issue does not exist."""

    code = "not_found"


class OrderNotFound(NotFound):
    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id!r} not found")
        self.order_id = order_id


class MappingNotFound(NotFound):
    def __init__(self, mapping_id: str):
        super().__init__(f"Status mapping {mapping_id!r} not found")
        self.mapping_id = mapping_id


class IssueNotFound(NotFound):
    def __init__(self, issue_id: str):
        super().__init__(f"Issue {issue_id!r} not found")
        self.issue_id = issue_id


class ValidationFailure(OrderFlowError):
    """Input was rejected before any state was touched."""

    code = "validation_failure"


class PreconditionBlocked(OrderFlowError):
    """
    An area precondition blocks the move. ``reason`` is shown to the operator
    verbatim.
    """

    code = "precondition_blocked"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


__all__ = [
    "OrderFlowError",
    "NotFound",
    "OrderNotFound",
    "MappingNotFound",
    "IssueNotFound",
    "ValidationFailure",
    "PreconditionBlocked",
]
