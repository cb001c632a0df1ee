"""
Stock Transfer Workflow.

The transfer lifecycle as a single declarative state machine.  The service
looks every action up here before touching any state.
"""

from stock_kernel.domain.workflow import Guard, Transition, Workflow
from stock_kernel.logging_config import get_logger
from stock_modules.transfers.models import TransferStatus

logger = get_logger("modules.transfers.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

STOCK_AVAILABLE = Guard(
    name="stock_available",
    description="Source warehouse holds the requested quantity of every item",
)

CANCELLATION_REASON_GIVEN = Guard(
    name="cancellation_reason_given",
    description="A non-empty cancellation reason is supplied",
)

REJECTION_REASON_GIVEN = Guard(
    name="rejection_reason_given",
    description="A non-empty rejection reason is supplied",
)


# -----------------------------------------------------------------------------
# Actions
# -----------------------------------------------------------------------------

APPROVE = "approve"
REJECT = "reject"
DISPATCH = "dispatch"
RECEIVE = "receive"
COMPLETE = "complete"
CANCEL = "cancel"


# -----------------------------------------------------------------------------
# Transfer Workflow
# -----------------------------------------------------------------------------

_PENDING = TransferStatus.PENDING.value
_APPROVED = TransferStatus.APPROVED.value
_IN_TRANSIT = TransferStatus.IN_TRANSIT.value
_DELIVERED = TransferStatus.DELIVERED.value
_COMPLETED = TransferStatus.COMPLETED.value
_CANCELLED = TransferStatus.CANCELLED.value
_REJECTED = TransferStatus.REJECTED.value

TRANSFER_WORKFLOW = Workflow(
    name="stock_transfer",
    description="Warehouse-to-warehouse stock transfer",
    initial_state=_PENDING,
    states=(
        _PENDING,
        _APPROVED,
        _IN_TRANSIT,
        _DELIVERED,
        _COMPLETED,
        _CANCELLED,
        _REJECTED,
    ),
    transitions=(
        Transition(_PENDING, _APPROVED, action=APPROVE, guard=STOCK_AVAILABLE),
        Transition(_PENDING, _REJECTED, action=REJECT, guard=REJECTION_REASON_GIVEN),
        Transition(
            _APPROVED, _IN_TRANSIT, action=DISPATCH,
            guard=STOCK_AVAILABLE, posts_movements=True,
        ),
        Transition(_IN_TRANSIT, _DELIVERED, action=RECEIVE),
        Transition(_DELIVERED, _COMPLETED, action=COMPLETE, posts_movements=True),
        Transition(_PENDING, _CANCELLED, action=CANCEL, guard=CANCELLATION_REASON_GIVEN),
        Transition(_APPROVED, _CANCELLED, action=CANCEL, guard=CANCELLATION_REASON_GIVEN),
        Transition(
            _IN_TRANSIT, _CANCELLED, action=CANCEL,
            guard=CANCELLATION_REASON_GIVEN, posts_movements=True,
        ),
    ),
    terminal_states=(_COMPLETED, _CANCELLED, _REJECTED),
)

logger.info(
    "transfer_workflow_defined",
    extra={
        "workflow": TRANSFER_WORKFLOW.name,
        "states": len(TRANSFER_WORKFLOW.states),
        "transitions": len(TRANSFER_WORKFLOW.transitions),
    },
)
