"""
Additionals Entry Workflow (``assessment_modules.additionals.workflows``).

Responsibility
--------------
Declares the lifecycle of a single additionals entry.  A pending entry
may be edited, deleted, approved or declined; approved and declined are
terminal.  Any later change to an entry's financial effect is a new
reversal entry, never a transition.

Architecture position
---------------------
**Modules layer** -- declarative workflow definitions.  Imports canonical
Guard, Transition, Workflow from ``assessment_kernel.domain.workflow``.

Audit relevance
---------------
Workflow definitions logged at module-load time with state counts and
transition counts for configuration audit.
"""

from assessment_kernel.domain.workflow import Guard, Transition, Workflow
from assessment_kernel.logging_config import get_logger

logger = get_logger("modules.additionals.workflows")


REASON_PROVIDED = Guard(
    name="reason_provided",
    description="A non-blank reason accompanies the decision",
)

ENTRY_WORKFLOW = Workflow(
    name="additionals_entry",
    description="Additionals entry approval lifecycle",
    initial_state="pending",
    states=(
        "pending",
        "approved",
        "declined",
        "deleted",
    ),
    terminal_states=("approved", "declined", "deleted"),
    transitions=(
        Transition("pending", "pending", action="edit"),
        Transition("pending", "approved", action="approve"),
        Transition("pending", "declined", action="decline", guard=REASON_PROVIDED),
        Transition("pending", "deleted", action="delete"),
    ),
)

logger.info(
    "additionals_entry_workflow_registered",
    extra={
        "workflow_name": ENTRY_WORKFLOW.name,
        "state_count": len(ENTRY_WORKFLOW.states),
        "transition_count": len(ENTRY_WORKFLOW.transitions),
        "initial_state": ENTRY_WORKFLOW.initial_state,
    },
)
