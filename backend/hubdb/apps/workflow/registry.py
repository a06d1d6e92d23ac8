from __future__ import annotations

from .guards import guard_assignment_completion, guard_assignment_started

# Assignment status only moves forward; completed is terminal.
WORKFLOWS = {
    "training_assignment": {
        "transitions": {
            "assigned": {
                "in_progress": [guard_assignment_started],
                "completed": [guard_assignment_completion],
            },
            "in_progress": {
                "completed": [guard_assignment_completion],
            },
            "completed": {},
        }
    },
}
