from __future__ import annotations

from .guards import (
    guard_interest_approval,
    guard_interest_conversion,
    guard_registration_completion,
)

# from_state -> {to_state: [guards]}. States absent from a mapping are terminal.
WORKFLOWS = {
    "formation_interest": {
        "transitions": {
            "pending": {
                "approved": [guard_interest_approval],
                "rejected": [],
            },
            "approved": {
                "converted": [guard_interest_conversion],
                "rejected": [],
                "withdrawn": [],
            },
            "converted": {
                "withdrawn": [],
            },
            "rejected": {},
            "withdrawn": {},
        }
    },
    "formation_interest_coach": {
        "transitions": {
            "pending": {"approved": [], "rejected": []},
            "approved": {},
            "rejected": {},
        }
    },
    "registration": {
        "transitions": {
            "pending": {
                "validated": [],
                "cancelled": [],
            },
            "validated": {
                "completed": [guard_registration_completion],
                "cancelled": [],
            },
            "completed": {},
            "cancelled": {},
        }
    },
}
