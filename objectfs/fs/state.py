"""
Write Session State Machine: Per-URI Lifecycle FSM

States:
    EMPTY               → Entry created, nothing appended yet
    BUFFERING           → Bytes accumulated in memory, no remote state
    BUFFERING_MULTIPART → Multipart upload open, full parts streamed out
    FLUSHING            → Flush in progress (final PUT or completion)
    FINALIZED           → Remote object visible; entry leaves the cache
    FAILED              → Session lost; buffered bytes discarded

Transitions:
    EMPTY               → BUFFERING           : First non-empty write
    BUFFERING           → BUFFERING_MULTIPART : First full part carved
    BUFFERING           → FLUSHING            : flush (single PUT)
    BUFFERING_MULTIPART → FLUSHING            : flush (tail + completion)
    FLUSHING            → FINALIZED           : Remote object committed
    BUFFERING           → FAILED              : Opening the upload failed
    BUFFERING_MULTIPART → FAILED              : A part upload failed
    FLUSHING            → FAILED              : PUT, part or completion failed

Design:
    - Transition table is a frozenset of immutable records
    - An illegal transition is a programming error, reported as Err
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from objectfs.core.types import Result, Ok, Err


# =============================================================================
# ENTRY STATE ENUMERATION
# =============================================================================
class EntryState(Enum):
    """
    Write session lifecycle states.

    Terminal states are FINALIZED and FAILED.
    """
    EMPTY = auto()
    BUFFERING = auto()
    BUFFERING_MULTIPART = auto()
    FLUSHING = auto()
    FINALIZED = auto()
    FAILED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (EntryState.FINALIZED, EntryState.FAILED)

    @property
    def has_unflushed_writes(self) -> bool:
        """True while bytes written to the URI are not yet a remote object."""
        return self in (
            EntryState.BUFFERING,
            EntryState.BUFFERING_MULTIPART,
            EntryState.FLUSHING,
        )


# =============================================================================
# TRANSITION DEFINITIONS
# =============================================================================
@dataclass(frozen=True, slots=True)
class EntryTransition:
    """
    Represents a valid state transition.

    Immutable to prevent accidental modification during validation.
    """
    from_state: EntryState
    to_state: EntryState
    trigger: str


VALID_TRANSITIONS: frozenset[EntryTransition] = frozenset({
    EntryTransition(EntryState.EMPTY, EntryState.BUFFERING, "FIRST_WRITE"),

    EntryTransition(EntryState.BUFFERING, EntryState.BUFFERING_MULTIPART, "PART_CARVED"),
    EntryTransition(EntryState.BUFFERING, EntryState.FLUSHING, "FLUSH"),
    EntryTransition(EntryState.BUFFERING, EntryState.FAILED, "UPLOAD_FAILED"),

    EntryTransition(EntryState.BUFFERING_MULTIPART, EntryState.FLUSHING, "FLUSH"),
    EntryTransition(EntryState.BUFFERING_MULTIPART, EntryState.FAILED, "UPLOAD_FAILED"),

    EntryTransition(EntryState.FLUSHING, EntryState.FINALIZED, "COMPLETED"),
    EntryTransition(EntryState.FLUSHING, EntryState.FAILED, "UPLOAD_FAILED"),
})


def is_valid_transition(current: EntryState, target: EntryState, trigger: str) -> bool:
    return EntryTransition(current, target, trigger) in VALID_TRANSITIONS


def transition(current: EntryState, target: EntryState, trigger: str) -> Result[EntryState, str]:
    """
    Validate a transition against the table.

    Returns:
        Ok(target) if the transition is allowed
        Err with message otherwise
    """
    if is_valid_transition(current, target, trigger):
        return Ok(target)
    return Err(f"Invalid transition {current.name} → {target.name} on {trigger}")
