"""
Lifecycle state machine for one file upload
Composed into FileUploader instead of inherited
"""

import secrets
from enum import Enum
from typing import Optional
import logging

from ..events import EventEmitter
from ..exceptions import LifecycleError

logger = logging.getLogger(__name__)


def guid(prefix: str = "u_") -> str:
    """Process-unique identifier"""
    return prefix + secrets.token_hex(8)


class UploadState(Enum):
    """Per-file upload states"""
    CREATED = "created"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    DESTROYED = "destroyed"


TRANSITIONS = {
    UploadState.CREATED: {UploadState.RUNNING, UploadState.DESTROYED},
    UploadState.RUNNING: {UploadState.DONE, UploadState.FAILED, UploadState.DESTROYED},
    UploadState.DONE: {UploadState.DESTROYED},
    UploadState.FAILED: {UploadState.DESTROYED},
    UploadState.DESTROYED: set(),
}


class Lifecycle:
    """Explicit state enum plus transition table"""

    def __init__(self, emitter: Optional[EventEmitter] = None):
        self.state = UploadState.CREATED
        self.emitter = emitter

    def can(self, target: UploadState) -> bool:
        return target in TRANSITIONS[self.state]

    def transition(self, target: UploadState):
        """Move to target or raise LifecycleError"""
        if not self.can(target):
            raise LifecycleError(
                f"Cannot go from {self.state.value} to {target.value}"
            )

        previous, self.state = self.state, target
        logger.debug(f"State {previous.value} -> {target.value}")

        if self.emitter:
            self.emitter.trigger('statechanged', target, previous)

    def require(self, *states: UploadState):
        """Raise LifecycleError unless in one of states"""
        if self.state not in states:
            raise LifecycleError(
                f"Operation not allowed in state {self.state.value}"
            )

    @property
    def destroyed(self) -> bool:
        return self.state is UploadState.DESTROYED
