"""
Error taxonomy for Auto Scaling Group attachments.

Every error carries the group name, the attachment kind and the membership
value so that failures can be correlated with the declared relationship.
"""
from typing import Any, Optional


class AttachmentError(Exception):
    """Base class for all attachment errors."""

    action = "managing"
    # Set when the attachment was applied in AWS before the error occurred
    identity = None

    def __init__(self, group: Optional[str] = None, kind: Any = None, value: Optional[str] = None, reason: Any = None):
        self.group = group
        self.kind = kind
        self.value = value
        self.reason = reason
        super().__init__(self._format())

    def _format(self) -> str:
        message = f"{self.action} Auto Scaling Group"
        if self.group:
            message = f"{message} ({self.group})"
        if self.value:
            kind = getattr(self.kind, "label", self.kind) or "attachment"
            message = f"{message} {kind} ({self.value})"
        if self.reason:
            message = f"{message}: {self.reason}"
        return message


class ConfigurationError(AttachmentError):
    action = "invalid configuration for"


class TransientCapacityError(AttachmentError):
    action = "too many simultaneous updates to"


class NotFoundError(AttachmentError):
    """The group, or the membership within it, does not exist."""

    what = "attachment"

    @property
    def action(self):
        return f"{self.what} not found for"


class GroupNotFound(NotFoundError):
    what = "group"


class MembershipNotFound(NotFoundError):
    what = "membership"


class AttachmentFailed(AttachmentError):
    action = "attaching"


class DetachmentFailed(AttachmentError):
    action = "detaching"


class ReadFailed(AttachmentError):
    action = "reading"


class Timeout(AttachmentError):
    action = "timed out updating"
