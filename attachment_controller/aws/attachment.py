from typing import Any, Optional
import itertools
import logging
import threading
from datetime import datetime, timezone
from botocore.exceptions import ClientError

from .client import retry_when_transient
from .group import AttachmentAPI, GroupDirectory, find_attachment
from ..errors import (
    AttachmentError,
    AttachmentFailed,
    DetachmentFailed,
    NotFoundError,
    ReadFailed,
)
from ..mode import AttachmentSpec, Kind, select_mode

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20 * 60  # seconds

_id_counter = itertools.count(1)
_id_lock = threading.Lock()

def prefixed_unique_id(prefix: str) -> str:
    """
    Generate a local identifier starting with ``prefix``.

    The suffix is a UTC timestamp down to 1/10000 s followed by an 8 digit hex
    counter, so identifiers sort by creation time and never repeat within a
    process.
    """
    with _id_lock:
        counter = next(_id_counter)
    now = datetime.now(timezone.utc)
    timestamp = now.strftime("%Y%m%d%H%M%S") + f"{now.microsecond // 100:04d}"
    return f"{prefix}{timestamp}{counter:08x}"


class AttachmentController:
    """
    Create, read and delete an Auto Scaling Group attachment.

    The Auto Scaling API has no attachment object, only the membership lists
    of the group. Identities handed out by create() are therefore local
    handles and are never sent to AWS; existence is always derived from the
    group itself.
    """

    def __init__(self, autoscaling: Any, timeout: float = DEFAULT_TIMEOUT):
        self.api = AttachmentAPI(autoscaling)
        self.directory = GroupDirectory(autoscaling)
        self.timeout = timeout

    def create(self, spec: AttachmentSpec, stopped=None) -> str:
        """
        Attach the load balancer or target group to the group.

        Returns:
            str: The identity of the new attachment

        Raises:
            ConfigurationError: If the spec does not declare exactly one membership
            AttachmentFailed: If AWS rejects the attach call
            Timeout: If the update limit persisted until the timeout
            NotFoundError: If the attachment is missing right after attaching. The
                error carries the new identity in its ``identity`` attribute.
        """
        kind, value = select_mode(spec)
        operation = (self.api.attach_by_name if kind is Kind.BY_NAME
                     else self.api.attach_by_target_group_id)

        logger.info(f"Attaching {kind.label} {value} to Auto Scaling Group {spec.group_name}")
        try:
            retry_when_transient(operation, spec.group_name, [value], timeout=self.timeout, stopped=stopped)
        except (ClientError, NotFoundError) as e:
            raise AttachmentFailed(spec.group_name, kind, value, reason=str(e)) from e

        identity = prefixed_unique_id(f"{spec.group_name}-")
        logger.info(f"Attached {kind.label} {value} to Auto Scaling Group {spec.group_name} as {identity}")

        try:
            self.read(identity, spec, is_new=True)
        except AttachmentError as e:
            # AWS applied the attach, so the caller still has to track it
            e.identity = identity
            raise
        return identity

    def read(self, identity: str, spec: AttachmentSpec, is_new: bool = False) -> bool:
        """
        Check whether the attachment still exists.

        Args:
            identity: Identity returned by create()
            spec: The spec the attachment was created from
            is_new: True only for the read create() performs itself. A missing
                attachment is then an error instead of drift.

        Returns:
            bool: True if attached, False if the attachment is gone and the
            identity should be forgotten

        Raises:
            NotFoundError: If is_new and the attachment is missing
            ReadFailed: If the group could not be described
        """
        kind, value = select_mode(spec)
        try:
            return find_attachment(self.directory, spec.group_name, kind, value)
        except NotFoundError as e:
            if is_new:
                raise
            logger.warning(f"Auto Scaling Group Attachment {identity} not found, removing from state: {str(e)}")
            return False
        except ClientError as e:
            raise ReadFailed(spec.group_name, kind, value, reason=str(e)) from e

    def delete(self, identity: Optional[str], spec: AttachmentSpec, stopped=None) -> None:
        """
        Detach the load balancer or target group from the group.

        A group or membership that is already gone counts as detached.

        Raises:
            DetachmentFailed: If AWS rejects the detach call
            Timeout: If the update limit persisted until the timeout
        """
        kind, value = select_mode(spec)
        operation = (self.api.detach_by_name if kind is Kind.BY_NAME
                     else self.api.detach_by_target_group_id)

        logger.info(f"Detaching {kind.label} {value} from Auto Scaling Group {spec.group_name} ({identity})")
        try:
            retry_when_transient(operation, spec.group_name, [value], timeout=self.timeout, stopped=stopped)
        except NotFoundError as e:
            logger.info(f"Auto Scaling Group Attachment {identity} already gone: {str(e)}")
            return
        except ClientError as e:
            raise DetachmentFailed(spec.group_name, kind, value, reason=str(e)) from e
        logger.info(f"Detached {kind.label} {value} from Auto Scaling Group {spec.group_name}")
