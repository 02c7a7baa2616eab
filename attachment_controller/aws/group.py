from dataclasses import dataclass, field
from typing import Any, List
import logging
from botocore.exceptions import ClientError

from .client import is_not_found_error, is_transient_capacity_error
from ..errors import GroupNotFound, MembershipNotFound, TransientCapacityError
from ..mode import Kind

logger = logging.getLogger(__name__)


@dataclass
class GroupState:
    """Read-only view of an Auto Scaling Group's attachments."""
    name: str
    load_balancer_names: List[str] = field(default_factory=list)
    target_group_ids: List[str] = field(default_factory=list)

    def members(self, kind: Kind) -> List[str]:
        if kind is Kind.BY_NAME:
            return self.load_balancer_names
        return self.target_group_ids


class GroupDirectory:
    """Looks up Auto Scaling Groups through DescribeAutoScalingGroups."""

    def __init__(self, autoscaling: Any):
        self.autoscaling = autoscaling

    def fetch(self, group_name: str) -> GroupState:
        """
        Get the current state of an Auto Scaling Group.

        Raises:
            GroupNotFound: If no group with that name exists
            botocore.exceptions.ClientError: On any other API failure
        """
        response = self.autoscaling.describe_auto_scaling_groups(
            AutoScalingGroupNames=[group_name]
        )
        for group in response.get('AutoScalingGroups', []):
            if group.get('AutoScalingGroupName') == group_name:
                return GroupState(
                    name=group_name,
                    load_balancer_names=list(group.get(Kind.BY_NAME.membership_key, [])),
                    target_group_ids=list(group.get(Kind.BY_TARGET_GROUP_ID.membership_key, []))
                )
        raise GroupNotFound(group_name)


class AttachmentAPI:
    """
    The four imperative Auto Scaling attach/detach calls.

    botocore errors signalling the update limit are raised as
    TransientCapacityError and errors about a missing group as GroupNotFound;
    everything else propagates as ClientError.
    """

    def __init__(self, autoscaling: Any):
        self.autoscaling = autoscaling

    def attach_by_name(self, group_name: str, names: List[str]) -> None:
        self._call(Kind.BY_NAME, group_name, names, self.autoscaling.attach_load_balancers,
                   AutoScalingGroupName=group_name, LoadBalancerNames=names)

    def detach_by_name(self, group_name: str, names: List[str]) -> None:
        self._call(Kind.BY_NAME, group_name, names, self.autoscaling.detach_load_balancers,
                   AutoScalingGroupName=group_name, LoadBalancerNames=names)

    def attach_by_target_group_id(self, group_name: str, target_group_ids: List[str]) -> None:
        self._call(Kind.BY_TARGET_GROUP_ID, group_name, target_group_ids,
                   self.autoscaling.attach_load_balancer_target_groups,
                   AutoScalingGroupName=group_name, TargetGroupARNs=target_group_ids)

    def detach_by_target_group_id(self, group_name: str, target_group_ids: List[str]) -> None:
        self._call(Kind.BY_TARGET_GROUP_ID, group_name, target_group_ids,
                   self.autoscaling.detach_load_balancer_target_groups,
                   AutoScalingGroupName=group_name, TargetGroupARNs=target_group_ids)

    def _call(self, kind: Kind, group_name: str, values: List[str], operation, **params) -> None:
        value = ", ".join(values)
        try:
            operation(**params)
        except ClientError as e:
            if is_transient_capacity_error(e):
                raise TransientCapacityError(group_name, kind, value, reason=str(e)) from e
            if is_not_found_error(e):
                raise GroupNotFound(group_name, kind, value, reason=str(e)) from e
            raise


def find_attachment(directory: GroupDirectory, group_name: str, kind: Kind, value: str) -> bool:
    """
    Check that ``value`` is among the group's members of the given kind.

    Args:
        directory: Group directory to fetch the group from
        group_name: Name of the Auto Scaling Group
        kind: Which membership list to scan
        value: Load balancer name or target group ARN

    Returns:
        bool: True when the membership is present

    Raises:
        GroupNotFound: If the group does not exist
        MembershipNotFound: If the group exists but the value is not attached
    """
    try:
        group = directory.fetch(group_name)
    except GroupNotFound as e:
        raise GroupNotFound(group_name, kind, value) from e

    if value in group.members(kind):
        return True

    raise MembershipNotFound(group_name, kind, value)
