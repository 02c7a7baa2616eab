"""
Declared attachment configuration and resolution of the attachment kind.

An AutoScalingAttachment names a group plus exactly one of a classic load
balancer, a target group ARN, or the deprecated ALB target group ARN alias.
Everything downstream works on the resolved (Kind, value) pair.
"""
import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .errors import ConfigurationError

# Custom resource spec field names
GROUP_NAME_FIELD = "autoScalingGroupName"
LOAD_BALANCER_NAME_FIELD = "loadBalancerName"
TARGET_GROUP_FIELD = "targetGroupArn"
LEGACY_TARGET_GROUP_FIELD = "albTargetGroupArn"
MEMBERSHIP_FIELDS = (LOAD_BALANCER_NAME_FIELD, TARGET_GROUP_FIELD, LEGACY_TARGET_GROUP_FIELD)

DEPRECATION_NOTICE = f"{LEGACY_TARGET_GROUP_FIELD} is deprecated, use {TARGET_GROUP_FIELD} instead"


class Kind(enum.Enum):
    BY_NAME = ("load balancer", "LoadBalancerNames")
    BY_TARGET_GROUP_ID = ("target group", "TargetGroupARNs")

    def __init__(self, label, membership_key):
        self.label = label
        self.membership_key = membership_key


@dataclass(frozen=True)
class AttachmentSpec:
    group_name: str
    load_balancer_name: Optional[str] = None
    target_group_id: Optional[str] = None
    legacy_target_group_id: Optional[str] = None
    region: Optional[str] = None

    @classmethod
    def from_manifest(cls, spec: Dict[str, Any]) -> "AttachmentSpec":
        """Build from the spec of an AutoScalingAttachment custom resource."""
        group_name = spec.get(GROUP_NAME_FIELD)
        if not group_name:
            raise ConfigurationError(reason=f"{GROUP_NAME_FIELD} is required")
        return cls(
            group_name=group_name,
            load_balancer_name=spec.get(LOAD_BALANCER_NAME_FIELD) or None,
            target_group_id=spec.get(TARGET_GROUP_FIELD) or None,
            legacy_target_group_id=spec.get(LEGACY_TARGET_GROUP_FIELD) or None,
            region=spec.get("region") or None,
        )


def select_mode(spec: AttachmentSpec) -> Tuple[Kind, str]:
    """
    Resolve which kind of attachment the spec declares.

    Returns:
        The Kind and the single membership value (load balancer name or
        target group ARN)

    Raises:
        ConfigurationError: If not exactly one membership field is set
    """
    candidates = [
        (LOAD_BALANCER_NAME_FIELD, Kind.BY_NAME, spec.load_balancer_name),
        (TARGET_GROUP_FIELD, Kind.BY_TARGET_GROUP_ID, spec.target_group_id),
        (LEGACY_TARGET_GROUP_FIELD, Kind.BY_TARGET_GROUP_ID, spec.legacy_target_group_id),
    ]
    chosen = [c for c in candidates if c[2]]
    if len(chosen) != 1:
        set_fields = ", ".join(c[0] for c in chosen) or "none"
        raise ConfigurationError(
            spec.group_name,
            reason=f"exactly one of {', '.join(MEMBERSHIP_FIELDS)} must be set (set: {set_fields})"
        )

    _, kind, value = chosen[0]
    return kind, value
