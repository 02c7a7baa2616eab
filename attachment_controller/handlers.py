import kopf
import kubernetes
import logging
import os
import threading
from typing import Dict, Any, Optional
from .aws.client import get_autoscaling_client
from .aws.attachment import AttachmentController
from .errors import AttachmentError, ConfigurationError
from .mode import AttachmentSpec, DEPRECATION_NOTICE, select_mode
from .webhook.server import start_webhook_server

logger = logging.getLogger(__name__)

# Constants
API_GROUP = "aws.k8s.io"
API_VERSION = "v1"
PLURAL = "autoscalingattachments"
FINALIZER_NAME = "aws.k8s.io/autoscalingattachment-finalizer"
DEFAULT_CHECK_INTERVAL = 60  # Default interval in seconds for drift checks
DEFAULT_ATTACHMENT_TIMEOUT = 20 * 60  # Default seconds allowed per attach/detach

RECONCILE_INTERVAL = int(os.getenv('RECONCILE_INTERVAL', DEFAULT_CHECK_INTERVAL))
ATTACHMENT_TIMEOUT = float(os.getenv('ATTACHMENT_TIMEOUT', DEFAULT_ATTACHMENT_TIMEOUT))

# Values of status.state
STATE_ATTACHED = 'attached'
STATE_DETACHED = 'detached'
STATE_ERROR = 'error'

def get_controller(attachment_spec: AttachmentSpec) -> AttachmentController:
    """Build an attachment controller talking to the spec's region."""
    autoscaling = get_autoscaling_client(region=attachment_spec.region)
    return AttachmentController(autoscaling, timeout=ATTACHMENT_TIMEOUT)

def load_spec(spec: Dict[str, Any]) -> AttachmentSpec:
    """Parse and validate the resource spec, rejecting invalid ones permanently."""
    try:
        attachment_spec = AttachmentSpec.from_manifest(spec)
        select_mode(attachment_spec)
    except ConfigurationError as e:
        raise kopf.PermanentError(str(e))
    return attachment_spec

def update_status(meta: Dict[str, Any], status_update: Dict[str, Any]):
    """
    Patch the status subresource of an AutoScalingAttachment.

    Failures are logged and not raised, since the AWS side is already done.
    """
    try:
        api = kubernetes.client.CustomObjectsApi()
        api.patch_namespaced_custom_object_status(
            group=API_GROUP,
            version=API_VERSION,
            plural=PLURAL,
            namespace=meta['namespace'],
            name=meta['name'],
            body={'status': status_update}
        )
        logger.info(f"Successfully updated status for {meta['name']}")
    except Exception as e:
        logger.error(f"Failed to update status: {str(e)}", exc_info=True)

def attach(spec: Dict[str, Any], meta: Dict[str, Any], logger: Any, stopped=None) -> Dict[str, Any]:
    """
    Attach and record the new identity in the resource status.

    Raises:
        kopf.PermanentError: If the attachment could not be created
    """
    attachment_spec = load_spec(spec)
    if attachment_spec.legacy_target_group_id:
        logger.warning(DEPRECATION_NOTICE)
    controller = get_controller(attachment_spec)

    try:
        identity = controller.create(attachment_spec, stopped=stopped)
    except AttachmentError as e:
        logger.error(f"Error creating attachment: {str(e)}", exc_info=True)
        status_update = {'state': STATE_ERROR, 'error': str(e)}
        if e.identity:
            # Attached in AWS but not confirmed; the drift check settles it
            status_update['attachmentId'] = e.identity
        update_status(meta, status_update)
        raise kopf.PermanentError(f"Failed to create attachment: {str(e)}")

    status_update = {
        'attachmentId': identity,
        'autoScalingGroupName': attachment_spec.group_name,
        'state': STATE_ATTACHED,
        'error': None
    }
    update_status(meta, status_update)
    return status_update

@kopf.on.startup()
def startup_fn(settings: kopf.OperatorSettings, logger, **kwargs):
    """Load Kubernetes configuration and start the webhook server."""
    settings.persistence.finalizer = FINALIZER_NAME

    try:
        kubernetes.config.load_incluster_config()
    except kubernetes.config.ConfigException:
        # Fallback to kubeconfig for local development
        kubernetes.config.load_kube_config()

    try:
        webhook_thread = threading.Thread(target=start_webhook_server, daemon=True)
        webhook_thread.start()
        logger.info("Started webhook server in background thread")
    except Exception as e:
        logger.error(f"Failed to start webhook server: {str(e)}", exc_info=True)
        raise kopf.PermanentError("Failed to start webhook server")

@kopf.on.create(API_GROUP, API_VERSION, PLURAL)
def create_fn(spec: Dict[str, Any], meta: Dict[str, Any], status: Dict[str, Any], logger: Any, **kwargs) -> Dict[str, Any]:
    """
    Handle creation of AutoScalingAttachments by attaching the load balancer
    or target group to the Auto Scaling Group.
    """
    logger.info(f"Creating Auto Scaling Group Attachment: {meta['name']}")
    return attach(spec, meta, logger)

@kopf.on.delete(API_GROUP, API_VERSION, PLURAL)
def delete_fn(spec: Dict[str, Any], meta: Dict[str, Any], status: Dict[str, Any], logger: Any, **kwargs):
    """
    Handle deletion of AutoScalingAttachments by detaching the load balancer
    or target group. Already detached memberships are not an error.
    """
    logger.info(f"Deleting Auto Scaling Group Attachment: {meta['name']}")
    identity: Optional[str] = status.get('attachmentId')

    try:
        attachment_spec = AttachmentSpec.from_manifest(spec)
        get_controller(attachment_spec).delete(identity, attachment_spec)
    except ConfigurationError as e:
        # Nothing can have been attached from an invalid spec
        logger.warning(f"Skipping detach for invalid spec: {str(e)}")
        return
    except AttachmentError as e:
        logger.error(f"Error deleting attachment: {str(e)}", exc_info=True)
        raise kopf.PermanentError(f"Failed to delete attachment: {str(e)}")

    logger.info(f"Successfully deleted attachment: {identity}")

@kopf.timer(API_GROUP, API_VERSION, PLURAL, interval=RECONCILE_INTERVAL, idle=RECONCILE_INTERVAL)
def drift_check_fn(spec: Dict[str, Any], meta: Dict[str, Any], status: Dict[str, Any], logger: Any, stopped=None, **kwargs):
    """
    Periodically verify that the attachment still exists in AWS.

    A vanished attachment has its identity removed from the status and is
    attached again on the next run. Resources whose creation failed, or has
    not finished yet, are left to the create handler.
    """
    if meta.get('deletionTimestamp'):
        return

    identity = status.get('attachmentId')
    state = status.get('state')
    if not identity:
        if state == STATE_DETACHED:
            logger.info(f"Found detached attachment {meta['name']}, triggering creation")
            attach(spec, meta, logger, stopped=stopped)
        return

    attachment_spec = load_spec(spec)
    try:
        exists = get_controller(attachment_spec).read(identity, attachment_spec)
    except AttachmentError as e:
        logger.error(f"Error reading attachment: {str(e)}", exc_info=True)
        raise kopf.TemporaryError(f"Failed to read attachment: {str(e)}", delay=RECONCILE_INTERVAL)

    if not exists:
        logger.warning(f"Auto Scaling Group Attachment {identity} not found, removing from state")
        update_status(meta, {'attachmentId': None, 'state': STATE_DETACHED, 'error': None})
    elif state != STATE_ATTACHED:
        logger.info(f"Auto Scaling Group Attachment {identity} confirmed")
        update_status(meta, {'state': STATE_ATTACHED, 'error': None})
