import boto3
from botocore.config import Config
import logging
import time
import os
from botocore.exceptions import ClientError

from ..errors import Timeout, TransientCapacityError

# Constants
AWS_RETRY_ATTEMPTS = 3
AWS_CONNECT_TIMEOUT = 10  # seconds
AWS_READ_TIMEOUT = 30  # seconds
RETRY_MIN_DELAY = 1  # seconds
RETRY_MAX_DELAY = 10  # seconds

ERR_CODE_VALIDATION_ERROR = "ValidationError"
# ValidationError: Trying to update too many Load Balancers/Target Groups at once. The limit is 10
TRANSIENT_CAPACITY_MESSAGE = "update too many"
NOT_FOUND_ERROR_CODES = ("ResourceNotFound", "ResourceNotFoundException")

# Configure AWS client with SDK-level retries and bounded round trips
aws_config = Config(
    retries=dict(
        max_attempts=AWS_RETRY_ATTEMPTS,
        mode="standard"
    ),
    connect_timeout=AWS_CONNECT_TIMEOUT,
    read_timeout=AWS_READ_TIMEOUT
)

# Configure to use regional STS endpoints for IRSA
if os.environ.get('AWS_DEFAULT_REGION'):
    os.environ['AWS_STS_REGIONAL_ENDPOINTS'] = 'regional'

logger = logging.getLogger(__name__)

def get_credentials():
    """Get AWS credentials using the credential chain.

    The chain will try:
    1. IRSA (IAM Roles for Service Accounts)
    2. EC2 Instance Profile (Node IAM Role)
    3. Environment variables
    4. Shared credentials file

    Returns:
        Credentials if found, None otherwise
    """
    try:
        session = boto3.Session()
        credentials = session.get_credentials()
        if credentials is None:
            logger.warning("No AWS credentials found in the credential chain")
            return None
        return credentials
    except Exception as e:
        logger.error(f"Error getting AWS credentials: {str(e)}")
        return None

def get_autoscaling_client(region=None):
    """Get AWS Auto Scaling client with retry configuration.

    Args:
        region (str, optional): AWS region to use. If not provided, uses default region.

    Returns:
        boto3.client: AWS Auto Scaling client

    Raises:
        botocore.exceptions.NoCredentialsError: If no credentials are found
    """
    client_kwargs = {'config': aws_config}

    # Use specified region or fall back to environment variable
    if region:
        client_kwargs['region_name'] = region
    elif os.environ.get('AWS_DEFAULT_REGION'):
        client_kwargs['region_name'] = os.environ.get('AWS_DEFAULT_REGION')

    # Get credentials using chain
    credentials = get_credentials()
    if credentials:
        client_kwargs['aws_access_key_id'] = credentials.access_key
        client_kwargs['aws_secret_access_key'] = credentials.secret_key
        if credentials.token:
            client_kwargs['aws_session_token'] = credentials.token

    return boto3.client('autoscaling', **client_kwargs)

def error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', '')

def error_message(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Message', '')

def is_transient_capacity_error(error: Exception) -> bool:
    """
    Whether the Auto Scaling API rejected a call because too many load
    balancers or target groups are being updated at once.

    The API has no dedicated error code for this, only a ValidationError
    whose message mentions the limit.
    """
    return (
        isinstance(error, ClientError)
        and error_code(error) == ERR_CODE_VALIDATION_ERROR
        and TRANSIENT_CAPACITY_MESSAGE in error_message(error)
    )

def is_not_found_error(error: Exception) -> bool:
    """Whether the API reported that the addressed group does not exist."""
    if not isinstance(error, ClientError):
        return False
    code = error_code(error)
    if code in NOT_FOUND_ERROR_CODES:
        return True
    return code == ERR_CODE_VALIDATION_ERROR and "not found" in error_message(error).lower()

def retry_when_transient(operation_func, *args, timeout: float, stopped=None, **kwargs):
    """
    Retry an attachment operation while it fails with TransientCapacityError.

    Waits start at RETRY_MIN_DELAY and double up to RETRY_MAX_DELAY, clipped
    to whatever is left of ``timeout``. Any other exception propagates on
    first occurrence.

    Args:
        operation_func: Callable performing one attempt
        timeout: Seconds allowed for all attempts together
        stopped: Optional cancellation flag with ``is_set()`` and ``wait(seconds)``,
            such as threading.Event or the flag kopf passes to timers

    Returns:
        The result of the first successful attempt

    Raises:
        Timeout: If the deadline passes or the flag is set while retrying
    """
    deadline = time.monotonic() + timeout
    delay = RETRY_MIN_DELAY
    attempt = 0
    while True:
        attempt += 1
        try:
            return operation_func(*args, **kwargs)
        except TransientCapacityError as e:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.error(f"Giving up after {attempt} attempts: {str(e)}")
                raise Timeout(e.group, e.kind, e.value, reason=f"after {attempt} attempts: {e.reason}") from e
            wait_time = min(delay, remaining)
            logger.warning(f"AWS operation hit the update limit, retrying in {wait_time:.1f}s: {str(e)}")
            if stopped is not None:
                if stopped.wait(wait_time):
                    raise Timeout(e.group, e.kind, e.value, reason="cancelled while retrying") from e
            else:
                time.sleep(wait_time)
            delay = min(delay * 2, RETRY_MAX_DELAY)
