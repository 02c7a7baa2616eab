import os
import logging
from typing import Any, Dict, List, Tuple
from flask import Flask, request, jsonify

from ..mode import (
    DEPRECATION_NOTICE,
    GROUP_NAME_FIELD,
    LEGACY_TARGET_GROUP_FIELD,
    MEMBERSHIP_FIELDS,
)

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = (GROUP_NAME_FIELD,) + MEMBERSHIP_FIELDS + ("region",)

# Initialize Flask app
app = Flask(__name__)

def create_error_response(message: str, uid: str = "") -> dict:
    """Create a standardized error response for the admission webhook."""
    return {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "response": {
            "uid": uid,
            "allowed": False,
            "status": {"message": message}
        }
    }

def validate_attachment(obj: Dict[str, Any], old: Dict[str, Any], operation: str) -> Tuple[List[str], List[str]]:
    """
    Validate an AutoScalingAttachment.

    Returns:
        A list of errors (denying the request when non-empty) and a list of
        warnings to show to the user
    """
    errors = []
    warnings = []
    spec = obj.get("spec") or {}

    if not spec.get(GROUP_NAME_FIELD):
        errors.append(f"{GROUP_NAME_FIELD} is required")

    set_fields = [f for f in MEMBERSHIP_FIELDS if spec.get(f)]
    if len(set_fields) != 1:
        errors.append(
            f"exactly one of {', '.join(MEMBERSHIP_FIELDS)} must be set, got: {', '.join(set_fields) or 'none'}"
        )

    if spec.get(LEGACY_TARGET_GROUP_FIELD):
        warnings.append(DEPRECATION_NOTICE)

    if operation == "UPDATE" and old:
        old_spec = old.get("spec") or {}
        for field in IMMUTABLE_FIELDS:
            if old_spec.get(field) != spec.get(field):
                errors.append(f"spec.{field} is immutable")

    return errors, warnings

def start_webhook_server():
    """Start the webhook server with SSL configuration."""
    try:
        cert_path = os.environ.get('CERT_PATH', '/etc/webhook/certs/tls.crt')
        key_path = os.environ.get('KEY_PATH', '/etc/webhook/certs/tls.key')
        port = int(os.environ.get('WEBHOOK_PORT', '8443'))

        if not os.path.exists(cert_path) or not os.path.exists(key_path):
            logger.error("SSL certificate or key not found")
            raise FileNotFoundError("SSL certificate or key not found")

        app.run(
            host='0.0.0.0',
            port=port,
            ssl_context=(cert_path, key_path)
        )
    except Exception as e:
        logger.error(f"Failed to start webhook server: {str(e)}")
        raise

@app.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint for the webhook server."""
    return jsonify({"status": "healthy"}), 200

@app.route('/validate', methods=['POST'])
def validate():
    """Handle validation requests for AutoScalingAttachment resources."""
    uid = ""
    try:
        request_info = request.get_json(silent=True)

        if not request_info:
            logger.warning("Received empty request body")
            return jsonify(create_error_response("No request body", uid))

        request_data = request_info.get("request")
        if not request_data:
            logger.warning("No request data in admission review")
            return jsonify(create_error_response("No request data", uid))

        uid = request_data.get("uid", "")
        operation = request_data.get("operation", "").upper()
        obj = request_data.get("object") or {}
        name = obj.get("metadata", {}).get("name", "unknown")

        # Deletions and finalizer updates of terminating objects need no checks
        if operation == "DELETE" or obj.get("metadata", {}).get("deletionTimestamp"):
            errors, warnings = [], []
        else:
            errors, warnings = validate_attachment(obj, request_data.get("oldObject") or {}, operation)

        response = {
            "uid": uid,
            "allowed": not errors
        }
        if errors:
            response["status"] = {"message": "; ".join(errors)}
            logger.info(f"Denied {operation} of {name}: {'; '.join(errors)}")
        else:
            logger.info(f"Successfully validated {operation} of {name}")
        if warnings:
            response["warnings"] = warnings

        return jsonify({
            "apiVersion": "admission.k8s.io/v1",
            "kind": "AdmissionReview",
            "response": response
        })

    except Exception as e:
        error_msg = f"Error processing validation request: {str(e)}"
        logger.error(error_msg, exc_info=True)
        return jsonify(create_error_response(error_msg, uid))
