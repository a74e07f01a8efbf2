"""
Webhook handling for the Slack Events API.

This module provides request signature verification and the FastAPI router
that receives membership events.
"""

from usergroup_adder.webhooks.signatures import (
    SignatureVerificationError,
    compute_slack_signature,
    is_valid_slack_request,
    verify_slack_signature,
)

__all__ = [
    "verify_slack_signature",
    "is_valid_slack_request",
    "compute_slack_signature",
    "SignatureVerificationError",
]
