"""
Color Analyzer Identifier Utilities
Generate session and preview identifiers.
"""
import uuid
from datetime import datetime


def generate_session_id() -> str:
    """
    Generate a unique batch session ID.

    Returns:
        Session ID string of the form ``ses-<timestamp>-<uuid8>``
    """
    timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
    short_uuid = str(uuid.uuid4())[:8]
    return f"ses-{timestamp}-{short_uuid}"


def generate_preview_id() -> str:
    """Generate a unique preview handle ID."""
    return uuid.uuid4().hex

