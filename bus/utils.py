"""
Utility functions for InteractionBus:
    - ID generation
"""

import uuid

# ---------- ID Helpers ----------
def new_msg_id() -> str:
    """
    Generate a globally unique interaction ID.

    Returns:
        str: UUID string for a new interaction.
    """
    return str(uuid.uuid4())
