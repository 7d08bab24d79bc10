"""
bus: in-memory interaction bus
===============================

Topic-based pub/sub used as the outbound sink of the bridge: the
coordinator publishes vehicle batches, registrations, signal state
changes and time-advance requests; the host runtime polls them.

Modules
-------
message
    :class:`Interaction` envelope dataclass.
interaction_bus
    :class:`InteractionBus` publish / poll transport.
metrics
    :class:`BusMetrics` counter snapshot.
utils
    ID generation.
"""

from .message import Interaction
from .interaction_bus import InteractionBus
from .metrics import BusMetrics
from .utils   import new_msg_id

__all__ = [
    "Interaction",
    "InteractionBus",
    "BusMetrics",
    "new_msg_id",
]
