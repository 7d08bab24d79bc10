"""
Interaction: envelope of one payload published on the InteractionBus.
"""

from dataclasses import dataclass
from typing import Any

@dataclass(frozen=True)
class Interaction:
    """
    Represents a single interaction published via the InteractionBus.

    Attributes:
        id (str): Unique identifier for the interaction.
        topic (str): The topic of the interaction (e.g., 'vehicle.updates', 'time.advance_request').
        sender (str): Federate id of the sender (e.g., 'simb-bridge').
        time (int): Simulation time in milliseconds the payload refers to.
        payload (Any): Event dataclass carried by the interaction.
    """
    id: str
    topic: str
    sender: str
    time: int
    payload: Any
