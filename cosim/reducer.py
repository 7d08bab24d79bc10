#!/usr/bin/env python3
"""
cosim/reducer.py
================
Signal indication vocabularies and the reduction between them.

Sim-A describes every signal head with several *fine* indications, each
a ``(red, green, yellow)`` triple.  Sim-B shows a single *coarse*
indication per installation.  :func:`reduce_to_coarse` folds N fine
indications into one coarse value under a :class:`ConversionPolicy`;
:func:`expand_to_fine` goes the other way.

Both directions are pure functions of their arguments.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, List, NamedTuple


class FineIndication(NamedTuple):
    """One Sim-A signal indication."""

    red: bool
    green: bool
    yellow: bool


FINE_RED = FineIndication(red=True, green=False, yellow=False)
FINE_YELLOW = FineIndication(red=False, green=False, yellow=True)
FINE_RED_YELLOW = FineIndication(red=True, green=False, yellow=True)
FINE_GREEN = FineIndication(red=False, green=True, yellow=False)
FINE_OFF = FineIndication(red=False, green=False, yellow=False)

VALID_FINE_INDICATIONS = (FINE_RED, FINE_YELLOW, FINE_RED_YELLOW, FINE_GREEN, FINE_OFF)


class CoarseIndication(Enum):
    """Sim-B signal state.  The value is the one-character wire code."""

    RED = "r"
    YELLOW = "y"
    GREEN = "G"
    OFF = "0"

    @classmethod
    def from_code(cls, code: str) -> "CoarseIndication":
        """Map a wire code to an indication; unknown codes become ``OFF``."""
        try:
            return cls(code)
        except ValueError:
            return cls.OFF


class ConversionPolicy(Enum):
    """Reduction policy, fixed at startup.

    * ``STRICT``: the most conservative indication wins: any red (or
      red+yellow) gives red, else any yellow gives yellow, else green.
    * ``PERMISSIVE``: any green gives green, else any yellow gives
      yellow, else red.
    """

    STRICT = "STRICT"
    PERMISSIVE = "PERMISSIVE"


_COARSE_TO_FINE = {
    CoarseIndication.RED: FINE_RED,
    CoarseIndication.YELLOW: FINE_YELLOW,
    CoarseIndication.GREEN: FINE_GREEN,
    CoarseIndication.OFF: FINE_OFF,
}


def reduce_to_coarse(fine_states: Iterable[FineIndication], policy: ConversionPolicy) -> CoarseIndication:
    """Fold Sim-A fine indications into a single Sim-B indication.

    The checks run in override order, so the last matching check wins.
    """
    states = {FineIndication(*s) for s in fine_states}
    has_red = FINE_RED in states or FINE_RED_YELLOW in states
    has_yellow = FINE_YELLOW in states
    has_green = FINE_GREEN in states

    coarse = CoarseIndication.OFF
    if policy is ConversionPolicy.STRICT:
        if has_green:
            coarse = CoarseIndication.GREEN
        if has_yellow:
            coarse = CoarseIndication.YELLOW
        if has_red:
            coarse = CoarseIndication.RED
    else:
        if has_red:
            coarse = CoarseIndication.RED
        if has_yellow:
            coarse = CoarseIndication.YELLOW
        if has_green:
            coarse = CoarseIndication.GREEN
    return coarse


def expand_to_fine(coarse: CoarseIndication, count: int) -> List[FineIndication]:
    """Replicate the fine value of *coarse* ``count`` times."""
    return [_COARSE_TO_FINE[coarse]] * max(0, count)
