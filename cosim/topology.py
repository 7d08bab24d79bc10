#!/usr/bin/env python3
"""
cosim/topology.py
=================
Loader for the static signal topology written by Sim-B at start-up.

File layout (JSON)::

    {
      "<cluster key>": [
        {"<pole key>": [{"landmark_id": "101"}, {"pos_x": "12.5"}, {"pos_y": "-3.0"}]},
        ...
      ],
      ...
    }

Every pole in a cluster gets the same ordered membership list.  Sim-B
uses a left-handed frame, so ``pos_y`` is mirrored on load.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping

from cosim.errors import TopologyFileError
from cosim.geometry import CartesianPoint
from cosim.poles import SignalInstallation
from cosim.reducer import ConversionPolicy

log = logging.getLogger("topology")


def _pole_fields(entries: Any) -> Dict[str, Any]:
    """Flatten ``[{"landmark_id": …}, {"pos_x": …}, …]`` into one dict."""
    merged: Dict[str, Any] = {}
    for entry in entries:
        if not isinstance(entry, Mapping):
            raise TopologyFileError(f"Pole entry must be an object, got {entry!r}")
        merged.update(entry)
    return merged


def parse_topology(
    raw: Mapping[str, Any],
    policy: ConversionPolicy = ConversionPolicy.STRICT,
) -> Dict[str, SignalInstallation]:
    """Build installations from an already-decoded topology document."""
    if not isinstance(raw, Mapping):
        raise TopologyFileError("Topology document must be a JSON object")

    installations: Dict[str, SignalInstallation] = {}
    for cluster_key, poles in raw.items():
        if not isinstance(poles, list):
            raise TopologyFileError(f"Cluster {cluster_key}: expected a list of poles")
        members: List[str] = []
        for pole in poles:
            if not isinstance(pole, Mapping):
                raise TopologyFileError(f"Cluster {cluster_key}: pole must be an object")
            for entries in pole.values():
                data = _pole_fields(entries)
                try:
                    installation_id = str(data["landmark_id"])
                    x = float(data.get("pos_x", 0.0))
                    y = -float(data.get("pos_y", 0.0))
                except (KeyError, TypeError, ValueError) as exc:
                    raise TopologyFileError(
                        f"Cluster {cluster_key}: invalid pole data {data!r}"
                    ) from exc
                members.append(installation_id)
                installations[installation_id] = SignalInstallation(
                    installation_id=installation_id,
                    location=CartesianPoint(x, y, 0.0),
                    policy=policy,
                )
        for installation_id in members:
            installations[installation_id].cluster_members = list(members)

    for pole in installations.values():
        log.debug("%s", pole)
    return installations


def load_topology(path: str, policy: ConversionPolicy = ConversionPolicy.STRICT) -> Dict[str, SignalInstallation]:
    """Read and parse the topology file at *path*.

    Raises
    ------
    TopologyFileError
        The file is missing, unreadable or not a valid topology document.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            raw = json.load(fh)
    except OSError as exc:
        raise TopologyFileError(f"Could not open signal topology file {path}") from exc
    except json.JSONDecodeError as exc:
        raise TopologyFileError(f"Could not parse signal topology file {path}") from exc
    installations = parse_topology(raw, policy)
    log.info("Loaded %d signal installations from %s", len(installations), path)
    return installations
