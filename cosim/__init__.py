"""
cosim: Sim-A ⇄ Sim-B co-simulation bridge core
===============================================

Modules
-------
coordinator
    :class:`TimeAdvanceCoordinator` lockstep state machine.
federate
    Host-runtime adapter and :func:`build_bridge` factory.
matcher
    Spatial matching of signal groups to installation clusters.
reducer / poles
    Fine ⇄ coarse signal indication conversion.
translator
    Vehicle class tables and signal bitmask codec.
registry
    :class:`EntityRegistry` shared entity store.
remote / wire
    Remote-step client and its pydantic schemas.
sensor_relay
    LiDAR frame transform.
topology
    Static signal topology loader.
runtime / status_api
    In-process lockstep host and FastAPI diagnostics.
"""
