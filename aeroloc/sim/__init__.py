"""Simulation helpers for running the localizer without hardware."""

from aeroloc.sim.environment import SimulatedVehicle, make_box_room, simulate_scan

__all__ = ["make_box_room", "simulate_scan", "SimulatedVehicle"]
