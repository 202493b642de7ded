"""Range sensor types and scan preprocessing."""

from aeroloc.sensors.laser import (
    LaserPreprocessor,
    filter_ranges,
    polar_to_cartesian,
    uniform_downsample,
)
from aeroloc.sensors.types import LaserScan, ProcessedObservation

__all__ = [
    "LaserScan",
    "ProcessedObservation",
    "LaserPreprocessor",
    "filter_ranges",
    "polar_to_cartesian",
    "uniform_downsample",
]
