"""Error taxonomy for the localization core.

Every error here is recoverable by skipping the current cycle: the engine
catches them at its entry points, logs, and keeps its previous state.
"""


class LocalizationError(Exception):
    """Base class for all recoverable localization errors."""


class NotInitialized(LocalizationError):
    """A scan arrived before any initialization event."""


class StaleData(LocalizationError):
    """A scan is older than the previously processed one."""


class TransformUnavailable(LocalizationError):
    """Odometry or a frame-chain lookup could not be resolved in time."""


# Name used by the motion model when the odometry pose cannot be resolved.
PoseUnavailable = TransformUnavailable


class WeightCollapse(LocalizationError):
    """The observation model assigned zero likelihood to every particle."""


class InvalidDistribution(LocalizationError):
    """A state distribution could not produce valid samples."""


class MapDecodeError(ValueError):
    """A map file does not contain a known, well-formed representation."""
