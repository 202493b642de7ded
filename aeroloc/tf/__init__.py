"""Transform service: stamped transforms, buffer lookups and broadcasting."""

from aeroloc.tf.buffer import BufferBroadcaster, TransformBroadcaster, TransformBuffer
from aeroloc.tf.types import StampedTransform

__all__ = [
    "StampedTransform",
    "TransformBuffer",
    "TransformBroadcaster",
    "BufferBroadcaster",
]
