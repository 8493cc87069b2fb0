"""Display partitions derived from the order snapshot."""

from views.board import OrderBoard, OrderSnapshot
from views.projector import Partitions, Tab, partition

__all__ = [
    "OrderBoard",
    "OrderSnapshot",
    "Partitions",
    "Tab",
    "partition",
]
