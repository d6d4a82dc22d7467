"""Fiducial marker pose estimation in a global reference frame."""

from .config import NodeConfig
from .node import MarkerLocalizerNode
from .worker import LocalizerWorker

__all__ = ["NodeConfig", "MarkerLocalizerNode", "LocalizerWorker"]
