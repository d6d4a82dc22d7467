"""Named reference frames and the rigid transforms between them."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Iterable, Optional

from .errors import FrameLookupFailure
from .transforms import RigidTransform


class FrameTree(ABC):
    @abstractmethod
    def lookup_transform(
        self, target_frame: str, source_frame: str, stamp: Optional[float] = None
    ) -> RigidTransform:
        """
        Return T_target_source. `stamp=None` asks for the most recent
        available transform. Raises FrameLookupFailure when the frames
        are unknown or not connected.
        """


class StaticFrameTree(FrameTree):
    """
    In-memory frame graph keeping the latest transform of every
    parent -> child edge. Lookups walk the graph in either direction,
    inverting edges as needed. Time is ignored: every edge is "latest".
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._edges: dict[tuple[str, str], RigidTransform] = {}

    def set_transform(self, parent: str, child: str, transform: RigidTransform) -> None:
        if not parent or not child:
            raise ValueError("frame names must be non-empty")
        if parent == child:
            raise ValueError(f"frame {parent!r} cannot be its own parent")
        with self._lock:
            self._edges.pop((child, parent), None)
            self._edges[(parent, child)] = transform

    @property
    def frames(self) -> set[str]:
        with self._lock:
            return {f for edge in self._edges for f in edge}

    def lookup_transform(
        self, target_frame: str, source_frame: str, stamp: Optional[float] = None
    ) -> RigidTransform:
        with self._lock:
            edges = dict(self._edges)

        known = {f for edge in edges for f in edge}
        for name in (target_frame, source_frame):
            if name not in known:
                raise FrameLookupFailure(target_frame, source_frame, f"frame {name!r} does not exist")
        if target_frame == source_frame:
            return RigidTransform.identity()

        adjacency: dict[str, list[tuple[str, RigidTransform]]] = {}
        for (parent, child), T in edges.items():
            # adjacency[a] holds (b, T_a_b)
            adjacency.setdefault(parent, []).append((child, T))
            adjacency.setdefault(child, []).append((parent, T.inverse()))

        # BFS from target; acc holds T_target_node
        visited = {target_frame}
        queue = deque([(target_frame, RigidTransform.identity())])
        while queue:
            node, acc = queue.popleft()
            for nxt, T_node_nxt in adjacency.get(node, []):
                if nxt in visited:
                    continue
                T_target_nxt = acc @ T_node_nxt
                if nxt == source_frame:
                    return T_target_nxt
                visited.add(nxt)
                queue.append((nxt, T_target_nxt))

        raise FrameLookupFailure(target_frame, source_frame, "frames are not connected")

    @classmethod
    def from_config(cls, entries: Iterable[dict[str, Any]]) -> "StaticFrameTree":
        """
        Build a tree from `{parent, child, translation, rotation}` mappings.
        `rotation` is a quaternion (x, y, z, w) and defaults to identity.
        """
        tree = cls()
        for i, entry in enumerate(entries or []):
            if not isinstance(entry, dict):
                raise ValueError(f"static_transforms[{i}] must be a mapping")
            try:
                parent = str(entry["parent"])
                child = str(entry["child"])
            except KeyError as exc:
                raise ValueError(f"static_transforms[{i}] missing {exc.args[0]!r}") from exc
            transform = RigidTransform.create(
                entry.get("translation", [0.0, 0.0, 0.0]),
                entry.get("rotation", [0.0, 0.0, 0.0, 1.0]),
            )
            tree.set_transform(parent, child, transform)
        return tree
