import csv

import numpy as np

from .ml_types import MarkerRecord, StampedTransform


def _vec(vec, n):
    if vec is None:
        return [float("nan")] * n
    a = np.array(vec, dtype=np.float64).reshape(-1).tolist()
    if len(a) < n:
        a += [float("nan")] * (n - len(a))
    return a[:n]


class _RowWriter:
    HEADER: list[str] = []

    def __init__(self, csv_path: str):
        self.csv_path = csv_path
        self._opened = False
        self._fh = None
        self._w = None

    def open(self):
        self._fh = open(self.csv_path, "w", newline="")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.HEADER)
        self._opened = True

    def _write(self, row):
        self._w.writerow(row)
        self._fh.flush()

    def close(self):
        if self._opened and self._fh:
            self._fh.close()
            self._opened = False
            self._fh = None
            self._w = None


class MarkerCsvWriter(_RowWriter):
    HEADER = [
        "stamp", "frame_id", "marker_id",
        "pos_x", "pos_y", "pos_z",
        "quat_x", "quat_y", "quat_z", "quat_w",
        "pixel_x", "pixel_y",
    ]

    @staticmethod
    def row(frame_id: str, rec: MarkerRecord) -> list:
        return [
            f"{rec.stamp:.6f}",
            frame_id, rec.marker_id,
            *_vec(rec.pose.position, 3),
            *_vec(rec.pose.orientation, 4),
            rec.pixel_x, rec.pixel_y,
        ]

    def append(self, frame_id: str, rec: MarkerRecord):
        self._write(self.row(frame_id, rec))


class TransformCsvWriter(_RowWriter):
    HEADER = [
        "stamp", "parent_frame", "child_frame",
        "tx", "ty", "tz",
        "qx", "qy", "qz", "qw",
    ]

    def append(self, st: StampedTransform):
        self._write([
            f"{st.stamp:.6f}",
            st.parent_frame, st.child_frame,
            *_vec(st.transform.translation, 3),
            *_vec(st.transform.rotation, 4),
        ])
