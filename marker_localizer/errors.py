class MarkerLocalizerError(Exception):
    """Base class for pipeline errors."""


class InvalidConfiguration(MarkerLocalizerError, ValueError):
    pass


class NotReady(MarkerLocalizerError):
    """Raised when a frame arrives before any camera intrinsics."""


class FrameLookupFailure(MarkerLocalizerError):
    def __init__(self, target_frame: str, source_frame: str, reason: str = ""):
        self.target_frame = target_frame
        self.source_frame = source_frame
        self.reason = reason
        msg = f"cannot resolve {target_frame} <- {source_frame}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class FrameAborted(MarkerLocalizerError):
    """Raised when the failure policy abandons the whole frame."""

    def __init__(self, marker_id: int, reason: str):
        self.marker_id = marker_id
        self.reason = reason
        super().__init__(f"frame aborted at marker {marker_id}: {reason}")


class DecodeFailure(MarkerLocalizerError, ValueError):
    pass
