import cv2

from .errors import InvalidConfiguration


_NAMES = [
    "DICT_4X4_50", "DICT_4X4_100", "DICT_4X4_250", "DICT_4X4_1000",
    "DICT_5X5_50", "DICT_5X5_100", "DICT_5X5_250", "DICT_5X5_1000",
    "DICT_6X6_50", "DICT_6X6_100", "DICT_6X6_250", "DICT_6X6_1000",
    "DICT_7X7_50", "DICT_7X7_100", "DICT_7X7_250", "DICT_7X7_1000",
    "DICT_ARUCO_ORIGINAL",
    "DICT_APRILTAG_16h5",
    "DICT_APRILTAG_25h9",
    "DICT_APRILTAG_36h10",
    "DICT_APRILTAG_36h11",
]


def available_dictionaries() -> list[str]:
    return list(_NAMES)


def resolve(name: str) -> int:
    """
    Map a dictionary name to its cv2.aruco predefined dictionary id.

    Names are case-sensitive and must be one of available_dictionaries().
    Raises InvalidConfiguration for anything else.
    """
    if name not in _NAMES:
        raise InvalidConfiguration(
            f"Invalid dictionary {name!r}; expected one of: {', '.join(_NAMES)}"
        )
    return int(getattr(cv2.aruco, name))


def get_dictionary(name: str):
    """
    Build the predefined dictionary object for `name`.
    Works on OpenCV >= 4.7 (getPredefinedDictionary) and older (Dictionary_get).
    """
    code = resolve(name)
    if hasattr(cv2.aruco, "getPredefinedDictionary"):           # OpenCV >= 4.7
        return cv2.aruco.getPredefinedDictionary(code)
    return cv2.aruco.Dictionary_get(code)                        # Older OpenCV
