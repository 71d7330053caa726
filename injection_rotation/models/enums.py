from enum import Enum


class InjectionType(str, Enum):
    SUBQ = "subq"
    IM = "im"


class BodyView(str, Enum):
    FRONT = "front"
    BACK = "back"


class RecencyBucket(str, Enum):
    FRESH = "fresh"
    CAUTION = "caution"
    RECENT = "recent"
    UNUSED = "unused"


class ScoreLabel(str, Enum):
    GREAT = "great"
    FAIR = "fair"
    POOR = "poor"
