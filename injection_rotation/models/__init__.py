from .enums import BodyView, InjectionType, RecencyBucket, ScoreLabel
from .injection import InjectionRecord, Recommendation, RotationBreakdown, Site, SiteRecency
from .kv_store import KeyValueEntry
