from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any
from enum import Enum

from config import Config

PAYLOAD_EXCERPT_BYTES = Config.PAYLOAD_EXCERPT_BYTES


class Severity(Enum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def from_label(cls, value) -> 'Severity':
        if isinstance(value, Severity):
            return value
        try:
            return cls[str(value).upper()]
        except KeyError:
            raise ValueError(f"Unknown severity: {value!r}") from None

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.value < other.value

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.value <= other.value

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.value > other.value

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.value >= other.value


class DetectionMethod(Enum):
    SIGNATURE = "signature"
    ANOMALY = "anomaly"
    HYBRID = "hybrid"


def truncate_payload(payload: Optional[str], limit: int = PAYLOAD_EXCERPT_BYTES) -> Optional[str]:
    """Cut payload text to at most `limit` UTF-8 bytes without splitting a character"""
    if payload is None:
        return None
    encoded = payload.encode('utf-8')
    if len(encoded) <= limit:
        return payload
    return encoded[:limit].decode('utf-8', errors='ignore')


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of a single positive detection"""
    threat_type: str
    severity: Severity
    confidence: float
    description: str
    detection_method: DetectionMethod
    threat_detected: bool = True
    payload: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    source_ip: Optional[str] = None
    destination_ip: Optional[str] = None
    detected_at: datetime = field(default_factory=datetime.utcnow)

    def __post_init__(self):
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"confidence must be within [0, 100], got {self.confidence}")
        if not isinstance(self.severity, Severity):
            object.__setattr__(self, 'severity', Severity.from_label(self.severity))
        if not isinstance(self.detection_method, DetectionMethod):
            object.__setattr__(self, 'detection_method', DetectionMethod(self.detection_method))
        object.__setattr__(self, 'payload', truncate_payload(self.payload))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'threat_detected': self.threat_detected,
            'threat_type': self.threat_type,
            'severity': self.severity.label,
            'confidence': self.confidence,
            'description': self.description,
            'detection_method': self.detection_method.value,
            'payload': self.payload,
            'metadata': dict(self.metadata),
            'source_ip': self.source_ip,
            'destination_ip': self.destination_ip,
            'detected_at': self.detected_at.isoformat()
        }
