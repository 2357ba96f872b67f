from dataclasses import dataclass, field
from typing import Optional, Dict, Any
import re
import uuid

from models.detection import Severity
from models.exceptions import MalformedPatternError


@dataclass
class DetectionRule:
    name: str
    threat_type: str
    pattern: str
    severity: Severity
    confidence: float
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    enabled: bool = True

    _compiled_pattern: Optional[re.Pattern] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        if not isinstance(self.severity, Severity):
            self.severity = Severity.from_label(self.severity)
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"Rule {self.id!r} confidence must be within [0, 100]")
        if isinstance(self.pattern, re.Pattern):
            self._compiled_pattern = re.compile(self.pattern.pattern, self.pattern.flags | re.IGNORECASE)
            self.pattern = self.pattern.pattern
            return
        try:
            self._compiled_pattern = re.compile(self.pattern, re.IGNORECASE)
        except re.error as e:
            raise MalformedPatternError(self.id, self.pattern, str(e)) from e

    def matches_payload(self, payload: Optional[str]) -> bool:
        return bool(self._compiled_pattern.search(payload or ''))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'threat_type': self.threat_type,
            'pattern': self.pattern,
            'severity': self.severity.label,
            'confidence': self.confidence,
            'enabled': self.enabled
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DetectionRule':
        kwargs = dict(
            name=data['name'],
            threat_type=data['threat_type'],
            pattern=data['pattern'],
            severity=Severity.from_label(data['severity']),
            confidence=data['confidence'],
            enabled=data.get('enabled', True)
        )
        if data.get('id'):
            kwargs['id'] = data['id']
        return cls(**kwargs)
