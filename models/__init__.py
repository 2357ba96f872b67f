from models.detection import DetectionResult, DetectionMethod, Severity
from models.rule import DetectionRule
from models.exceptions import (
    IDSError, NotTrainedError, EmptyInputError, MalformedPatternError, InvalidPacketError
)

__all__ = [
    'DetectionResult', 'DetectionMethod', 'Severity', 'DetectionRule',
    'IDSError', 'NotTrainedError', 'EmptyInputError', 'MalformedPatternError',
    'InvalidPacketError'
]
