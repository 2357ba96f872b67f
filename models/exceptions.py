"""Error types raised by the detection core."""


class IDSError(Exception):
    """Base class for detection core errors"""


class NotTrainedError(IDSError, RuntimeError):
    """A classifier was asked to predict before it was trained"""

    def __init__(self, model_name: str = "Model"):
        super().__init__(f"{model_name} is not trained")
        self.model_name = model_name


class EmptyInputError(IDSError, ValueError):
    """Training was invoked with zero samples"""


class MalformedPatternError(IDSError, ValueError):
    """A detection rule pattern does not compile"""

    def __init__(self, rule_id: str, pattern: str, reason: str):
        super().__init__(f"Rule {rule_id!r} has an invalid pattern {pattern!r}: {reason}")
        self.rule_id = rule_id
        self.pattern = pattern


class InvalidPacketError(IDSError, ValueError):
    """A packet record is missing required fields or carries invalid values"""
