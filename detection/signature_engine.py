from typing import List, Optional, Dict
from threading import Lock
import logging

from models.rule import DetectionRule
from models.detection import DetectionResult, DetectionMethod, Severity
from detection.packet_analyzer import PacketInfo

logger = logging.getLogger(__name__)


def default_rules() -> List[DetectionRule]:
    """Built-in rule set: SQLi, XSS, traversal, command injection, XXE and LDAP injection"""
    return [
        DetectionRule(
            id="sql_injection_1",
            name="SQL Injection - Union Select",
            threat_type="sql_injection",
            pattern=r"union\s+select",
            severity=Severity.HIGH,
            confidence=85
        ),
        DetectionRule(
            id="sql_injection_2",
            name="SQL Injection - OR Condition",
            threat_type="sql_injection",
            pattern=r"""(['"])\s*(or|and)\s+['"]?\w*['"]?\s*(=|!=|<>)""",
            severity=Severity.HIGH,
            confidence=80
        ),
        DetectionRule(
            id="sql_injection_3",
            name="SQL Injection - DROP TABLE",
            threat_type="sql_injection",
            pattern=r"drop\s+table",
            severity=Severity.CRITICAL,
            confidence=95
        ),
        DetectionRule(
            id="sql_injection_4",
            name="SQL Injection - DELETE FROM",
            threat_type="sql_injection",
            pattern=r"delete\s+from",
            severity=Severity.CRITICAL,
            confidence=90
        ),
        DetectionRule(
            id="xss_1",
            name="XSS - Script Tag",
            threat_type="xss",
            pattern=r"<script[^>]*>",
            severity=Severity.HIGH,
            confidence=90
        ),
        DetectionRule(
            id="xss_2",
            name="XSS - JavaScript Protocol",
            threat_type="xss",
            pattern=r"javascript:",
            severity=Severity.HIGH,
            confidence=85
        ),
        DetectionRule(
            id="xss_3",
            name="XSS - Event Handler",
            threat_type="xss",
            pattern=r"on\w+\s*=",
            severity=Severity.HIGH,
            confidence=80
        ),
        DetectionRule(
            id="xss_4",
            name="XSS - IFrame",
            threat_type="xss",
            pattern=r"<iframe[^>]*>",
            severity=Severity.MEDIUM,
            confidence=75
        ),
        DetectionRule(
            id="path_traversal_1",
            name="Path Traversal - Directory Escape",
            threat_type="path_traversal",
            pattern=r"\.\./|\.\.\\|\.\.%2f|\.\.%5c",
            severity=Severity.HIGH,
            confidence=85
        ),
        DetectionRule(
            id="command_injection_1",
            name="Command Injection - RM",
            threat_type="command_injection",
            pattern=r";\s*rm\s+-rf",
            severity=Severity.CRITICAL,
            confidence=95
        ),
        DetectionRule(
            id="command_injection_2",
            name="Command Injection - CAT",
            threat_type="command_injection",
            pattern=r";\s*cat\s+/etc",
            severity=Severity.CRITICAL,
            confidence=90
        ),
        DetectionRule(
            id="command_injection_3",
            name="Command Injection - WGET",
            threat_type="command_injection",
            pattern=r";\s*wget\s+",
            severity=Severity.HIGH,
            confidence=85
        ),
        DetectionRule(
            id="xxe_1",
            name="XXE - DOCTYPE Declaration",
            threat_type="xxe",
            pattern=r"<!DOCTYPE[^>]*\[\s*<!ENTITY",
            severity=Severity.HIGH,
            confidence=85
        ),
        DetectionRule(
            id="ldap_injection_1",
            name="LDAP Injection - Wildcard",
            threat_type="ldap_injection",
            pattern=r"\*\)\(\|",
            severity=Severity.MEDIUM,
            confidence=75
        ),
    ]


class SignatureEngine:
    """Signature-based detection using configurable payload rules"""

    def __init__(self, rules: Optional[List[DetectionRule]] = None):
        self.rules: Dict[str, DetectionRule] = {}
        self._lock = Lock()
        for rule in (default_rules() if rules is None else rules):
            self.add_rule(rule)

    def add_rule(self, rule: DetectionRule) -> str:
        """Add a detection rule, replacing any rule with the same ID"""
        with self._lock:
            self.rules[rule.id] = rule
        logger.info(f"Added rule: {rule.name} (ID: {rule.id})")
        return rule.id

    def remove_rule(self, rule_id: str) -> bool:
        """Remove a rule by ID"""
        with self._lock:
            if rule_id not in self.rules:
                return False
            del self.rules[rule_id]
        logger.info(f"Removed rule: {rule_id}")
        return True

    def get_rule(self, rule_id: str) -> Optional[DetectionRule]:
        """Get a rule by ID"""
        return self.rules.get(rule_id)

    def get_all_rules(self) -> List[DetectionRule]:
        """Get all rules"""
        with self._lock:
            return list(self.rules.values())

    def get_enabled_rules(self) -> List[DetectionRule]:
        return [r for r in self.get_all_rules() if r.enabled]

    def toggle_rule(self, rule_id: str, enabled: bool) -> bool:
        """Enable or disable a rule"""
        with self._lock:
            rule = self.rules.get(rule_id)
            if rule is None:
                return False
            rule.enabled = enabled
        logger.info(f"Rule {rule_id} {'enabled' if enabled else 'disabled'}")
        return True

    def detect(self, packet: PacketInfo) -> Optional[DetectionResult]:
        """Return a result for the first enabled rule matching the payload, or None"""
        payload = packet.payload or ''

        for rule in self.get_enabled_rules():
            if rule.matches_payload(payload):
                logger.warning(f"Rule triggered: {rule.name} from {packet.source_ip}")
                return DetectionResult(
                    threat_type=rule.threat_type,
                    severity=rule.severity,
                    confidence=rule.confidence,
                    description=rule.name,
                    detection_method=DetectionMethod.SIGNATURE,
                    payload=payload,
                    metadata={
                        'rule_id': rule.id,
                        'rule_name': rule.name
                    },
                    source_ip=packet.source_ip,
                    destination_ip=packet.destination_ip
                )

        return None
