from typing import Dict, Any, Optional, FrozenSet
import logging

from config import Config
from models.detection import DetectionResult, DetectionMethod, Severity
from detection.packet_analyzer import PacketInfo

logger = logging.getLogger(__name__)


class AnomalyEngine:
    """Per-packet heuristic anomaly detection"""

    def __init__(
        self,
        threshold: float = Config.ANOMALY_THRESHOLD,
        max_payload_size: int = Config.MAX_PAYLOAD_SIZE,
        suspicious_ports: FrozenSet[int] = Config.SUSPICIOUS_PORTS,
    ):
        # Deviation threshold in standard deviations; kept for baseline-driven checks
        self.threshold = threshold
        self.max_payload_size = max_payload_size
        self.suspicious_ports = frozenset(suspicious_ports)
        self.baseline_stats: Dict[str, Dict[str, Any]] = {}

    def set_baseline(self, key: str, stats: Dict[str, Any]) -> None:
        self.baseline_stats[key] = stats

    def set_threshold(self, threshold: float) -> None:
        self.threshold = threshold
        logger.info(f"Anomaly threshold set to {threshold}")

    def get_threshold(self) -> float:
        return self.threshold

    @staticmethod
    def calculate_anomaly_score(current_value: float, mean: float, std_dev: float) -> float:
        """Absolute z-score of a value against a baseline; 0 when the baseline has no spread"""
        if std_dev == 0:
            return 0.0
        return abs((current_value - mean) / std_dev)

    def detect_anomaly(self, packet: PacketInfo) -> Optional[DetectionResult]:
        """Run the payload size, port and protocol checks in order; first hit wins"""
        for check in (
            self._check_payload_size,
            self._check_suspicious_port,
            self._check_protocol_port_mismatch,
        ):
            result = check(packet)
            if result:
                logger.debug(f"Anomaly from {packet.source_ip}: {result.description}")
                return result
        return None

    def _check_payload_size(self, packet: PacketInfo) -> Optional[DetectionResult]:
        if packet.payload_size <= self.max_payload_size:
            return None
        return self._result(
            packet,
            confidence=65,
            description="Unusual payload size detected",
            metadata={
                'payload_size': packet.payload_size,
                'expected_size': f"<= {self.max_payload_size}"
            }
        )

    def _check_suspicious_port(self, packet: PacketInfo) -> Optional[DetectionResult]:
        if packet.destination_port not in self.suspicious_ports:
            return None
        return self._result(
            packet,
            confidence=70,
            description="Connection to suspicious port detected",
            metadata={
                'port': packet.destination_port,
                'reason': 'Known malicious port'
            }
        )

    def _check_protocol_port_mismatch(self, packet: PacketInfo) -> Optional[DetectionResult]:
        if not (packet.protocol == 'ICMP' and packet.destination_port == 80):
            return None
        return self._result(
            packet,
            confidence=75,
            description="Unusual protocol-port combination detected",
            metadata={
                'protocol': packet.protocol,
                'port': packet.destination_port
            }
        )

    @staticmethod
    def _result(packet: PacketInfo, confidence: float, description: str,
                metadata: Dict[str, Any]) -> DetectionResult:
        return DetectionResult(
            threat_type="anomaly",
            severity=Severity.MEDIUM,
            confidence=confidence,
            description=description,
            detection_method=DetectionMethod.ANOMALY,
            metadata=metadata,
            source_ip=packet.source_ip,
            destination_ip=packet.destination_ip
        )
