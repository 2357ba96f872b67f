from dataclasses import replace
from typing import Dict, List, Optional, Sequence
import logging

from config import Config
from models.detection import DetectionResult, DetectionMethod, Severity
from detection.packet_analyzer import PacketInfo
from detection.signature_engine import SignatureEngine
from detection.anomaly_engine import AnomalyEngine
from detection import traffic_analyzer

logger = logging.getLogger(__name__)


class HybridEngine:
    """Signature check followed by anomaly check, plus batch-level traffic heuristics"""

    def __init__(
        self,
        signature_engine: Optional[SignatureEngine] = None,
        anomaly_engine: Optional[AnomalyEngine] = None,
    ):
        self.signature_engine = signature_engine or SignatureEngine()
        self.anomaly_engine = anomaly_engine or AnomalyEngine()

        # Thresholds (configurable)
        self.thresholds = {
            'dos_packets_per_second': Config.DOS_PPS_THRESHOLD,
            'port_scan_ports': Config.PORT_SCAN_THRESHOLD,
            'brute_force_attempts': Config.BRUTE_FORCE_THRESHOLD,
        }

    def update_thresholds(self, new_thresholds: Dict[str, float]) -> None:
        """Update traffic heuristic thresholds"""
        unknown = set(new_thresholds) - set(self.thresholds)
        if unknown:
            raise KeyError(f"Unknown thresholds: {sorted(unknown)}")
        self.thresholds.update(new_thresholds)
        logger.info(f"Updated thresholds: {new_thresholds}")

    def detect(self, packet: PacketInfo) -> Optional[DetectionResult]:
        result = self.signature_engine.detect(packet)
        if result is None:
            result = self.anomaly_engine.detect_anomaly(packet)
        if result is None:
            return None
        return replace(result, detection_method=DetectionMethod.HYBRID)

    def detect_multiple(self, packets: Sequence[PacketInfo]) -> List[DetectionResult]:
        results = []
        for packet in packets:
            result = self.detect(packet)
            if result:
                results.append(result)
        return results

    def detect_specific_attacks(self, packets: Sequence[PacketInfo]) -> List[DetectionResult]:
        """
        Run DoS, port-scan and brute-force heuristics over the whole batch, then
        add per-packet detections, keeping at most one per threat type not already reported.
        """
        results: List[DetectionResult] = []

        dos = traffic_analyzer.detect_dos_attack(
            packets, self.thresholds['dos_packets_per_second'])
        if dos.is_dos_attack:
            results.append(DetectionResult(
                threat_type="dos",
                severity=Severity.CRITICAL,
                confidence=90,
                description=f"DoS attack detected: {dos.packets_per_second} packets/sec",
                detection_method=DetectionMethod.ANOMALY,
                metadata=dos.to_dict()
            ))

        scan = traffic_analyzer.detect_port_scan(
            packets, self.thresholds['port_scan_ports'])
        if scan.is_port_scan:
            results.append(DetectionResult(
                threat_type="port_scan",
                severity=Severity.MEDIUM,
                confidence=80,
                description=f"Port scan detected: {scan.unique_ports} ports scanned",
                detection_method=DetectionMethod.ANOMALY,
                metadata=scan.to_dict(),
                source_ip=packets[0].source_ip,
                destination_ip=scan.target_ip
            ))

        brute = traffic_analyzer.detect_brute_force(
            packets, self.thresholds['brute_force_attempts'])
        if brute.is_brute_force:
            results.append(DetectionResult(
                threat_type="brute_force",
                severity=Severity.HIGH,
                confidence=85,
                description=f"Brute force attack detected: {brute.failed_attempts} attempts",
                detection_method=DetectionMethod.ANOMALY,
                metadata=brute.to_dict()
            ))

        for aggregate in results:
            logger.warning(f"Traffic heuristic triggered: {aggregate.description}")

        seen_types = {r.threat_type for r in results}
        for packet in packets:
            result = self.detect(packet)
            if result and result.threat_type not in seen_types:
                seen_types.add(result.threat_type)
                results.append(result)

        return results
