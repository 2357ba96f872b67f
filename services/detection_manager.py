import logging
from collections import Counter, deque
from threading import Lock
from typing import List, Optional, Dict, Any, Sequence

from config import Config
from detection.hybrid_engine import HybridEngine
from detection.packet_analyzer import PacketInfo
from models.detection import DetectionResult, Severity

logger = logging.getLogger(__name__)


class DetectionManager:
    """Runs the hybrid engine and keeps a bounded history of its detections"""

    def __init__(self, hybrid_engine: Optional[HybridEngine] = None,
                 max_history: int = Config.HISTORY_SIZE):
        self.hybrid_engine = hybrid_engine or HybridEngine()
        self.max_history = max_history
        self._history: deque = deque(maxlen=max_history)
        self._lock = Lock()
        self.total_recorded = 0

    def _record(self, results: Sequence[DetectionResult]) -> None:
        if not results:
            return
        with self._lock:
            self._history.extend(results)
            self.total_recorded += len(results)
        for result in results:
            self._log_detection(result)

    def _log_detection(self, result: DetectionResult) -> None:
        log_level = {
            Severity.LOW: logging.INFO,
            Severity.MEDIUM: logging.WARNING,
            Severity.HIGH: logging.ERROR,
            Severity.CRITICAL: logging.CRITICAL
        }.get(result.severity, logging.WARNING)

        logger.log(
            log_level,
            f"[{result.severity.name}] {result.threat_type} | "
            f"Method: {result.detection_method.value} | "
            f"Source: {result.source_ip} | "
            f"Confidence: {result.confidence} | "
            f"{result.description}"
        )

    def detect(self, packet: PacketInfo) -> Optional[DetectionResult]:
        result = self.hybrid_engine.detect(packet)
        if result:
            self._record([result])
        return result

    def detect_multiple(self, packets: Sequence[PacketInfo]) -> List[DetectionResult]:
        results = self.hybrid_engine.detect_multiple(packets)
        self._record(results)
        return results

    def detect_specific_attacks(self, packets: Sequence[PacketInfo]) -> List[DetectionResult]:
        results = self.hybrid_engine.detect_specific_attacks(packets)
        self._record(results)
        return results

    def record(self, result: DetectionResult) -> None:
        """Append an externally produced detection to the history"""
        self._record([result])

    def get_history(self, limit: Optional[int] = None) -> List[DetectionResult]:
        """Snapshot of retained detections, most recent last"""
        with self._lock:
            snapshot = list(self._history)
        if limit is not None:
            return snapshot[-limit:] if limit > 0 else []
        return snapshot

    def get_statistics(self) -> Dict[str, Any]:
        """Counts over the retained history by threat type, severity and method"""
        history = self.get_history()
        return {
            'total_detections': len(history),
            'by_threat_type': dict(Counter(r.threat_type for r in history)),
            'by_severity': dict(Counter(r.severity.label for r in history)),
            'by_method': dict(Counter(r.detection_method.value for r in history)),
        }

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()
        logger.info("Detection history cleared")
