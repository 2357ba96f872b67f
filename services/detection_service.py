import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any, List, Sequence, Union

from config import Config
from detection.packet_analyzer import PacketAnalyzer, PacketInfo
from detection.ml_feature_extractor import PacketWindow, FeatureVector, extract_features
from detection.ml_model_manager import ModelManager, PredictionResult, Features
from models.detection import DetectionResult
from models.rule import DetectionRule
from services.detection_manager import DetectionManager

logger = logging.getLogger(__name__)

PacketInput = Union[PacketInfo, Dict[str, Any]]


@dataclass
class ServiceStats:
    """Packet intake statistics"""
    start_time: datetime = field(default_factory=datetime.utcnow)
    packets_processed: int = 0
    detections: int = 0
    rejected: int = 0


class DetectionService:
    """
    Detection context for one packet stream.
    Owns the rule set, packet window, detection history and classifiers,
    and exposes the operations offered to the reporting/API layer.
    """

    def __init__(
        self,
        detection_manager: Optional[DetectionManager] = None,
        model_manager: Optional[ModelManager] = None,
        buffer_size: int = Config.BUFFER_SIZE,
    ):
        self.detection_manager = detection_manager or DetectionManager()
        self.model_manager = model_manager or ModelManager()
        self.packet_analyzer = PacketAnalyzer()
        self.packet_window = PacketWindow(max_size=buffer_size)
        self.stats = ServiceStats()

    @property
    def signature_engine(self):
        return self.detection_manager.hybrid_engine.signature_engine

    def _normalize(self, packet: PacketInput) -> PacketInfo:
        if isinstance(packet, PacketInfo):
            return packet
        return self.packet_analyzer.analyze(packet)

    # Packet intake

    def submit_packet(self, packet: PacketInput) -> Optional[DetectionResult]:
        """Buffer one packet from the packet source and run hybrid detection on it"""
        try:
            info = self._normalize(packet)
        except ValueError:
            self.stats.rejected += 1
            raise
        self.packet_window.add(info)
        self.stats.packets_processed += 1

        result = self.detection_manager.detect(info)
        if result:
            self.stats.detections += 1
        return result

    def submit_packets(self, packets: Sequence[PacketInput]) -> List[DetectionResult]:
        """Buffer a batch and run the per-packet and batch-level checks over it"""
        infos = []
        for packet in packets:
            try:
                infos.append(self._normalize(packet))
            except ValueError as e:
                self.stats.rejected += 1
                logger.warning(f"Skipping malformed packet in batch: {e}")
        self.packet_window.extend(infos)
        self.stats.packets_processed += len(infos)

        results = self.detection_manager.detect_specific_attacks(infos)
        self.stats.detections += len(results)
        return results

    # Detection

    def detect_packet(self, packet: PacketInput) -> Optional[DetectionResult]:
        return self.detection_manager.detect(self._normalize(packet))

    def detect_batch(self, packets: Sequence[PacketInput]) -> List[DetectionResult]:
        return self.detection_manager.detect_multiple([self._normalize(p) for p in packets])

    def detect_specific_attacks(self, packets: Sequence[PacketInput]) -> List[DetectionResult]:
        return self.detection_manager.detect_specific_attacks([self._normalize(p) for p in packets])

    def get_detection_history(self, limit: Optional[int] = None) -> List[DetectionResult]:
        return self.detection_manager.get_history(limit)

    def get_detection_statistics(self) -> Dict[str, Any]:
        return self.detection_manager.get_statistics()

    def clear_history(self) -> None:
        self.detection_manager.clear_history()

    # Rules

    def list_rules(self) -> List[DetectionRule]:
        return self.signature_engine.get_all_rules()

    def add_rule(self, rule: Union[DetectionRule, Dict[str, Any]]) -> str:
        """Add a rule; dicts are parsed first and rejected if the pattern does not compile"""
        if isinstance(rule, dict):
            rule = DetectionRule.from_dict(rule)
        return self.signature_engine.add_rule(rule)

    def remove_rule(self, rule_id: str) -> bool:
        return self.signature_engine.remove_rule(rule_id)

    def toggle_rule(self, rule_id: str, enabled: bool) -> bool:
        return self.signature_engine.toggle_rule(rule_id, enabled)

    # Features and classifiers

    def extract_features(self, packet_window: Optional[Sequence[PacketInput]] = None) -> FeatureVector:
        """Features for the given window, or for the buffered packets when none is given"""
        if packet_window is None:
            return self.packet_window.extract_features()
        return extract_features([self._normalize(p) for p in packet_window])

    def train_models(self, features: Sequence[Features], labels: Sequence[int]) -> None:
        self.model_manager.train_all(features, labels)

    def predict(self, model_kind: str, features: Features) -> PredictionResult:
        return self.model_manager.predict(model_kind, features)

    def predict_ensemble(self, features: Features) -> PredictionResult:
        return self.model_manager.predict_ensemble(features)

    # Buffer

    def get_buffered_packets(self) -> List[PacketInfo]:
        return self.packet_window.packets()

    def get_buffer_stats(self) -> Dict[str, int]:
        return self.packet_window.stats()

    def clear_buffer(self) -> None:
        self.packet_window.clear()

    def get_stats(self) -> Dict[str, Any]:
        return {
            'start_time': self.stats.start_time.isoformat(),
            'packets_processed': self.stats.packets_processed,
            'detections': self.stats.detections,
            'rejected': self.stats.rejected,
            'buffer': self.get_buffer_stats(),
            'rules': len(self.signature_engine.rules),
            'models': self.model_manager.get_status(),
        }
