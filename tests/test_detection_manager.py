import threading
from datetime import datetime

import numpy as np
import pytest

from detection.ml_model_manager import ModelManager
from detection.ml_neural_network import NeuralNetworkClassifier
from detection.ml_random_forest import RandomForestClassifier
from models.detection import DetectionMethod, DetectionResult, Severity
from models.exceptions import InvalidPacketError, MalformedPatternError, NotTrainedError
from services.detection_manager import DetectionManager
from services.detection_service import DetectionService
from services.packet_generator import MockPacketGenerator, ATTACKER_IP, DEFAULT_TARGET

from conftest import BASE_TIME, make_packet, make_batch


def make_result(threat_type='custom', severity=Severity.LOW, method=DetectionMethod.SIGNATURE):
    return DetectionResult(
        threat_type=threat_type,
        severity=severity,
        confidence=50,
        description=f'{threat_type} test detection',
        detection_method=method
    )


def small_models(seed=0):
    rng = np.random.default_rng(seed)
    return ModelManager(
        random_forest=RandomForestClassifier(num_trees=5, max_depth=8, rng=rng),
        neural_network=NeuralNetworkClassifier(hidden_size=16, learning_rate=0.05, epochs=40, rng=rng),
    )


class TestDetectionManager:
    """Tests for DetectionManager history and statistics"""

    def setup_method(self):
        self.manager = DetectionManager()

    def test_detect_records_history(self, sql_injection_packet, clean_packet):
        assert self.manager.detect(clean_packet) is None
        result = self.manager.detect(sql_injection_packet)

        assert result.detection_method == DetectionMethod.HYBRID
        assert self.manager.get_history() == [result]

    def test_history_is_bounded(self):
        for i in range(10001):
            self.manager.record(make_result(threat_type=f'type_{i}'))

        history = self.manager.get_history()
        assert len(history) == 10000
        assert history[0].threat_type == 'type_1'
        assert history[-1].threat_type == 'type_10000'
        assert self.manager.total_recorded == 10001

    def test_history_limit(self):
        for i in range(5):
            self.manager.record(make_result(threat_type=f'type_{i}'))
        assert [r.threat_type for r in self.manager.get_history(limit=2)] == ['type_3', 'type_4']
        assert self.manager.get_history(limit=0) == []

    def test_statistics(self):
        self.manager.record(make_result('xss', Severity.HIGH))
        self.manager.record(make_result('xss', Severity.HIGH, DetectionMethod.HYBRID))
        self.manager.record(make_result('dos', Severity.CRITICAL, DetectionMethod.ANOMALY))

        stats = self.manager.get_statistics()
        assert stats == {
            'total_detections': 3,
            'by_threat_type': {'xss': 2, 'dos': 1},
            'by_severity': {'high': 2, 'critical': 1},
            'by_method': {'signature': 1, 'hybrid': 1, 'anomaly': 1},
        }
        assert self.manager.get_statistics() == stats

    def test_statistics_empty(self):
        assert self.manager.get_statistics() == {
            'total_detections': 0,
            'by_threat_type': {},
            'by_severity': {},
            'by_method': {},
        }

    def test_clear_history(self, xss_packet):
        self.manager.detect(xss_packet)
        self.manager.clear_history()
        assert self.manager.get_history() == []
        assert self.manager.get_statistics()['total_detections'] == 0

    def test_batch_detection_recorded(self, port_scan_packets):
        results = self.manager.detect_specific_attacks(port_scan_packets)
        assert [r.threat_type for r in results] == ['port_scan']
        assert self.manager.get_history() == results

    def test_concurrent_recording(self):
        manager = DetectionManager(max_history=500)

        def worker():
            for _ in range(200):
                manager.record(make_result())

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert manager.total_recorded == 800
        assert len(manager.get_history()) == 500


class TestDetectionService:
    """Tests for the per-stream detection context"""

    def setup_method(self):
        self.service = DetectionService(model_manager=small_models(), buffer_size=50)
        self.generator = MockPacketGenerator(seed=5, start_time=BASE_TIME)

    def test_submit_packet_dict(self, malicious_packet_data):
        result = self.service.submit_packet(malicious_packet_data)

        assert result.threat_type == 'sql_injection'
        assert len(self.service.get_buffered_packets()) == 1
        assert len(self.service.get_detection_history()) == 1
        assert self.service.get_stats()['detections'] == 1

    def test_submit_malformed_packet(self, sample_packet_data):
        sample_packet_data['src_ip'] = 'not-an-ip'
        with pytest.raises(InvalidPacketError):
            self.service.submit_packet(sample_packet_data)

        stats = self.service.get_stats()
        assert stats['rejected'] == 1
        assert stats['packets_processed'] == 0
        assert self.service.get_buffered_packets() == []

    def test_submit_batch_skips_malformed(self, sample_packet_data):
        bad = dict(sample_packet_data, dst_port=-5)
        results = self.service.submit_packets([sample_packet_data, bad, make_packet()])

        assert results == []
        stats = self.service.get_stats()
        assert stats['packets_processed'] == 2
        assert stats['rejected'] == 1

    def test_submit_dos_batch(self):
        results = self.service.submit_packets(self.generator.dos_packets(150))
        assert results[0].threat_type == 'dos'
        assert results[0].severity == Severity.CRITICAL
        assert results[0].metadata['unique_source_ips'] == 1
        assert self.service.get_detection_statistics()['by_threat_type']['dos'] == 1

    def test_dict_batch_keeps_packet_times(self):
        records = [p.to_dict() for p in make_batch(5, span_seconds=3600.0)]
        assert self.service.detect_specific_attacks(records) == []

        fv = self.service.extract_features(records)
        assert fv.duration == pytest.approx(3600.0)
        assert fv.inter_packet_time == pytest.approx(900.0)

    def test_dict_burst_still_flagged_as_dos(self):
        records = [p.to_dict() for p in make_batch(150, span_seconds=1.0)]
        results = self.service.submit_packets(records)
        assert results[0].threat_type == 'dos'
        assert results[0].metadata['packets_per_second'] == 150.0

    def test_buffer_is_bounded(self):
        self.service.submit_packets(self.generator.packets(80))
        buffered = self.service.get_buffered_packets()
        assert len(buffered) == 50
        assert self.service.get_buffer_stats() == {
            'packet_count': 50, 'capacity': 50, 'total_added': 80
        }

        self.service.clear_buffer()
        assert self.service.get_buffered_packets() == []

    def test_detect_packet_does_not_buffer(self, xss_packet):
        result = self.service.detect_packet(xss_packet)
        assert result.threat_type == 'xss'
        assert self.service.get_buffered_packets() == []
        assert len(self.service.get_detection_history()) == 1

    def test_detect_batch(self, sql_injection_packet, clean_packet, sample_packet_data):
        results = self.service.detect_batch([sql_injection_packet, clean_packet, sample_packet_data])
        assert [r.threat_type for r in results] == ['sql_injection']

    def test_rule_management(self, clean_packet):
        rule_id = self.service.add_rule({
            'id': 'custom_index',
            'name': 'Index page probe',
            'threat_type': 'recon',
            'pattern': r'/index\.html',
            'severity': 'low',
            'confidence': 40
        })
        assert rule_id == 'custom_index'
        assert self.service.detect_packet(clean_packet).threat_type == 'recon'

        assert self.service.toggle_rule('custom_index', False) is True
        assert self.service.detect_packet(clean_packet) is None

        assert self.service.remove_rule('custom_index') is True
        assert self.service.remove_rule('custom_index') is False
        assert all(r.id != 'custom_index' for r in self.service.list_rules())

    def test_add_malformed_rule(self):
        before = len(self.service.list_rules())
        with pytest.raises(MalformedPatternError):
            self.service.add_rule({
                'id': 'broken',
                'name': 'Broken',
                'threat_type': 'custom',
                'pattern': '(unclosed',
                'severity': 'low',
                'confidence': 10
            })
        with pytest.raises(ValueError):
            self.service.add_rule({
                'id': 'bad_severity',
                'name': 'Bad severity',
                'threat_type': 'custom',
                'pattern': 'ok',
                'severity': 'urgent',
                'confidence': 10
            })
        assert len(self.service.list_rules()) == before

    def test_extract_features_from_buffer(self):
        self.service.submit_packets(self.generator.port_scan_packets(12))
        fv = self.service.extract_features()
        assert fv.packet_count == 12
        assert fv.destination_port_count == 12
        assert fv.flag_counts['SYN'] == 12

        assert self.service.extract_features([]).packet_count == 0

    def test_predict_requires_training(self):
        with pytest.raises(NotTrainedError):
            self.service.predict_ensemble(self.service.extract_features())

    def test_train_and_predict(self):
        features, labels = self.generator.training_set(samples=40, window=20)
        self.service.train_models(features, labels)

        self.service.submit_packets(self.generator.brute_force_packets(20))
        verdict = self.service.predict('ensemble', self.service.extract_features())
        assert 0.0 <= verdict.probability <= 1.0
        assert 0.0 <= verdict.confidence <= 100.0
        assert self.service.get_stats()['models']['random_forest']['trained'] is True


class TestMockPacketGenerator:

    def test_seeded_generation_is_reproducible(self):
        first = MockPacketGenerator(seed=42, start_time=BASE_TIME).packets(20)
        second = MockPacketGenerator(seed=42, start_time=BASE_TIME).packets(20)
        assert first == second

    def test_packet_spacing(self):
        packets = MockPacketGenerator(seed=1, start_time=BASE_TIME).packets(3, interval_ms=250)
        assert [(p.timestamp - BASE_TIME).total_seconds() for p in packets] == [0.0, 0.25, 0.5]

    def test_attack_packets(self):
        generator = MockPacketGenerator(seed=1, start_time=datetime(2024, 6, 1))
        sql = generator.sql_injection_packet()
        assert sql.source_ip == ATTACKER_IP
        assert sql.destination_ip == DEFAULT_TARGET

        manager = DetectionManager()
        assert manager.detect(sql).threat_type == 'sql_injection'
        assert manager.detect(generator.xss_packet()).threat_type == 'xss'

        scan = manager.detect_specific_attacks(generator.port_scan_packets(25))
        assert [r.threat_type for r in scan] == ['port_scan']
        assert scan[0].metadata['unique_ports'] == 25

        brute = manager.detect_specific_attacks(generator.brute_force_packets(20))
        assert brute[0].threat_type == 'brute_force'
        assert brute[0].metadata['target_port'] == 22

    def test_training_set_shape(self):
        features, labels = MockPacketGenerator(seed=9, start_time=BASE_TIME).training_set(samples=10, window=5)
        assert len(features) == 10
        assert labels == [0, 1] * 5
        assert all(len(row) == 14 for row in features)
