import pytest
import numpy as np

from detection.ml_feature_extractor import (
    FEATURE_NAMES,
    FeatureVector,
    PacketWindow,
    extract_features,
)

from conftest import make_packet, make_batch


class TestExtractFeatures:

    def test_empty_window(self):
        fv = extract_features([])
        assert fv == FeatureVector()
        assert fv.protocol_type == 'unknown'
        assert fv.to_list() == [3.0] + [0.0] * (len(FEATURE_NAMES) - 1)

    def test_single_packet(self):
        fv = extract_features([make_packet(payload_size=250)])
        assert fv.packet_count == 1
        assert fv.duration == 0.0
        assert fv.inter_packet_time == 0.0
        assert fv.source_bytes == 250
        assert fv.average_payload_size == 250.0

    def test_window_summary(self):
        packets = [
            make_packet(src_port=1000, dst_port=80, payload_size=100, flags='SYN', offset_seconds=0),
            make_packet(src_port=1001, dst_port=443, payload_size=300, flags='SYN,ACK', offset_seconds=2),
            make_packet(src_port=1001, dst_port=443, payload_size=200, flags='ACK,ECE', offset_seconds=6),
        ]
        fv = extract_features(packets)

        assert fv.protocol_type == 'TCP'
        assert fv.duration == pytest.approx(6.0)
        assert fv.inter_packet_time == pytest.approx(3.0)
        assert fv.source_bytes == 600
        assert fv.packet_count == 3
        assert fv.source_port_count == 2
        assert fv.destination_port_count == 2
        assert fv.average_payload_size == pytest.approx(200.0)
        assert fv.flag_counts == {'SYN': 2, 'ACK': 2, 'FIN': 0, 'RST': 0, 'PSH': 0, 'URG': 0}

    def test_vector_is_immutable_and_hashable(self):
        fv = extract_features(make_batch(3, flags='SYN'))
        counts = fv.flag_counts
        counts['SYN'] = 99

        assert fv.flag_counts['SYN'] == 3
        assert hash(fv) == hash(extract_features(make_batch(3, flags='SYN')))
        assert len({fv, extract_features(make_batch(3, flags='SYN')), FeatureVector()}) == 2

    def test_sub_second_duration(self):
        fv = extract_features(make_batch(11, span_seconds=0.5))
        assert fv.duration == pytest.approx(0.5)
        assert fv.inter_packet_time == pytest.approx(0.05)

    def test_protocol_from_first_packet(self):
        packets = [make_packet(protocol='udp'), make_packet(protocol='tcp', offset_seconds=1)]
        fv = extract_features(packets)
        assert fv.protocol_type == 'UDP'
        assert fv.to_list()[0] == 1.0

    def test_feature_layout(self):
        fv = extract_features(make_batch(5, protocol='ICMP', flags='RST'))
        values = fv.to_list()
        assert len(values) == len(FEATURE_NAMES)
        assert values[0] == 2.0
        assert values[FEATURE_NAMES.index('packet_count')] == 5.0
        assert values[FEATURE_NAMES.index('flag_rst')] == 5.0

        arr = fv.to_array()
        assert isinstance(arr, np.ndarray)
        assert arr.shape == (1, len(FEATURE_NAMES))


class TestPacketWindow:

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            PacketWindow(max_size=0)

    def test_evicts_oldest(self):
        window = PacketWindow(max_size=3)
        packets = [make_packet(src_port=1000 + i, offset_seconds=i) for i in range(5)]
        for p in packets:
            window.add(p)

        assert len(window) == 3
        assert window.packets() == packets[2:]
        assert window.stats() == {'packet_count': 3, 'capacity': 3, 'total_added': 5}

    def test_last_n(self):
        window = PacketWindow(max_size=10)
        packets = make_batch(6)
        window.extend(packets)
        assert window.packets(last=2) == packets[-2:]
        assert window.packets(last=0) == []
        assert window.extract_features(last=3).packet_count == 3

    def test_clear(self):
        window = PacketWindow()
        window.extend(make_batch(4))
        window.clear()
        assert len(window) == 0
        assert window.extract_features() == FeatureVector()
