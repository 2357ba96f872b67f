"""
Pytest configuration and shared fixtures for IDS tests.
"""

import pytest
from datetime import datetime, timedelta

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


def make_packet(
    src_ip='192.168.1.100',
    dst_ip='10.0.0.1',
    src_port=54321,
    dst_port=80,
    protocol='TCP',
    payload='GET /index.html HTTP/1.1\r\nHost: example.com\r\n\r\n',
    payload_size=100,
    flags='ACK,PSH',
    offset_seconds=0.0,
    ttl=64
):
    """Build a PacketInfo at BASE_TIME + offset_seconds"""
    from detection.packet_analyzer import PacketInfo

    return PacketInfo(
        timestamp=BASE_TIME + timedelta(seconds=offset_seconds),
        source_ip=src_ip,
        destination_ip=dst_ip,
        source_port=src_port,
        destination_port=dst_port,
        protocol=protocol,
        payload_size=payload_size,
        payload=payload,
        flags=flags,
        ttl=ttl
    )


def make_batch(count, span_seconds=1.0, **kwargs):
    """Evenly spaced packets whose first and last timestamps are span_seconds apart"""
    step = span_seconds / (count - 1) if count > 1 else 0.0
    return [make_packet(offset_seconds=i * step, **kwargs) for i in range(count)]


@pytest.fixture
def packet_factory():
    """Fixture that returns the packet builder function"""
    return make_packet


@pytest.fixture
def batch_factory():
    """Fixture that returns the batch builder function"""
    return make_batch


@pytest.fixture
def sample_packet_data():
    """Raw packet dict as delivered by a capture adapter"""
    return {
        'src_ip': '192.168.1.100',
        'dst_ip': '10.0.0.1',
        'src_port': 54321,
        'dst_port': 80,
        'protocol': 'tcp',
        'payload': b'GET /index.html HTTP/1.1\r\nHost: example.com\r\n\r\n',
        'size': 100,
        'flags': {
            'syn': False,
            'ack': True,
            'fin': False,
            'rst': False,
            'psh': True,
            'urg': False
        }
    }


@pytest.fixture
def malicious_packet_data():
    """Raw SQL injection packet"""
    return {
        'src_ip': '10.0.0.50',
        'dst_ip': '192.168.1.1',
        'src_port': 45678,
        'dst_port': 80,
        'protocol': 'tcp',
        'payload': b"GET /admin?id=1' UNION SELECT * FROM users-- HTTP/1.1",
        'size': 150,
        'flags': {'ack': True, 'psh': True}
    }


@pytest.fixture
def sql_injection_packet():
    return make_packet(payload="GET /search?q=' OR '1'='1 HTTP/1.1")


@pytest.fixture
def xss_packet():
    return make_packet(payload="GET /page?name=<script>alert('x')</script> HTTP/1.1")


@pytest.fixture
def clean_packet():
    return make_packet()


@pytest.fixture
def port_scan_packets():
    """Single source scanning 11 ports on a single target"""
    return [
        make_packet(src_ip='10.0.0.200', dst_ip='192.168.1.1', dst_port=port,
                    payload='', payload_size=0, flags='SYN', offset_seconds=i)
        for i, port in enumerate(range(20, 31))
    ]


@pytest.fixture
def brute_force_packets():
    """11 repeated connections to the same SSH service"""
    return [
        make_packet(src_ip='10.0.0.77', dst_ip='192.168.1.1', dst_port=22,
                    src_port=40000 + i, payload='', flags='PSH,ACK', offset_seconds=i * 2)
        for i in range(11)
    ]


@pytest.fixture
def separable_dataset():
    """Two well-separated clusters in four features, labels 0 and 1"""
    import numpy as np

    rng = np.random.default_rng(7)
    benign = rng.normal(loc=[1.0, 200.0, 0.2, 5.0], scale=[0.3, 20.0, 0.05, 1.0], size=(30, 4))
    attack = rng.normal(loc=[4.0, 900.0, 0.8, 40.0], scale=[0.3, 20.0, 0.05, 1.0], size=(30, 4))
    features = np.vstack([benign, attack]).tolist()
    labels = [0] * 30 + [1] * 30
    return features, labels


# Pytest configuration hooks

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
