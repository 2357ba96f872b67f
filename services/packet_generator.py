"""
Synthetic packet source: random background traffic and canned attack
batches. Works without live traffic capture - used by the demo CLI and tests.
"""
import random
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from detection.packet_analyzer import PacketInfo
from detection.ml_feature_extractor import extract_features

SOURCE_IPS = ["192.168.1.100", "10.0.0.50", "172.16.0.25", "192.168.1.101"]
DESTINATION_IPS = ["8.8.8.8", "1.1.1.1", "192.168.1.1", "10.0.0.1"]
SERVICE_PORTS = [22, 80, 443, 3306, 5432, 8080]
PROTOCOLS = ["TCP", "UDP", "ICMP"]

# Simulated attacker / defender addresses
ATTACKER_IP = "203.0.113.42"
DEFAULT_TARGET = "10.0.1.50"


class MockPacketGenerator:
    """Generates PacketInfo records; pass a seed for reproducible traffic"""

    def __init__(self, seed: Optional[int] = None, start_time: Optional[datetime] = None):
        self.rng = random.Random(seed)
        self.start_time = start_time or datetime.utcnow()

    def random_packet(self, timestamp: Optional[datetime] = None) -> PacketInfo:
        return PacketInfo(
            timestamp=timestamp or self.start_time,
            source_ip=self.rng.choice(SOURCE_IPS),
            destination_ip=self.rng.choice(DESTINATION_IPS),
            source_port=self.rng.randint(1024, 65535),
            destination_port=self.rng.choice(SERVICE_PORTS),
            protocol=self.rng.choice(PROTOCOLS[:2]),
            payload_size=self.rng.randint(0, 1500),
            payload="Sample payload",
            flags="SYN,ACK",
            ttl=64
        )

    def packets(self, count: int, interval_ms: float = 50.0) -> List[PacketInfo]:
        """Background traffic spaced `interval_ms` apart"""
        return [
            self.random_packet(self.start_time + timedelta(milliseconds=i * interval_ms))
            for i in range(count)
        ]

    def sql_injection_packet(self) -> PacketInfo:
        return PacketInfo(
            timestamp=self.start_time,
            source_ip=ATTACKER_IP,
            destination_ip=DEFAULT_TARGET,
            source_port=12345,
            destination_port=80,
            protocol="TCP",
            payload_size=200,
            payload="GET /search?q=' OR '1'='1 HTTP/1.1",
            flags="PSH,ACK",
            ttl=64
        )

    def xss_packet(self) -> PacketInfo:
        return PacketInfo(
            timestamp=self.start_time,
            source_ip=ATTACKER_IP,
            destination_ip=DEFAULT_TARGET,
            source_port=12345,
            destination_port=80,
            protocol="TCP",
            payload_size=150,
            payload="<script>alert('XSS')</script>",
            flags="PSH,ACK",
            ttl=64
        )

    def dos_packets(self, count: int = 100, interval_ms: float = 1.0) -> List[PacketInfo]:
        """SYN burst from one host, `interval_ms` apart"""
        return [
            PacketInfo(
                timestamp=self.start_time + timedelta(milliseconds=i * interval_ms),
                source_ip=ATTACKER_IP,
                destination_ip=DEFAULT_TARGET,
                source_port=(12345 + i) % 65536,
                destination_port=80,
                protocol="TCP",
                payload_size=self.rng.randint(0, 1500),
                flags="SYN",
                ttl=64
            )
            for i in range(count)
        ]

    def port_scan_packets(self, ports: int = 25, interval_ms: float = 100.0) -> List[PacketInfo]:
        return [
            PacketInfo(
                timestamp=self.start_time + timedelta(milliseconds=i * interval_ms),
                source_ip=ATTACKER_IP,
                destination_ip=DEFAULT_TARGET,
                source_port=54321,
                destination_port=port,
                protocol="TCP",
                payload_size=0,
                flags="SYN",
                ttl=64
            )
            for i, port in enumerate(range(1, ports + 1))
        ]

    def brute_force_packets(self, attempts: int = 20, port: int = 22,
                            interval_ms: float = 500.0) -> List[PacketInfo]:
        return [
            PacketInfo(
                timestamp=self.start_time + timedelta(milliseconds=i * interval_ms),
                source_ip=ATTACKER_IP,
                destination_ip=DEFAULT_TARGET,
                source_port=self.rng.randint(1024, 65535),
                destination_port=port,
                protocol="TCP",
                payload_size=self.rng.randint(40, 120),
                payload="SSH-2.0-libssh auth attempt",
                flags="PSH,ACK",
                ttl=64
            )
            for i in range(attempts)
        ]

    def training_set(self, samples: int = 200, window: int = 20) -> Tuple[List[List[float]], List[int]]:
        """Feature rows for alternating benign (0) and attack (1) windows"""
        features, labels = [], []
        for i in range(samples):
            if i % 2 == 0:
                packets = self.packets(window)
                label = 0
            else:
                attack = self.rng.choice((self.dos_packets, self.port_scan_packets, self.brute_force_packets))
                packets = attack(window)
                label = 1
            features.append(extract_features(packets).to_list())
            labels.append(label)
        return features, labels
