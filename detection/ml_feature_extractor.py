"""
Feature extraction for the ML classifiers.
Summarizes a window of packets into a fixed-shape feature vector and keeps
the bounded packet window the live pipeline extracts from.
"""
from collections import deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, Any, List, Optional, Sequence, Tuple

import numpy as np

from detection.packet_analyzer import PacketInfo, TCP_FLAGS

# Protocol encoding for ML
PROTOCOL_MAP = {"TCP": 0, "UDP": 1, "ICMP": 2}
DEFAULT_PROTOCOL = 3
UNKNOWN_PROTOCOL = "unknown"

# Order of values produced by FeatureVector.to_list()
FEATURE_NAMES = [
    "protocol_type",
    "duration",
    "source_bytes",
    "packet_count",
    "source_port_count",
    "destination_port_count",
    "average_payload_size",
    "inter_packet_time",
] + [f"flag_{name.lower()}" for name in TCP_FLAGS]


def _empty_flag_counts() -> Dict[str, int]:
    return {name: 0 for name in TCP_FLAGS}


@dataclass(frozen=True)
class FeatureVector:
    """Extracted features from a packet window"""
    protocol_type: str = UNKNOWN_PROTOCOL
    duration: float = 0.0
    source_bytes: int = 0
    packet_count: int = 0
    source_port_count: int = 0
    destination_port_count: int = 0
    average_payload_size: float = 0.0
    inter_packet_time: float = 0.0
    # (flag, count) pairs in TCP_FLAGS order
    flag_items: Tuple[Tuple[str, int], ...] = field(
        default_factory=lambda: tuple(_empty_flag_counts().items()))

    @property
    def flag_counts(self) -> Dict[str, int]:
        return dict(self.flag_items)

    def to_list(self) -> List[float]:
        protocol_code = PROTOCOL_MAP.get(self.protocol_type.upper(), DEFAULT_PROTOCOL)
        values = [
            float(protocol_code),
            float(self.duration),
            float(self.source_bytes),
            float(self.packet_count),
            float(self.source_port_count),
            float(self.destination_port_count),
            float(self.average_payload_size),
            float(self.inter_packet_time),
        ]
        values.extend(float(self.flag_counts.get(name, 0)) for name in TCP_FLAGS)
        return values

    def to_array(self):
        return np.array(self.to_list(), dtype=np.float64).reshape(1, -1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "protocol_type": self.protocol_type,
            "duration": self.duration,
            "source_bytes": self.source_bytes,
            "packet_count": self.packet_count,
            "source_port_count": self.source_port_count,
            "destination_port_count": self.destination_port_count,
            "average_payload_size": self.average_payload_size,
            "inter_packet_time": self.inter_packet_time,
            "flag_counts": dict(self.flag_counts),
        }


def count_flags(packets: Sequence[PacketInfo]) -> Dict[str, int]:
    """Count the six named TCP flags; any other token is ignored"""
    counts = _empty_flag_counts()
    for p in packets:
        for flag in p.flags:
            if flag in counts:
                counts[flag] += 1
    return counts


def extract_features(packets: Sequence[PacketInfo]) -> FeatureVector:
    """
    Summarize an ordered window of packets.
    An empty window yields the zero vector with protocol "unknown".
    """
    if not packets:
        return FeatureVector()

    packet_count = len(packets)
    source_bytes = sum(p.payload_size for p in packets)

    duration = 0.0
    inter_packet_time = 0.0
    if packet_count > 1:
        duration = (packets[-1].timestamp - packets[0].timestamp).total_seconds()
        gaps = [
            (packets[i].timestamp - packets[i - 1].timestamp).total_seconds()
            for i in range(1, packet_count)
        ]
        inter_packet_time = sum(gaps) / len(gaps)

    return FeatureVector(
        protocol_type=packets[0].protocol,
        duration=duration,
        source_bytes=source_bytes,
        packet_count=packet_count,
        source_port_count=len({p.source_port for p in packets}),
        destination_port_count=len({p.destination_port for p in packets}),
        average_payload_size=source_bytes / packet_count if packet_count else 0.0,
        inter_packet_time=inter_packet_time,
        flag_items=tuple(count_flags(packets).items()),
    )


class PacketWindow:
    """
    Rolling window of packets for feature extraction.
    Holds at most max_size packets; the oldest packet is evicted first.
    """

    def __init__(self, max_size: int = 1000):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self._packets: deque = deque(maxlen=max_size)
        self._lock = Lock()
        self._total_added = 0

    def add(self, packet: PacketInfo) -> None:
        """Add a packet to the window"""
        with self._lock:
            self._packets.append(packet)
            self._total_added += 1

    def extend(self, packets: Sequence[PacketInfo]) -> None:
        with self._lock:
            self._packets.extend(packets)
            self._total_added += len(packets)

    def packets(self, last: Optional[int] = None) -> List[PacketInfo]:
        """Snapshot of the window, oldest first"""
        with self._lock:
            snapshot = list(self._packets)
        if last is not None:
            return snapshot[-last:] if last > 0 else []
        return snapshot

    def extract_features(self, last: Optional[int] = None) -> FeatureVector:
        return extract_features(self.packets(last))

    def clear(self) -> None:
        with self._lock:
            self._packets.clear()

    def __len__(self) -> int:
        return len(self._packets)

    def stats(self) -> Dict[str, int]:
        return {
            "packet_count": len(self._packets),
            "capacity": self.max_size,
            "total_added": self._total_added,
        }
