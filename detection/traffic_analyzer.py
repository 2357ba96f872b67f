"""
Window-level traffic heuristics: DoS rate, port-scan fan-out and
repeated-connection (brute force) counts over a packet batch.
All functions are pure and treat an empty batch as "no signal".
"""
from collections import Counter
from dataclasses import dataclass, asdict
from typing import Sequence, Optional, Dict, Any

from config import Config
from detection.packet_analyzer import PacketInfo


@dataclass(frozen=True)
class DosReport:
    is_dos_attack: bool
    packets_per_second: float
    unique_source_ips: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PortScanReport:
    is_port_scan: bool
    unique_ports: int
    target_ip: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BruteForceReport:
    is_brute_force: bool
    failed_attempts: int
    target_port: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def detect_dos_attack(
    packets: Sequence[PacketInfo],
    threshold: float = Config.DOS_PPS_THRESHOLD,
) -> DosReport:
    """Flag when the batch rate exceeds `threshold` packets per second"""
    if not packets:
        return DosReport(is_dos_attack=False, packets_per_second=0.0, unique_source_ips=0)

    time_range = (packets[-1].timestamp - packets[0].timestamp).total_seconds()
    packets_per_second = len(packets) / time_range if time_range > 0 else 0.0

    return DosReport(
        is_dos_attack=packets_per_second > threshold,
        packets_per_second=round(packets_per_second, 2),
        unique_source_ips=len({p.source_ip for p in packets}),
    )


def detect_port_scan(
    packets: Sequence[PacketInfo],
    threshold: int = Config.PORT_SCAN_THRESHOLD,
) -> PortScanReport:
    """Flag one source fanning out over more than `threshold` ports of one target.

    Batches with several sources or several targets are never flagged.
    """
    if not packets:
        return PortScanReport(is_port_scan=False, unique_ports=0)

    source_ips = {p.source_ip for p in packets}
    destination_ips = {p.destination_ip for p in packets}
    if len(source_ips) != 1 or len(destination_ips) != 1:
        return PortScanReport(is_port_scan=False, unique_ports=0)

    unique_ports = len({p.destination_port for p in packets})
    return PortScanReport(
        is_port_scan=unique_ports > threshold,
        unique_ports=unique_ports,
        target_ip=next(iter(destination_ips)),
    )


def detect_brute_force(
    packets: Sequence[PacketInfo],
    threshold: int = Config.BRUTE_FORCE_THRESHOLD,
) -> BruteForceReport:
    """Flag when one (source, destination, port) triple repeats more than `threshold` times"""
    if not packets:
        return BruteForceReport(is_brute_force=False, failed_attempts=0, target_port=0)

    connections = Counter(
        (p.source_ip, p.destination_ip, p.destination_port) for p in packets
    )

    # First key to reach the maximum wins
    max_attempts = 0
    target_port = 0
    for (_, _, port), count in connections.items():
        if count > max_attempts:
            max_attempts = count
            target_port = port

    return BruteForceReport(
        is_brute_force=max_attempts > threshold,
        failed_attempts=max_attempts,
        target_port=target_port,
    )
