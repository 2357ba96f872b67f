from dataclasses import dataclass, field
from typing import Optional, Dict, Any, FrozenSet, Iterable, List, Union
from datetime import datetime, timezone
import ipaddress
import logging
import re

from models.exceptions import InvalidPacketError

logger = logging.getLogger(__name__)

TCP_FLAGS = ('SYN', 'ACK', 'FIN', 'RST', 'PSH', 'URG')

FlagsInput = Union[None, str, Dict[str, bool], Iterable[str]]


def parse_flags(flags: FlagsInput) -> FrozenSet[str]:
    """Normalize the flag notations used by capture adapters into a set of upper-case tokens.

    Accepts "SYN,ACK" strings, {'syn': True, 'ack': False} dicts and plain iterables.
    Unknown tokens are kept; consumers decide which ones they count.
    """
    if not flags:
        return frozenset()
    if isinstance(flags, str):
        tokens = flags.split(',')
    elif isinstance(flags, dict):
        tokens = [name for name, is_set in flags.items() if is_set]
    else:
        tokens = list(flags)
    return frozenset(t.strip().upper() for t in tokens if t and t.strip())


def parse_timestamp(value: Any) -> datetime:
    """Normalize a packet timestamp to a naive UTC datetime.

    Accepts datetimes, ISO 8601 strings (as written by PacketInfo.to_dict)
    and epoch seconds. A missing timestamp means "now"; anything else that
    cannot be read raises InvalidPacketError.
    """
    if value is None:
        return datetime.utcnow()
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str):
        try:
            ts = datetime.fromisoformat(value.strip())
        except ValueError as e:
            raise InvalidPacketError(f"timestamp is not an ISO 8601 string: {value!r}") from e
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            ts = datetime.utcfromtimestamp(value)
        except (OverflowError, OSError, ValueError) as e:
            raise InvalidPacketError(f"timestamp is out of range: {value!r}") from e
    else:
        raise InvalidPacketError(f"Unsupported timestamp type: {type(value).__name__}")

    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def _validate_ip(value: str, field_name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise InvalidPacketError(f"{field_name} must be a non-empty IP string")
    try:
        ipaddress.ip_address(value.strip())
    except ValueError as e:
        raise InvalidPacketError(f"{field_name} is not a valid IP address: {value!r}") from e


def _validate_port(value: int, field_name: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= 65535:
        raise InvalidPacketError(f"{field_name} must be an integer in [0, 65535], got {value!r}")


@dataclass(frozen=True)
class PacketInfo:
    """Normalized, immutable packet record"""
    timestamp: datetime
    source_ip: str
    destination_ip: str
    source_port: int
    destination_port: int
    protocol: str
    payload_size: int
    payload: Optional[str] = None
    flags: FrozenSet[str] = field(default_factory=frozenset)
    ttl: Optional[int] = None

    def __post_init__(self):
        _validate_ip(self.source_ip, 'source_ip')
        _validate_ip(self.destination_ip, 'destination_ip')
        _validate_port(self.source_port, 'source_port')
        _validate_port(self.destination_port, 'destination_port')
        if not self.protocol:
            raise InvalidPacketError("protocol tag is required")
        if not isinstance(self.payload_size, int) or self.payload_size < 0:
            raise InvalidPacketError(f"payload_size must be a non-negative integer, got {self.payload_size!r}")
        if not isinstance(self.timestamp, datetime):
            raise InvalidPacketError("timestamp must be a datetime")
        object.__setattr__(self, 'protocol', self.protocol.upper())
        if not isinstance(self.flags, frozenset):
            object.__setattr__(self, 'flags', parse_flags(self.flags))

    def has_flag(self, name: str) -> bool:
        return name.upper() in self.flags

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'source_ip': self.source_ip,
            'destination_ip': self.destination_ip,
            'source_port': self.source_port,
            'destination_port': self.destination_port,
            'protocol': self.protocol,
            'payload_size': self.payload_size,
            'payload': self.payload,
            'flags': ','.join(sorted(self.flags)),
            'ttl': self.ttl
        }


class PacketAnalyzer:
    """Turns raw packet dicts from a packet source into PacketInfo records"""

    SUSPICIOUS_PATTERNS = {
        'sql_injection': [
            re.compile(r"""(['"])\s*(or|and)\s+['"]?\w*['"]?\s*(=|!=|<>)""", re.IGNORECASE),
            re.compile(r"union\s+select", re.IGNORECASE),
            re.compile(r"drop\s+table", re.IGNORECASE),
            re.compile(r"insert\s+into", re.IGNORECASE),
            re.compile(r"delete\s+from", re.IGNORECASE),
        ],
        'xss': [
            re.compile(r"<script[^>]*>", re.IGNORECASE),
            re.compile(r"javascript:", re.IGNORECASE),
            re.compile(r"on\w+\s*=", re.IGNORECASE),
            re.compile(r"<iframe[^>]*>", re.IGNORECASE),
        ],
        'path_traversal': [
            re.compile(r"\.\./|\.\.\\"),
        ],
        'command_injection': [
            re.compile(r";rm\s+-rf|;cat\s+/etc|;wget\s+|;curl\s+"),
        ],
    }

    def __init__(self):
        self.packet_count = 0
        self.rejected_count = 0

    def analyze(self, packet_data: Dict[str, Any]) -> PacketInfo:
        """Parse raw packet data into a PacketInfo.

        Understands both the capture adapter keys (src_ip, dst_ip, size, ...)
        and the long-form record keys (source_ip, destination_ip, payload_size, ...).
        Raises InvalidPacketError if the record cannot be normalized.
        """
        payload = packet_data.get('payload')
        if isinstance(payload, (bytes, bytearray)):
            raw_size = len(payload)
            payload = payload.decode('utf-8', errors='replace')
        else:
            raw_size = len(payload.encode('utf-8')) if payload else 0

        size = packet_data.get('payload_size', packet_data.get('size'))
        if size is None:
            size = raw_size

        try:
            packet = PacketInfo(
                timestamp=parse_timestamp(packet_data.get('timestamp')),
                source_ip=packet_data.get('source_ip', packet_data.get('src_ip', '')),
                destination_ip=packet_data.get('destination_ip', packet_data.get('dst_ip', '')),
                source_port=packet_data.get('source_port', packet_data.get('src_port', 0)),
                destination_port=packet_data.get('destination_port', packet_data.get('dst_port', 0)),
                protocol=packet_data.get('protocol', 'unknown'),
                payload_size=size,
                payload=payload,
                flags=parse_flags(packet_data.get('flags')),
                ttl=packet_data.get('ttl')
            )
        except InvalidPacketError as e:
            self.rejected_count += 1
            logger.warning(f"Rejected packet record: {e}")
            raise

        self.packet_count += 1
        return packet

    def analyze_http(self, payload: Optional[str]) -> Dict[str, str]:
        """Pull method, path, host and user agent out of an HTTP request payload"""
        result = {}
        if not payload:
            return result

        method_match = re.match(r"^(GET|POST|PUT|DELETE|PATCH|HEAD|OPTIONS)\s+(\S+)", payload)
        if method_match:
            result['method'] = method_match.group(1)
            result['path'] = method_match.group(2)

        host_match = re.search(r"Host:\s*([^\r\n]+)", payload, re.IGNORECASE)
        if host_match:
            result['host'] = host_match.group(1).strip()

        agent_match = re.search(r"User-Agent:\s*([^\r\n]+)", payload, re.IGNORECASE)
        if agent_match:
            result['user_agent'] = agent_match.group(1).strip()

        return result

    def analyze_dns(self, payload: Optional[str]) -> Dict[str, str]:
        result = {}
        if not payload:
            return result
        domain_match = re.search(r"([a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+)", payload)
        if domain_match:
            result['domain'] = domain_match.group(1)
        return result

    def analyze_tcp_flags(self, packet: PacketInfo) -> Dict[str, bool]:
        """Classify the TCP handshake state implied by a packet's flags"""
        if not packet.flags:
            return {}
        return {
            'is_syn_flood': packet.has_flag('SYN') and not packet.has_flag('ACK'),
            'is_normal_handshake': packet.has_flag('SYN') and packet.has_flag('ACK'),
            'is_reset': packet.has_flag('RST')
        }

    def check_malicious_payload(self, payload: Optional[str]) -> List[str]:
        """Quick scan returning every attack category whose patterns appear in the payload"""
        found = []
        if not payload:
            return found
        for threat_type, patterns in self.SUSPICIOUS_PATTERNS.items():
            if any(p.search(payload) for p in patterns):
                found.append(threat_type)
        return found

    def get_stats(self) -> Dict[str, int]:
        return {
            'total_packets': self.packet_count,
            'rejected_packets': self.rejected_count
        }
