from services.detection_manager import DetectionManager
from services.detection_service import DetectionService
from services.packet_generator import MockPacketGenerator

__all__ = ['DetectionManager', 'DetectionService', 'MockPacketGenerator']
