import os


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, default))


def _env_float(name: str, default: float) -> float:
    return float(os.environ.get(name, default))


class Config:
    # Buffers
    HISTORY_SIZE = _env_int('IDS_HISTORY_SIZE', 10000)  # retained detections
    BUFFER_SIZE = _env_int('IDS_BUFFER_SIZE', 1000)      # packet window
    PAYLOAD_EXCERPT_BYTES = 500

    # Traffic heuristics (all strictly greater-than)
    DOS_PPS_THRESHOLD = _env_float('IDS_DOS_PPS_THRESHOLD', 100.0)
    PORT_SCAN_THRESHOLD = _env_int('IDS_PORT_SCAN_THRESHOLD', 10)
    BRUTE_FORCE_THRESHOLD = _env_int('IDS_BRUTE_FORCE_THRESHOLD', 10)

    # Anomaly engine
    ANOMALY_THRESHOLD = _env_float('IDS_ANOMALY_THRESHOLD', 2.0)
    MAX_PAYLOAD_SIZE = _env_int('IDS_MAX_PAYLOAD_SIZE', 10000)
    SUSPICIOUS_PORTS = frozenset({666, 1337, 4444, 5555, 6666, 7777, 8888, 9999, 31337, 65432})

    # Classifiers
    FOREST_TREES = _env_int('IDS_FOREST_TREES', 100)
    FOREST_MAX_DEPTH = _env_int('IDS_FOREST_MAX_DEPTH', 20)
    FOREST_MIN_SAMPLES_SPLIT = _env_int('IDS_FOREST_MIN_SAMPLES_SPLIT', 2)
    NN_HIDDEN_SIZE = _env_int('IDS_NN_HIDDEN_SIZE', 64)
    NN_EPOCHS = _env_int('IDS_NN_EPOCHS', 100)
    NN_LEARNING_RATE = _env_float('IDS_NN_LEARNING_RATE', 0.01)

    # Model persistence
    MODEL_FORMAT_VERSION = 1

    # Logging
    LOG_LEVEL = os.environ.get('IDS_LOG_LEVEL', 'INFO')
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
