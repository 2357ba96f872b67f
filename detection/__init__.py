from detection.packet_analyzer import PacketAnalyzer, PacketInfo
from detection.signature_engine import SignatureEngine
from detection.anomaly_engine import AnomalyEngine
from detection.hybrid_engine import HybridEngine
from detection.ml_feature_extractor import PacketWindow, FeatureVector, extract_features
from detection.ml_decision_tree import DecisionTree
from detection.ml_random_forest import RandomForestClassifier
from detection.ml_neural_network import NeuralNetworkClassifier
from detection.ml_model_manager import ModelManager, PredictionResult

__all__ = [
    'PacketAnalyzer', 'PacketInfo', 'SignatureEngine', 'AnomalyEngine',
    'HybridEngine', 'PacketWindow', 'FeatureVector', 'extract_features',
    'DecisionTree', 'RandomForestClassifier', 'NeuralNetworkClassifier',
    'ModelManager', 'PredictionResult'
]
