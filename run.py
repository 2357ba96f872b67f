#!/usr/bin/env python3
"""
Entry point: replays synthetic traffic through the detection core and
reports detections, statistics and a classifier verdict.
"""

import os
import sys
import json
import argparse
import logging

from dotenv import load_dotenv

# Load .env before reading Config
load_dotenv()


def main(argv=None):
    from config import Config

    parser = argparse.ArgumentParser(description='Hybrid Intrusion Detection Core demo')

    parser.add_argument(
        '--packets',
        type=int,
        default=int(os.environ.get('IDS_DEMO_PACKETS', 200)),
        help='Background packets to generate (default: 200)'
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Seed for synthetic traffic and model training'
    )
    parser.add_argument(
        '--trees',
        type=int,
        default=None,
        help='Random forest size (default: IDS_FOREST_TREES or 100)'
    )
    parser.add_argument(
        '--samples',
        type=int,
        default=200,
        help='Synthetic training windows (default: 200)'
    )
    parser.add_argument(
        '--save-models',
        metavar='PATH',
        help='Write the trained models to PATH as JSON'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        default=Config.LOG_LEVEL,
        help='Logging level (default: INFO)'
    )

    args = parser.parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format=Config.LOG_FORMAT
    )
    logger = logging.getLogger(__name__)

    import numpy as np
    from detection.ml_random_forest import RandomForestClassifier
    from detection.ml_neural_network import NeuralNetworkClassifier
    from detection.ml_model_manager import ModelManager
    from services.detection_service import DetectionService
    from services.packet_generator import MockPacketGenerator

    rng = np.random.default_rng(args.seed)
    model_manager = ModelManager(
        random_forest=RandomForestClassifier(num_trees=args.trees or Config.FOREST_TREES, rng=rng),
        neural_network=NeuralNetworkClassifier(rng=rng),
    )
    service = DetectionService(model_manager=model_manager)
    generator = MockPacketGenerator(seed=args.seed)

    logger.info("Starting IDS demo")
    logger.info(f"  Background packets: {args.packets}")
    logger.info(f"  Rules loaded: {len(service.list_rules())}")

    for packet in generator.packets(args.packets):
        service.submit_packet(packet)
    service.submit_packet(generator.sql_injection_packet())
    service.submit_packet(generator.xss_packet())
    service.submit_packets(generator.dos_packets(150))
    service.submit_packets(generator.port_scan_packets(25))
    service.submit_packets(generator.brute_force_packets(20))

    features, labels = generator.training_set(args.samples)
    service.train_models(features, labels)
    verdict = service.predict_ensemble(service.extract_features())

    if args.save_models:
        with open(args.save_models, 'w') as f:
            f.write(service.model_manager.save_models())
        logger.info(f"Saved models to {args.save_models}")

    report = {
        'detections': [r.to_dict() for r in service.get_detection_history()],
        'statistics': service.get_detection_statistics(),
        'window_verdict': verdict.to_dict(),
        'service': service.get_stats(),
    }
    json.dump(report, sys.stdout, indent=2, default=str)
    sys.stdout.write('\n')
    return 0


if __name__ == '__main__':
    sys.exit(main())
