#!/usr/bin/env python3
# example_worldmodel.py

import os
import sys
import argparse
import logging
import yaml

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

# Import world model modules
from worldmodel.fusion.object_fusion import ObjectFusion
from worldmodel.tracking.object_tracker import ObjectTracker
from worldmodel.utils.config import load_config
from worldmodel.utils.transforms import RigidTransform, StaticTransformBuffer
from pipeline.data_sources import PerceptFileSource
from pipeline.percept_pipeline import PerceptPipeline
from pipeline.publishers import LoggingPublisher


def create_transform_buffer(transforms):
    """Create a static transform buffer from the 'transforms' configuration section."""
    buffer = StaticTransformBuffer()
    for entry in transforms:
        buffer.set_transform(entry['parent'], entry['child'], RigidTransform.from_dict(entry))
        logger.info(f"Static transform {entry['parent']} -> {entry['child']}")
    return buffer


def create_pipeline(config):
    """Create tracker and percept pipeline from configuration."""

    tracker = ObjectTracker(
        config=config["tracker"],
        transform_gateway=create_transform_buffer(config["transforms"]),
        publisher=LoggingPublisher(level=logging.DEBUG),
        fusion=ObjectFusion(config=config["fusion"])
    )

    return PerceptPipeline(tracker, config=config["pipeline"])


def run_on_file(pipeline, percept_path, output_path=None, workers=None):
    """Replay a percept file through the pipeline."""

    with PerceptFileSource(percept_path) as source:
        results = pipeline.run(source, workers=workers)

    model = pipeline.tracker.get_object_model()
    for obj in model:
        x, y, z = obj['pose']['position']
        logger.info(f"{obj['info']['object_id']}: class '{obj['info']['class_id']}' at "
                    f"({x:.2f}, {y:.2f}, {z:.2f}), support {obj['info']['support']:.1f}, state {obj['state']}")

    # Report performance
    performance = pipeline.report_performance()
    logger.info(f"Processed {len(results)} percepts, model has {len(model)} objects")
    logger.info(f"Performance: {performance}")

    if output_path:
        with open(output_path, "w") as f:
            yaml.safe_dump({'objects': model}, f, sort_keys=False)
        logger.info(f"Object model saved to: {output_path}")

    return model


def main():
    """Main function."""

    # Parse command line arguments
    parser = argparse.ArgumentParser(description="Object World Model Example")
    parser.add_argument("--config", type=str, default="config/worldmodel_config.yaml",
                        help="Path to configuration file")
    parser.add_argument("--percepts", type=str, required=True,
                        help="Path to YAML percept file")
    parser.add_argument("--workers", type=int, default=None,
                        help="Number of concurrent percept handlers")
    parser.add_argument("--output", type=str, default=None,
                        help="Output path for the final object model (YAML)")

    args = parser.parse_args()

    # Load configuration
    try:
        config = load_config(args.config if os.path.exists(args.config) else None)
    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        return 1

    level = config["logging"].get("level")
    if level:
        logging.getLogger().setLevel(level.upper())

    pipeline = create_pipeline(config)

    try:
        run_on_file(pipeline, args.percepts, args.output, args.workers)
    except FileNotFoundError as e:
        logger.error(f"{e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
