"""
Cone Steering CLI - Attaches to a shared memory frame stream and steers.
"""

import argparse
import logging
import signal
import sys
from typing import List, Optional

from cone_steering.config import load_config
from cone_steering.core.reference import (
    GroundSteeringRequest,
    ReferenceSteeringCell,
    ReferenceValueListener,
)
from cone_steering.core.system import ConeSteeringSystem
from cone_steering.errors import AttachError, ConfigurationError
from cone_steering.io.frame_source import SharedMemoryFrameSource
from cone_steering.io.od4 import OD4Session
from cone_steering.visualization.overlay import ConeOverlay

logger = logging.getLogger("cone_steering")

MANDATORY = ('cid', 'name', 'width', 'height')


def usage(prog: str) -> str:
    return (
        f"{prog} attaches to a shared memory area containing a BGRA image.\n"
        f"Usage:   {prog} --cid=<OD4 session> --name=<name of shared memory area> "
        f"--width=<width> --height=<height> [--verbose] [--config=<yaml>]\n"
        f"         --cid:    CID of the OD4Session to send and receive messages\n"
        f"         --name:   name of the shared memory area to attach\n"
        f"         --width:  width of the frame\n"
        f"         --height: height of the frame\n"
        f"         --config: YAML file overriding thresholds, regions and increments\n"
        f"Note:    the area must be written by SharedMemoryFrameWriter; a libcluon\n"
        f"         camera region uses a different layout and cannot be attached\n"
        f"Example: {prog} --cid=253 --name=img --width=640 --height=480 --verbose"
    )


def build_parser(prog: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description='Cone steering - calibrates direction and steers between blue and yellow cones',
    )
    parser.add_argument('--cid', type=int, default=None, help='OD4 session id')
    parser.add_argument('--name', type=str, default=None, help='Shared memory area name')
    parser.add_argument('--width', type=int, default=None, help='Frame width')
    parser.add_argument('--height', type=int, default=None, help='Frame height')
    parser.add_argument('--verbose', action='store_true', help='Show debug windows')
    parser.add_argument('--config', type=str, default=None, help='Config file')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point. Returns the process exit status."""
    prog = 'cone-steering'
    args = build_parser(prog).parse_args(argv)

    missing = [name for name in MANDATORY if getattr(args, name) is None]
    if missing:
        print(usage(prog), file=sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(name)s %(levelname)s: %(message)s',
        stream=sys.stderr,
    )

    try:
        config = load_config(args.config) if args.config else None
    except ConfigurationError as e:
        logger.error("%s", e)
        return 1

    cell = ReferenceSteeringCell()

    try:
        session = OD4Session(args.cid, autostart=False)
    except ConfigurationError as e:
        logger.error("%s", e)
        return 1

    try:
        source = SharedMemoryFrameSource(
            args.name,
            args.width,
            args.height,
            is_running=session.is_running,
        )
    except AttachError as e:
        logger.error("%s", e)
        return 1

    logger.info("Attached to shared memory '%s' (%d bytes).", args.name, source.size)

    try:
        session.start()
    except OSError as e:
        logger.error("Cannot join OD4 session %d: %s", args.cid, e)
        source.close()
        return 1

    session.data_trigger(GroundSteeringRequest.ID, ReferenceValueListener(cell))

    system = ConeSteeringSystem(config, reference=cell.reader())
    overlay = ConeOverlay(detection_threshold=system.detector.detection_threshold) if args.verbose else None

    def _stop(signum, _frame):
        logger.info("Received signal %d, stopping", signum)
        session.stop()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)

    try:
        frames = system.run(source, session.is_running, overlay=overlay)
    finally:
        source.close()
        session.stop()
        if overlay is not None:
            overlay.close()

    status = system.get_status()
    logger.info(
        "Processed %d frames, direction %s, final angle %g, timing %s",
        frames, status['direction'], status['angle'], status['timing_stats'],
    )
    return 0


if __name__ == '__main__':
    sys.exit(main())
