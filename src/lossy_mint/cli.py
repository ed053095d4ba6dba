"""One-time collection bootstrap.

Usage:
    lossy-create-collection
    lossy-create-collection --image lossy-collection.jpg
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from lossy_mint.app_logging import configure_logging
from lossy_mint.containers import AppContainer, build_container
from lossy_mint.errors import MintingAppError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lossy-create-collection",
        description="Create the certified collection NFT owned by the master wallet.",
    )
    parser.add_argument(
        "--image",
        type=Path,
        default=None,
        help="Local collection artwork; defaults to COLLECTION_IMAGE_URL.",
    )
    return parser


async def run(container: AppContainer, image_path: Path | None) -> dict[str, object]:
    """Create the collection and release the container's clients."""
    image = image_path.read_bytes() if image_path is not None else None
    try:
        return await container.collection_service.create_collection(image)
    finally:
        await container.close_resources()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    container = build_container()
    configure_logging(container.settings.log_level)
    logger.info(
        "Creating collection",
        extra={"master": container.wallets.master_address()},
    )
    try:
        result = asyncio.run(run(container, args.image))
    except MintingAppError as exc:
        print(json.dumps(exc.to_dict(), indent=2), file=sys.stderr)
        return 1
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
