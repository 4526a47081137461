#!/usr/bin/env python3
"""
Run the inspection report web server.

Usage:
    python run.py
    python run.py --port 9000 --photo-root /srv/inspection-photos
"""

import argparse
import logging
import os
from typing import List, Optional

import uvicorn

from utils.config import Config


def build_config(argv: Optional[List[str]] = None) -> Config:
    """
    Environment configuration with command-line overrides applied.

    Overrides are written back to the environment so the app created by
    uvicorn loads the same values.
    """
    parser = argparse.ArgumentParser(description="Inspection report web server")
    parser.add_argument("--host", help="Bind address (default: HOST)")
    parser.add_argument("--port", type=int, help="Port (default: PORT)")
    parser.add_argument("--photo-root", help="Directory requests may reference photos from (default: PHOTO_ROOT)")
    parser.add_argument("--image-hosts", help="Comma-separated hosts photos may be fetched from (default: IMAGE_HOSTS)")
    args = parser.parse_args(argv)

    overrides = {
        "HOST": args.host,
        "PORT": str(args.port) if args.port else None,
        "PHOTO_ROOT": args.photo_root,
        "IMAGE_HOSTS": args.image_hosts,
    }
    for name, value in overrides.items():
        if value:
            os.environ[name] = value
    return Config.load()


def main(argv: Optional[List[str]] = None):
    """Start the web server."""
    config = build_config(argv)

    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print(f"Starting Inspection Report Engine on http://{config.host}:{config.port}")
    if config.photo_root:
        print(f"Photos served from {config.photo_root}")
    else:
        print("No photo root set: only data URI images are accepted")
    if config.image_hosts:
        print(f"Image hosts: {', '.join(config.image_hosts)}")
    print("Press Ctrl+C to stop")

    uvicorn.run(
        "web.app:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=config.debug,
    )


if __name__ == "__main__":
    main()
