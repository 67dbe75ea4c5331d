#!/usr/bin/env python3
"""Serve the feed API with uvicorn."""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn

from trendfeed.api.app import create_app


def main():
    parser = argparse.ArgumentParser(description="Trendfeed API server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    uvicorn.run(create_app(), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
