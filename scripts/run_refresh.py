#!/usr/bin/env python3
"""Run one refresh cycle over the enabled sources and print the ranked feed."""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from trendfeed.api.service import FeedService, parse_category, parse_feed_mode, parse_time_range


async def run(args) -> dict:
    service = FeedService()
    response = await service.get_feed(
        category=parse_category(args.category),
        source_id=args.source,
        time_range=parse_time_range(args.time_range),
        mode=parse_feed_mode(args.mode),
    )
    await service.background.drain()
    return response


def main():
    parser = argparse.ArgumentParser(description="Refresh stale sources and rank the feed")
    parser.add_argument("--category", help="Only sources in this category")
    parser.add_argument("--source", help="Only this source id")
    parser.add_argument("--time-range", default=None, help="1h, 12h, 24h, 48h or 7d")
    parser.add_argument("--mode", default="hot", help="hot, rising or top")
    parser.add_argument("--top", type=int, default=15, help="How many items to print")
    args = parser.parse_args()

    print("\n" + "=" * 50)
    print("TRENDFEED REFRESH")
    print("=" * 50 + "\n")

    response = asyncio.run(run(args))

    print(f"Mode: {response['mode']}  Items: {response['count']}  Cached: {response['cached']}")
    for failure in response.get("failures", []):
        print(f"  FAILED {failure['source']}: {failure['error']}")

    print()
    for item in response["items"][:args.top]:
        print(f"  {item['trendingScore']:5.1f}  [{item['sourceId']}] {item['title'][:80]}")
    print()


if __name__ == "__main__":
    main()
