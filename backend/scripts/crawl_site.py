#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from siteintel.logging_setup import configure_logging
from siteintel.services.intelligence import analyze_homepage, analyze_website


def main() -> None:
    parser = argparse.ArgumentParser(description="Crawl a company website and print its business profile as JSON.")
    parser.add_argument("url", help="Company website, e.g. https://example.com")
    parser.add_argument("--correlation-id", default=None)
    parser.add_argument("--output", default=None, help="Write the JSON here instead of stdout")
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--homepage-only", action="store_true", help="Skip link selection and design extraction")
    args = parser.parse_args()

    configure_logging(args.log_level)
    analyze = analyze_homepage if args.homepage_only else analyze_website
    result = asyncio.run(analyze(args.url, args.correlation_id))

    payload = json.dumps(result, indent=2, default=str)
    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(payload + "\n")
        print(f"Wrote profile to {out_path}")
    else:
        print(payload)


if __name__ == "__main__":
    main()
