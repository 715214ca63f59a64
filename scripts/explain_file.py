#!/usr/bin/env python3
"""
Stream an explanation of a source file from a running relay.

Usage:
    python scripts/explain_file.py path/to/code.py [--child] [--url URL]

Ctrl-C cancels the stream.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Make the project importable without installing it
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import httpx

from relay.app.core.config import settings
from relay.client import ExplainStreamConsumer, StreamSession, StreamState


def print_progress(printed: list[int]):
    def on_update(session: StreamSession) -> None:
        text = session.accumulated_output
        sys.stdout.write(text[printed[0]:])
        sys.stdout.flush()
        printed[0] = len(text)
    return on_update


async def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("path", type=Path)
    parser.add_argument("--child", action="store_true", help="explain like I'm five")
    parser.add_argument("--url", default=settings.relay_url)
    args = parser.parse_args()

    code = args.path.read_text(encoding="utf-8")
    printed = [0]

    async with httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=None)) as client:
        consumer = ExplainStreamConsumer(client, args.url, on_update=print_progress(printed))
        task = asyncio.create_task(consumer.explain(code, explain_to_child=args.child))
        try:
            session = await asyncio.shield(task)
        except asyncio.CancelledError:
            consumer.cancel()
            session = await task

    print()
    if session.state is not StreamState.COMPLETED:
        print(session.message, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)
