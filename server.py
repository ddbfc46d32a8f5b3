"""
Launch the chess commentary API (Flask).

Usage: python server.py --port 3001
Env knobs: CHESSCOMMENT_LLM_API_KEY, CHESSCOMMENT_MODEL, CHESSCOMMENT_CACHE_DIR, etc.
"""
from __future__ import annotations

import argparse
import logging

from chess_commentary.api import app


def main() -> None:
    ap = argparse.ArgumentParser(description="Serve the chess commentary API")
    ap.add_argument("--host", default="0.0.0.0")
    ap.add_argument("--port", type=int, default=3001)
    ap.add_argument("--debug", action="store_true")
    ap.add_argument("--log-level", default="INFO")
    args = ap.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
