"""Main entry point for Connect Four arena application."""

import argparse
import os

import uvicorn


def main() -> None:
    """
    Start the FastAPI server.

    Runs the Connect Four Arena API server. Default configuration is host 0.0.0.0 and port 9002.
    Visit http://<host>:<port>/docs for API documentation.

    Finished games are appended to /tmp/connect_arena/games.jsonl unless PERSIST_DIR says otherwise.
    """
    parser = argparse.ArgumentParser(description="Connect Four Arena API Server")
    parser.add_argument("--host", type=str, default="0.0.0.0", help="Host to bind the server to (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=9002, help="Port to bind the server to (default: 9002)")
    parser.add_argument("--matchmaking-timeout", type=float, default=None,
                        help="Seconds to wait for a human opponent before starting an AI game (default: 10)")
    parser.add_argument("--reconnect-timeout", type=float, default=None,
                        help="Seconds a disconnected player has to rejoin before forfeiting (default: 30)")
    parser.add_argument("--search-depth", type=int, default=None,
                        help="AI minimax search depth, 3 to 7 (default: 5)")
    parser.add_argument("--reload", action="store_true", help="Reload the server on code changes")
    args = parser.parse_args()

    if args.matchmaking_timeout is not None:
        os.environ["MATCHMAKING_TIMEOUT"] = str(args.matchmaking_timeout)
    if args.reconnect_timeout is not None:
        os.environ["RECONNECT_TIMEOUT"] = str(args.reconnect_timeout)
    if args.search_depth is not None:
        os.environ["AI_SEARCH_DEPTH"] = str(args.search_depth)

    uvicorn.run("connect_arena.server:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
