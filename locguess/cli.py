"""
LocGuess CLI - Command-line interface for challenges and the server.

Usage:
    locguess encode --items cup,chair --lat 59.33 --lng 18.06 [--photo img.jpg]
    locguess decode <token-or-url>
    locguess serve [--host 0.0.0.0] [--port 8000]
"""

import argparse
import json
import logging
import sys
import time

from .config import GameConfig


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="LocGuess - Photo location guessing game",
        prog="locguess",
    )
    parser.add_argument("--log-level", help="Logging level (default from LOCGUESS_LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Encode command
    encode_parser = subparsers.add_parser("encode", help="Build a challenge token")
    encode_parser.add_argument("--items", required=True, help="Comma-separated item labels")
    encode_parser.add_argument("--lat", type=float, required=True, help="Photo latitude")
    encode_parser.add_argument("--lng", type=float, required=True, help="Photo longitude")
    encode_parser.add_argument("--photo", help="Image file to embed as thumbnail")
    encode_parser.add_argument("--base-url", help="Page the challenge link points to")

    # Decode command
    decode_parser = subparsers.add_parser("decode", help="Decode a challenge token or URL")
    decode_parser.add_argument("token", help="Challenge token, or a URL carrying one")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)

    config = GameConfig.from_env()
    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "encode":
        cmd_encode(args, config)
    elif args.command == "decode":
        cmd_decode(args)
    elif args.command == "serve":
        cmd_serve(args)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_encode(args, config: GameConfig):
    """Build a challenge token from the command line."""
    from .challenge import ChallengeRecord, challenge_url, encode_record
    from .vision import load_frame, make_thumbnail

    items = tuple(item.strip() for item in args.items.split(",") if item.strip())
    photo = None
    if args.photo:
        try:
            with open(args.photo, "rb") as f:
                frame = load_frame(f.read())
        except OSError as e:
            print(f"Error: Could not read image {args.photo}: {e}")
            sys.exit(1)
        photo = make_thumbnail(frame, config.thumbnail_size, config.thumbnail_quality)

    record = ChallengeRecord(
        items=items,
        lat=round(args.lat, 6),
        lng=round(args.lng, 6),
        photo=photo,
        issued_at=int(time.time()),
    )
    token = encode_record(record)
    print(f"Token: {token}")
    print(f"URL:   {challenge_url(args.base_url or config.share_base_url, token)}")


def cmd_decode(args):
    """Decode and print a challenge."""
    from .challenge import decode, token_from_url

    token = args.token
    if "://" in token or token.startswith("?"):
        token = token_from_url(token) or ""

    result = decode(token)
    if not result.ok:
        print(f"Invalid challenge: {result.error}")
        sys.exit(1)

    record = result.record
    print(json.dumps({
        "version": record.version,
        "items": list(record.items),
        "lat": record.lat,
        "lng": record.lng,
        "issued_at": record.issued_at,
        "has_photo": record.photo is not None,
    }, indent=2))


def cmd_serve(args):
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "locguess.api.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
    )


if __name__ == "__main__":
    main()
