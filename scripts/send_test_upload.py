#!/usr/bin/env python3
"""
Dev helper: post a test image to a running Image Mailer instance.

Builds the same multipart request the upload form sends (an ``image`` file
part plus an ``email`` field) and POSTs it to /upload.

Usage
-----
# Generated 1x1 PNG, sent to the given address via localhost:3000
python scripts/send_test_upload.py --to you@example.com

# Send a specific file
python scripts/send_test_upload.py --to you@example.com --file path/to/cat.png

# Target a different instance
python scripts/send_test_upload.py --to you@example.com --url http://staging.example.com:3000

# Show what would be sent without sending it
python scripts/send_test_upload.py --to you@example.com --dry-run

Environment / .env
------------------
PORT            Port used for the default --url (default: 3000).
TEST_RECIPIENT  Default for --to.

Values are read from a .env file in the project root if present; real
environment variables take precedence.
"""

import argparse
import base64
import mimetypes
import os
import sys
from pathlib import Path

import httpx
from dotenv import load_dotenv


# Smallest valid PNG: one transparent pixel.
_SAMPLE_PNG = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


def _detect_content_type(filename: str) -> str:
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


def _parse_args(argv=None) -> argparse.Namespace:
    default_url = f"http://localhost:{os.getenv('PORT', '3000')}"
    parser = argparse.ArgumentParser(description="Send a test image upload to Image Mailer.")
    parser.add_argument("--to", dest="recipient", default=os.getenv("TEST_RECIPIENT"),
                        help="recipient address (default: $TEST_RECIPIENT)")
    parser.add_argument("--file", help="image to upload (default: generated 1x1 PNG)")
    parser.add_argument("--url", default=default_url, help=f"base URL (default: {default_url})")
    parser.add_argument("--dry-run", action="store_true", help="print the request instead of sending it")
    return parser.parse_args(argv)


def _print_response(response: httpx.Response) -> None:
    label = "OK" if response.status_code == 200 else "FAIL"
    print(f"\n[{label}] HTTP {response.status_code}")
    print(response.text)


def main(argv=None) -> int:
    load_dotenv(Path(__file__).resolve().parent.parent / ".env")
    args = _parse_args(argv)

    if not args.recipient:
        print("ERROR: no recipient; pass --to or set TEST_RECIPIENT", file=sys.stderr)
        return 1

    if args.file:
        file_path = Path(args.file)
        if not file_path.exists():
            print(f"ERROR: File not found: {file_path}", file=sys.stderr)
            return 1
        file_content = file_path.read_bytes()
        filename = file_path.name
        print(f"Attaching file: {file_path} ({len(file_content):,} bytes)")
    else:
        file_content = _SAMPLE_PNG
        filename = "sample.png"
        print(f"No --file specified; using generated sample PNG ({len(file_content)} bytes)")

    content_type = _detect_content_type(filename)
    endpoint = f"{args.url.rstrip('/')}/upload"

    print(f"\nEndpoint  : {endpoint}")
    print(f"To        : {args.recipient}")
    print(f"Attachment: {filename} ({content_type})")

    if args.dry_run:
        print("\n[DRY RUN] Nothing sent.")
        return 0

    try:
        response = httpx.post(
            endpoint,
            data={"email": args.recipient},
            files={"image": (filename, file_content, content_type)},
            timeout=90,
        )
    except httpx.ConnectError:
        print(
            f"\nERROR: Could not connect to {endpoint}\n"
            "Is the server running? Start it with:\n"
            "  cd backend && uvicorn app.main:app --port 3000 --reload",
            file=sys.stderr,
        )
        return 1
    except httpx.HTTPError as exc:
        print(f"\nERROR: {exc}", file=sys.stderr)
        return 1

    _print_response(response)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
