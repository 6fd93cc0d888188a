from __future__ import annotations

import argparse
import secrets


def main() -> None:
    ap = argparse.ArgumentParser(description="Print a random signing secret for APPROVE_LINKS_SECRET.")
    ap.add_argument("--bytes", type=int, default=48)
    args = ap.parse_args()

    if args.bytes < 16:
        ap.error("--bytes must be at least 16")
    print(secrets.token_urlsafe(args.bytes))


if __name__ == "__main__":
    main()
