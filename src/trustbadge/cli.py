#!/usr/bin/env python3
"""
trustbadge CLI — Key generation, offline scoring, issuance and verification.

Commands:
    keygen  - Generate an Ed25519 issuer keypair
    score   - Score an anchors JSON file
    issue   - Sign a badge locally from an anchors JSON file
    verify  - Verify a badge file (offline, or against a live issuer)
    serve   - Run the HTTP API
"""

import argparse
import asyncio
import base64
import json
import os
import sys
from typing import Optional


def _output(data: dict, args: argparse.Namespace, human_fn=None):
    """Output data as JSON or pretty-printed."""
    if getattr(args, 'json', False):
        print(json.dumps(data, indent=2, default=str))
    elif human_fn:
        human_fn(data)
    else:
        print(json.dumps(data, indent=2, default=str))


def _read_json(path: str):
    """Load JSON from a file path, or stdin for '-'."""
    if path == "-":
        return json.load(sys.stdin)
    with open(path) as f:
        return json.load(f)


def _load_anchors(path: str) -> list:
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get("anchors", [])
    if not isinstance(data, list):
        raise ValueError("Anchors file must hold a list or {\"anchors\": [...]}")
    return data


# ─── Commands ──────────────────────────────────────────────────────

def cmd_keygen(args):
    """Generate a fresh issuer keypair."""
    from nacl.signing import SigningKey
    from trustbadge.keys import derive_key_id

    sk = SigningKey.generate()
    public = bytes(sk.verify_key)
    result = {
        "key_id": derive_key_id(public),
        "private_key": base64.b64encode(bytes(sk)).decode("ascii"),
        "public_key": base64.b64encode(public).decode("ascii"),
    }

    def human(d):
        print("🔑 Ed25519 issuer keypair")
        print(f"   Key ID: {d['key_id']}")
        print(f"   TRUSTBADGE_PRIVATE_KEY={d['private_key']}")
        print(f"   TRUSTBADGE_PUBLIC_KEY={d['public_key']}")
        print("   Keep the private key secret.")

    _output(result, args, human)
    return result


def cmd_score(args):
    """Score anchors without issuing anything."""
    from trustbadge.scoring import compute_score

    result = compute_score(_load_anchors(args.file)).to_dict()

    def human(d):
        tier = d["clearance"]
        print(f"📊 Trust score: {d['score']}/100  ({tier['title']})")
        for name, part in d["breakdown"].items():
            print(f"   {part['label']:<28} {part['score']:>3}")
        if d["edu_verified"]:
            print("   🎓 Educational email verified")

    _output(result, args, human)
    return result


def cmd_issue(args):
    """Sign a badge with the configured private key. Nothing is persisted."""
    from trustbadge.badges import BadgeLifecycleManager
    from trustbadge.config import Settings
    from trustbadge.keys import KeyManager
    from trustbadge.storage import MemoryBadgeStore

    settings = Settings.from_env()
    if args.private_key:
        keys = KeyManager.from_base64(args.private_key)
    else:
        keys = KeyManager.from_base64(settings.private_key_b64, settings.public_key_b64 or None)
    manager = BadgeLifecycleManager.from_settings(settings, keys, MemoryBadgeStore())

    badge = asyncio.run(manager.issue(args.subject, _load_anchors(args.file)))
    result = badge.to_wire(include_breakdown=True)

    if args.output:
        with open(args.output, 'w') as f:
            json.dump(result, f, indent=2)

    def human(d):
        print("✅ Badge issued")
        print(f"   Token:   {d['badge_token']}")
        print(f"   Subject: {d['payload']['sub']}")
        print(f"   Score:   {d['payload']['trust_score']}")
        print(f"   Expires: {d['expires_at']}")
        if args.output:
            print(f"   Saved to: {args.output}")

    _output(result, args, human)
    return result


def cmd_verify(args):
    """Verify a badge file offline, or online with --issuer."""
    badge = _read_json(args.file)

    if args.issuer:
        from trustbadge.client import BadgeClient
        with BadgeClient(args.issuer) as client:
            result = client.verify(badge)
    else:
        from trustbadge.portable import verify_offline
        public_key = args.public_key or os.environ.get("TRUSTBADGE_PUBLIC_KEY", "")
        if not public_key:
            raise ValueError("Offline verification needs --public-key or TRUSTBADGE_PUBLIC_KEY")
        result = verify_offline(badge, public_key).to_dict()

    def human(d):
        if d["valid"]:
            print(f"✅ Badge valid (trust score {d.get('trust_score')})")
        else:
            print(f"❌ Badge not valid: {d.get('reason')}")
        if d.get("message"):
            print(f"   {d['message']}")

    _output(result, args, human)
    return result


def cmd_serve(args):
    """Run the API with uvicorn."""
    import uvicorn
    from trustbadge.api import create_app

    uvicorn.run(create_app(), host=args.host, port=args.port, log_level=args.log_level)


# ─── Parser ────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trustbadge",
        description="trustbadge — signed trust badge CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--json", action="store_true", help="Machine-readable JSON output")

    sub = parser.add_subparsers(dest="command", help="Available commands")

    # keygen
    sub.add_parser("keygen", help="Generate an Ed25519 issuer keypair")

    # score
    p = sub.add_parser("score", help="Score an anchors file")
    p.add_argument("file", help="Anchors JSON file (- for stdin)")

    # issue
    p = sub.add_parser("issue", help="Sign a badge locally")
    p.add_argument("subject", help="Subject ID")
    p.add_argument("file", help="Anchors JSON file (- for stdin)")
    p.add_argument("-k", "--private-key", help="Base64 private key (default: TRUSTBADGE_PRIVATE_KEY)")
    p.add_argument("-o", "--output", help="Save badge to file")

    # verify
    p = sub.add_parser("verify", help="Verify a badge")
    p.add_argument("file", help="Badge JSON file (- for stdin)")
    p.add_argument("-p", "--public-key", help="Base64 issuer public key (default: TRUSTBADGE_PUBLIC_KEY)")
    p.add_argument("-i", "--issuer", help="Issuer base URL for online verification")

    # serve
    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.add_argument("--log-level", default="info")

    return parser


def main(argv: Optional[list[str]] = None) -> Optional[dict]:
    """CLI entry point. Returns result dict for testing."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "keygen": cmd_keygen,
        "score": cmd_score,
        "issue": cmd_issue,
        "verify": cmd_verify,
        "serve": cmd_serve,
    }

    try:
        return commands[args.command](args)
    except FileNotFoundError as e:
        print(f"❌ File not found: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
