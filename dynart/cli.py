#!/usr/bin/env python3
"""
dynart CLI

Commands:
  dynart keygen - Create an account key
  dynart render - Generate content for an identifier offline
  dynart serve - Run a collection server
  dynart mint - Mint through a server
  dynart describe - Fetch a regenerated data reference from a server

Usage:
  dynart keygen <path>
  dynart render <id> --time <t> --prev-hash <hex> --producer <address> [--difficulty <n>] [--svg <file>] [--json]
  dynart serve [--config <yaml>] [--host <h>] [--port <p>] [--store-dir <dir>] [--producer <address>] [-v]
  dynart mint --key <path> [--server <url>]
  dynart describe <id> [--server <url>]
"""

import argparse
import json
import logging
import sys
from pathlib import Path


def _setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def cmd_keygen(args):
    """Create an account and save its private key."""
    from .identity import Account

    path = Path(args.path).expanduser()
    if path.exists():
        print(f"Key already exists: {path}")
        print("Delete it first if you want to regenerate.")
        sys.exit(1)

    account = Account.create()
    account.save(path)
    print(f"Private key saved: {path}")
    print(f"  Mode: 600 (owner read/write only)")
    print(f"Address: {account.address}")


def cmd_render(args):
    """Generate content for an identifier without a registry."""
    from .config import CollectionConfig
    from .entropy import EntropyInputs
    from .metadata import assemble, to_data_uri
    from .render import compose
    from .seeds import derive_seeds

    config = CollectionConfig.from_file(args.config) if args.config else CollectionConfig()

    prev_hash = args.prev_hash[2:] if args.prev_hash.startswith("0x") else args.prev_hash
    entropy = EntropyInputs(
        current_time=args.time,
        previous_hash=bytes.fromhex(prev_hash),
        producer=args.producer,
        difficulty=args.difficulty,
    )

    seed_a, seed_b = derive_seeds(args.id, entropy)
    composition = compose(args.id, seed_a, seed_b, background=config.background)
    record = assemble(
        args.id,
        composition.image,
        composition.circle_count,
        composition.rect_count,
        composition.palette,
        description=config.description,
        name_prefix=config.name_prefix,
    )

    if args.svg:
        svg_path = Path(args.svg)
        svg_path.write_text(composition.image.to_svg())
        print(f"SVG saved to: {svg_path}", file=sys.stderr)

    if args.json:
        print(json.dumps(record.to_dict(), indent=2))
    else:
        print(to_data_uri(record))


def cmd_serve(args):
    """Run a collection server."""
    from .collection import Collection
    from .config import CollectionConfig
    from .entropy import ClockEntropyProvider
    from .server import CollectionServer

    _setup_logging(args.verbose)

    config = CollectionConfig.from_file(args.config) if args.config else CollectionConfig()
    if args.store_dir:
        config.store_dir = args.store_dir

    entropy = ClockEntropyProvider(producer=args.producer, difficulty=args.difficulty)
    collection = Collection(config=config, entropy=entropy)

    server = CollectionServer(collection, host=args.host, port=args.port)
    server.start()


def cmd_mint(args):
    """Mint a new asset through a server."""
    from .client import CollectionClient
    from .identity import Account

    account = Account.load(Path(args.key).expanduser())
    client = CollectionClient(args.server, account=account)
    asset_id = client.mint()
    print(f"Minted asset {asset_id} to {account.address}")


def cmd_describe(args):
    """Fetch the regenerated data reference of an asset."""
    from .client import CollectionClient

    client = CollectionClient(args.server)
    print(client.token_uri(args.id))


def main():
    parser = argparse.ArgumentParser(
        prog="dynart",
        description="dynart - asset registry with generated content",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # keygen command
    keygen_parser = subparsers.add_parser("keygen", help="Create an account key")
    keygen_parser.add_argument("path", help="Where to write the private key PEM")

    # render command
    render_parser = subparsers.add_parser("render", help="Generate content offline")
    render_parser.add_argument("id", type=int, help="Asset identifier")
    render_parser.add_argument("--time", type=int, required=True, help="Current time (seconds)")
    render_parser.add_argument("--prev-hash", required=True, help="Previous hash (32-byte hex)")
    render_parser.add_argument("--producer", required=True, help="Producer address")
    render_parser.add_argument("--difficulty", type=int, default=0, help="Difficulty value")
    render_parser.add_argument("--config", help="Collection config YAML")
    render_parser.add_argument("--svg", help="Also write the SVG to this file")
    render_parser.add_argument("--json", action="store_true",
                               help="Print the record as JSON instead of a data reference")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run a collection server")
    serve_parser.add_argument("--config", help="Collection config YAML")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8080, help="Port to bind to")
    serve_parser.add_argument("--store-dir", help="State directory (overrides config)")
    serve_parser.add_argument("--producer", default="0x" + "0" * 39 + "1",
                              help="Producer address reported in entropy")
    serve_parser.add_argument("--difficulty", type=int, default=0, help="Difficulty value")
    serve_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    # mint command
    mint_parser = subparsers.add_parser("mint", help="Mint through a server")
    mint_parser.add_argument("--key", required=True, help="Account private key PEM")
    mint_parser.add_argument("--server", default="http://localhost:8080", help="Server URL")

    # describe command
    describe_parser = subparsers.add_parser("describe", help="Fetch an asset's data reference")
    describe_parser.add_argument("id", type=int, help="Asset identifier")
    describe_parser.add_argument("--server", default="http://localhost:8080", help="Server URL")

    args = parser.parse_args()

    if args.command == "keygen":
        cmd_keygen(args)
    elif args.command == "render":
        cmd_render(args)
    elif args.command == "serve":
        cmd_serve(args)
    elif args.command == "mint":
        cmd_mint(args)
    elif args.command == "describe":
        cmd_describe(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
