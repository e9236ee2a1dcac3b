"""Command line entry point for SealVault.

Start here with `python -m sealvault.frontend.cli.app --help`
"""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from sealvault.core.codec import FILE_SUFFIX, read_blob, write_blob
from sealvault.core.exceptions import (
    AuthenticationError,
    IntegrityCheckFailedError,
    ResourceError,
    SealVaultError,
    ValidationError,
)
from sealvault.core.hashing import calculate_sha256
from sealvault.frontend.cli.context import ENV_NEW_PASSWORD, ENV_PASSWORD, AppContext, build_context
from sealvault.frontend.cli.logging_config import configure_logging


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_AUTH = 2
EXIT_INTEGRITY = 3
EXIT_VALIDATION = 4
EXIT_RESOURCE = 5


def _human_size(num: int) -> str:
    # Simple human-readable bytes formatter.
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if num < 1024:
            return f"{num:.1f} {unit}" if unit != "B" else f"{num} B"
        num /= 1024
    return f"{num:.1f} PB"


def read_password(confirm: bool = False) -> str:
    """Password from SEALVAULT_PASSWORD, else an interactive prompt."""
    env = os.getenv(ENV_PASSWORD)
    if env is not None:
        return env
    password = getpass.getpass("Password: ")
    if confirm and getpass.getpass("Confirm password: ") != password:
        raise ValidationError("Passwords do not match")
    return password


# === Command handlers ===


def cmd_encrypt(ctx: AppContext, args) -> int:
    src = Path(args.path)
    blob = ctx.engine.encrypt_path(src, read_password(confirm=True))
    out = Path(args.output) if args.output else src.with_name(src.name + FILE_SUFFIX)
    write_blob(blob, out)
    print(f"Encrypted {src.name} ({_human_size(blob.original_size)}) -> {out}")
    return EXIT_OK


def cmd_decrypt(ctx: AppContext, args) -> int:
    blob = read_blob(args.path)
    destination = Path(args.output) if args.output else Path(args.path).parent
    written = ctx.engine.decrypt_to_path(blob, read_password(), destination, overwrite=args.force)
    print(f"Decrypted {blob.filename} -> {written}")
    return EXIT_OK


def cmd_info(ctx: AppContext, args) -> int:
    blob = read_blob(args.path)
    container_digest = calculate_sha256(args.path)
    print(f"filename:   {blob.filename}")
    print(f"size:       {blob.original_size} ({_human_size(blob.original_size)})")
    print(f"created:    {blob.created_at.isoformat()}")
    print(f"checksum:   {blob.checksum}")
    print(f"mime type:  {blob.mime_type}")
    print(f"kdf:        {blob.kdf.algorithm}")
    print(f"format:     v{blob.format_version}")
    print(f"container:  sha256 {container_digest}")
    return EXIT_OK


def cmd_store(ctx: AppContext, args) -> int:
    blob_id = ctx.vault.store_path(args.path, read_password(confirm=True))
    print(blob_id)
    return EXIT_OK


def cmd_list(ctx: AppContext, args) -> int:
    records = ctx.vault.list_files()
    if not records:
        print("No encrypted files.")
        return EXIT_OK
    for rec in records:
        created = rec.created_at.strftime("%Y-%m-%d %H:%M") if rec.created_at else "-"
        print(f"{rec.blob_id}  {created}  {_human_size(rec.size):>10}  {rec.filename}")
    return EXIT_OK


def cmd_get(ctx: AppContext, args) -> int:
    destination = Path(args.output) if args.output else Path.cwd()
    written = ctx.vault.retrieve_to_path(args.id, read_password(), destination, overwrite=args.force)
    print(f"Decrypted -> {written}")
    return EXIT_OK


def cmd_delete(ctx: AppContext, args) -> int:
    ctx.vault.delete(args.id)
    print(f"Deleted {args.id}")
    return EXIT_OK


def cmd_rotate(ctx: AppContext, args) -> int:
    old_password = read_password()
    env_new = os.getenv(ENV_NEW_PASSWORD)
    if env_new is not None:
        new_password = env_new
    else:
        new_password = getpass.getpass("New password: ")
        if getpass.getpass("Confirm new password: ") != new_password:
            raise ValidationError("Passwords do not match")
    new_id = ctx.vault.rotate_password(args.id, old_password, new_password)
    print(new_id)
    return EXIT_OK


def cmd_export(ctx: AppContext, args) -> int:
    written = ctx.vault.export(args.id, args.output)
    print(f"Exported {args.id} -> {written}")
    return EXIT_OK


def cmd_import(ctx: AppContext, args) -> int:
    print(ctx.vault.import_(args.path))
    return EXIT_OK


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sealvault",
        description="Password-based file encryption with AES-256-GCM.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--db", dest="db_path", default=None, help="Path to the vault database")
    parser.add_argument("--home", default=None, help="Vault directory (default: ~/.sealvault)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("encrypt", help="Encrypt a file into a standalone container")
    p.add_argument("path")
    p.add_argument("-o", "--output", default=None, help=f"Output path (default: <path>{FILE_SUFFIX})")
    p.set_defaults(handler=cmd_encrypt)

    p = sub.add_parser("decrypt", help="Decrypt a standalone container")
    p.add_argument("path")
    p.add_argument("-o", "--output", default=None, help="Destination file or directory")
    p.add_argument("-f", "--force", action="store_true", help="Overwrite an existing destination file")
    p.set_defaults(handler=cmd_decrypt)

    p = sub.add_parser("info", help="Show the plaintext metadata of a container")
    p.add_argument("path")
    p.set_defaults(handler=cmd_info)

    p = sub.add_parser("store", help="Encrypt a file into the vault database")
    p.add_argument("path")
    p.set_defaults(handler=cmd_store)

    p = sub.add_parser("list", help="List files in the vault")
    p.set_defaults(handler=cmd_list)

    p = sub.add_parser("get", help="Decrypt a file from the vault")
    p.add_argument("id")
    p.add_argument("-o", "--output", default=None, help="Destination file or directory")
    p.add_argument("-f", "--force", action="store_true", help="Overwrite an existing destination file")
    p.set_defaults(handler=cmd_get)

    p = sub.add_parser("delete", help="Delete a file from the vault")
    p.add_argument("id")
    p.set_defaults(handler=cmd_delete)

    p = sub.add_parser("rotate", help="Re-encrypt a vault file under a new password")
    p.add_argument("id")
    p.set_defaults(handler=cmd_rotate)

    p = sub.add_parser("export", help="Write a vault file to a standalone container")
    p.add_argument("id")
    p.add_argument("output")
    p.set_defaults(handler=cmd_export)

    p = sub.add_parser("import", help="Add a standalone container to the vault")
    p.add_argument("path")
    p.set_defaults(handler=cmd_import)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        ctx = build_context(db_path=args.db_path, home=args.home)
        return args.handler(ctx, args)
    except AuthenticationError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_AUTH
    except IntegrityCheckFailedError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_INTEGRITY
    except ValidationError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_VALIDATION
    except ResourceError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_RESOURCE
    except SealVaultError as e:  # pragma: no cover - every subclass is handled above
        logger.exception("Unexpected failure")
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover - CLI entry
    sys.exit(main())
