#!/usr/bin/env python3
"""
sftpmirror: mirror a local project to a remote server over sftp
===============================================================

Subcommands:
  init          Create a .vscode/sftp.json profile in the current directory.
  upload        Upload file(s); --on-save honours uploadOnSave and ignore.
  download      Download file(s).
  upload-dir    Upload every file directly inside a directory.
  download-dir  Download new/changed remote files directly inside a directory.
  sync          Reconcile the whole project in both directions.
  delete        Delete a file on the remote (and locally with --local).
  ls            List the remote tree.
  test          Check that the connection works.

Run 'sftpmirror <subcommand> --help' for more details.
"""
import argparse
import json
import sys
from pathlib import Path


def _load_profile(args):
    """Find and validate the nearest profile; exit(1) if there is none."""
    from sftpmirror import config as _cfg
    from sftpmirror.exceptions import ConfigurationError
    from sftpmirror.utils.logging import set_verbose

    try:
        profile = _cfg.discover_profile()
    except ConfigurationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)
    set_verbose(getattr(args, "verbose", False) or profile.debug)
    return profile


def _relative_paths(profile, paths):
    from sftpmirror.utils.file_utils import to_relative

    rels = []
    for p in paths:
        try:
            rels.append(to_relative(p, profile.local_root))
        except ValueError:
            print(f"error: {p} is outside the project root {profile.local_root}", file=sys.stderr)
            sys.exit(1)
    return rels


def _finish(outcomes):
    """Exit 1 when anything failed, 0 otherwise (None means the user declined)."""
    if outcomes and any(not o.success for o in outcomes):
        sys.exit(1)


# ── init ─────────────────────────────────────────────────────────────────────

def cmd_init(args):
    """Create .vscode/sftp.json in the current directory."""
    from sftpmirror import config as _cfg

    target = Path.cwd() / _cfg.CONFIG_DIR / _cfg.CONFIG_FILE
    if target.exists() and not args.force:
        print(f"error: {target} already exists", file=sys.stderr)
        print("Use --force to overwrite.", file=sys.stderr)
        sys.exit(1)

    defaults = _cfg.load_global_defaults()

    host = args.host or defaults.get("host", "")
    if not args.host and sys.stdin.isatty():
        val = input(f"Server hostname [{host}]: ").strip()
        host = val or host

    username = args.username or defaults.get("username", "")
    if not args.username and sys.stdin.isatty():
        val = input(f"SSH user [{username}]: ").strip()
        username = val or username

    remote_path = args.remote
    if not remote_path and sys.stdin.isatty():
        remote_path = input("Remote path: ").strip()

    if not host or not username or not remote_path:
        print("error: host, username and remote path are required.", file=sys.stderr)
        sys.exit(1)

    port = args.port or int(defaults.get("port", _cfg.DEFAULT_PORT))
    key = args.key or defaults.get("privateKeyPath")
    data = _cfg.profile_template(host, username, remote_path, port=port,
                                 private_key_path=key, name=args.name or Path.cwd().name)
    content = json.dumps(data, indent=4) + "\n"

    if args.dry_run:
        print(f"[dry-run] Would write {target}:")
        print(content)
        return

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    print(f"Created {target}")
    if not key:
        print("Fill in \"password\" or set \"privateKeyPath\" before connecting.")


# ── single files ─────────────────────────────────────────────────────────────

def cmd_upload(args):
    from sftpmirror import config as _cfg
    from sftpmirror.core.sync_engine import transfer_files
    from sftpmirror.models import Direction
    from sftpmirror.utils.ignore_patterns import is_ignored

    if args.on_save:
        # a save hook must never fail loudly when the project is not mirrored
        path = _cfg.find_config(Path(args.paths[0]).resolve().parent)
        if path is None:
            return
        result = _cfg.load_profile(path)
        if not result.ok or not result.profile.upload_on_save:
            return
        profile = result.profile
    else:
        profile = _load_profile(args)

    rels = _relative_paths(profile, args.paths)
    if args.on_save:
        rels = [r for r in rels if not is_ignored(r, profile.ignore)]
        if not rels:
            return
    _finish(transfer_files(profile, rels, Direction.UPLOAD, dry_run=args.dry_run))


def cmd_download(args):
    from sftpmirror.core.sync_engine import transfer_files
    from sftpmirror.models import Direction

    profile = _load_profile(args)
    rels = _relative_paths(profile, args.paths)
    _finish(transfer_files(profile, rels, Direction.DOWNLOAD, dry_run=args.dry_run))


# ── directories / project ────────────────────────────────────────────────────

def cmd_upload_dir(args):
    from sftpmirror.core.sync_engine import upload_directory

    profile = _load_profile(args)
    rel_dir = _relative_paths(profile, [args.dir])[0]
    _finish(upload_directory(profile, rel_dir, dry_run=args.dry_run, assume_yes=args.yes))


def cmd_download_dir(args):
    from sftpmirror.core.sync_engine import download_directory

    profile = _load_profile(args)
    rel_dir = _relative_paths(profile, [args.dir])[0]
    _finish(download_directory(profile, rel_dir, dry_run=args.dry_run, assume_yes=args.yes))


def cmd_sync(args):
    from sftpmirror.core.sync_engine import run_sync

    profile = _load_profile(args)
    _finish(run_sync(profile, dry_run=args.dry_run, verbose=args.verbose,
                     assume_yes=args.yes, push_only=args.push_only,
                     pull_only=args.pull_only))


def cmd_delete(args):
    from sftpmirror.core.channel import CommandChannel
    from sftpmirror.operations.delete import confirm, delete_remote

    profile = _load_profile(args)
    rels = _relative_paths(profile, args.paths)
    where = "locally and remotely" if args.local else "remotely"
    if not args.dry_run and not args.yes:
        if not confirm(f"Are you sure you want to delete {', '.join(rels)} ({where})?"):
            print("Delete cancelled")
            return
    _finish(delete_remote(CommandChannel(profile), rels, profile.local_root,
                          also_local=args.local, dry_run=args.dry_run))


def cmd_ls(args):
    from sftpmirror.core.sync_engine import list_remote
    from sftpmirror.utils.file_utils import format_size, format_timestamp

    profile = _load_profile(args)
    rel_dir = args.dir.strip("/") if args.dir else ""
    for entry in list_remote(profile, rel_dir):
        kind = "d" if entry.is_dir else "-"
        size = "" if entry.is_dir else format_size(entry.size)
        print(f"{kind} {format_timestamp(entry.mtime):<20} {size:>12}  {entry.path}")


def cmd_test(args):
    from sftpmirror.core.sync_engine import check_connection

    profile = _load_profile(args)
    ok, message = check_connection(profile)
    print(message, file=sys.stdout if ok else sys.stderr)
    if not ok:
        sys.exit(1)


# ── main ──────────────────────────────────────────────────────────────────────

def _common(p, dry_run=True, yes=False):
    p.add_argument("-v", "--verbose", action="store_true",
                   help="Show sftp arguments, batch scripts and raw output")
    if dry_run:
        p.add_argument("-n", "--dry-run", action="store_true",
                       help="Preview without transferring anything")
    if yes:
        p.add_argument("-y", "--yes", action="store_true",
                       help="Do not ask for confirmation")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sftpmirror",
        description="Mirror a local project to a remote server over sftp",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    init_p = subparsers.add_parser("init", help="Create .vscode/sftp.json here")
    init_p.add_argument("--host", metavar="HOST", help="Remote server hostname or IP")
    init_p.add_argument("--username", metavar="NAME", help="SSH username")
    init_p.add_argument("--port", type=int, metavar="N", help="SSH port (default: 22)")
    init_p.add_argument("--remote", metavar="PATH", help="Remote root path")
    init_p.add_argument("--key", metavar="PATH", help="Private key file")
    init_p.add_argument("--name", metavar="NAME", help="Profile name (default: directory name)")
    init_p.add_argument("--force", action="store_true", help="Overwrite an existing sftp.json")
    _common(init_p)

    up_p = subparsers.add_parser("upload", help="Upload file(s)")
    up_p.add_argument("paths", nargs="+", metavar="PATH")
    up_p.add_argument("--on-save", action="store_true",
                      help="Editor save hook: quiet no-op unless uploadOnSave is on "
                           "and the file is not ignored")
    _common(up_p)

    down_p = subparsers.add_parser("download", help="Download file(s)")
    down_p.add_argument("paths", nargs="+", metavar="PATH")
    _common(down_p)

    updir_p = subparsers.add_parser("upload-dir", help="Upload every file directly in a directory")
    updir_p.add_argument("dir", nargs="?", default=".", metavar="DIR")
    _common(updir_p, yes=True)

    downdir_p = subparsers.add_parser("download-dir",
                                      help="Download new/changed remote files in a directory")
    downdir_p.add_argument("dir", nargs="?", default=".", metavar="DIR")
    _common(downdir_p, yes=True)

    sync_p = subparsers.add_parser("sync", help="Two-way sync of the whole project")
    sync_p.add_argument("--push-only", action="store_true", help="Only local→remote")
    sync_p.add_argument("--pull-only", action="store_true", help="Only remote→local")
    _common(sync_p, yes=True)

    del_p = subparsers.add_parser("delete", help="Delete file(s) on the remote")
    del_p.add_argument("paths", nargs="+", metavar="PATH")
    del_p.add_argument("--local", action="store_true", help="Also delete the local copy")
    _common(del_p, yes=True)

    ls_p = subparsers.add_parser("ls", help="List the remote tree")
    ls_p.add_argument("dir", nargs="?", default="", metavar="DIR",
                      help="Only show entries below DIR (relative to remotePath)")
    _common(ls_p, dry_run=False)

    test_p = subparsers.add_parser("test", help="Test the connection")
    _common(test_p, dry_run=False)

    return parser


def main(argv=None):
    """CLI entry point for sftpmirror"""
    from sftpmirror.exceptions import SftpMirrorError
    from sftpmirror.utils.logging import warn

    parser = build_parser()
    args = parser.parse_args(argv)

    handlers = {
        "init": cmd_init,
        "upload": cmd_upload,
        "download": cmd_download,
        "upload-dir": cmd_upload_dir,
        "download-dir": cmd_download_dir,
        "sync": cmd_sync,
        "delete": cmd_delete,
        "ls": cmd_ls,
        "test": cmd_test,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)
    if args.command == "sync" and args.push_only and args.pull_only:
        parser.error("--push-only and --pull-only are mutually exclusive")

    try:
        handler(args)
    except SftpMirrorError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print()
        warn("Interrupted by user.")
        sys.exit(130)


if __name__ == "__main__":
    main()
