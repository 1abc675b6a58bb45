"""
Command-line interface for the Vertex client.

Provides terminal access to the Vertex API:
- Login/logout with the session saved between runs
- Server monitoring
- Downloader, RSS task and rule listings
- Torrent listing, details and removal

Usage:
    vertex-client login --username admin --password secret
    vertex-client servers
    vertex-client downloaders --alias seedbox
    vertex-client torrents --page 1 --length 20 --sort-key addTime --sort-type desc
    vertex-client torrent <hash>
"""

import argparse
import json
import os
import sys
from pathlib import Path
from typing import List, Optional

from .client import VertexClient
from .config import Config
from .errors import SessionParseError
from .models import TorrentListOptions, SORT_TYPES
from .options import with_auth, with_debug, with_timeout


def save_session(client: VertexClient, path: Path):
    """Save the exported session blob to a file only the owner can read."""
    blob = client.export_session()
    if not blob:
        return
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(blob)
    # O_CREAT mode only applies to new files
    os.chmod(path, 0o600)


def load_session(path: Path) -> str:
    """Read a saved session blob, or "" if there is none."""
    if path.exists():
        return path.read_text().strip()
    return ""


def clear_session(path: Path):
    """Remove the saved session file."""
    if path.exists():
        path.unlink()


def format_bytes(size):
    """Format bytes as human-readable string."""
    if size is None:
        return "N/A"
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size < 1024:
            return f"{size:.2f} {unit}"
        size /= 1024
    return f"{size:.2f} PB"


def print_json(data):
    print(json.dumps(data, indent=2, ensure_ascii=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vertex-client",
        description="Vertex CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s login --username admin --password secret
  %(prog)s servers
  %(prog)s vnstat <server_id>
  %(prog)s downloaders --ip 192.168.1.10
  %(prog)s torrents --client <downloader_id> --sort-key addTime --sort-type desc
  %(prog)s history --rss <rss_id>
"""
    )
    parser.add_argument("--url", default=Config.VERTEX_HOST, help="Vertex server URL")
    parser.add_argument("--username", default=Config.VERTEX_USER, help="Vertex username")
    parser.add_argument("--password", default=Config.VERTEX_PASS, help="Vertex password")
    parser.add_argument("--timeout", type=float, default=Config.TIMEOUT, help="Request timeout in seconds")
    parser.add_argument("--debug", action="store_true", default=Config.VERTEX_DEBUG,
                        help="Trace requests and responses (default: VERTEX_DEBUG)")
    parser.add_argument("--session-file", type=Path, default=Path(Config.SESSION_FILE),
                        help="Where the session is kept between runs")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -------------------------------------------------------------------------
    # Auth Commands
    # -------------------------------------------------------------------------

    subparsers.add_parser("login", help="Log in and save the session")
    subparsers.add_parser("logout", help="Forget the saved session")
    subparsers.add_parser("whoami", help="Show current user info")

    # -------------------------------------------------------------------------
    # Server Commands
    # -------------------------------------------------------------------------

    subparsers.add_parser("servers", help="List servers")
    for name in ("cpu", "memory", "disk", "netspeed"):
        subparsers.add_parser(name, help=f"Show server {name} usage")
    vnstat_parser = subparsers.add_parser("vnstat", help="Show vnstat traffic of a server")
    vnstat_parser.add_argument("server_id", help="Server ID")

    # -------------------------------------------------------------------------
    # Downloader / RSS Commands
    # -------------------------------------------------------------------------

    dl_parser = subparsers.add_parser("downloaders", help="List downloaders")
    dl_parser.add_argument("--alias", help="Only downloaders whose alias contains this")
    dl_parser.add_argument("--ip", help="Only the downloader at this IP")

    rss_parser = subparsers.add_parser("rss", help="List RSS tasks")
    rss_parser.add_argument("--alias", help="Only tasks whose alias contains this")

    subparsers.add_parser("rss-rules", help="List RSS selection rules")
    subparsers.add_parser("delete-rules", help="List delete rules")

    history_parser = subparsers.add_parser("history", help="List RSS push history")
    history_parser.add_argument("--page", type=int, default=1)
    history_parser.add_argument("--length", type=int, default=10)
    history_parser.add_argument("--rss", dest="rss_id", help="RSS task ID")

    # -------------------------------------------------------------------------
    # Torrent Commands
    # -------------------------------------------------------------------------

    list_parser = subparsers.add_parser("torrents", help="List torrents")
    list_parser.add_argument("--client", dest="clients", action="append", default=[],
                             help="Downloader ID (repeatable, default: all)")
    list_parser.add_argument("--page", type=int, default=1)
    list_parser.add_argument("--length", type=int, default=10)
    list_parser.add_argument("--search", help="Search in torrent names")
    list_parser.add_argument("--sort-key", help="Sort field, e.g. addTime")
    list_parser.add_argument("--sort-type", choices=SORT_TYPES)

    info_parser = subparsers.add_parser("torrent", help="Show torrent details")
    info_parser.add_argument("info_hash", help="Torrent hash")

    rm_parser = subparsers.add_parser("delete-torrent", help="Remove a torrent")
    rm_parser.add_argument("info_hash", help="Torrent hash")
    rm_parser.add_argument("client_id", help="Downloader ID")

    return parser


def run_command(client: VertexClient, args) -> None:
    # ---------------------------------------------------------------------
    # Auth Commands
    # ---------------------------------------------------------------------

    if args.command == "login":
        print(f"Logged in to {client.base_url}")

    elif args.command == "whoami":
        print_json(client.get_user())

    # ---------------------------------------------------------------------
    # Server Commands
    # ---------------------------------------------------------------------

    elif args.command == "servers":
        servers = client.list_servers()
        if not servers:
            print("No servers configured.")
        else:
            print(f"{'ID':<24} {'ALIAS':<20} {'HOST':<24} {'ENABLED':<8} {'STATUS'}")
            print("-" * 85)
            for s in servers:
                host = f"{s.host}:{s.port}"[:24]
                enabled = "Yes" if s.enable else "No"
                status = "Up" if s.status else "Down"
                print(f"{(s.id or '')[:24]:<24} {(s.alias or '')[:20]:<20} {host:<24} {enabled:<8} {status}")

    elif args.command == "cpu":
        print_json(client.get_server_cpu_use())

    elif args.command == "memory":
        print_json(client.get_server_memory_use())

    elif args.command == "disk":
        print_json(client.get_server_disk_use())

    elif args.command == "netspeed":
        print_json(client.get_server_net_speed())

    elif args.command == "vnstat":
        print_json(client.get_server_vnstat(args.server_id).to_dict())

    # ---------------------------------------------------------------------
    # Downloader / RSS Commands
    # ---------------------------------------------------------------------

    elif args.command == "downloaders":
        if args.ip:
            found = client.find_downloader_by_ip(args.ip)
            downloaders = [found] if found else []
        elif args.alias:
            downloaders = client.find_downloaders_by_alias(args.alias)
        else:
            downloaders = client.list_downloaders()
        if not downloaders:
            print("No downloaders found.")
        else:
            print(f"{'ID':<10} {'ALIAS':<20} {'TYPE':<14} {'UP/s':<12} {'DOWN/s':<12} {'SEED':<6} {'LEECH'}")
            print("-" * 90)
            for d in downloaders:
                print(f"{(d.id or '')[:10]:<10} {(d.alias or '')[:20]:<20} {(d.type or '')[:14]:<14} "
                      f"{format_bytes(d.upload_speed):<12} {format_bytes(d.download_speed):<12} "
                      f"{d.seeding_count or 0:<6} {d.leeching_count or 0}")

    elif args.command == "rss":
        tasks = client.find_rss_by_alias(args.alias) if args.alias else client.list_rss()
        if not tasks:
            print("No RSS tasks found.")
        else:
            for r in tasks:
                enabled = "on " if r.enable else "off"
                print(f"[{enabled}] {(r.id or '')[:10]:<10} {(r.alias or '')[:24]:<24} {r.rss_url or ''}")

    elif args.command == "rss-rules":
        print_json([rule.to_dict() for rule in client.list_rss_rules()])

    elif args.command == "delete-rules":
        print_json([rule.to_dict() for rule in client.list_delete_rules()])

    elif args.command == "history":
        page = client.list_rss_history(args.page, args.length, args.rss_id)
        print(f"Showing {len(page.torrents)} of {page.total}")
        for h in page.torrents:
            print(f"{format_bytes(h.size):<12} {h.name}")

    # ---------------------------------------------------------------------
    # Torrent Commands
    # ---------------------------------------------------------------------

    elif args.command == "torrents":
        options = TorrentListOptions(
            client_list=args.clients,
            page=args.page,
            length=args.length,
            search_key=args.search,
            sort_key=args.sort_key,
            sort_type=args.sort_type,
        )
        page = client.list_torrents(options)
        if not page.torrents:
            print("No torrents found.")
        else:
            print(f"{'HASH':<20} {'STATE':<12} {'PROGRESS':<10} {'SIZE':<12} {'NAME'}")
            print("-" * 90)
            for t in page.torrents:
                progress = f"{(t.progress or 0) * 100:.1f}%"
                print(f"{(t.hash or '')[:20]:<20} {(t.state or '')[:12]:<12} {progress:<10} "
                      f"{format_bytes(t.size):<12} {(t.name or '')[:40]}")
            print(f"Page {options.page}, {len(page.torrents)} of {page.total}")

    elif args.command == "torrent":
        print_json(client.get_torrent_info(args.info_hash).to_dict())

    elif args.command == "delete-torrent":
        client.delete_torrent(args.info_hash, args.client_id)
        print("Torrent removed")


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    if args.command == "logout":
        clear_session(args.session_file)
        print("Logged out")
        return

    try:
        saved = load_session(args.session_file)
        options = [
            with_auth(args.username, args.password, cookies=saved),
            with_timeout(args.timeout),
            with_debug(args.debug),
        ]
        try:
            client = VertexClient(args.url, *options)
        except SessionParseError:
            clear_session(args.session_file)
            options[0] = with_auth(args.username, args.password)
            client = VertexClient(args.url, *options)

        with client:
            if args.command == "login":
                client.login(args.username, args.password)
            else:
                client.authenticate()
            save_session(client, args.session_file)
            run_command(client, args)

    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
