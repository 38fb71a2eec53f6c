"""
VaultBoard CLI — entry point for all operations.

Usage:
    vaultboard serve            # Start the API server
    vaultboard migrate          # Apply pending database migrations
    vaultboard migrate --status # Show applied / pending migrations
    vaultboard sweep            # Run the expiration sweep once
    vaultboard audit-consumer   # Persist queued access events
    vaultboard assign-role      # Record a principal's role
    vaultboard version          # Show version
"""

from __future__ import annotations

import argparse
import logging


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="vaultboard",
        description="VaultBoard — internal knowledge vault with role-based access and audit trail.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")

    subparsers = parser.add_subparsers(dest="command")

    # migrate
    migrate_parser = subparsers.add_parser("migrate", help="Run database migrations")
    migrate_parser.add_argument(
        "--dry-run", action="store_true", help="List pending migrations without applying"
    )
    migrate_parser.add_argument(
        "--status", action="store_true", help="Show applied and pending migrations"
    )
    migrate_parser.add_argument(
        "--check", action="store_true", help="Check if required tables exist"
    )

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default=None, help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Port")

    # sweep
    subparsers.add_parser("sweep", help="Run the 14-day expiration sweep once")

    # audit-consumer
    consumer_parser = subparsers.add_parser(
        "audit-consumer", help="Persist access events from the audit stream"
    )
    consumer_parser.add_argument(
        "--max-iterations", type=int, default=None, help="Stop after N reads (default: forever)"
    )

    # assign-role
    role_parser = subparsers.add_parser("assign-role", help="Assign a role to a principal")
    role_parser.add_argument("principal_id")
    role_parser.add_argument("email")
    role_parser.add_argument("role", choices=["admin", "manager", "member", "viewer"])
    role_parser.add_argument("--name", default="", help="Display name")

    # version
    subparsers.add_parser("version", help="Show version")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.version or args.command == "version":
        from vaultboard import __version__

        print(f"vaultboard {__version__}")
        return 0

    if args.command == "migrate":
        return _cmd_migrate(args)
    elif args.command == "serve":
        return _cmd_serve(args)
    elif args.command == "sweep":
        return _cmd_sweep()
    elif args.command == "audit-consumer":
        return _cmd_audit_consumer(args)
    elif args.command == "assign-role":
        return _cmd_assign_role(args)
    else:
        parser.print_help()
        return 0


def _cmd_migrate(args: argparse.Namespace) -> int:
    from vaultboard.db import migrate

    try:
        if args.check:
            missing = migrate.missing_tables()
            if missing:
                print(f"Missing tables ({len(missing)}/{len(migrate.REQUIRED_TABLES)}):")
                for t in missing:
                    print(f"  - {t}")
                print("\nRun 'vaultboard migrate' to create them.")
                return 1
            print(f"All {len(migrate.REQUIRED_TABLES)} required tables present.")
            return 0

        if args.status:
            for row in migrate.status():
                applied_at = row["applied_at"] or ""
                print(f"  {row['version']:>5}  {row['status']:<8} {row['filename']}  {applied_at}")
            return 0

        applied = migrate.apply(dry_run=args.dry_run)
        verb = "Would apply" if args.dry_run else "Applied"
        print(f"{verb} {len(applied)} migration(s).")
        return 0
    except Exception as e:
        print(f"Error: Migration failed: {e}")
        print("Check VAULTBOARD_DB_* environment variables and ensure PostgreSQL is running.")
        return 1


def _cmd_serve(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn is required. Install with: pip install vaultboard")
        return 1

    from vaultboard.config import get_config

    cfg = get_config()
    host = args.host or cfg.api_host
    port = args.port or cfg.api_port
    print(f"Starting VaultBoard API on {host}:{port}")
    uvicorn.run("vaultboard.api.app:app", host=host, port=port)
    return 0


def _cmd_sweep() -> int:
    from vaultboard.config import get_config
    from vaultboard.entries.service import EntryService

    result = EntryService.from_config(get_config()).sweep()
    summary = result["summary"]
    print(
        f"Expired: {summary['expired']}  Critical: {summary['critical']}  "
        f"Warning: {summary['warning']}  Total: {summary['total']}"
    )
    return 0


def _cmd_audit_consumer(args: argparse.Namespace) -> int:
    from vaultboard.audit.consumer import AccessLogConsumer

    AccessLogConsumer().run(max_iterations=args.max_iterations)
    return 0


def _cmd_assign_role(args: argparse.Namespace) -> int:
    from vaultboard.errors import RoleAlreadyAssigned
    from vaultboard.principals.dal import assign_role

    try:
        principal = assign_role(args.principal_id, args.email, args.role, display_name=args.name)
    except RoleAlreadyAssigned as e:
        print(f"Error: {e}")
        return 1
    print(f"Assigned role {principal.role} to {principal.id}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
