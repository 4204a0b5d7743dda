from __future__ import annotations

import argparse
import getpass
import logging
import sys

import uvicorn

from clinic_backend import directory, services
from clinic_backend.config import configure_logging, get_settings
from clinic_backend.errors import ClinicError
from clinic_backend.repository import Repository
from clinic_backend.seed import seed_base

logger = logging.getLogger(__name__)


def cmd_init(repo: Repository, args: argparse.Namespace) -> None:
    repo.create_all()
    added = seed_base(repo)
    print(f"Database initialised, seed added: {added}")


def cmd_seed(repo: Repository, args: argparse.Namespace) -> None:
    added = seed_base(repo)
    print(f"Seed added: {added}")


def cmd_clear(repo: Repository, args: argparse.Namespace) -> None:
    if not args.yes:
        print("Refusing to delete every row without --yes.")
        raise SystemExit(2)
    deleted = repo.clear()
    for table, count in deleted.items():
        print(f"{table:<15} {count} deleted")


def cmd_verify(repo: Repository, args: argparse.Namespace) -> None:
    """
    Database report:
    - row count per table
    - bookings still waiting for the fan-out pass
    """
    for table, count in repo.counts().items():
        print(f"{table:<15} {count}")

    missing = repo.bookings_without_notifications()
    if missing:
        print(f"\n{len(missing)} bookings without notifications (run 'fan-out'):")
        for b in missing:
            print(f"- {b.id} | {b.name} | {b.service} | {b.date.isoformat()}")
    else:
        print("\nEvery booking has its notification.")


def cmd_fan_out(repo: Repository, args: argparse.Namespace) -> None:
    result = services.create_missing_notifications(repo)
    print(
        f"Scanned {result.scanned} bookings without notifications: "
        f"{result.created} created, {result.skipped} skipped."
    )


def cmd_list(repo: Repository, args: argparse.Namespace) -> None:
    if args.entity == "bookings":
        for b in services.list_bookings_flat(repo):
            print(f"{b['id']} | {b['name']} | {b['phone']} | {b['service']} | {b['date']} | {b['status']}")
    elif args.entity == "notifications":
        for n in services.list_notifications_flat(repo, status=args.status):
            read = "read" if n["isRead"] else "unread"
            print(f"[{n['id']}] {n['status']} | {read} | {n['title']} | {n['message']}")
    elif args.entity == "patients":
        for p in directory.list_patients_flat(repo):
            print(f"{p['id']} | {p['fullName']} | {p['phone']} | {p['age']} | {p['gender']}")
    elif args.entity == "therapists":
        for t in directory.list_therapists_flat(repo):
            print(f"{t['id']} | {t['name']} | {t['email']} | {t['specialization'] or '-'}")
    elif args.entity == "appointments":
        for a in directory.list_appointments_flat(repo):
            print(
                f"{a['id']} | {a['appointmentDate']} {a['startTime']}-{a['endTime']} | "
                f"{a['patient']['fullName']} with {a['therapist']['name']} | {a['status']}"
            )


def _password(args: argparse.Namespace) -> str:
    return args.password or getpass.getpass("Password: ")


def cmd_create_admin(repo: Repository, args: argparse.Namespace) -> None:
    user_id = directory.create_admin(repo, args.name, args.email, _password(args))
    print(f"Admin created: {user_id}")


def cmd_reset_password(repo: Repository, args: argparse.Namespace) -> None:
    directory.reset_password(repo, args.email, _password(args))
    print(f"Password updated for {args.email.strip().lower()}")


def cmd_serve(repo: Repository, args: argparse.Namespace) -> None:
    uvicorn.run("clinic_backend.api_main:app", host=args.host, port=args.port, reload=args.reload)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="clinic-admin", description="Clinic operator tool")
    sub = p.add_subparsers(required=True)

    p_init = sub.add_parser("init", help="Create tables and load seed data")
    p_init.set_defaults(func=cmd_init)

    p_seed = sub.add_parser("seed", help="Load seed data (idempotent)")
    p_seed.set_defaults(func=cmd_seed)

    p_clear = sub.add_parser("clear", help="Delete every row from every table")
    p_clear.add_argument("--yes", action="store_true", help="Confirm the deletion")
    p_clear.set_defaults(func=cmd_clear)

    p_verify = sub.add_parser("verify", help="Row counts and bookings missing a notification")
    p_verify.set_defaults(func=cmd_verify)

    p_fan = sub.add_parser("fan-out", help="Create notifications for bookings that have none")
    p_fan.set_defaults(func=cmd_fan_out)

    p_list = sub.add_parser("list", help="List entities")
    p_list.add_argument("entity", choices=["bookings", "notifications", "patients", "therapists", "appointments"])
    p_list.add_argument("--status", default=None, help="Notification status filter (pending / resolved)")
    p_list.set_defaults(func=cmd_list)

    p_admin = sub.add_parser("create-admin", help="Create an admin user")
    p_admin.add_argument("--name", required=True)
    p_admin.add_argument("--email", required=True)
    p_admin.add_argument("--password", default=None, help="Prompted when omitted")
    p_admin.set_defaults(func=cmd_create_admin)

    p_reset = sub.add_parser("reset-password", help="Set a new password for a user")
    p_reset.add_argument("--email", required=True)
    p_reset.add_argument("--password", default=None, help="Prompted when omitted")
    p_reset.set_defaults(func=cmd_reset_password)

    p_serve = sub.add_parser("serve", help="Run the API with uvicorn")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--reload", action="store_true", help="Restart on code changes")
    p_serve.set_defaults(func=cmd_serve)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level)

    repo = Repository.from_url(settings.database_url, echo=settings.sql_echo)
    try:
        repo.create_all()  # tables always present
        args.func(repo, args)
    except ClinicError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
