"""
Command line entry point: `shufflr serve|create-admin|create-key`
"""
import argparse
import getpass
import sys

from . import config


def _prepare_db():
    from .db import get_engine
    from .db_init import init_schema_and_seed

    get_engine()
    init_schema_and_seed()


def cmd_serve(args) -> int:
    import uvicorn

    try:
        port = config.validate_port(args.port or config.PORT)
    except ValueError as e:
        print(e, file=sys.stderr)
        return 2
    uvicorn.run(
        "shufflr.main:app",
        host=args.host or config.HOST,
        port=port,
        log_config=None,
        proxy_headers=True,
    )
    return 0


def cmd_create_admin(args) -> int:
    from .db import session_scope
    from .services.credentials import create_admin_user, get_admin_user_by_username

    _prepare_db()
    username = args.username or input("Username: ").strip()
    if len(username) < 3:
        print("Username must be at least 3 characters", file=sys.stderr)
        return 1
    password = getpass.getpass("Password: ")
    if len(password) < 6:
        print("Password must be at least 6 characters", file=sys.stderr)
        return 1
    if password != getpass.getpass("Confirm password: "):
        print("Passwords do not match", file=sys.stderr)
        return 1

    with session_scope() as s:
        if get_admin_user_by_username(s, username) is not None:
            print(f"Admin user {username!r} already exists", file=sys.stderr)
            return 1
        create_admin_user(s, username, password)
    print(f"Admin user {username!r} created")
    return 0


def cmd_create_key(args) -> int:
    from .db import session_scope
    from .services.credentials import create_api_key

    name = args.name.strip()
    if not name or len(name) > 100:
        print("API key name must be 1-100 characters", file=sys.stderr)
        return 1
    _prepare_db()
    with session_scope() as s:
        key, raw = create_api_key(s, name)
        key_id = key.id
    print(f"API key {name!r} created (id {key_id}). It will not be shown again:")
    print(raw)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="shufflr", description="Random image service")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--host", default=None, help=f"Bind address (default: {config.HOST})")
    serve.add_argument("--port", default=None, help=f"Listen port (default: {config.PORT})")
    serve.set_defaults(func=cmd_serve)

    admin = sub.add_parser("create-admin", help="Create an admin user")
    admin.add_argument("--username", default=None)
    admin.set_defaults(func=cmd_create_admin)

    key = sub.add_parser("create-key", help="Create an API key and print it once")
    key.add_argument("name", help="Display name for the key")
    key.set_defaults(func=cmd_create_key)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
