import argparse
import sys
from dataclasses import replace

import uvicorn

from checkpoint_client.config import ClientConfig
from checkpoint_client.exceptions import ClientError
from checkpoint_client.logger import setup_logger


def build_parser() -> argparse.ArgumentParser:
    defaults = ClientConfig()
    parser = argparse.ArgumentParser(
        description="Checkpoint face identification and visit ledger"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the matching and visit ledger API")
    serve.add_argument("--host", default="0.0.0.0", help="Host interface")
    serve.add_argument("--port", type=int, default=8000, help="Port")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")

    scan = subparsers.add_parser("scan", help="Run the operator capture client for one section")
    scan.add_argument("--server", default=defaults.server_base_url, help="API base URL")
    scan.add_argument(
        "--section",
        default=defaults.section,
        choices=["mess", "gym", "sports"],
        help="Checkpoint section the operator account is bound to",
    )
    scan.add_argument("--username", default=defaults.login_username, help="Staff username")
    scan.add_argument("--password", default=defaults.login_password, help="Staff password")
    scan.add_argument("--camera", type=int, default=defaults.camera_index, help="Webcam index")
    scan.add_argument(
        "--interval",
        type=float,
        default=defaults.capture_interval_seconds,
        help="Seconds between probes",
    )

    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    logger = setup_logger("main")

    try:
        if args.command == "serve":
            uvicorn.run(
                "checkpoint_server.main:app",
                host=args.host,
                port=args.port,
                reload=args.reload,
                log_level="info",
            )
            return 0

        if args.command == "scan":
            from checkpoint_client.main import main as run_client

            cfg = replace(
                ClientConfig(),
                server_base_url=args.server,
                section=args.section,
                login_username=args.username,
                login_password=args.password,
                camera_index=args.camera,
                capture_interval_seconds=args.interval,
            )
            return run_client(cfg)

    except ClientError as exc:
        logger.error("Application error: %s", exc)
        print(f"Error: {exc}")
        return 1
    except KeyboardInterrupt:
        print("\nStopped by user.")
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
