#!/usr/bin/env python3
"""
grantflow Command Line Interface

Usage:
    grantflow request --descriptor <file> --permissions <name> [<name> ...] [--policy <mode>]
    grantflow denials [--app <label>]
    grantflow demo
"""

import argparse
import dataclasses
import json
import sys
import tempfile
from pathlib import Path
from typing import Callable, List, Optional, TextIO

from .config import GrantflowConfig, load_config
from .controller import PermissionRequestController
from .descriptor import AppDescriptor, DescriptorError, ResolvedApp, load_descriptor, resolve
from .logging_config import configure_logging
from .models import GrantResult, PolicyMode
from .policy import StaticPolicyProvider
from .store import FileLedgerStore
from .tracker import DenialTracker

EXIT_OK = 0
EXIT_USAGE = 2

ALLOW_QUESTION = "Allow? [y]es / [n]o: "
ALLOW_QUESTION_DO_NOT_ASK = "Allow? [y]es / [n]o / [N]o, don't ask again: "
CANCEL_QUESTION = "Press Enter to cancel: "


def build_tracker(config: GrantflowConfig) -> DenialTracker:
    return DenialTracker.from_config(config, FileLedgerStore.from_config(config))


def build_controller(
    app: ResolvedApp,
    permissions: List[str],
    policy: PolicyMode,
    tracker: DenialTracker,
    on_result: Callable[[GrantResult], None]
) -> PermissionRequestController:
    return PermissionRequestController(
        requested_permissions=permissions,
        caller=app.caller,
        groups=app.groups,
        tracker=tracker,
        policy_provider=StaticPolicyProvider(policy),
        permission_catalog=app.catalog,
        on_result=on_result,
    )


def run_interactive(
    controller: PermissionRequestController,
    ask: Optional[Callable[[str], str]] = None,
    out: Optional[TextIO] = None
) -> None:
    """Show each prompt on out and read the answer with ask() until the run ends."""
    ask = ask or input
    out = out or sys.stdout
    prompt = controller.start()
    while prompt is not None:
        print(f"[{prompt.group_index + 1}/{prompt.group_count}] {prompt.message}", file=out)
        try:
            if prompt.allow_enabled:
                question = ALLOW_QUESTION_DO_NOT_ASK if prompt.show_do_not_ask else ALLOW_QUESTION
                answer = ask(question).strip()
                granted = answer.lower() in ("y", "yes")
                do_not_ask = prompt.show_do_not_ask and answer == "N"
            else:
                ask(CANCEL_QUESTION)
                granted, do_not_ask = False, False
        except EOFError:
            controller.cancel()
            return
        prompt = controller.on_decision(prompt.group_name, granted, do_not_ask)


def _config_from_args(args) -> GrantflowConfig:
    config = load_config()
    if getattr(args, "data_dir", None):
        config = dataclasses.replace(config, data_dir=Path(args.data_dir))
    return config


def cmd_request(args) -> int:
    """Run a permission request interactively."""
    config = _config_from_args(args)

    try:
        app = load_descriptor(args.descriptor)
    except DescriptorError as e:
        print(f"✗ {e}", file=sys.stderr)
        return EXIT_USAGE

    results: List[GrantResult] = []
    controller = build_controller(
        app, args.permissions, PolicyMode(args.policy), build_tracker(config), results.append
    )
    run_interactive(controller)

    print(json.dumps(results[0].to_dict(), indent=2))
    return EXIT_OK


def cmd_denials(args) -> int:
    """Print unexpired denials."""
    config = _config_from_args(args)
    tracker = build_tracker(config)
    now = tracker.now()

    output = {
        app: [
            {
                "permission": r.permission,
                "denied_at": r.denied_at.isoformat(),
                "remaining_seconds": int((tracker.denied_wait_period - (now - r.denied_at)).total_seconds()),
            }
            for r in records
        ]
        for app, records in tracker.live_denials(args.app).items()
    }
    print(json.dumps(output, indent=2))
    return EXIT_OK


DEMO_APP = {
    "package_name": "com.example.snapshot",
    "label": "Snapshot",
    "permissions": [
        {"name": "android.permission.CAMERA", "protection": "dangerous"},
        {"name": "android.permission.ACCESS_FINE_LOCATION", "protection": "dangerous"},
    ],
    "groups": [
        {
            "name": "CAMERA",
            "description": "take pictures and record video",
            "permissions": ["android.permission.CAMERA"],
        },
        {
            "name": "LOCATION",
            "description": "access this device's location",
            "permissions": ["android.permission.ACCESS_FINE_LOCATION"],
        },
    ],
}


def cmd_demo(args) -> int:
    """Run a scripted walkthrough against a throwaway data directory."""
    print("=" * 60)
    print("grantflow Demonstration")
    print("=" * 60)

    with tempfile.TemporaryDirectory() as tmp:
        config = dataclasses.replace(load_config(), data_dir=Path(tmp))
        tracker = build_tracker(config)
        descriptor = AppDescriptor.model_validate(DEMO_APP)
        permissions = [p["name"] for p in DEMO_APP["permissions"]]

        def scripted(answers: List[str]) -> Callable[[str], str]:
            queue = list(answers)

            def ask(question: str) -> str:
                answer = queue.pop(0) if queue else ""
                print(f"{question}{answer}")
                return answer
            return ask

        print("\n" + "-" * 60)
        print("Run 1: allow CAMERA, deny LOCATION")
        print("-" * 60)
        results: List[GrantResult] = []
        controller = build_controller(resolve(descriptor), permissions, PolicyMode.DEFAULT, tracker, results.append)
        run_interactive(controller, ask=scripted(["y", "n"]))
        print(json.dumps(results[0].to_dict(), indent=2))

        print("\n" + "-" * 60)
        print("Run 2: LOCATION again, inside the wait period")
        print("-" * 60)
        results = []
        controller = build_controller(resolve(descriptor), permissions[1:], PolicyMode.DEFAULT, tracker, results.append)
        run_interactive(controller, ask=scripted([""]))
        print(json.dumps(results[0].to_dict(), indent=2))

        print("\nAudit log:")
        print(config.results_path.read_text(encoding="utf-8"), end="")

    print("\n" + "=" * 60)
    print("Demonstration complete.")
    print("=" * 60)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="grantflow permission request CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  grantflow demo
  grantflow request -d app.json -p android.permission.CAMERA
  grantflow request -d app.json -p android.permission.CAMERA --policy auto_deny
  grantflow denials --app Snapshot
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log workflow events to stderr")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # request
    request_parser = subparsers.add_parser("request", help="Run a permission request")
    request_parser.add_argument("-d", "--descriptor", required=True, help="Application descriptor JSON file")
    request_parser.add_argument("-p", "--permissions", nargs="+", required=True, help="Requested permission names")
    request_parser.add_argument(
        "--policy",
        choices=[m.value for m in PolicyMode],
        default=PolicyMode.DEFAULT.value,
        help="Device permission policy",
    )
    request_parser.add_argument("--data-dir", help="Override GRANTFLOW_DATA_DIR")

    # denials
    denials_parser = subparsers.add_parser("denials", help="Show recent denials")
    denials_parser.add_argument("-a", "--app", help="Application label")
    denials_parser.add_argument("--data-dir", help="Override GRANTFLOW_DATA_DIR")

    # demo
    subparsers.add_parser("demo", help="Run demonstration")

    args = parser.parse_args(argv)

    try:
        config = load_config()
    except ValueError as e:
        print(f"✗ {e}", file=sys.stderr)
        return EXIT_USAGE

    configure_logging(
        level=config.log_level if args.verbose else "WARNING",
        json_format=config.log_json,
        stream=sys.stderr,
    )

    if args.command == "request":
        return cmd_request(args)
    elif args.command == "denials":
        return cmd_denials(args)
    elif args.command == "demo":
        return cmd_demo(args)

    parser.print_help()
    return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
