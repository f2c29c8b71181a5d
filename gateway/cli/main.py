# ==============================
# CLI Entrypoint
# ==============================
"""
CLI for toolbroker.

Supported commands:
  toolbroker list-operations
  toolbroker call get_value --args '{"key": "greeting"}'
  toolbroker call deploy_schema --args-file schema_call.json
  toolbroker status
  toolbroker --redis-url redis://localhost:6379/0 call db_size

Output is JSON on stdout; logs go to stderr.
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from broker.app import BootReport, build_dispatcher
from broker.config.loader import load_settings
from broker.logging.logger import bootstrap_logger
from broker.operations.dispatcher import Dispatcher


def _json_load(text: str) -> Dict[str, Any]:
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Invalid JSON arguments: {exc}") from exc
    if not isinstance(value, dict):
        raise SystemExit("JSON arguments must be an object.")
    return value


def _load_arguments(args_text: Optional[str], args_file: Optional[str]) -> Dict[str, Any]:
    if args_text and args_file:
        raise SystemExit("Provide only one of --args or --args-file.")
    if args_file:
        text = Path(args_file).read_text(encoding="utf-8")
        return _json_load(text)
    if args_text:
        return _json_load(args_text)
    return {}


def _print_json(obj: Any) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False, default=str))


def _startup_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "store": {"url": args.redis_url},
        "neon": {"api_key": args.neon_api_key},
    }


def cmd_list_operations(dispatcher: Dispatcher) -> int:
    _print_json({"operations": dispatcher.describe()})
    return 0


def cmd_call(dispatcher: Dispatcher, *, name: str, arguments: Dict[str, Any]) -> int:
    response = dispatcher.call(name, arguments)
    _print_json({**response.to_dict(), "isError": response.is_error})
    return 1 if response.is_error else 0


def cmd_status(dispatcher: Dispatcher, report: BootReport) -> int:
    _print_json(
        {
            "operations": len(dispatcher.registry),
            "integrations": report.loaded,
            "errors": [{"integration": e.integration, "message": e.message} for e in report.errors],
            "resources": dispatcher.resources.status(),
        }
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="toolbroker")
    ap.add_argument("--redis-url", help="Store connection string (overrides REDIS_URL)", default=None)
    ap.add_argument("--neon-api-key", help="Control-plane API key (overrides NEON_API_KEY)", default=None)
    sub = ap.add_subparsers(dest="cmd", required=True)

    sub.add_parser("list-operations")

    ap_call = sub.add_parser("call")
    ap_call.add_argument("name", help="Operation name")
    ap_call.add_argument("--args", dest="args_text", help="JSON object string", default=None)
    ap_call.add_argument("--args-file", help="Path to JSON file with arguments", default=None)

    sub.add_parser("status")

    args = ap.parse_args(argv)

    settings, _ = load_settings(overrides=_startup_overrides(args))
    bootstrap_logger(settings)
    report = BootReport()
    dispatcher = build_dispatcher(settings, report=report)

    try:
        if args.cmd == "list-operations":
            return cmd_list_operations(dispatcher)
        if args.cmd == "call":
            arguments = _load_arguments(args.args_text, args.args_file)
            return cmd_call(dispatcher, name=args.name, arguments=arguments)
        if args.cmd == "status":
            return cmd_status(dispatcher, report)
    finally:
        dispatcher.resources.close_all()

    raise SystemExit("Unknown command")


if __name__ == "__main__":
    raise SystemExit(main())
