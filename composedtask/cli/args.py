from __future__ import annotations

import argparse


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="composedtask")

    parser.add_argument(
        "--config",
        default="composedtask.yml",
        help="Path to config file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output to stderr",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        required=True,
    )

    # run
    run = subparsers.add_parser("run", help="Run the composed task")
    run.add_argument(
        "--continue-on-failure",
        action="store_true",
        help="Keep running a sequence after one of its entries failed",
    )

    # plan
    subparsers.add_parser("plan", help="Show the compiled execution plan")

    # list
    subparsers.add_parser("list", help="List step names")

    return parser
