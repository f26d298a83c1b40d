from __future__ import annotations

import argparse
import dataclasses
import logging
import sys

from composedtask.config import ConfigError, load_config
from composedtask.executor import ComposedTaskRunner, RunResult, Status, UnknownPlatformError
from composedtask.graph import (
    ExecutionPlan,
    GraphError,
    LaunchDirective,
    PlanEntry,
    SequencePlan,
    SplitPlan,
    compile_graph,
)
from composedtask.launcher import DataFlowClient, LauncherError

from .args import build_parser


def run_cli(argv: list[str] | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
        if args.verbose:
            logging.basicConfig(
                level=logging.DEBUG,
                format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            )

        match args.command:
            case "run":
                return cmd_run(args)
            case "plan":
                return cmd_plan(args)
            case "list":
                return cmd_list(args)
            case _:
                return 2

    except (ConfigError, GraphError, UnknownPlatformError, LauncherError) as exc:
        print(str(exc), file=sys.stderr)
        return 2

    except KeyboardInterrupt:
        return 130


def cmd_run(args: argparse.Namespace) -> int:
    definition = load_config(args.config)
    plan = compile_graph(definition.graph)

    settings = definition.settings
    if args.continue_on_failure:
        settings = dataclasses.replace(settings, sequence_continue_on_failure=True)

    client = DataFlowClient.from_config(settings)
    runner = ComposedTaskRunner(settings, client, client)
    try:
        rr = runner.run(plan)
    except KeyboardInterrupt:
        runner.shutdown()
        raise

    _print_result(rr)
    return 1 if rr.status is Status.FAILED else 0


def cmd_plan(args: argparse.Namespace) -> int:
    definition = load_config(args.config)
    plan = compile_graph(definition.graph)
    for line in format_plan(plan):
        print(line)
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    definition = load_config(args.config)
    plan = compile_graph(definition.graph)
    for step_name in plan.step_names():
        print(step_name)
    return 0


def format_plan(plan: ExecutionPlan) -> list[str]:
    lines: list[str] = []

    def walk(entry: PlanEntry, depth: int) -> None:
        indent = "  " * depth
        match entry:
            case LaunchDirective():
                if entry.label is None:
                    lines.append(f"{indent}{entry.step_name}")
                else:
                    lines.append(f"{indent}{entry.step_name} -> {entry.task_name}")
            case SequencePlan(entries=entries):
                lines.append(f"{indent}sequence")
                for child in entries:
                    walk(child, depth + 1)
            case SplitPlan(branches=branches):
                lines.append(f"{indent}split")
                for branch in branches:
                    walk(branch, depth + 1)

    walk(plan.root, 0)
    return lines


def _print_result(rr: RunResult) -> None:
    for step_name in rr.order:
        if step_name in rr.results:
            result = rr.results[step_name]
            if result.status is Status.SUCCEEDED:
                print(
                    f"OK {step_name}, {result.duration_s:.3f}s, exit code = {result.exit_code}"
                )
            else:
                print(
                    f"FAIL {step_name}, {result.duration_s:.3f}s, exit code = {result.exit_code}"
                )
                if result.error:
                    print(f"  {result.error}", file=sys.stderr)
        else:
            print(f"SKIP {step_name}")
