"""CLI entry point: run the full interview prep pipeline for one university and department."""

import argparse
import asyncio
import json
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

from interview_prep.client import BackendClient, HttpBackendClient, LocalBackendClient
from interview_prep.config import get_settings
from interview_prep.controller import PipelineController, RunOutcome, RunStatus
from interview_prep.events import PipelineEvent
from interview_prep.llm.provider import PydanticAIProvider
from interview_prep.logging import configure_structlog, get_logger

log = get_logger("interview_prep.cli")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="python -m interview_prep", description=__doc__)
    parser.add_argument("university")
    parser.add_argument("department")
    parser.add_argument("--server", help="Base URL of a running service; stages run in-process when omitted")
    parser.add_argument("--resume-on-pause", action="store_true", help="Resume once from cache after Ctrl-C")
    parser.add_argument("--audit", action="store_true", help="Score the research and attach it to the report")
    parser.add_argument("--output", type=Path, help="Write the report JSON here instead of stdout")
    return parser.parse_args(argv)


def _print_event(event: PipelineEvent) -> None:
    print(f"  {event.format()}", file=sys.stderr)


async def _confirm(controller: PipelineController, outcome: RunOutcome) -> RunOutcome:
    validation = outcome.validation
    suggestion = f"{validation.corrected_university or ''} {validation.corrected_department or ''}".strip()
    answer = await asyncio.to_thread(input, f"Did you mean '{suggestion}'? [y/N] ")
    if answer.strip().lower().startswith("y"):
        return await controller.confirm_correction()
    return await controller.override_validation()


async def run(args: argparse.Namespace) -> RunOutcome:
    settings = get_settings()
    backend: BackendClient
    if args.server:
        backend = HttpBackendClient(args.server)
    else:
        backend = LocalBackendClient(PydanticAIProvider(), settings)

    controller = PipelineController(backend, run_audit=args.audit, on_event=_print_event)
    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, controller.stop)
    try:
        outcome = await controller.submit(args.university, args.department)
        if outcome.status == RunStatus.NEEDS_CONFIRMATION:
            outcome = await _confirm(controller, outcome)
        if outcome.status == RunStatus.PAUSED and args.resume_on_pause:
            log.info("cli.resuming", cached=controller.research_cache is not None)
            outcome = await controller.resume()
        return outcome
    finally:
        loop.remove_signal_handler(signal.SIGINT)
        if isinstance(backend, HttpBackendClient):
            await backend.aclose()


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    load_dotenv()
    args = _parse_args(argv)
    configure_structlog(testing=True, level_name=get_settings().logging_level)

    outcome = asyncio.run(run(args))
    if outcome.status != RunStatus.COMPLETED or outcome.report is None:
        print(f"\n❌ {outcome.status.value}: {outcome.message or ''}".rstrip(), file=sys.stderr)
        sys.exit(1)

    report_json = json.dumps(outcome.report.to_wire(), ensure_ascii=False, indent=2)
    if args.output:
        args.output.write_text(report_json, encoding="utf-8")
        log.info("cli.output.saved", path=str(args.output))
        print(f"\n✅ Report saved to: {args.output}", file=sys.stderr)
    else:
        print(report_json)


if __name__ == "__main__":
    main()
