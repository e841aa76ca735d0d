"""Main entry point module.

Handles CLI arguments, operator prompts and exit codes. Everything that
touches remote systems is delegated to the orchestrator.
"""

import argparse
import logging
import re
import sys
import time
from datetime import datetime
from typing import Callable, List, Optional

from dateutil import parser as date_parser
from dateutil import tz

import aws_client
import config as config_module
import triggers as triggers_module
from models import RewindError, RewindTarget, ValidationError
from orchestrator import RewindOrchestrator

VERSION = "1.0.0"

logger = logging.getLogger(__name__)

_DATE_ONLY = re.compile(r"^\s*\d{4}(-\d{2}(-\d{2})?)?\s*$")


def setup_logging(level: int = logging.INFO) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level (default: INFO)
    """
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # botocore is very chatty at DEBUG
    logging.getLogger("botocore").setLevel(max(level, logging.INFO))
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))


def report_error(error: RewindError) -> None:
    """Log an error as one line, followed by its detail if there is one."""
    logger.error(str(error))
    if error.detail:
        logger.error(f"  {error.detail}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kafka-rewind",
        description="Rewind the Kafka consumer group behind a Lambda trigger to a point in time",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Print debug output")
    parser.add_argument("-P", "--profile", metavar="NAME", help="specify the AWS profile to use")
    parser.add_argument(
        "-t",
        "--topic",
        metavar="NAMES",
        help="specify the topic name(s) to rewind. Can be a comma-separated list.",
    )
    parser.add_argument("-c", "--config", metavar="PATH", help="Path to configuration YAML file")
    parser.add_argument("function_name", metavar="FUNCTION_NAME", help="the name of the function to rewind")
    parser.add_argument("date", metavar="DATE", help="the date to rewind to")
    return parser


def parse_date(value: str) -> datetime:
    """Parse the operator's target date into an aware datetime.

    A bare ISO date (2024-02-26, 2024-02 or 2024) means midnight UTC on the
    first day it names. A date-time without an offset is local time.

    Raises:
        ValidationError: If the value is not a recognisable date or lies
            before the Unix epoch
    """
    # Missing fields fall back to January 1st, never to today's date
    default = datetime(datetime.now().year, 1, 1)
    try:
        parsed = date_parser.parse(value, default=default)
    except (ValueError, OverflowError) as e:
        raise ValidationError(f'"{value}" is not a valid date', e) from e

    if _DATE_ONLY.match(value):
        parsed = parsed.replace(tzinfo=tz.UTC)
    elif parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz.tzlocal())

    if parsed.timestamp() < 0:
        raise ValidationError(f'"{value}" is before 1970-01-01T00:00:00Z')
    return parsed


def parse_topic_option(value: Optional[str]) -> Optional[List[str]]:
    """Split a comma-separated --topic value, dropping blanks and duplicates."""
    if value is None:
        return None
    topics = list(dict.fromkeys(t.strip() for t in value.split(",") if t.strip()))
    if not topics:
        raise ValidationError("No topic names given to --topic")
    return topics


def select_topics(
    requested: Optional[List[str]],
    available: List[str],
    prompt: Optional[Callable[[str], str]] = None,
) -> List[str]:
    """Choose the topics to rewind.

    Args:
        requested: Topics given on the command line, or None
        available: Topics subscribed by the function's triggers
        prompt: Input function used for interactive selection (default: input)

    Returns:
        Selected topics in selection order

    Raises:
        ValidationError: If a requested topic isn't subscribed, or the
            interactive selection is empty or invalid
    """
    if requested is not None:
        for topic in requested:
            if topic not in available:
                raise ValidationError(f"This function does not subscribe to the topic {topic}")
        return requested

    if len(available) == 1:
        logger.info(f"The function consumes a single topic: {available[0]}")
        return list(available)

    prompt = prompt or input
    print("The function consumes the following topics:")
    for number, topic in enumerate(available, start=1):
        print(f"  {number}) {topic}")
    try:
        answer = prompt("Select topic(s) to rewind (comma-separated numbers): ")
    except EOFError:
        raise ValidationError("No topics selected")

    selected = []
    for item in answer.split(","):
        item = item.strip()
        if not item:
            continue
        if not item.isdigit() or not 1 <= int(item) <= len(available):
            raise ValidationError(f"Invalid topic selection {item!r}")
        topic = available[int(item) - 1]
        if topic not in selected:
            selected.append(topic)
    if not selected:
        raise ValidationError("No topics selected")
    return selected


def confirm(message: str, prompt: Optional[Callable[[str], str]] = None) -> bool:
    """Ask a yes/no question. Anything but an explicit yes declines."""
    prompt = prompt or input
    try:
        answer = prompt(f"{message} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def main(argv: Optional[List[str]] = None, sleep: Callable[[float], None] = time.sleep) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for success or a declined confirmation, 1 on failure)
    """
    args = build_parser().parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        cfg = config_module.load_config(args.config)
    except config_module.ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    try:
        timestamp = parse_date(args.date)
        requested_topics = parse_topic_option(args.topic)
    except ValidationError as e:
        report_error(e)
        return 1

    try:
        aws = aws_client.build_aws_connection(args.profile, cfg.aws)
    except RewindError as e:
        report_error(e)
        return 1

    try:
        try:
            triggers = triggers_module.discover_triggers(aws, args.function_name)
        except RewindError as e:
            report_error(e)
            return 1
        if not triggers:
            logger.info(f"The function {args.function_name} has no Kafka triggers defined.")
            return 0

        available = list(dict.fromkeys(t for trigger in triggers for t in trigger.topics))
        try:
            topics = select_topics(requested_topics, available)
        except ValidationError as e:
            report_error(e)
            return 1

        target = RewindTarget(topics=tuple(topics), timestamp=timestamp)
        affected = [trigger for trigger in triggers if trigger.selected_topics(target.topics)]
        if not affected:
            logger.info("No triggers are affected by this change")
            return 0

        if not confirm(
            f"Setting offset {timestamp.astimezone(tz.UTC).isoformat()} "
            f"for {len(topics)} topic(s) across {len(affected)} Kafka trigger(s). OK?"
        ):
            logger.info("Aborting.")
            return 0

        orchestrator = RewindOrchestrator(aws, aws, cfg, verbose=args.verbose, sleep=sleep)
        if not orchestrator.run(affected, target):
            return 1
    finally:
        aws.close()

    logger.info("Success!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
