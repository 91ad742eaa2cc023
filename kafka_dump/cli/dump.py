"""CLI entry point: dump a Kafka topic into a SQLite database."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import click

from kafka_dump import __version__
from kafka_dump.exceptions import KafkaDumpError
from kafka_dump.pipeline.coordinator import run_pipeline
from kafka_dump.utils.config import build_settings
from kafka_dump.utils.logging import configure_logging


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "-b",
    "--broker",
    "brokers",
    multiple=True,
    help="A Kafka broker. Multiple brokers can be specified. "
    "When no broker is given 'localhost:9092' is used.",
)
@click.option("-t", "--topic", required=True, help="The Kafka topic to read.")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="The output file name. When no file name is given 'dump.sqlite' is used.",
)
@click.option(
    "-c",
    "--compact",
    is_flag=True,
    help="Only store the last message for each key. If the last message has no value, "
    "nothing is stored. This behaves like 'log.cleanup.policy=compact'.",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML file with settings; command-line flags take precedence.",
)
@click.option(
    "--commit-every",
    type=click.IntRange(min=1),
    default=None,
    help="Commit the output every N records instead of once at the end of the run.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Log level for diagnostics written to stderr.",
)
@click.version_option(__version__, prog_name="kafka-dump")
def dump_topic(
    brokers: tuple[str, ...],
    topic: str,
    output: Path | None,
    compact: bool,
    config_file: Path | None,
    commit_every: int | None,
    log_level: str | None,
) -> None:
    """
    Dump a Kafka topic into a SQLite database.

    Every message of TOPIC is written to a table named after the topic, with
    characters that are not valid in an identifier replaced by '_'. One line
    per message (topic, partition, offset, value) is printed to stdout.

    Examples:

        # Dump a topic from a local broker into dump.sqlite
        kafka-dump -t orders.v1

        # Keep only the latest value per key
        kafka-dump -b kafka-1:9092 -b kafka-2:9092 -t customers -o customers.sqlite -c
    """
    overrides: dict[str, Any] = {
        "brokers": list(brokers) or None,
        "topic": topic,
        "output": output,
        "compact": compact or None,
        "commit_every": commit_every,
        "log_level": log_level,
    }

    try:
        settings = build_settings(overrides, config_file=config_file)
        configure_logging(settings.log_level, force=True)
        run_pipeline(settings, handle_signals=True)
    except KafkaDumpError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    dump_topic()
