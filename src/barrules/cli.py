"""barrules CLI — replay recorded events through an aggregation rule."""

from __future__ import annotations

import csv
import logging
import sys
from datetime import UTC, datetime

import click
from pydantic import ValidationError

from barrules.config import BarrulesConfig, DriverConfig, RuleConfig
from barrules.errors import ConfigurationError, OrderingViolation
from barrules.models import Event
from barrules.rules import AggregationRule

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _setup_logging(log_level: str) -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _build_rule(
    rule_spec: str, config: BarrulesConfig | None, origin: datetime | None = None
) -> AggregationRule:
    """Build a rule from a spec, applying any matching config entry."""
    rule_cfg = (config.rule_config(rule_spec) if config else None) or RuleConfig(spec=rule_spec)
    if not rule_cfg.enabled:
        raise click.BadParameter(
            f"Rule '{rule_spec}' is disabled in the config file.", param_hint="'RULE_SPEC'"
        )
    try:
        return rule_cfg.build(origin=origin)
    except ConfigurationError as exc:
        raise click.BadParameter(str(exc), param_hint="'RULE_SPEC'") from exc


def _read_events(path: str):
    """Yield events from a CSV file with timestamp,price,volume[,trade_id] columns."""
    with open(path, newline="") as f:
        for line_no, row in enumerate(csv.DictReader(f), start=2):
            try:
                yield Event(
                    timestamp=row["timestamp"],
                    price=row["price"],
                    volume=row["volume"],
                    trade_id=row.get("trade_id") or None,
                )
            except (KeyError, ValidationError) as exc:
                raise click.ClickException(f"{path}:{line_no}: invalid event row: {exc}") from exc


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    help="Set logging verbosity.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to barrules.toml config file.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str, config_path: str | None) -> None:
    """barrules - Aggregate trade events into bars.

    \b
    Rule specs:
      time_1m       Close 1 minute after the bar's first event
      aligned_5m    Close on 5-minute clock boundaries (:00, :05, ...)
      volume_100    Close every 100 units of volume (events are split)

    \b
    Config discovery: --config > BARRULES_CONFIG > ./barrules.toml
    """
    _setup_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["config"] = BarrulesConfig.find_and_load(config_path)


@cli.command()
@click.argument("rule_spec")
@click.pass_context
def check(ctx: click.Context, rule_spec: str) -> None:
    """Validate a rule spec and print the rule it builds.

    \b
    Examples:
      barrules check aligned_5m
      barrules check volume_2.5
    """
    rule = _build_rule(rule_spec, ctx.obj.get("config") if ctx.obj else None)
    click.echo(f"{rule.label}: {type(rule).__name__}")


@cli.command()
@click.argument("rule_spec")
@click.argument("csv_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--origin",
    default=None,
    type=click.DateTime(formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"]),
    help="Alignment origin for aligned rules, UTC (default: Unix epoch).",
)
@click.option(
    "--flush/--no-flush",
    default=None,
    help="Emit the trailing partial bar at end of input (default: on).",
)
@click.option(
    "--skip-out-of-order/--strict",
    default=None,
    help="Log and skip events older than the open bar instead of failing.",
)
@click.pass_context
def replay(
    ctx: click.Context,
    rule_spec: str,
    csv_path: str,
    origin: datetime | None,
    flush: bool | None,
    skip_out_of_order: bool | None,
) -> None:
    """Replay a CSV of events and print one JSON bar per line.

    CSV_PATH needs a header with timestamp, price and volume columns
    (trade_id optional). Timestamps must carry a UTC offset.

    \b
    Examples:
      barrules replay aligned_5m trades.csv
      barrules replay volume_100 trades.csv --no-flush
    """
    config = ctx.obj.get("config") if ctx.obj else None
    origin_utc = origin.replace(tzinfo=UTC) if origin else None
    rule = _build_rule(rule_spec, config, origin=origin_utc)

    driver_cfg = config.driver if config else DriverConfig()
    if skip_out_of_order is not None:
        driver_cfg = driver_cfg.model_copy(update={"skip_out_of_order": skip_out_of_order})
    if flush is None:
        flush = driver_cfg.flush_on_end
    driver = driver_cfg.build(rule)

    emitted = 0
    try:
        for event in _read_events(csv_path):
            for bar in driver.process_event(event):
                click.echo(bar.model_dump_json())
                emitted += 1
    except OrderingViolation as exc:
        click.echo(f"Failed to replay: {exc}", err=True)
        raise SystemExit(1)

    if flush:
        bar = driver.flush()
        if bar is not None:
            click.echo(bar.model_dump_json())
            emitted += 1

    logger.info(
        "Replayed %s with %s: %d bars, %d skipped",
        csv_path,
        rule.label,
        emitted,
        driver.skipped,
    )
