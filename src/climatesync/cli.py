"""
Command-line interface for climatesync

Provides CLI commands for:
- Producing an advisory: climatesync analyze --request-file request.json
- Evaluating alerts: climatesync alerts --observation-file obs.json
- Inspecting threshold ladders: climatesync thresholds
- Managing configuration: climatesync config --show
"""

import asyncio
import json

import click
import yaml

from . import __version__
from .adapters import InMemoryBroadcaster, YamlThresholdSource
from .alerts import AlertEvaluator, AlertService, AlertStore, load_thresholds
from .config import get_config
from .models import Observation
from .orchestrator import run_analysis as run_analysis_func


@click.group()
@click.version_option(version=__version__, prog_name="climatesync")
def cli():
    """climatesync - environmental advisories and threshold alerts"""


@cli.command()
@click.option(
    "--request-file",
    type=click.Path(exists=True),
    required=True,
    help="JSON file containing the analysis request",
)
@click.option("--deadline", type=float, default=None, help="Deadline in seconds for the analysis")
@click.option("--json", "as_json", is_flag=True, help="Print the full advisory as JSON")
def analyze(request_file: str, deadline: float, as_json: bool):
    """Run all models for a location and print the advisory"""
    try:
        with open(request_file, encoding="utf-8") as f:
            request_data = json.load(f)

        result = asyncio.run(run_analysis_func(request_data, deadline=deadline))

        if as_json:
            click.echo(json.dumps(result, indent=2))
            return

        click.echo(f"🌦  Advisory for {result['location_name']} ({result['location_id']})")
        click.echo("=" * 50)
        click.echo(f"Overall Score: {result['overall_score']}")
        click.echo(f"Confidence: {result['overall_confidence']}")
        if result["status"] != "SUCCESS":
            click.echo(f"❌ Status: {result['status']}")
        else:
            click.echo(f"Status: {result['status']}")

        risk = result["risk_assessment"]
        click.echo(f"Risk: {risk['overall_risk_level']} ({risk['overall_risk_score']})")

        if result.get("action_priorities"):
            click.echo("\nPriority Actions:")
            for i, action in enumerate(result["action_priorities"], 1):
                click.echo(f"  {i}. [{action['priority']}] {action['action']}")

        failed = result["system_metrics"]["models_failed"]
        if failed:
            click.echo(f"\nModels without results: {', '.join(failed)}")

    except Exception as e:
        click.echo(f"❌ Analysis failed: {e}", err=True)


async def _evaluate_observations(observations: list[Observation], thresholds_file):
    source = YamlThresholdSource(thresholds_file) if thresholds_file else None
    evaluator = AlertEvaluator(load_thresholds(source), ttl_seconds=get_config().alerts.ttl_seconds)
    broadcaster = InMemoryBroadcaster()
    service = AlertService(evaluator, AlertStore(evaluator), broadcaster=broadcaster)

    emitted = []
    for observation in observations:
        emitted.extend(await service.analyze_observation(observation))
    return emitted, service.get_active_alerts()


@cli.command()
@click.option(
    "--observation-file",
    type=click.Path(exists=True),
    required=True,
    help="JSON file with one observation or a list of observations, in order",
)
@click.option(
    "--thresholds-file",
    type=click.Path(exists=True),
    default=None,
    help="YAML threshold ladders (defaults are used otherwise)",
)
def alerts(observation_file: str, thresholds_file: str):
    """Evaluate observations against the threshold ladders"""
    try:
        with open(observation_file, encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = [data]
        observations = [Observation.model_validate(item) for item in data]

        emitted, active = asyncio.run(_evaluate_observations(observations, thresholds_file))

        click.echo(f"🚨 Alerts raised: {len(emitted)}")
        for alert in emitted:
            click.echo(f"  - {alert.alert_type.value} {alert.level.value}: {alert.message}")

        click.echo(f"\nActive alerts: {len(active)}")
        for alert in active:
            click.echo(
                f"  - {alert.location_id} {alert.alert_type.value} {alert.level.value} "
                f"(expires {alert.expires_at.isoformat()})"
            )

    except Exception as e:
        click.echo(f"❌ Alert evaluation failed: {e}", err=True)


@cli.command()
@click.option(
    "--file",
    "thresholds_file",
    type=click.Path(exists=True),
    default=None,
    help="YAML threshold ladders to validate and show",
)
def thresholds(thresholds_file: str):
    """Show the threshold ladders in effect"""
    thresholds_file = thresholds_file or get_config().alerts.thresholds_file
    source = YamlThresholdSource(thresholds_file) if thresholds_file else None
    ladders = load_thresholds(source)

    click.echo("📏 Alert Thresholds")
    click.echo("=" * 40)
    for alert_type, ladder in ladders.items():
        rungs = ", ".join(f"{level}={value:g}" for level, value in ladder.as_dict().items())
        click.echo(f"{alert_type.value} ({ladder.metric}, {ladder.unit}): {rungs}")


@cli.command()
@click.option("--show", is_flag=True, help="Show current configuration")
@click.option("--format", type=click.Choice(["yaml", "json"]), default="yaml", help="Output format")
def config(show: bool, format: str):
    """Manage climatesync configuration"""
    if show:
        try:
            config_obj = get_config()
            config_dict = config_obj.model_dump(mode="json")

            click.echo("🔧 Current climatesync Configuration")
            click.echo("=" * 40)

            if format == "yaml":
                click.echo(yaml.dump(config_dict, default_flow_style=False, indent=2))
            elif format == "json":
                click.echo(json.dumps(config_dict, indent=2))

        except Exception as e:
            click.echo(f"❌ Failed to load configuration: {e}", err=True)
    else:
        click.echo("Use --show to display current configuration")
        click.echo("Available options:")
        click.echo("  --show          Show current configuration")
        click.echo("  --format yaml   Output in YAML format (default)")
        click.echo("  --format json   Output in JSON format")


def main():
    """Entry point for the CLI"""
    cli()


if __name__ == "__main__":
    main()
