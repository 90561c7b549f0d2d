"""
CLI interface for the shift-point engine.

Provides command-line tools for generating mock telemetry, replaying recorded
telemetry through a shift session, and querying the learned shift points.
"""

import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

import click

sys.path.insert(0, str(Path(__file__).parent.parent))

from app.utils.logger import bind_session_id, get_logger, setup_logging
from config.settings import get_settings, load_engine_settings
from data_pipeline.mock import MockTelemetryGenerator
from data_pipeline.schemas.telemetry_schema import TelemetryTick
from shift_engine import ShiftSession

logger = get_logger(__name__)


def _build_session(config: Optional[str], session_id: Optional[str] = None) -> ShiftSession:
    session = ShiftSession(load_engine_settings(config), session_id=session_id)
    bind_session_id(session.session_id)
    return session


def _read_ticks(input_file: str) -> List[TelemetryTick]:
    """Load telemetry ticks from a JSON-lines file."""
    ticks: List[TelemetryTick] = []
    with open(input_file, 'r', encoding='utf-8') as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                ticks.append(TelemetryTick.model_validate_json(line))
            except ValueError as e:
                logger.warning(f"Skipping line {line_number}: {e}")
    return ticks


def _simulated_ticks(seed: int, laps: int, shift_rpm: int, repeats: int) -> List[TelemetryTick]:
    generator = MockTelemetryGenerator(seed=seed)
    ticks = generator.generate_acceleration_session(repeats=repeats)
    ticks.extend(generator.generate_session(num_laps=laps, shift_rpm=shift_rpm))
    return ticks


def _summary(session: ShiftSession) -> Dict:
    return {
        "stats": session.get_stats(),
        "shift_points": session.generate_optimal_shift_points(),
        "recommendations": {
            gear: rec.model_dump(mode='json')
            for gear, rec in session.generate_recommendations().items()
        },
        "learning": session.generate_learning_report().model_dump(mode='json'),
    }


def _emit(data: Dict, output_file: Optional[str]) -> None:
    if output_file:
        logger.info(f"Writing results to {output_file}")
        with open(output_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, default=str)
        click.echo(f"✓ Results written to {output_file}")
    else:
        click.echo(json.dumps(data, indent=2, default=str))


@click.group()
@click.version_option(version='0.1.0')
@click.option('--log-level', default=None, help='Override the configured log level')
def cli(log_level: Optional[str]):
    """Shift-Point Optimization Engine - Analysis CLI"""
    log_settings = get_settings().logging
    setup_logging(
        log_level=log_level or log_settings.level,
        log_format=log_settings.format,
        log_file=log_settings.file_path,
        enable_console=log_settings.enable_console,
    )


@cli.command()
@click.option('--output-file', '-o', required=True, type=click.Path(), help='JSON-lines file to write')
@click.option('--laps', type=int, default=10, help='Laps to drive after the acceleration runs')
@click.option('--shift-rpm', type=int, default=7000, help='Mean upshift RPM of the simulated driver')
@click.option('--repeats', type=int, default=5, help='Wide-open-throttle pulls per gear')
@click.option('--seed', type=int, default=42, help='Random seed')
def generate(output_file: str, laps: int, shift_rpm: int, repeats: int, seed: int):
    """Write mock telemetry as JSON lines."""
    ticks = _simulated_ticks(seed, laps, shift_rpm, repeats)
    with open(output_file, 'w', encoding='utf-8') as f:
        for tick in ticks:
            f.write(tick.model_dump_json() + '\n')
    click.echo(f"✓ {len(ticks)} ticks written to {output_file}")


@cli.command()
@click.option('--laps', type=int, default=10, help='Laps to drive after the acceleration runs')
@click.option('--shift-rpm', type=int, default=7000, help='Mean upshift RPM of the simulated driver')
@click.option('--repeats', type=int, default=5, help='Wide-open-throttle pulls per gear')
@click.option('--seed', type=int, default=42, help='Random seed')
@click.option('--config', '-c', type=click.Path(), help='Engine config YAML')
@click.option('--output-file', '-o', type=click.Path(), help='Output JSON file for results')
def simulate(laps: int, shift_rpm: int, repeats: int, seed: int, config: Optional[str], output_file: Optional[str]):
    """Run a simulated session through the engine."""
    session = _build_session(config)
    for tick in _simulated_ticks(seed, laps, shift_rpm, repeats):
        session.process_tick(tick)

    _emit(_summary(session), output_file)
    click.echo("✓ Simulation complete")


@cli.command()
@click.option('--input-file', '-i', required=True, type=click.Path(exists=True), help='JSON-lines telemetry file')
@click.option('--vehicle', default='', help='Vehicle name for the data collection report')
@click.option('--config', '-c', type=click.Path(), help='Engine config YAML')
@click.option('--output-file', '-o', type=click.Path(), help='Output JSON file for results')
def report(input_file: str, vehicle: str, config: Optional[str], output_file: Optional[str]):
    """Replay recorded telemetry and print every report."""
    session = _build_session(config, session_id=Path(input_file).stem)
    ticks = _read_ticks(input_file)
    logger.info(f"Replaying {len(ticks)} ticks from {input_file}")
    for tick in ticks:
        session.process_tick(tick)

    data = _summary(session)
    data["data_collection"] = session.generate_detailed_report(vehicle).model_dump(mode='json')
    data["performance"] = session.generate_performance_report().model_dump(mode='json')
    optimal_config = session.generate_optimal_config()
    data["optimal_config"] = optimal_config.model_dump(mode='json') if optimal_config else None
    _emit(data, output_file)


@cli.command()
@click.option('--input-file', '-i', required=True, type=click.Path(exists=True), help='JSON-lines telemetry file')
@click.option('--gear', type=click.IntRange(1, 8), required=True, help='Gear to check')
@click.option('--current-rpm', type=int, required=True, help='RPM you currently shift at')
@click.option('--config', '-c', type=click.Path(), help='Engine config YAML')
def recommend(input_file: str, gear: int, current_rpm: int, config: Optional[str]):
    """Compare a current shift point with the learned one."""
    session = _build_session(config, session_id=Path(input_file).stem)
    for tick in _read_ticks(input_file):
        session.process_tick(tick)

    rec = session.get_recommendation_for_gear(gear, current_rpm)
    if not rec.has_recommendation:
        click.echo(f"Gear {gear}: {rec.message}")
        return

    click.echo(f"Gear {gear}: recommended {rec.recommended_rpm} RPM (confidence {rec.confidence:.0%})")
    click.echo(rec.message)


if __name__ == '__main__':
    cli()
