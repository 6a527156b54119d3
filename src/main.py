"""
Main application for the hub counter.

Opens one distance sensor per lane, calibrates each lane's empty baseline,
then counts balls passing each sensor and pushes the counts to web clients.

Usage:
    python src/main.py --config config/config.yaml

Arguments:
    --config: Path to configuration file
    --no-web: Run the counting loop without the HTTP/WebSocket server
    --cycles: Stop after this many loop cycles
    --port: Override the web server port
"""

import argparse
import logging
import os
import sys
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

import uvicorn
import yaml

from ops.logging import setup_logging
from pipeline.engine import create_engine_from_config
from sensors.base import SensorError
from web.app import create_app
from web.broadcaster import manager as ws_manager
from web.state import state as web_state

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
SENSOR_BACKENDS = ('simulated', 'replay')


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` into ``base`` in place; nested mappings merge key by key."""
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _config_layers(config_path: str) -> List[str]:
    """
    Config files to merge, lowest precedence first:
    default.yaml, then config.yaml beside it, then the requested file itself.
    Missing files are skipped; a file is never applied twice.
    """
    config_dir = os.path.dirname(config_path)
    candidates = [
        os.path.join(config_dir, "default.yaml"),
        os.path.join(config_dir, "config.yaml"),
        config_path,
    ]
    layers: List[str] = []
    for path in candidates:
        if os.path.exists(path) and os.path.abspath(path) not in map(os.path.abspath, layers):
            layers.append(path)
    return layers


def load_config(config_path: str) -> Dict[str, Any]:
    """Load and merge the config layers for ``config_path``. Exits on unreadable YAML."""
    merged: Dict[str, Any] = {}
    for path in _config_layers(config_path):
        try:
            with open(path, "r") as f:
                layer = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logging.error(f"Failed to load configuration from {path}: {e}")
            sys.exit(1)
        _deep_merge(merged, layer)
    return merged


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_non_negative_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['sensors', 'calibration', 'counting', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Sensors
    sensors = config.get('sensors') or {}
    backend = sensors.get('backend', 'simulated')
    if backend not in SENSOR_BACKENDS:
        return False, f"sensors.backend must be one of: {', '.join(SENSOR_BACKENDS)}"
    if not _is_positive_int(sensors.get('num_lanes')):
        return False, "sensors.num_lanes must be a positive integer"
    if 'out_of_range_mm' in sensors and not _is_positive_int(sensors['out_of_range_mm']):
        return False, "sensors.out_of_range_mm must be a positive integer"
    if 'timeout_ms' in sensors and not _is_positive_int(sensors['timeout_ms']):
        return False, "sensors.timeout_ms must be a positive integer"
    if backend == 'replay':
        replay = sensors.get('replay') or {}
        if not isinstance(replay.get('path'), str) or not replay.get('path'):
            return False, "sensors.replay.path is required when sensors.backend is 'replay'"

    # Calibration
    calibration = config.get('calibration') or {}
    if not _is_positive_int(calibration.get('samples')):
        return False, "calibration.samples must be a positive integer"
    for key in ('sample_interval_ms', 'settle_ms'):
        if key in calibration and not _is_non_negative_int(calibration[key]):
            return False, f"calibration.{key} must be a non-negative integer"

    # Counting margins
    counting = config.get('counting') or {}
    for key in ('detection_delta_mm', 'clear_hysteresis_mm'):
        if not _is_positive_int(counting.get(key)):
            return False, f"counting.{key} must be a positive integer"
    if not _is_non_negative_int(counting.get('lockout_ms')):
        return False, "counting.lockout_ms must be a non-negative integer"

    # Optional broadcast / web sections
    broadcast = config.get('broadcast') or {}
    if 'min_interval_ms' in broadcast and not _is_non_negative_int(broadcast['min_interval_ms']):
        return False, "broadcast.min_interval_ms must be a non-negative integer"
    web = config.get('web') or {}
    if 'port' in web and not (_is_positive_int(web['port']) and web['port'] <= 65535):
        return False, "web.port must be between 1 and 65535"

    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def start_web_server(host: str, port: int) -> threading.Thread:
    """Run uvicorn on a daemon thread so the host loop keeps the main thread."""
    def run_web_app():
        uvicorn.run(
            create_app(),
            host=host,
            port=port,
            log_level="warning",
        )

    web_thread = threading.Thread(target=run_web_app, daemon=True)
    web_thread.start()
    logging.info(f"Web interface started on {host}:{port} (WebSocket at /ws)")
    return web_thread


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Hub Counter - multi-lane ball counter')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--no-web', action='store_true',
                        help='Disable the HTTP/WebSocket server')
    parser.add_argument('--cycles', type=int, default=None,
                        help='Stop after this many loop cycles')
    parser.add_argument('--port', type=int, default=None,
                        help='Override web.port')
    args = parser.parse_args()

    config = load_config(args.config)
    if args.port is not None:
        config.setdefault('web', {})['port'] = args.port

    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(config['log_path'], config['log_level'])
    logging.info("Starting Hub Counter")

    try:
        engine = create_engine_from_config(config, web_state=web_state, max_cycles=args.cycles)
    except (SensorError, ValueError) as e:
        logging.error(f"Failed to initialise sensors: {e}")
        sys.exit(1)

    web_state.set_config(config, args.config)
    web_state.set_engine(engine)
    web_state.update_system_stats({"start_time": time.time()})

    web_cfg = config.get('web', {}) or {}
    if web_cfg.get('enabled', True) and not args.no_web:
        engine.add_callback(ws_manager.publish_snapshot)
        start_web_server(web_cfg.get('host', '0.0.0.0'), int(web_cfg.get('port', 5000)))

    engine.run()

    snapshot = engine.aggregator.snapshot(engine.ctx.clock())
    logging.info(
        f"Final counts: total={snapshot.total} "
        + " ".join(f"lane{lane.lane_id}={lane.count}" for lane in snapshot.lanes)
    )
    logging.info("Hub Counter stopped")


if __name__ == "__main__":
    main()
