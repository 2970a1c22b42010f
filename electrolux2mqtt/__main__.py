#!/usr/bin/env python3
"""Entry point for electrolux2mqtt."""

import argparse
import logging
import sys

import yaml

from electrolux_api.exceptions import ConfigError
from electrolux_api.http import mask_token

from . import __version__
from .bridge import ElectroluxMQTTBridge
from .config import load_config, resolve_poll_interval, validate_config


def setup_logging(level: str = "INFO"):
    """Set up logging configuration."""
    log_level = getattr(logging, str(level).upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from paho-mqtt
    logging.getLogger("paho").setLevel(logging.WARNING)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="electrolux2mqtt",
        description="MQTT bridge for Electrolux appliances",
    )
    parser.add_argument(
        "-c", "--config",
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"electrolux2mqtt {__version__}",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate config and exit",
    )

    args = parser.parse_args()

    # Load config
    try:
        config = load_config(args.config)
    except (OSError, yaml.YAMLError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    # Set up logging
    log_level = "DEBUG" if args.debug else config.get("options", {}).get("log_level", "INFO")
    setup_logging(log_level)

    logger = logging.getLogger(__name__)

    # Log config location
    config_path = config.get("_config_path", "defaults")
    logger.info(f"Loaded config from: {config_path}")

    # Validate config
    errors = validate_config(config)
    if errors:
        for error in errors:
            logger.error(f"Config error: {error}")
        if args.validate:
            print("Configuration is INVALID")
        sys.exit(1)

    if args.validate:
        options = config["options"]
        print("Configuration is valid")
        print(f"  MQTT Broker: {config['mqtt']['host']}:{config['mqtt']['port']}")
        print(f"  Topic Prefix: {config['mqtt']['topic_prefix']}")
        print(f"  API URL: {config['api']['url']}")
        print(f"  API Key: {mask_token(config['api']['api_key'])}")
        print(f"  Refresh Token: {mask_token(config['api'].get('refresh_token'))}")
        print(f"  Poll Interval: {resolve_poll_interval(options['poll_interval'])}s")
        print(f"  Session File: {options['session_file']}")
        print(f"  Discovery: {config['home_assistant']['enabled']}")
        sys.exit(0)

    # Start bridge
    logger.info(f"electrolux2mqtt v{__version__} starting...")

    bridge = ElectroluxMQTTBridge(config)

    try:
        bridge.run_forever()
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except ConnectionError as e:
        logger.error(str(e))
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
