#!/usr/bin/env python3
"""
hooklog Configuration Helper
Loads config.json for the server and updates it interactively.
"""

import json
from pathlib import Path

# config.json lives at the repository root, two levels above src/hooklog
CONFIG_FILE = Path(__file__).resolve().parents[2] / "config.json"

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 7860

DEFAULT_CONFIG = {
    "host": DEFAULT_HOST,
    "port": DEFAULT_PORT,
    "color": True,
}


class ConfigError(Exception):
    """Raised when config.json cannot be used to start the server."""


def parse_port(value):
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid port: {value!r}") from None
    if not 0 <= port <= 65535:
        raise ConfigError(f"Port out of range: {port}")
    return port


def parse_bool(value):
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y", "on")
    return bool(value)


def normalize_config(config):
    if "port" not in config and "server_port" in config:
        config["port"] = config["server_port"]
    config.pop("server_port", None)
    config["port"] = parse_port(config.get("port", DEFAULT_PORT))
    config["host"] = str(config.get("host") or DEFAULT_HOST)
    config["color"] = parse_bool(config.get("color", True))
    return config


def load_config(config_file=CONFIG_FILE):
    config = DEFAULT_CONFIG.copy()
    config_file = Path(config_file)
    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                loaded = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ConfigError(f"Malformed {config_file}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read {config_file}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"{config_file} must contain a JSON object")
        config.update(loaded)
    return normalize_config(config)


def save_config(config, config_file=CONFIG_FILE):
    config = normalize_config(dict(config))
    with open(config_file, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2)
    print(f"✅ Saved configuration to {config_file}")
    return config


def resolve_settings(args, config):
    """Command line flags win over config.json values."""
    settings = dict(config)
    if getattr(args, "host", None):
        settings["host"] = args.host
    if getattr(args, "port", None) is not None:
        settings["port"] = parse_port(args.port)
    if getattr(args, "no_color", False):
        settings["color"] = False
    return settings


def prompt(label, default):
    value = input(f"{label} (press Enter for {default}): ").strip()
    return value if value else default


def main(config_file=CONFIG_FILE):
    print("🔧 hooklog Configuration Helper")
    print("=" * 40)

    try:
        config = load_config(config_file)
    except ConfigError as e:
        print(f"⚠️  {e}; starting from defaults")
        config = DEFAULT_CONFIG.copy()

    config["host"] = prompt("Enter listen host", config["host"])

    port_input = prompt("Enter listen port", config["port"])
    try:
        config["port"] = parse_port(port_input)
    except ConfigError:
        print(f"Invalid port, using {DEFAULT_PORT}")
        config["port"] = DEFAULT_PORT

    color_input = prompt("Colored output? (y/n)", "y" if config["color"] else "n")
    config["color"] = parse_bool(color_input)

    config = save_config(config, config_file)

    print("\n✨ Configuration complete!")
    print(f"📡 Requests will be logged at: http://{config['host']}:{config['port']}/")
    print("🚀 Start it with: hooklog")


if __name__ == "__main__":
    main()
