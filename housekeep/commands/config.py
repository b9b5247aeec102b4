import click
from housekeep.config import get_config_path, get_default_config, load_config, save_config
from housekeep.exit_codes import ConfigError
from housekeep.cli_utils import handle_errors
import json


@click.group("config")
def config_cmd():
    """Configuration management commands."""
    pass


@config_cmd.command("show")
@click.option("--pretty", is_flag=True, help="Display as formatted JSON instead of single-line JSONL")
def show_config(pretty):
    """Show the current configuration with all merges applied.

    By default, outputs single-line JSON (JSONL format).
    Use --pretty for human-readable formatted output.
    """
    config = load_config()

    if pretty:
        print(json.dumps(config, indent=2, ensure_ascii=False))
    else:
        print(json.dumps(config, ensure_ascii=False))


@config_cmd.command("path")
def show_path():
    """Show the config file path being used."""
    config_path = get_config_path()
    print(json.dumps({"config_path": str(config_path), "exists": config_path.exists()}))


@config_cmd.command("init")
@click.option("--format", "fmt", type=click.Choice(["json", "toml", "yaml"]), default="json",
              help="File format of the new config")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@handle_errors
def init_config(fmt, force):
    """Write the default configuration to ~/.housekeep/."""
    current = get_config_path()
    target = current.with_name(f"config.{fmt}")

    if target.exists() and not force:
        raise ConfigError(f"Configuration already exists at {target} (use --force to overwrite)")

    try:
        path = save_config(get_default_config(), target)
    except OSError as e:
        raise ConfigError(f"Could not write {target}: {e}")
    click.echo(f"Configuration written to {path}")
