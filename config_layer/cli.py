"""
CLI commands for inspecting resolved configuration.
"""
import json
import sys

import click

from logging_layer import configure_logging

from .engine import ConfigEngine
from .environment import ENVIRONMENT_OVERRIDE_KEY, ProcessEnvironment, parse_override_args
from .errors import ConfigKeyNotFoundError
from .secrets import SecretResolver
from .sources import FilesystemPropertyLoader
from .vault import vault_from_environment


def build_engine(config_dir, defines, env=None) -> ConfigEngine:
    """Build an engine from command line options."""
    overrides = parse_override_args(defines)
    if env:
        overrides[ENVIRONMENT_OVERRIDE_KEY] = env
    environment = ProcessEnvironment(overrides=overrides)
    resolver = SecretResolver(environment, vault=vault_from_environment(environment))
    return ConfigEngine(
        loader=FilesystemPropertyLoader(config_dir),
        environment=environment,
        secret_resolver=resolver,
    )


@click.group()
@click.option('--config-dir', default='config', show_default=True, help='Directory holding property sources')
@click.option('--define', '-D', 'defines', multiple=True, metavar='KEY=VALUE', help='Process-level override')
@click.option('--env', default=None, help='Environment name (overrides -D env=...)')
@click.option('--log-level', default='WARNING', show_default=True,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False))
@click.pass_context
def cli(ctx, config_dir, defines, env, log_level):
    """Configuration resolution commands."""
    configure_logging(level=log_level)
    try:
        ctx.obj = build_engine(config_dir, defines, env)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='--define')


@cli.command('get')
@click.argument('key')
@click.option('--default', 'default', default=None, help='Value to print when the key is missing')
@click.pass_obj
def get_command(engine, key, default):
    """Resolve a single key."""
    try:
        if default is not None:
            click.echo(engine.get(key, default))
        else:
            click.echo(engine.get(key))
    except ConfigKeyNotFoundError as e:
        click.echo(f"[-] {e}", err=True)
        sys.exit(1)


@cli.command('env')
@click.pass_obj
def env_command(engine):
    """Show the active environment name."""
    click.echo(engine.get_environment_name())


@cli.command('dump')
@click.option('--format', 'fmt', type=click.Choice(['yaml', 'json']), default='yaml', show_default=True)
@click.option('--include-sensitive', is_flag=True, help='Do not redact sensitive values')
@click.pass_obj
def dump_command(engine, fmt, include_sensitive):
    """Print the merged property table."""
    click.echo(engine.export_config(format=fmt, include_sensitive=include_sensitive))


@cli.command('status')
@click.pass_obj
def status_command(engine):
    """Show engine and source status as JSON."""
    engine.initialize()
    click.echo(json.dumps(engine.get_status(), indent=2, default=str))


@cli.command('secret-check')
@click.argument('key')
@click.pass_obj
def secret_check_command(engine, key):
    """Report whether a secret resolves, without printing it."""
    if engine.secret_resolver.has_secret(key):
        click.echo(f"[+] Secret available: {key}")
    else:
        click.echo(f"[-] Secret not found: {key}")
        sys.exit(1)


def main():
    cli(prog_name='autoconf')


if __name__ == '__main__':
    main()
