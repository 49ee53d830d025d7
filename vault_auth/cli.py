"""Command-line interface for vault-auth configuration and providers."""

from __future__ import annotations

import argparse
import sys

from pathlib import Path
from typing import TYPE_CHECKING

from .config import _REDACTED, _SENSITIVE_FIELDS
from .exceptions import VaultAuthException


if TYPE_CHECKING:
    from collections.abc import Sequence

    from .config import VaultAuthSettings


def main(argv: Sequence[str] | None = None) -> int:
    """Run the main CLI entry point.

    Parameters
    ----------
    argv : sequence of str, optional
        Arguments to parse (default: ``sys.argv[1:]``).

    Returns
    -------
    int
        Exit code.
    """
    parser = argparse.ArgumentParser(
        prog="vault-auth",
        description="vault-auth configuration and provider tools",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Show or export configuration",
    )
    config_group = config_parser.add_mutually_exclusive_group()
    config_group.add_argument(
        "--show",
        action="store_true",
        help="Show current configuration",
    )
    config_group.add_argument(
        "--toml",
        action="store_true",
        help="Export configuration as TOML",
    )
    config_group.add_argument(
        "--env",
        action="store_true",
        help="Export configuration as environment variables",
    )
    config_parser.add_argument(
        "--output",
        "-o",
        type=str,
        help="Output file path (default: stdout)",
    )

    # providers command
    subparsers.add_parser(
        "providers",
        help="List enabled identity providers",
    )

    args = parser.parse_args(argv)

    if args.command == "config":
        return handle_config(args)
    if args.command == "providers":
        return handle_providers(args)
    parser.print_help()
    return 0


def handle_config(args: argparse.Namespace) -> int:
    """Handle the config command.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.

    Returns
    -------
    int
        Exit code.
    """
    from .config import VaultAuthSettings

    settings = VaultAuthSettings()

    if args.toml:
        output = settings.to_toml()
    elif args.env:
        output = settings.to_env()
    else:
        output = format_config_show(settings)

    if args.output:
        Path(args.output).write_text(output, encoding="utf-8")
        print(f"Configuration written to {args.output}")
    else:
        print(output)

    return 0


def handle_providers(args: argparse.Namespace) -> int:  # pylint: disable=unused-argument
    """Handle the providers command.

    Returns
    -------
    int
        Exit code; 1 if the configuration cannot be loaded.
    """
    from pydantic import ValidationError

    from .auth.providers import ProviderRegistry
    from .config import VaultAuthSettings

    try:
        registry = ProviderRegistry.from_settings(VaultAuthSettings())
    except (ValidationError, VaultAuthException) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if not len(registry):
        print("No providers enabled.")
        return 0

    for config in registry:
        print(f"{config.id} ({config.name})")
        print(f"  client_id      : {config.client_id or '<not set>'}")
        print(f"  redirect_uri   : {config.redirect_uri}")
        print(f"  authorize      : {config.authorization_endpoint}")
        print(f"  scope          : {config.scope}")
        print(f"  response_type  : {config.response_type}")
        if config.extras.assurance_level:
            print(f"  assurance      : {config.extras.assurance_level}")
    return 0


def format_config_show(settings: VaultAuthSettings) -> str:
    """Format configuration for display.

    Parameters
    ----------
    settings : VaultAuthSettings
        The settings object to format.

    Returns
    -------
    str
        Formatted configuration string.
    """
    lines = ["vault-auth Configuration\n" + "=" * 40 + "\n"]
    lines.append(f"  base_url = {settings.base_url!r}")
    lines.append(f"  enabled_providers = {settings.enabled_providers!r}")

    sections = [
        ("session", settings.session),
        ("storage", settings.storage),
        ("exchange", settings.exchange),
        ("log", settings.log),
    ]

    for section_name, section in sections:
        lines.append("")
        lines.append(f"[{section_name}]")
        for field, value in section.model_dump(exclude=_SENSITIVE_FIELDS).items():
            lines.append(f"  {field} = {value!r}")
        lines.extend(
            f"  {rn} = '{_REDACTED}'"
            for rn in sorted(_SENSITIVE_FIELDS & type(section).model_fields.keys())
        )

    return "\n".join(lines)


if __name__ == "__main__":
    sys.exit(main())
