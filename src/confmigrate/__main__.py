"""
Main entry point for confmigrate.

Usage: python -m confmigrate <command> [options]
"""

from confmigrate.cli.commands import cli


def main():
    """Main entry point for the confmigrate CLI; options also read CONFMIGRATE_* variables."""
    cli(auto_envvar_prefix="CONFMIGRATE")


if __name__ == "__main__":
    main()
