from hookguard.cli.main import cli

__all__ = ["cli"]
