"""
Main CLI entry point for vestledger.
"""

import sys

from vestledger.cli.ledger_commands import cli


def main():
    """Main CLI entry point"""
    return cli(obj={})


if __name__ == "__main__":
    sys.exit(main() or 0)
