import argparse

from cattlegrowth.cli.fit_cli import add_fit_subcommand
from cattlegrowth.cli.check_cli import add_check_subcommand
from cattlegrowth.cli.synth_cli import add_synth_subcommand


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="cattlegrowth",
        description="Cattle growth curves: data checks + Brody / Von Bertalanffy / Logistic fits per breed group",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    add_fit_subcommand(sub)
    add_check_subcommand(sub)
    add_synth_subcommand(sub)

    args = parser.parse_args(argv)
    return args._fn(args)  # each subcommand sets a handler


if __name__ == "__main__":
    raise SystemExit(main())
