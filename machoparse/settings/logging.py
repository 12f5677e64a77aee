import argparse
import logging


def argparse_add_logging_args(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--debug",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Print debug information while decoding",
    )


def argparse_parse_logging(args: argparse.Namespace):
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )
