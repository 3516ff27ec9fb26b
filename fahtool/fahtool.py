#!/usr/bin/env python3
import os
import sys
import codecs
from pathlib import Path
from argparse import ArgumentParser, ArgumentTypeError

from .fah import (
    FormatError, OpenFailed, fah_hash,
    create_csv_list, unpack_file_archive, unpack_bin_archive,
)


def text_encoding(value):
    try:
        return codecs.lookup(value).name
    except LookupError:
        raise ArgumentTypeError("unknown encoding: %s" % value) from None

class CommandParser(ArgumentParser):
    # usage errors exit 1, not argparse's 2
    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, "%s: error: %s\n" % (self.prog, message))

argparser = CommandParser(prog="fahtool", description="File Archive (FAH/FAI/FAB) tool")
commands = argparser.add_mutually_exclusive_group(required=True)
commands.add_argument("-csv", nargs=3, type=Path, metavar=("DATA.FAI", "DATA.FAB", "CSV"),
                      help="Create CSV File info list")
commands.add_argument("-ufab", nargs=3, type=Path, metavar=("DATA.FAI", "DATA.FAB", "DIR"),
                      help="Unpack File Archive")
commands.add_argument("-ubin", nargs=2, type=Path, metavar=("FILE.BIN", "DIR"),
                      help="Unpack FAH bin File")
commands.add_argument("-hash", nargs=1, metavar="TEXT",
                      help="Print the name hash of TEXT")
argparser.add_argument("--encoding", default="utf-8", type=text_encoding,
                       help="text encoding of archived names (default: %(default)s)")
argparser.add_argument("--verify", action="store_true",
                       help="with -ufab or -ubin, report entries whose stored hash does not match their name")


def run_csv(args):
    fai, fab, out = args.csv
    create_csv_list(fai, fab, out, args.encoding)
    return 0

def run_ufab(args):
    fai, fab, out = args.ufab
    result = unpack_file_archive(fai, fab, out, args.encoding, args.verify)
    return 1 if result.failed else 0

def run_ubin(args):
    fah, out = args.ubin
    result = unpack_bin_archive(fah, out, args.encoding, args.verify)
    return 1 if result.failed else 0

def run_hash(args):
    print("Hash: 0x%x" % fah_hash(os.fsencode(args.hash[0])))
    return 0


def main(argv=None):
    args = argparser.parse_args(argv)
    if args.verify and not (args.ufab or args.ubin):
        argparser.error("--verify only applies to -ufab and -ubin")

    handlers = {
        "csv": run_csv,
        "ufab": run_ufab,
        "ubin": run_ubin,
        "hash": run_hash,
    }
    command = next(name for name in handlers if getattr(args, name) is not None)

    try:
        return handlers[command](args)
    except OpenFailed as e:
        sys.stderr.write("Failed to open files: %s\n" % e)
    except FormatError as e:
        sys.stderr.write("Not a valid FAH file: %s\n" % e)
    return 1

if __name__ == "__main__":
    sys.exit(main())
