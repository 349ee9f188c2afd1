#  techgen
#  Build a GDS3D techfile from a KLayout layer properties file and a technology LEF.
#
#  See LICENSE for licence details.

import argparse
import json
import sys
from typing import List, Optional

from techgen.driver import TechgenDriver, TechgenDriverOptions
from techgen.exceptions import TechgenError
from techgen.logging import TechgenLogging
from techgen.utils import get_or_else


def run(args: argparse.Namespace) -> int:
    """
    Run techgen with parsed arguments.

    :return: Exit code: 0 on success, 1 if an input could not be read or the
             settings are invalid. No output file is written on failure.
    """
    log = TechgenLogging.context("techgen")

    overrides = {}
    if args.lyp is not None:
        overrides["techgen.inputs.lyp"] = args.lyp
    if args.lef is not None:
        overrides["techgen.inputs.lef"] = args.lef
    if args.output is not None:
        overrides["techgen.output"] = args.output

    options = TechgenDriverOptions(project_configs=get_or_else(args.configs, []), log_file=args.log)
    try:
        driver = TechgenDriver(options, overrides)
    except (OSError, TechgenError) as e:
        log.fatal("Could not set up techgen: {e}".format(e=e))
        return 1

    try:
        if args.dump_stackup:
            stack = driver.build_stackup()
            print(json.dumps(stack.model_dump(), indent=4))
        else:
            driver.run()
    except (OSError, TechgenError) as e:
        log.fatal(str(e))
        return 1
    finally:
        driver.close()
    return 0


def main(args: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Build a GDS3D techfile from a KLayout .lyp file and a tech LEF.")

    parser.add_argument("-p", "--project_config", action='append', dest="configs", type=str,
                        help='Project config files (.yml or .json), later files take precedence.')
    parser.add_argument("--lyp", required=False, type=str,
                        help='KLayout layer properties file (overrides techgen.inputs.lyp).')
    parser.add_argument("--lef", required=False, type=str,
                        help='Technology LEF file (overrides techgen.inputs.lef).')
    parser.add_argument("-o", "--output", required=False, type=str,
                        help='Techfile to write (overrides techgen.output).')
    parser.add_argument("-l", "--log", required=False, type=str,
                        help='Also append log messages to this file.')
    parser.add_argument("--dump-stackup", dest="dump_stackup", action='store_true', default=False,
                        help='Print the merged layer stack as JSON instead of writing the techfile.')

    sys.exit(run(parser.parse_args(args)))
