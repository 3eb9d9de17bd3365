#! /usr/bin/env python3
"""
execute metadata catalog administrative operations.

Execute this script with the -h option to display the list of commands and options.
"""
import sys, os, logging, traceback as tb
from mdcat.utils.cli import CommandFailure
from mdcat.catalog.cli import mdcatadm

prog = os.path.basename(sys.argv[0])
if prog.endswith('.py'):
    prog = prog[:-(len('.py'))]

def err(msg):
    rootlog = logging.getLogger()
    if rootlog.handlers:
        rootlog.critical(msg)
    else:
        if prog:
            sys.stderr.write(prog)
            sys.stderr.write(": ")
        sys.stderr.write(msg)
        sys.stderr.write("\n")

try:

    mdcatadm.main(prog, sys.argv[1:])

except CommandFailure as ex:
    err("%s: %s" % (ex.cmd, str(ex)))
    sys.exit(ex.stat)

except Exception as ex:
    # unexpected failure
    tb.print_exc()
    err(str(ex))
    sys.exit(1)
