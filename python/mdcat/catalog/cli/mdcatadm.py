"""
mdcatadm command-line program for executing catalog administrative tasks.  Generally, this suite of
commands operates directly onto the catalog's backend store rather than going through a web
service, acting with the privileges of a system administrator.
"""
import logging, os, sys

from mdcat.base import def_etc_dir
from mdcat.base.config import ConfigurationException
from mdcat.utils import cli
from mdcat.catalog.cmd import entity, group

description = \
"""execute metadata catalog administrative operations

The subcommands generally operate directly on the catalog database rather than going through a
web service interface.  They act with the privileges of a system administrator.
"""
epilog = None
default_prog_name = "mdcatadm"
default_conf_file = os.path.join(def_etc_dir, "mdcatadm_conf.yml") if def_etc_dir else None

def main(cmdname, args):
    """
    a function that executes the ``mdcatadm`` command-line tool.
    """
    if not cmdname:
        cmdname = default_prog_name

    argparser = cli.define_prog_opts(cmdname, description, epilog)
    mdcat = cli.CLISuite(cmdname, default_conf_file, argparser)

    mdcat.load_subcommand(entity)
    mdcat.load_subcommand(group)

    # execute the command
    mdcat.execute(args)
    return args

if __name__ == "__main__":
    prog = default_prog_name
    try:
        prog = os.path.splitext(os.path.basename(sys.argv[0]))[0]
        main(prog, sys.argv[1:])
        sys.exit(0)
    except cli.CommandFailure as ex:
        logging.getLogger(f"{prog} {ex.cmd}").critical(str(ex))
        sys.exit(ex.stat)
    except ConfigurationException as ex:
        logging.getLogger(prog).critical("Config error: "+str(ex))
        sys.exit(6)
    except Exception as ex:
        logging.getLogger(prog).exception(ex)
        sys.exit(200)
