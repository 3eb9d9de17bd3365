"""
the command-line framework behind ``mdcatadm``.  The program is a :py:class:`CLISuite` made of
command suites (``entity``, ``group``), each a :py:class:`CommandSuite` holding the subcommands that
do the work.

Every command (suite or subcommand) is a module that defines:

``default_name``
    the name the command is invoked by on the command line
``help``
    a one-line summary listed in the enclosing command's help
``description``
    a longer summary shown in the command's own help
``load_into(subparser, as_cmd)``
    defines the command's arguments into ``subparser``; a suite returns the :py:class:`CommandSuite`
    holding its subcommands, a subcommand returns None
``execute(args, config, log)``
    carries out a subcommand
"""
import os, sys, logging
from argparse import ArgumentParser, HelpFormatter

from mdcat.base.config import ConfigurationException
from mdcat.base import config as cfgmod

# exit statuses set by this module; commands also use 1 (the catalog refused the request) and
# 9 (the actor lacks permission)
USAGE_ERROR = 2
CONFIG_ERROR = 6
UNKNOWN_SUBCMD = 10

_CMD_HELP = "Run '%(prog)s CMD -h' to see the options for CMD."

# options accepted ahead of any mdcatadm command
_PROG_OPTIONS = [
    (("-w", "--workdir"), dict(dest="workdir", type=str, metavar="DIR", default="",
                               help="resolve relative paths, including the log file and a file-based "
                                    "store, against DIR (default: the current directory)")),
    (("-c", "--config"), dict(dest="conf", type=str, metavar="FILE",
                              help="read the catalog configuration from FILE")),
    (("-l", "--logfile"), dict(dest="logfile", type=str, metavar="FILE",
                               help="log to FILE within the working directory instead of the "
                                    "configured log file")),
    (("-q", "--quiet"), dict(action="store_true", dest="quiet",
                             help="print nothing to standard error")),
    (("-D", "--debug"), dict(action="store_true", dest="debug",
                             help="record DEBUG messages in the log file")),
    (("-v", "--verbose"), dict(action="store_true", dest="verbose",
                               help="echo log messages to the terminal as well")),
    (("-A", "--actor-id"), dict(dest="actor", type=str, metavar="USERID",
                                help="the identity of the person running the command; it is recorded "
                                     "as the editor of versions the command changes"))
]

class _ParagraphFormatter(HelpFormatter):
    # rewrap each blank-line-separated paragraph on its own
    def _fill_text(self, text, width, indent):
        return "\n\n".join(super(_ParagraphFormatter, self)._fill_text(p, width, indent)
                           for p in text.split("\n\n"))

def _prepend_epilog(parser, text):
    parser.epilog = text + "\n\n" + parser.epilog if parser.epilog else text

def define_prog_opts(progname, description=None, epilog=None, parser=None):
    """
    return an ArgumentParser that accepts the options common to all mdcatadm commands
    :param str progname:    the program name to display in help
    :param str description: the summary shown before the options
    :param str epilog:      text shown after the options
    :param ArgumentParser parser:  a parser to add the options to instead of creating a new one
    """
    if not parser:
        parser = ArgumentParser(progname, None, description, epilog,
                                formatter_class=_ParagraphFormatter)
    _prepend_epilog(parser, _CMD_HELP)

    for flags, kw in _PROG_OPTIONS:
        parser.add_argument(*flags, **kw)
    return parser

class CommandFailure(Exception):
    """
    a command could not be completed; the program should exit with the status given by ``stat``.
    ``cmd`` names the failed command, growing into the full command path (e.g. "group create") as
    the failure passes up through the enclosing suites.
    """

    def __init__(self, cmdname, message, exstat=1, cause=None):
        if not message:
            message = str(cause) if cause else "Unknown command failure"
        super(CommandFailure, self).__init__(message)
        self.stat = exstat
        self.cmd = cmdname
        self.cause = cause

class CommandSuite(object):
    """
    a set of subcommands selected by name from the command line
    """

    def __init__(self, suitename, parser, dest=None, title="subcommands"):
        """
        :param str suitename:  the name of the command that this suite implements
        :param ArgumentParser parser:  the parser for that command; the subcommands are added to it
        :param str dest:       the attribute of the parsed arguments that records the chosen
                               subcommand (default: ``suitename`` + "_subcmd")
        """
        self.suitename = suitename
        self.parser = parser
        self._dest = dest or suitename+"_subcmd"
        self._subparser_src = parser.add_subparsers(title=title, dest=self._dest) if parser else None
        self._cmds = {}

    def load_subcommand(self, cmdmod, cmdname=None):
        """
        add a command to this suite
        :param module cmdmod:  the command (see the module documentation for what it must provide)
        :param str   cmdname:  the name to invoke it by (default: ``cmdmod.default_name``)
        """
        if not hasattr(cmdmod, "load_into"):
            raise ValueError("command module/object has no load_into() function: " + repr(cmdmod))
        if not cmdname:
            cmdname = cmdmod.default_name

        subparser = self._subparser_src.add_parser(cmdname, help=cmdmod.help,
                                                   description=getattr(cmdmod, "description", None),
                                                   formatter_class=_ParagraphFormatter)
        self._cmds[cmdname] = cmdmod.load_into(subparser, cmdname) or cmdmod
        if subparser._subparsers is not None:
            _prepend_epilog(subparser, _CMD_HELP)

    def _run(self, cmdname, args, config, log):
        cmd = self._cmds.get(cmdname)
        if cmd is None:
            raise CommandFailure(self.suitename, "Unrecognized subcommand of %s: %s" %
                                 (self.suitename, cmdname), UNKNOWN_SUBCMD)
        try:
            return cmd.execute(args, config, log.getChild(cmdname))
        except CommandFailure as ex:
            ex.cmd = cmdname+" "+ex.cmd if ex.cmd and ex.cmd != cmdname else cmdname
            raise
        except ConfigurationException as ex:
            raise CommandFailure(cmdname, "Configuration error: "+str(ex), CONFIG_ERROR, ex)

    def execute(self, args, config=None, log=None):
        """
        run the subcommand named in the parsed arguments
        """
        if not log:
            log = logging.getLogger(self.suitename)
        return self._run(getattr(args, self._dest), args, config, log)

class CLISuite(CommandSuite):
    """
    the top of a command-line program, which prepares the configuration and logging before running
    the requested command.
    """

    def __init__(self, progname, defconffile=None, parser=None):
        """
        :param str progname:     the program's name
        :param str defconffile:  the configuration file to load when ``--config`` is not given
        :param ArgumentParser parser:  a parser already set up via :py:func:`define_prog_opts`
        """
        if not parser:
            parser = define_prog_opts(progname)
        super(CLISuite, self).__init__(progname, parser, "cmd", "commands")
        self._defconffile = defconffile

    def parse_args(self, args):
        return self.parser.parse_args(args)

    def load_config(self, args):
        """
        return the configuration named by ``--config`` or, failing that, the default configuration
        file if it exists.
        """
        if args.conf:
            return cfgmod.load_from_file(args.conf)
        if self._defconffile and os.path.isfile(self._defconffile):
            return cfgmod.load_from_file(self._defconffile)
        return {}

    def configure_log(self, args, config):
        """
        send log messages to the log file and, unless ``--quiet``, to standard error.  The
        ``logfile`` and ``logdir`` parameters are filled into ``config``.
        """
        workdir = config.get('working_dir', os.getcwd())
        if args.logfile:
            config['logfile'] = os.path.join(workdir, args.logfile)
        else:
            config.setdefault('logfile', self.suitename + ".log")
        config.setdefault('logdir', workdir)
        cfgmod.configure_log(level=(args.debug and logging.DEBUG) or cfgmod.NORMAL, config=config)

        if not args.quiet:
            handler = logging.StreamHandler(sys.stderr)
            if args.verbose:
                handler.setLevel((args.debug and logging.DEBUG) or cfgmod.NORMAL)
                handler.setFormatter(logging.Formatter("%(name)s %(levelname)s: %(message)s"))
            else:
                handler.setLevel(logging.INFO)
                handler.setFormatter(logging.Formatter(self.suitename+" %(levelname)s: %(message)s"))
            logging.getLogger().addHandler(handler)

        log = logging.getLogger("cli."+self.suitename)
        log.setLevel(cfgmod.NORMAL)
        if args.verbose:
            log.info("FYI: Writing log messages to %s", cfgmod.global_logfile)
        return log

    def _set_working_dir(self, args, config):
        if args.workdir:
            args.workdir = os.path.abspath(args.workdir)
            if not os.path.isdir(args.workdir):
                raise CommandFailure(args.cmd, "Working dir is not an existing directory: "+args.workdir,
                                     USAGE_ERROR)
            config['working_dir'] = args.workdir
        else:
            config['working_dir'] = os.path.abspath(config.get('working_dir', os.getcwd()))

    def execute(self, args, config=None):
        """
        run the command given on the command line
        :param list|Namespace args:  the program arguments, either as a list of strings or
                                     already parsed
        :param dict config:   the configuration to use in place of the one named by the arguments
        """
        cmdline = None
        if isinstance(args, list):
            cmdline = args
            args = self.parse_args(args)
        if args.cmd not in self._cmds:
            raise CommandFailure(args.cmd, "Unrecognized command: "+str(args.cmd), USAGE_ERROR)

        if config is None:
            try:
                config = self.load_config(args)
            except ConfigurationException as ex:
                raise CommandFailure(args.cmd, "Configuration error: "+str(ex), CONFIG_ERROR, ex)
        self._set_working_dir(args, config)

        log = self.configure_log(args, config)
        if cmdline:
            log.log(cfgmod.NORMAL, "Executing: %s %s", self.suitename, " ".join(cmdline))
        return self._run(args.cmd, args, config, log)
