"""
base classes and utilities shared by all the mdcat subsystems: a common exception base class, a
mixin for identifying the system a component belongs to, and (via :py:mod:`mdcat.base.config`)
configuration handling.
"""
import os
from pathlib import Path

try:
    from .version import __version__
except ImportError:
    __version__ = "(unset)"

__all__ = [ "MDCatException", "SystemInfoMixin", "config", "find_etc_dir", "def_etc_dir" ]

class MDCatException(Exception):
    """
    a base class for all exceptions raised by mdcat components.  An exception can optionally
    carry the underlying exception that caused it (via ``cause``) and the identity of the system
    component that raised it (via ``sys``).
    """

    def __init__(self, message=None, cause: Exception=None, sys=None):
        """
        create the exception
        :param str message:     the description of the problem; if not provided, the message from
                                ``cause`` will be used.
        :param Exception cause: the exception caught that led to this exception being raised
        :param SystemInfoMixin sys:  the system component that raised this exception
        """
        if not message:
            if cause:
                message = str(cause)
            else:
                message = "Unknown mdcat error"
        super(MDCatException, self).__init__(message)
        self.cause = cause
        self.system = sys

class SystemInfoMixin(object):
    """
    a mixin that provides information about the system and subsystem that a class is a part of.
    This information is used, for example, to name loggers.
    """

    def __init__(self, sysname, sysabbrev, subsysname, subsysabbrev, version):
        self._sysname = sysname
        self._sysabbrev = sysabbrev
        self._subsysname = subsysname
        self._subsysabbrev = subsysabbrev
        self._sysvers = version

    @property
    def system_name(self):
        return self._sysname

    @property
    def system_abbrev(self):
        return self._sysabbrev

    @property
    def subsystem_name(self):
        return self._subsysname

    @property
    def subsystem_abbrev(self):
        return self._subsysabbrev

    @property
    def system_version(self):
        return self._sysvers

def find_etc_dir(config=None):
    """
    return the path to the etc directory containing mdcat configuration files, or None if it
    cannot be found.  The ``etc_dir`` configuration parameter takes precedence, followed by the
    ``etc`` subdirectory of the directory given by the ``MDCAT_HOME`` environment variable.
    Otherwise, locations relative to this module are tried.
    """
    from .config import ConfigurationException

    def assert_exists(dir, ctxt=""):
        if not os.path.exists(dir):
            raise ConfigurationException("{0}directory does not exist: {1}".format(ctxt, dir))

    if config and 'etc_dir' in config:
        assert_exists(config['etc_dir'], "config param 'etc_dir' ")
        return config['etc_dir']

    if 'MDCAT_HOME' in os.environ:
        assert_exists(os.environ['MDCAT_HOME'], "env var MDCAT_HOME ")
        candidates = [Path(os.environ['MDCAT_HOME']) / 'etc']

    else:
        # installed under {root}/lib/pythonX.Y/site-packages or used from {root}/python
        parents = Path(__file__).resolve().parents
        candidates = [parents[i] / "etc" for i in (5, 3) if i < len(parents)]

    for dir in candidates:
        if dir.exists():
            return str(dir)

    return None

def_etc_dir = find_etc_dir()
