"""
utilities for loading and merging configuration data and for setting up logging according to
a configuration.

Configuration data is a nested dictionary, usually read from a YAML or JSON file.  Components
are typically handed the portion of the configuration that applies to them, and factories merge
client-specific parameters over their own defaults with :py:func:`merge_config`.
"""
import os, json, logging
from collections.abc import Mapping
from copy import deepcopy

import yaml

from . import MDCatException

NORMAL = 15     # a log level between DEBUG and INFO
logging.addLevelName(NORMAL, "NORMAL")

global_logdir = None
global_logfile = None
_log_handler = None

class ConfigurationException(MDCatException):
    """
    an exception indicating that configuration data is missing or otherwise incorrect
    """

    def __init__(self, message=None, cause: Exception=None, sys=None):
        if not message:
            message = "Configuration error"
        super(ConfigurationException, self).__init__(message, cause, sys)

def merge_config(primary: Mapping, defaults: Mapping) -> Mapping:
    """
    deep-merge two configuration dictionaries, returning the result.  Values in ``primary``
    override those in ``defaults``; where both contain a dictionary under the same key, the
    dictionaries are merged recursively.  Neither input is modified.

    :param dict primary:   the configuration whose values take precedence
    :param dict defaults:  the configuration supplying values not found in ``primary``
    :rtype: dict
    """
    out = deepcopy(defaults) if defaults else {}
    for key, val in (primary or {}).items():
        if isinstance(val, Mapping) and isinstance(out.get(key), Mapping):
            out[key] = merge_config(val, out[key])
        else:
            out[key] = deepcopy(val)
    return out

def load_from_file(configfile: str) -> Mapping:
    """
    read configuration data from a file.  Files with a ``.json`` extension are parsed as JSON;
    all others are parsed as YAML.

    :raises ConfigurationException:  if the file cannot be read or parsed
    """
    try:
        with open(configfile) as fd:
            if configfile.endswith(".json"):
                data = json.load(fd)
            else:
                data = yaml.safe_load(fd)
    except (OSError, ValueError, yaml.YAMLError) as ex:
        raise ConfigurationException("%s: unable to load configuration: %s" % (configfile, str(ex)),
                                     cause=ex) from ex

    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigurationException("%s: configuration is not an object/dictionary" % configfile)
    return data

def configure_log(logfile: str=None, level: int=None, format: str=None, config: Mapping=None,
                  addstderr=False):
    """
    set up the root logger to write messages to a file.  The file and level can be given directly
    or via the ``logfile``, ``logdir`` and ``loglevel`` configuration parameters.  A relative
    ``logfile`` is taken to be relative to ``logdir``.

    :param str logfile:  the path to the log file
    :param int   level:  the minimum level of messages to record (default: NORMAL)
    :param str  format:  the log message format
    :param dict config:  configuration data that may include ``logfile``, ``logdir``, and ``loglevel``
    :param bool addstderr:  if True, also send messages to standard error
    """
    global global_logdir, global_logfile, _log_handler
    if not config:
        config = {}

    if not logfile:
        logfile = config.get('logfile', 'mdcat.log')
    if not os.path.isabs(logfile):
        global_logdir = config.get('logdir', os.getcwd())
        logfile = os.path.join(global_logdir, logfile)
    else:
        global_logdir = os.path.dirname(logfile)
    global_logfile = logfile

    if level is None:
        level = config.get('loglevel', NORMAL)
    if not format:
        format = config.get('logformat', "%(asctime)s %(name)s %(levelname)s: %(message)s")

    rootlog = logging.getLogger()
    if _log_handler:
        rootlog.removeHandler(_log_handler)
        _log_handler.close()
    _log_handler = logging.FileHandler(logfile)
    _log_handler.setLevel(level)
    _log_handler.setFormatter(logging.Formatter(format))
    rootlog.addHandler(_log_handler)
    rootlog.setLevel(min(level, rootlog.level or level))

    if addstderr:
        handler = logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(format))
        rootlog.addHandler(handler)
