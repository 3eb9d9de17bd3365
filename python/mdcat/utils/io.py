"""
reading and writing the JSON record files of the file-based catalog store.

A record file is never rewritten in place:  new content goes to a temporary file in the same
directory that then replaces the record in one step, so a reader always sees either the old or the
new record in full.
"""
import json, os, tempfile

__all__ = [ 'read_json', 'write_json' ]

TMP_SUFFIX = ".tmp"

def read_json(jsonfile):
    """
    return the JSON data in the given file
    :raises OSError:     if the file cannot be read
    :raises ValueError:  if the file does not contain legal JSON
    """
    with open(jsonfile) as fd:
        return json.load(fd)

def write_json(jsdata, destfile, indent=4):
    """
    save data as formatted JSON into the given file, replacing its current contents.  If writing
    fails, the file is left unchanged.

    :param jsdata:        the JSON-serializable data to save
    :param str destfile:  the file to write to; its directory must exist
    :param int   indent:  the number of spaces per level of indentation
    :raises OSError:      if the data could not be written
    :raises TypeError:    if the data is not serializable as JSON
    """
    dirname, basename = os.path.split(os.path.abspath(destfile))
    fd, tmpfile = tempfile.mkstemp(suffix=TMP_SUFFIX, prefix="."+basename+".", dir=dirname)
    try:
        with os.fdopen(fd, 'w') as fo:
            json.dump(jsdata, fo, indent=indent, separators=(',', ': '))
        os.replace(tmpfile, destfile)
    except Exception:
        os.remove(tmpfile)
        raise
