"""
Locate and decode manifest descriptors

A manifest is a small JSON document written next to a log archive:
    {
        "TimeEpoch": 1700000000,
        "TimeRFC3339": "2023-11-14T22:13:20Z",
        "SHA": "<full commit hash>",
        "ShortSHA": "<abbreviated hash>",
        "FileName": "<archive name relative to the logs directory>",
        "RepoHost": "<source host>",
        "RepoPath": "<source path>"
    }
Missing fields are accepted and decode to zero values
"""

# core modules
import collections
import fnmatch
import json
import os

# installed modules

# local modules
import config
import util

# globals
logger = util.init_logger(__name__, config.get_log_level())

INT64_MIN = -2**63
INT64_MAX = 2**63 - 1

FIELDS = (
    # json key          attribute           type    zero value
    ("TimeEpoch",       "time_epoch",       int,    0),
    ("TimeRFC3339",     "time_rfc3339",     str,    ""),
    ("SHA",             "sha",              str,    ""),
    ("ShortSHA",        "short_sha",        str,    ""),
    ("FileName",        "file_name",        str,    ""),
    ("RepoHost",        "repo_host",        str,    ""),
    ("RepoPath",        "repo_path",        str,    ""),
)

ManifestRecord = collections.namedtuple(
    "ManifestRecord",
    [attr for _, attr, _, _ in FIELDS] + ["source"],
    defaults=[zero for _, _, _, zero in FIELDS] + [None],
)


class ManifestError(Exception):
    """ Base class for manifest failures """


class ManifestScanError(ManifestError):
    """ Directory could not be traversed """


class ManifestReadError(ManifestError):
    """ Manifest file could not be read """


class ManifestDecodeError(ManifestError):
    """ Manifest content is not a compatible JSON object """


def find_manifests(root, pattern="manifest_*.json", strict=True, log=None):
    """
    Recursively collect files whose base name matches pattern
    Directories are traversed in lexical order but never returned
    Args:
        root (str): directory to search
        pattern (str): base name glob (case sensitive)
        strict (bool): abort on the first unreadable directory
        log: (optional) logger, defaults to module logger
    Returns:
        list: matching file paths
    Raises:
        ManifestScanError: directory could not be read (strict only)
    """
    log = log or logger

    def onerror(e):
        if strict:
            raise ManifestScanError(
                "Unable to scan '%s' for manifests.  %s: %s"
                % (root, type(e).__name__, e)
            ) from e
        log.warning(
            "Skipping unreadable directory '%s'.  %s: %s"
            % (e.filename, type(e).__name__, e)
        )

    matches = []
    for dir_path, dir_names, file_names in os.walk(root, onerror=onerror):
        dir_names.sort()
        for name in sorted(file_names):
            if fnmatch.fnmatchcase(name, pattern):
                matches.append(os.path.join(dir_path, name))

    log.debug(
        "%s manifest(s) matching '%s' found under '%s'"
        % (len(matches), pattern, root)
    )
    return matches


def _lookup(document, key):
    """
    Retrieve value for key; exact match preferred, case-insensitive otherwise
    Returns:
        tuple: (found, value)
    """
    if key in document:
        return True, document[key]
    folded = key.casefold()
    for candidate, value in document.items():
        if candidate.casefold() == folded:
            return True, value
    return False, None


def parse_manifest(data, source=None):
    """
    Decode manifest content into a ManifestRecord
    Args:
        data (str|bytes): JSON document
        source (str): (optional) originating path, retained on the record
    Returns:
        ManifestRecord
    Raises:
        ManifestDecodeError: malformed or incompatible structure
    """
    error_msg = "Unable to decode manifest '%s'" % source

    try:
        document = json.loads(data)
    except ValueError as e:
        raise ManifestDecodeError(
            "Invalid JSON.  %s: %s.  %s"
            % (type(e).__name__, e, error_msg)
        ) from e

    if not isinstance(document, dict):
        raise ManifestDecodeError(
            "JSON object required, %s provided.  %s"
            % (type(document).__name__, error_msg)
        )

    values = {}
    for key, attr, kind, zero in FIELDS:
        found, value = _lookup(document, key)
        if not found or value is None:
            values[attr] = zero
            continue
        # bool is an int subclass but not a JSON number
        if kind is int and (isinstance(value, bool) or not isinstance(value, int)):
            raise ManifestDecodeError(
                "Field '%s' requires an integer: (%s, %r).  %s"
                % (key, type(value).__name__, value, error_msg)
            )
        if kind is int and not INT64_MIN <= value <= INT64_MAX:
            raise ManifestDecodeError(
                "Field '%s' overflows a 64-bit integer: %s.  %s"
                % (key, value, error_msg)
            )
        if kind is str and not isinstance(value, str):
            raise ManifestDecodeError(
                "Field '%s' requires a string: (%s, %r).  %s"
                % (key, type(value).__name__, value, error_msg)
            )
        values[attr] = value

    return ManifestRecord(source=source, **values)


def decode_manifest(path):
    """
    Read manifest file and decode it
    Args:
        path (str): manifest file path
    Returns:
        ManifestRecord
    Raises:
        ManifestReadError: failed to read file
        ManifestDecodeError: malformed or incompatible structure
    """
    try:
        with open(path, "rb") as rf:
            data = rf.read()
    except OSError as e:
        raise ManifestReadError(
            "Unable to read manifest '%s'.  %s: %s"
            % (path, type(e).__name__, e)
        ) from e
    return parse_manifest(data, source=path)


def load_manifests(paths, log=None):
    """
    Decode each manifest, skipping files which fail
    Args:
        paths (list): manifest file paths
        log: (optional) logger, defaults to module logger
    Returns:
        list: ManifestRecord objects, in input order
    """
    log = log or logger
    records = []
    for path in paths:
        try:
            records.append(decode_manifest(path))
        except ManifestError as e:
            log.warning(
                "Skipping manifest '%s'.  %s: %s"
                % (path, type(e).__name__, e)
            )
    return records
