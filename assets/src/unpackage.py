"""
Utilities for decompressing and exploding log archives

Supported layouts, dispatched by file extension:
    .xz     single xz stream, typically wrapping a tar
    .gz     gzip compressed tar stream
    .tar    uncompressed tar stream

Every strategy funnels into extract_members() which walks a tar stream
in stored order and writes directories and regular files beneath dst

References:
https://docs.python.org/3/library/tarfile.html
https://docs.python.org/3/library/lzma.html
https://docs.python.org/3/library/gzip.html
"""

# core modules
import enum
import gzip
import lzma
import os.path
import shutil
import tarfile
import zlib

# installed modules
import magic

# local modules
import config
import util

# globals
logger = util.init_logger(__name__, config.get_log_level())

# failures raised while pulling bytes through a decompression layer
READ_ERRORS = (OSError, EOFError, tarfile.TarError, zlib.error, lzma.LZMAError)


class ArchiveKind(enum.Enum):
    XZ = "xz"
    TAR_GZIP = "tar.gz"
    TAR = "tar"
    UNSUPPORTED = "unsupported"

    @property
    def mimetypes(self):
        """ python-magic mime types expected for this kind """
        return MIMETYPES[self]


EXTENSIONS = {
    # lowercase extension   :   kind
    ".xz"                   :   ArchiveKind.XZ,
    ".gz"                   :   ArchiveKind.TAR_GZIP,
    ".tar"                  :   ArchiveKind.TAR,
}

MIMETYPES = {
    ArchiveKind.XZ          :   ("application/x-xz",),
    ArchiveKind.TAR_GZIP    :   ("application/gzip", "application/x-gzip"),
    ArchiveKind.TAR         :   ("application/x-tar",),
    ArchiveKind.UNSUPPORTED :   (),
}


class ExpansionError(RuntimeError):
    """
    Base class for archive expansion failures
    Retains source and destination for reporting
    """
    def __init__(self, msg, src=None, dst=None):
        super().__init__(msg)
        self.src = src
        self.dst = dst


class UnsupportedArchive(ExpansionError):
    pass


class OutputDirCreationFailed(ExpansionError):
    pass


class SourceOpenFailed(ExpansionError):
    pass


class DecompressionInitFailed(ExpansionError):
    pass


class StreamCopyFailed(ExpansionError):
    pass


class EntryExtractionFailed(ExpansionError):
    """ Tar entry could not be written; entry_name identifies the member """
    def __init__(self, msg, entry_name, src=None, dst=None):
        super().__init__(msg, src=src, dst=dst)
        self.entry_name = entry_name


class SafeExtract(object):
    """
    Retain functions is a namespace
    References:
    - https://stackoverflow.com/a/10077309
    """

    error_msg = (
        "Archive is attempting to extract outside of the dst directory.  "
        "Unwilling to continue"
    )

    @staticmethod
    def resolved(path):
        return os.path.realpath(os.path.abspath(path))

    @classmethod
    def target(cls, name, base):
        """
        Determine destination of a member
        Returns:
            str: resolved path, None if path escapes base
        """
        # os.path.join will ignore base if name is absolute
        path = cls.resolved(os.path.join(base, name))
        if os.path.commonpath([base, path]) != base:
            return None
        return path


def extension(path):
    """
    Suffix beginning at the final dot of the final path segment
    Returns:
        str: extension including dot, empty if none
    """
    name = os.path.basename(path)
    index = name.rfind(".")
    if index < 0:
        return ""
    return name[index:]


def classify(path):
    """
    Determine archive kind from file extension (case-insensitive)
    Args:
        path (str): archive path
    Returns:
        ArchiveKind
    """
    return EXTENSIONS.get(extension(path).lower(), ArchiveKind.UNSUPPORTED)


def inspect_mime(path):
    """
    Sniff file content
    Args:
        path (str): existing file path
    Returns:
        str: mime type reported by libmagic
    """
    return magic.from_file(path, mime=True)


def ensure_dir(src, dst):
    """
    Create destination directory, including parents
    Raises:
        OutputDirCreationFailed: directory could not be created
    """
    try:
        os.makedirs(dst, exist_ok=True)
    except OSError as e:
        raise OutputDirCreationFailed(
            "Unable to create output directory '%s'.  %s: %s"
            % (dst, type(e).__name__, e),
            src=src, dst=dst,
        ) from e


def _open_source(src, dst):
    try:
        return open(src, "rb")
    except OSError as e:
        raise SourceOpenFailed(
            "Unable to open archive '%s'.  %s: %s"
            % (src, type(e).__name__, e),
            src=src, dst=dst,
        ) from e


def _peek(reader, label, src, dst):
    """
    Force the decompressor to read its header
    Raises:
        DecompressionInitFailed: header not recognized
    """
    try:
        reader.peek(1)
    except READ_ERRORS as e:
        raise DecompressionInitFailed(
            "Unable to initialize %s decompression for '%s'.  %s: %s"
            % (label, src, type(e).__name__, e),
            src=src, dst=dst,
        ) from e


def _extract_member(archive, member, base, src, log):
    """
    Write a single tar member beneath base
    Directories and regular files are written, all other types are skipped
    Raises:
        EntryExtractionFailed: member could not be written
    """
    name = member.name
    target = SafeExtract.target(name, base)
    if target is None:
        raise EntryExtractionFailed(
            "'%s' is blocked (illegal path).  %s"
            % (name, SafeExtract.error_msg),
            name, src=src, dst=base,
        )

    try:
        if member.isdir():
            os.makedirs(target, exist_ok=True)
        elif member.isreg():
            parent = os.path.dirname(target)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(target, "wb") as wf:
                shutil.copyfileobj(
                    archive.extractfile(member), wf, config.CONSTANT.EXPAND.COPY_BUFSIZE
                )
        else:
            log.debug(
                "Skipping tar entry '%s' of type %r"
                % (name, member.type)
            )
            return
    except READ_ERRORS as e:
        raise EntryExtractionFailed(
            "Unable to extract entry '%s' from '%s'.  %s: %s"
            % (name, src, type(e).__name__, e),
            name, src=src, dst=base,
        ) from e


def extract_members(fileobj, dst, src=None, log=None):
    """
    Explode a tar stream beneath dst
    Members are processed in stored order; the stream is never rewound
    Processing stops at the first failure and prior output is retained
    Args:
        fileobj: readable binary file object positioned at tar data
        dst (str): pre-existing destination directory
        src (str): (optional) archive path for reporting
        log: (optional) logger, defaults to module logger
    Returns:
        int: number of members visited
    Raises:
        StreamCopyFailed: tar stream could not be read
        EntryExtractionFailed: member could not be written
    """
    log = log or logger
    base = SafeExtract.resolved(dst)
    count = 0

    try:
        archive = tarfile.open(fileobj=fileobj, mode="r|")
    except READ_ERRORS as e:
        raise StreamCopyFailed(
            "Unable to read tar stream from '%s'.  %s: %s"
            % (src, type(e).__name__, e),
            src=src, dst=dst,
        ) from e

    with archive:
        while True:
            try:
                member = archive.next()
            except READ_ERRORS as e:
                raise StreamCopyFailed(
                    "Unable to read tar header from '%s' after %s entries.  %s: %s"
                    % (src, count, type(e).__name__, e),
                    src=src, dst=dst,
                ) from e
            if member is None:
                break
            _extract_member(archive, member, base, src, log)
            count += 1

    log.debug(
        "%s tar entries processed from '%s'"
        % (count, src)
    )
    return count


def tar(src, dst, log=None):
    """
    Explode uncompressed tar to disk
    Args:
        src (str): file path
        dst (str): destination directory, created if missing
        log: (optional) logger, defaults to module logger
    Raises:
        ExpansionError: see extract_members()
    """
    log = log or logger
    log.debug(
        "Extracting tar '%s' to '%s'"
        % (src, dst)
    )
    ensure_dir(src, dst)
    with _open_source(src, dst) as rf:
        extract_members(rf, dst, src=src, log=log)


def targz(src, dst, log=None):
    """
    Explode gzip compressed tar to disk
    Args:
        src (str): file path
        dst (str): destination directory, created if missing
        log: (optional) logger, defaults to module logger
    Raises:
        ExpansionError: see extract_members()
    """
    log = log or logger
    log.debug(
        "Extracting tar gz '%s' to '%s'"
        % (src, dst)
    )
    ensure_dir(src, dst)
    with _open_source(src, dst) as rf:
        with gzip.GzipFile(fileobj=rf, mode="rb") as f_in:
            _peek(f_in, "gzip", src, dst)
            extract_members(f_in, dst, src=src, log=log)


def xz(src, dst, log=None):
    """
    Decompress xz file to disk
    Output takes the source name without its final extension
    A resulting tar is exploded into the same directory; failure of that
    nested step is logged and does not fail the decompression
    Args:
        src (str): file path
        dst (str): destination directory, created if missing
        log: (optional) logger, defaults to module logger
    Returns:
        str: decompressed file path
    Raises:
        ExpansionError: decompression failed
    """
    log = log or logger
    log.debug(
        "Decompressing xz '%s' to '%s'"
        % (src, dst)
    )
    ensure_dir(src, dst)

    name = os.path.basename(src)
    name = name[:len(name) - len(extension(name))]
    output = os.path.join(dst, name)

    with _open_source(src, dst) as rf:
        with lzma.LZMAFile(rf, mode="rb") as f_in:
            _peek(f_in, "xz", src, dst)
            try:
                with open(output, "wb") as f_out:
                    shutil.copyfileobj(f_in, f_out, config.CONSTANT.EXPAND.COPY_BUFSIZE)
            except READ_ERRORS as e:
                raise StreamCopyFailed(
                    "Unable to decompress '%s' to '%s'.  %s: %s"
                    % (src, output, type(e).__name__, e),
                    src=src, dst=dst,
                ) from e

    if output.endswith(".tar"):
        try:
            tar(output, dst, log=log)
        except ExpansionError as e:
            log.warning(
                "Error expanding tar '%s'.  %s: %s"
                % (output, type(e).__name__, e)
            )
        else:
            log.debug(
                "Tar expanded successfully: '%s' -> '%s'"
                % (output, dst)
            )
    return output


STRATEGIES = {
    # archive kind          :   call
    ArchiveKind.XZ          :   xz,
    ArchiveKind.TAR_GZIP    :   targz,
    ArchiveKind.TAR         :   tar,
}


def expand(kind, src, dst, log=None):
    """
    Expand archive into dst using the strategy for kind
    Args:
        kind (ArchiveKind): archive classification
        src (str): archive path
        dst (str): destination directory, created if missing
        log: (optional) logger, defaults to module logger
    Raises:
        UnsupportedArchive: no strategy for kind; nothing is written
        ExpansionError: expansion failed, partial output may remain
    """
    if kind not in STRATEGIES:
        raise UnsupportedArchive(
            "Unsupported file format for '%s' (%s).  "
            "Supported extensions: %s"
            % (src, kind.value, sorted(EXTENSIONS.keys())),
            src=src, dst=dst,
        )
    STRATEGIES[kind](src, dst, log=log)
