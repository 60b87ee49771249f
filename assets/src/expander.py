"""
Expand log archives described by manifests

Sequence per run:
- (find_manifests) Locate manifest_*.json beneath LOGS_DIR
- (load_manifests) Decode every manifest, skipping those which fail
- (Expansion) For each manifest, explode the referenced archive into
  EXPANDED_DIR/<TimeEpoch> unless that directory already exists

An existing output directory is never re-validated
A failed expansion may leave a partial directory which later runs treat as
already expanded
"""

# core modules
import collections
import os
import uuid

# installed modules
import magic

# local modules
import config
import manifest
import unpackage
import util

# globals
logger = util.init_logger(__name__, config.get_log_level())

ExpansionRequest = collections.namedtuple("ExpansionRequest", ["input_path", "output_dir"])


class Dirstore(object):
    """
    Dictate structure and location of expanded archives
    """
    def __init__(self, storage_dir):
        self.storage_dir = storage_dir      # (str) root of all epoch directories

    @staticmethod
    def get_route(epoch):
        """
        Generate list of subdir paths which lead to the storage destination
        Args:
            epoch (int): seconds since epoch
        Returns:
            list of strings (subdir paths)
        Raises:
            TypeError: invalid argument
        """
        error_msg = "Failed to determine expansion route"
        if isinstance(epoch, bool) or not isinstance(epoch, int):
            raise TypeError(
                "Invalid epoch provided: (%s, %s).  "
                "int required.  %s"
                % (type(epoch), epoch, error_msg)
            )
        return [str(epoch)]

    def get_destination(self, epoch):
        """
        Given an epoch, identify the final destination
        Returns:
            str: absolute path to storage location
        """
        return os.path.abspath(os.path.join(self.storage_dir, *self.get_route(epoch)))

    def check_exists(self, epoch):
        """
        Check if epoch directory already exists
        Contents are not inspected
        Returns:
            bool: archive already expanded
        """
        return os.path.exists(self.get_destination(epoch))


class _Action(object):
    """
    Base class for providing consumer operations
    """
    def __init__(self):
        uid = uuid.uuid4().hex[:4]
        cls_name = type(self).__name__

        self.uid = uid                                                  # (str) 4char unique identifier
        self.log = util.LogStream(cls_name, uid, config.get_log_level())  # (obj) LogStream ephemeral logging object


class Expansion(_Action):
    """
    Expand the archive referenced by a single manifest

    General sequence:
    - (__init__) Derive input archive path and epoch output directory
    - (_setup) Short-circuit if output directory already exists
    - (_inspect) Classify archive by extension, sniff mime type
    - (_unpackage) Explode archive into output directory
    """
    ERROR_MSG = "Failed to expand archive"

    def __init__(self, record, logs_dir, store):
        """
        Args:
            record (ManifestRecord): decoded manifest
            logs_dir (str): directory archives are relative to
            store (Dirstore): output location
        """
        # establish logger
        super().__init__()

        # initialize all instance variables
        self.record = record                # (ManifestRecord) decoded manifest
        self.store = store                  # (Dirstore) output location
        self.request = ExpansionRequest(    # (ExpansionRequest) input archive, output directory
            # archives always resolve beneath logs_dir
            os.path.join(logs_dir, record.file_name.lstrip("/" + os.sep)),
            store.get_destination(record.time_epoch),
        )
        self.kind = None                    # (ArchiveKind) archive classification
        self.mime = None                    # (str) sniffed mime type
        self.short_circuit = False          # (bool) output directory already present
        self.result = None                  # (bool) pass/fail
        self.error = None                   # (str) exception msg
        self.exception = None               # (obj) Python Exception
        self.msgs = None                    # (list) log statements, set when processed

    def process(self):
        """
        Called once per manifest
        Never raises; failures are logged and retained on the instance
        Returns:
            bool: pass/fail (skipped expansions pass)
        """
        if self.result is not None:
            raise RuntimeError(
                "Expansion has already been processed.  "
                "Call made against completed object"
            )

        error_msg = (
            "%s.  Partial content may remain: '%s'"
            % (self.ERROR_MSG, self.request.output_dir)
        )
        try:
            self._sequence()
            self.result = True
        except Exception as e:
            err_type = type(e).__name__
            msg = (
                "Expansion of '%s' failed.  %s: %s.  %s"
                % (self.request.input_path, err_type, e, error_msg)
            )
            self.log.warning(msg)
            self.error = msg
            self.exception = e
            self.result = False
        finally:
            self.msgs = self.log.close()
        return self.result

    def _sequence(self):
        self._setup()
        if self.short_circuit:
            return
        self._inspect()
        self._unpackage()

    def _setup(self):
        """
        Spot-check if output directory already exists
        """
        age = util.epoch_age(self.record.time_epoch)
        output_dir = self.request.output_dir
        self.log.debug(
            "%s: checking existence of directory: '%s'"
            % (age, output_dir)
        )
        if self.store.check_exists(self.record.time_epoch):
            self.log.debug(
                "Archive already expanded: '%s'"
                % output_dir
            )
            self.short_circuit = True
        else:
            self.log.debug(
                "'%s' age %s ago"
                % (self.request.input_path, age)
            )

    def _inspect(self):
        """
        Classify archive by extension
        Content sniffing is diagnostic; dispatch follows the extension
        """
        input_path = self.request.input_path
        self.kind = unpackage.classify(input_path)
        if self.kind is unpackage.ArchiveKind.UNSUPPORTED or not os.path.isfile(input_path):
            return

        try:
            self.mime = unpackage.inspect_mime(input_path)
        except (magic.MagicException, OSError) as e:
            self.log.debug(
                "Unable to inspect mime type of '%s'.  %s: %s"
                % (input_path, type(e).__name__, e)
            )
            return
        if self.mime not in self.kind.mimetypes:
            self.log.warning(
                "Content of '%s' identified as '%s', expected %s for %s archives"
                % (input_path, self.mime, list(self.kind.mimetypes), self.kind.value)
            )

    def _unpackage(self):
        """
        Explode archive into output directory
        """
        input_path, output_dir = self.request
        unpackage.expand(self.kind, input_path, output_dir, log=self.log)
        self.log.debug(
            "%s archive expanded successfully: '%s' -> '%s'"
            % (self.kind.value, input_path, output_dir)
        )


def run(logs_dir=None, expanded_dir=None, pattern=None, strict=None, log=None):
    """
    Expand every archive described by a manifest beneath logs_dir
    Args:
        logs_dir (str): (optional) directory to scan, defaults to LOGS_DIR
        expanded_dir (str): (optional) output root; defaults to EXPANDED_DIR,
            or logs_dir/expanded when logs_dir is provided
        pattern (str): (optional) manifest base name glob
        strict (bool): (optional) abort on unreadable directories
        log: (optional) logger, defaults to module logger
    Returns:
        list: Expansion objects, in manifest order
    """
    log = log or logger
    if logs_dir is None:
        logs_dir = config.LOGS_DIR
        if expanded_dir is None:
            expanded_dir = config.EXPANDED_DIR
    elif expanded_dir is None:
        expanded_dir = os.path.join(logs_dir, config.CONSTANT.EXPAND.DIRNAME)
    if pattern is None:
        pattern = config.MANIFEST_PATTERN
    if strict is None:
        strict = config.SCAN_STRICT not in config.CONSTANT.SCAN.FALSE_VALUES

    try:
        paths = manifest.find_manifests(logs_dir, pattern, strict=strict, log=log)
    except manifest.ManifestScanError as e:
        log.error(
            "Error finding manifest files.  %s"
            % e
        )
        return []

    records = manifest.load_manifests(paths, log=log)
    store = Dirstore(expanded_dir)
    expansions = []
    for record in records:
        action = Expansion(record, logs_dir, store)
        action.process()
        expansions.append(action)
    return expansions


def main():
    inputs = config.source_external_config()
    run(
        logs_dir=inputs["LOGS_DIR"],
        expanded_dir=inputs["EXPANDED_DIR"],
        pattern=inputs["MANIFEST_PATTERN"],
        strict=inputs["SCAN_STRICT"],
    )


if __name__ == '__main__':
    main()
