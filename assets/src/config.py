"""
Retain application configuration
Manage environment variable consumption and defaults
"""
# core modules
import logging
import os

# installed modules

# local modules
import util

# external config
# global                              env var                  default
LOGS_DIR            = os.environ.get("LOGS_DIR"             , os.path.join("data", "logs"))
EXPANDED_DIR        = os.environ.get("EXPANDED_DIR"         , os.path.join(LOGS_DIR, "expanded"))
MANIFEST_PATTERN    = os.environ.get("MANIFEST_PATTERN"     , "manifest_*.json")
LOG_LEVEL           = os.environ.get("LOG_LEVEL"            , "DEBUG").upper()
SCAN_STRICT         = os.environ.get("SCAN_STRICT"          , "true").lower()


class CONSTANT:
    """
    Retain variables within a namespace
    Accessible using dot.notation
    """
    class LOG:
        LEVELS = {
            "DEBUG"     : logging.DEBUG,
            "INFO"      : logging.INFO,
            "WARNING"   : logging.WARNING,
            "ERROR"     : logging.ERROR,
        }
    class SCAN:
        TRUE_VALUES  = ("1", "true", "yes", "on")
        FALSE_VALUES = ("0", "false", "no", "off")
    class EXPAND:
        DIRNAME = "expanded"        # default output root beneath LOGS_DIR
        COPY_BUFSIZE = 2**20        # 1 mb


def get_log_level():
    """
    Map LOG_LEVEL onto a logging level
    Unknown names fall back to DEBUG; source_external_config() reports them
    """
    return CONSTANT.LOG.LEVELS.get(LOG_LEVEL, logging.DEBUG)


# globals
logger = util.init_logger(__name__, get_log_level())
inputs = None


def source_external_config():
    """
    Consume external config
    Raise exception for invalid values
    Returns:
        dict: application config
    """
    global inputs
    if inputs is not None:
        return inputs

    error_msg = (
        "Invalid input provided.  "
        "Failed to source application config"
    )
    inputs = {}

    if LOG_LEVEL not in CONSTANT.LOG.LEVELS:
        inputs = None
        raise EnvironmentError(
            "Invalid LOG_LEVEL value: '%s'.  "
            "Supported levels: %s.  %s"
            % (LOG_LEVEL, list(CONSTANT.LOG.LEVELS.keys()), error_msg)
        )
    inputs["LOG_LEVEL"] = LOG_LEVEL

    # logs directory is scanned, never created
    if os.path.exists(LOGS_DIR) and not os.path.isdir(LOGS_DIR):
        inputs = None
        raise EnvironmentError(
            "Invalid LOGS_DIR: '%s'.  "
            "Location exists but is not a directory.  %s"
            % (LOGS_DIR, error_msg)
        )
    inputs["LOGS_DIR"] = LOGS_DIR

    # created per manifest during expansion
    if os.path.exists(EXPANDED_DIR) and not os.path.isdir(EXPANDED_DIR):
        inputs = None
        raise EnvironmentError(
            "Invalid EXPANDED_DIR: '%s'.  "
            "Location exists but is not a directory.  %s"
            % (EXPANDED_DIR, error_msg)
        )
    inputs["EXPANDED_DIR"] = EXPANDED_DIR

    if not MANIFEST_PATTERN or os.sep in MANIFEST_PATTERN:
        inputs = None
        raise EnvironmentError(
            "Invalid MANIFEST_PATTERN value: '%s'.  "
            "Base name glob required (ie, manifest_*.json).  %s"
            % (MANIFEST_PATTERN, error_msg)
        )
    inputs["MANIFEST_PATTERN"] = MANIFEST_PATTERN

    if SCAN_STRICT in CONSTANT.SCAN.TRUE_VALUES:
        inputs["SCAN_STRICT"] = True
    elif SCAN_STRICT in CONSTANT.SCAN.FALSE_VALUES:
        inputs["SCAN_STRICT"] = False
    else:
        inputs = None
        raise EnvironmentError(
            "Invalid SCAN_STRICT value: '%s'.  "
            "Boolean value required (%s | %s).  %s"
            % (SCAN_STRICT, CONSTANT.SCAN.TRUE_VALUES, CONSTANT.SCAN.FALSE_VALUES, error_msg)
        )

    logger.info(
        "Inputs accepted: %s"
        % inputs
    )
    return inputs
