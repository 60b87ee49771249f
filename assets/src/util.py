"""
Provide generic utilities
Module typically sourced by all peers
Importing local modules likely creates a circular dependency
"""

# core modules
import io
import logging
import time
import uuid

# avoid local module import


def init_logger(name, level=logging.INFO):
    """
    Typically performed once per namespace
    Re-init logger during subsequent calls
    Handler writes to stderr
    Args:
        name (str): logger identifier
        level: DEBUG|INFO|WARNING|ERROR
    Returns:
        logger obj
    """
    logger = logging.getLogger(name)
    if logger is not None and len(logger.handlers):
        for handler in logger.handlers:
            if isinstance(handler, logging.NullHandler):
                logger.removeHandler(handler)

    if logger is not None and len(logger.handlers):
        logger.debug("Logger '%s' already initialized" % name)
        logger.setLevel(level)
        return logger

    log_format = logging.Formatter('%(asctime)-15s %(levelname)-8s %(message)s')
    logger.setLevel(level)
    handler = logging.StreamHandler()
    handler.setFormatter(log_format)
    logger.addHandler(handler)
    return logger


def format_duration(seconds):
    """
    Render elapsed seconds in compact human readable form
    Leading zero units are dropped; negative values are prefixed with '-'
        >>> format_duration(93784)
        '1d2h3m4s'
        >>> format_duration(59)
        '59s'
    Args:
        seconds (int|float): elapsed time
    Returns:
        str
    """
    sign = "-" if seconds < 0 else ""
    remaining = int(abs(seconds))
    parts = []
    for suffix, size in (("d", 86400), ("h", 3600), ("m", 60)):
        count, remaining = divmod(remaining, size)
        if count or parts:
            parts.append("%s%s" % (count, suffix))
    parts.append("%ss" % remaining)
    return sign + "".join(parts)


def epoch_age(epoch, now=None):
    """
    Describe how long ago an epoch timestamp occurred
    Args:
        epoch (int): seconds since epoch
        now (float): (optional) reference time, defaults to time.time()
    Returns:
        str
    """
    if now is None:
        now = time.time()
    return format_duration(now - epoch)


class LogStream(object):
    """
    Short-lived logger object
    Write to STDERR as well as StringIO
    Allow caller to retrieve logging statements
    """
    FORMAT = logging.Formatter('%(asctime)-25s %(name)-25s %(levelname)-8s %(message)s')

    def __init__(self, prefix, uid=None, level=logging.INFO):
        """
        Create logging and StringIO objects
        """
        # initialize all instance variables
        self.log = None
        self.stream = None
        self.msgs = None

        if uid is None:
            uid = uuid.uuid4().hex[:4]
        name = "%s.%s.%s" % (type(self).__name__, prefix, uid)
        logger = logging.getLogger(name)
        logger.setLevel(level)
        # records belong to this stream only
        logger.propagate = False

        log_stream = io.StringIO()
        str_handler = logging.StreamHandler(log_stream)
        std_handler = logging.StreamHandler()

        logger.addHandler(str_handler)
        logger.addHandler(std_handler)

        for handler in logger.handlers:
            handler.setLevel(level)
            handler.setFormatter(self.FORMAT)

        self.log = logger
        self.stream = log_stream

    def __getattr__(self, item):
        """
        LogStream did not provide attribute or method
        Fall back to logger object
        """
        if self.log is None:
            raise RuntimeError(
                "Log has already been closed"
            )
        return getattr(self.log, item)

    def close(self):
        """
        Retrieve logged messages
        Close out handlers
        Safe to call more than once
        Returns:
            list: logged messages
        """
        if self.log is None:
            return self.msgs

        msgs = self.stream.getvalue()
        self.stream.flush()
        self.stream.close()

        while self.log.handlers:
            handle = self.log.handlers[0]
            self.log.removeHandler(handle)
            handle.flush()
            handle.close()

        # drop from the logging registry; names are single use
        logging.Logger.manager.loggerDict.pop(self.log.name, None)

        self.log = None
        self.stream = None
        self.msgs = msgs.splitlines()
        return self.msgs
