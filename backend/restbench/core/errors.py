class RestBenchError(Exception):
    """Base class for errors raised by RestBench services."""


class ImportFormatError(RestBenchError, ValueError):
    """A structured import artifact could not be turned into records."""


class PostmanParseError(ImportFormatError):
    pass


class OpenAPIParseError(ImportFormatError):
    pass


class ScriptError(RestBenchError):
    """Raised inside the script sandbox; never escapes the runner."""


class ScriptRejectedError(ScriptError):
    pass


class ScriptTimeoutError(ScriptError):
    pass


class NotFoundError(RestBenchError, LookupError):
    """A record needed by a service operation does not exist."""
