"""Fatal error kinds raised by the entrypoint steps."""


class EggError(Exception):
    """Base class for failures that abort the entrypoint."""

    label = 'ERROR'
    exit_code = 1


class ConfigurationError(EggError):
    """A required input (env variable, executable) is missing or invalid."""

    label = 'CONFIG'


class TransferError(EggError):
    """Every download strategy failed."""

    label = 'DOWNLOAD'


class ExtractionError(EggError):
    label = 'EXTRACT'


class DocumentError(EggError):
    """The existing configuration document cannot be parsed."""

    label = 'CONFIG'


class InstallationError(EggError):
    """The server executable is still missing after installing."""

    label = 'INSTALL'
