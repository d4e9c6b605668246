class PasswordUpdateError(Exception):
    """Root of the password-update tool's exceptions."""


class CsvReadError(PasswordUpdateError):
    """The roster file could not be read."""


class NoRecordsError(PasswordUpdateError):
    """A run was requested while no roster is loaded."""


class ConfigurationError(PasswordUpdateError):
    """A setting from the environment is unusable."""
