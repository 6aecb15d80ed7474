# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""Error classes for the simulation engine."""


class ConfigurationError(ValueError):
    """Raised when simulation parameters are malformed.

    Configuration errors are detected before any trajectory runs. They are
    never transient: retrying the same parameters fails the same way.
    """
