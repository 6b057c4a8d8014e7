# core/errors.py


class VocalAscentError(Exception):
    """Base class for errors raised by the vocal flight core."""


class ConfigurationError(VocalAscentError, ValueError):
    """
    Invalid configuration detected at initialization:
      - height range with max_height <= base_height
      - frequency range with max_frequency <= min_frequency (or <= 0)
      - non-positive envelope time constants
      - empty target sequence
    """


# Name used by the envelope stage for the same condition
InvalidConfiguration = ConfigurationError


class MissingCollaborator(VocalAscentError):
    """A required external reference (pitch source, tracking anchor) is absent."""

    def __init__(self, name: str):
        super().__init__(f"required collaborator missing: {name}")
        self.name = name
