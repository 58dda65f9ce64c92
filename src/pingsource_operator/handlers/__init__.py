"""Handler modules for PingSources and the objects they watch."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import pingsource  # noqa: F401
from . import watches  # noqa: F401
