"""Protocol layer: request framing, service builders, response reading and log decoding."""

from .framing import build_request, FAIL, OKAY
from .commands import Service
from .parser import read_response, read_string
