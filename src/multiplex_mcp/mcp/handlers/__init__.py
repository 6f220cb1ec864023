"""
Handlers for requests a server sends to the client.
"""

from .elicitation import (
    ElicitationHandler,
    ElicitationResponse,
    FormElicitationRequest,
    URLElicitationRequest,
)
from .roots import RootsHandler
from .sampling import OpenAICompletion, SamplingHandler, create_sampling_handler

__all__ = [
    "ElicitationHandler",
    "ElicitationResponse",
    "FormElicitationRequest",
    "URLElicitationRequest",
    "RootsHandler",
    "OpenAICompletion",
    "SamplingHandler",
    "create_sampling_handler",
]
