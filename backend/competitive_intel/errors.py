"""Exception types raised inside the engine.

None of these cross ``CompetitiveIntelEngine.run``: provider errors are
converted to unavailable sources and synthesis errors to ``not_available``
results.
"""


class ProviderUnavailable(Exception):
    """A provider could not deliver evidence for this request."""


class ProviderNotConfigured(ProviderUnavailable):
    """A provider is missing its API key or a required input."""


class SynthesisError(Exception):
    """The language-model call failed."""


class SynthesisTimeout(SynthesisError):
    """The language-model call exceeded its time budget."""


class SynthesisTransportError(SynthesisError):
    """The language-model call failed at the transport or HTTP level."""
