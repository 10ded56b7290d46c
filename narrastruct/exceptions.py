"""
Exception classes for narrastruct.

All narrastruct exceptions inherit from NarraStructError,
making it easy to catch all library errors.

Data-quality problems in a document are never raised: they surface as
low confidence, processing errors, validation issues or failed
corrections. Exceptions are reserved for programmer errors.

Example:
    >>> try:
    ...     analyzer = StructureAnalyzer(profile="pamphlet")
    ... except narrastruct.ConfigurationError as e:
    ...     print(f"Bad configuration: {e}")
    ... except narrastruct.NarraStructError as e:
    ...     print(f"narrastruct error: {e}")
"""


class NarraStructError(Exception):
    """
    Base exception for all narrastruct errors.

    Catch this to handle any narrastruct-specific error.
    """

    pass


class UnsupportedFormatError(NarraStructError):
    """
    Raised when a document format tag is not one of markdown, pdf or epub.

    The analyzer converts this into a zero-confidence result; it only
    escapes from DocumentFormat.parse() when called directly.

    Example:
        >>> DocumentFormat.parse("docx")
        UnsupportedFormatError: Format 'docx' is not supported. Supported: markdown, pdf, epub
    """

    pass


class ConfigurationError(NarraStructError, ValueError):
    """
    Raised for invalid configuration.

    Example:
        >>> ConfidenceScorer(ScoringConfig(chapter_weights={"made_up": 1.0}))
        ConfigurationError: Unknown chapter signal(s): made_up
    """

    pass


class CorrectionError(NarraStructError):
    """
    Raised for impossible review operations on a correction overlay.

    Approving or rejecting a node id that does not exist, or that a merge
    already removed, is a caller bug. Failed corrections inside a batch are
    reported on the correction itself instead.
    """

    pass


class AnalysisCancelledError(NarraStructError):
    """
    Raised by the streaming segmenter when its cancel signal is set.

    The signal is checked between chunks only.
    """

    def __init__(self, chunks_processed: int):
        self.chunks_processed = chunks_processed
        super().__init__(f"Analysis cancelled after {chunks_processed} chunk(s)")
