class ConfigurationError(ValueError):
    """
    Raised when a table request cannot be built as specified.

    Covers variables or grouping variables that are not in the data, more than
    two grouping variables, group spans that do not cover the strata, render or
    extra-column functions whose row structure differs between strata, and
    malformed render specifications. It is always raised before any part of
    the table is assembled.
    """
