# src/stimengine/errors.py


class InvalidArgumentError(ValueError):
    """
    Raised for caller bugs at the library boundary: a substance or mode outside
    the fixed enumeration, an inverted time range, a non-positive step or
    half-life, or a configuration table that breaks its own limits.

    Degraded data (missing profile fields, empty history, bad dose amounts) is
    never reported through this type; it falls back to defaults instead.
    """
