class ElektrihindError(Exception): ...


class ConfigError(ElektrihindError): ...


class ResolutionError(ElektrihindError): ...


class PricingError(ElektrihindError): ...


class UpstreamError(ElektrihindError): ...


class UpstreamUnavailable(UpstreamError): ...


def require(condition: bool, message: str, exc: type[ElektrihindError] = ElektrihindError):
    """Raise the given exception if condition is False."""
    if not condition:
        raise exc(message)
