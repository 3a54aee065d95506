class DomainError(Exception):
    """Base class for scheduling-core errors."""


class ValidationError(DomainError):
    """Malformed capacity values, bad date ranges, or an allocation to a slot that cannot take one."""


class NotFoundError(DomainError):
    pass


class PlanReferenceError(DomainError):
    """The session plan id is not in the plan catalog."""


class ConfigurationError(DomainError):
    """A slot's regular capacity is not positive."""
