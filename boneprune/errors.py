class BonePruneError(RuntimeError):
    """Base class for data-integrity failures raised while pruning bones."""


class InvalidBindingError(BonePruneError):
    """A skin binding cannot be processed without producing invalid bone indices."""


class DeletionClosureError(BonePruneError):
    """A destroy request would remove a bone that is still referenced by skinning data."""
