# Error taxonomy for the resampled evaluation workflow


class EvaluationError(Exception):
    """Base class for evaluation failures."""
    pass


class InvalidStrataError(EvaluationError):
    """Raised when a stratification column cannot be used to split the data."""
    pass


class LeakageViolationError(EvaluationError):
    """Raised when a fitted recipe is asked to resample rows it was not fitted on."""
    pass


class MetricUndefinedError(EvaluationError):
    """Raised when a metric has a zero denominator on a given fold."""

    def __init__(self, metric, reason):
        self.metric = metric
        self.reason = reason
        super().__init__(f"{metric} is undefined: {reason}")

    def __reduce__(self):
        return type(self), (self.metric, self.reason)


class FitterFailureError(EvaluationError):
    """
    Raised when one (candidate, fold) unit fails.

    Carries the candidate name, the fold id and the stage that failed
    ('preprocess', 'fit' or 'predict') so the ledger can point at
    the offending unit.
    """

    def __init__(self, candidate, fold_id, stage, cause):
        self.candidate = candidate
        self.fold_id = fold_id
        self.stage = stage
        self.cause = cause
        super().__init__(
            f"Candidate '{candidate}' failed on {fold_id} during {stage}: "
            f"{type(cause).__name__}: {cause}"
        )

    def __reduce__(self):
        # Outcomes travel back from joblib workers pickled
        return type(self), (self.candidate, self.fold_id, self.stage, self.cause)


class HoldoutReusedError(EvaluationError):
    """Raised when the testing partition is scored a second time."""
    pass
