class PipelineError(Exception):
    """Raised when a pipeline stage fails and the run has to stop."""
