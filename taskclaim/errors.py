"""Error taxonomy for the ownership-negotiation core."""


class TaskClaimError(Exception):
    """Base class for taskclaim errors."""


class CollaboratorUnavailable(TaskClaimError):
    """A chat, spreadsheet or task-tracking call failed transiently.

    Retried with backoff at the call site; never silently dropped.
    """

    def __init__(self, collaborator: str, detail: str = ""):
        self.collaborator = collaborator
        self.detail = detail
        message = f"{collaborator} unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class StaleTransition(TaskClaimError):
    """A compare-and-set precondition no longer matched the stored conversation."""

    def __init__(self, tenant_id: str, task_id: str, transition: str):
        self.tenant_id = tenant_id
        self.task_id = task_id
        self.transition = transition
        super().__init__(f"Stale transition {transition} for {tenant_id}/{task_id}")
