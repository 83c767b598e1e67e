"""Follow-up scheduler routes - V1."""

from fastapi import APIRouter, Depends, HTTPException

from ...models.event import SweepResponse
from ...services.follow_up_scheduler import FollowUpScheduler

router = APIRouter(prefix="/api/v1/scheduler", tags=["Scheduler"])

# Follow-up scheduler (set by main.py)
scheduler: FollowUpScheduler = None


def get_scheduler() -> FollowUpScheduler:
    """Dependency to get the follow-up scheduler."""
    if scheduler is None:
        raise HTTPException(status_code=500, detail="Scheduler not initialized")
    return scheduler


@router.post("/run", response_model=SweepResponse)
async def run_sweep(sweeper: FollowUpScheduler = Depends(get_scheduler)):
    """Run one follow-up sweep now."""
    sent = await sweeper.run_once()
    return SweepResponse(reminders_sent=sent)
