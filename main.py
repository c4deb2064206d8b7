from config import configure_logging, get_settings  # loads .env before anything else

from fastapi import FastAPI, HTTPException

from briefing import BriefingGenerator
from models import ParsedTextInput, ParseTextRequest, PlanRequest, PlanResponse, PlanResult, Briefing
from scheduling_engine import PlanningInputError, plan_day
from text_parser import parse_text_input

configure_logging()
settings = get_settings()

app = FastAPI(title="DayForge Scheduling Engine")

briefer = BriefingGenerator(api_key=settings.gemini_api_key, model=settings.briefing_model)


# ── Planning endpoint ────────────────────────────────────────────────

@app.post("/generate_plan", response_model=PlanResponse)
async def generate_plan(request: PlanRequest):
    """
    Plan a single day.

    Accepts the day description (sleep, fixed events, constraints), the
    stored habits/tasks and gym settings, and returns a PlanResponse with:
      - data.blocks        – chronological, non-overlapping time blocks
      - data.unscheduled   – items that did not fit, each with a reason code
      - data.stats         – work / gym / focus totals and free minutes
      - data.explanation   – short templated summary
      - briefing           – optional AI morning briefing (null when unavailable)
    """
    print(f"---- GENERATE PLAN INPUT ----\n{request.model_dump_json(indent=2)}\n-----------------------------")

    try:
        plan = plan_day(
            request.day,
            request.habits,
            request.tasks,
            request.gym,
            weights=settings.scoring,
        )
    except PlanningInputError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    briefing = briefer.generate(plan) if request.include_briefing else None

    print(f"📅 Planned {plan.date}: {len(plan.blocks)} blocks, {len(plan.unscheduled)} unscheduled")
    return PlanResponse(
        success=True,
        data=plan,
        briefing=briefing,
        message="Plan generated successfully" if not plan.unscheduled
        else f"Plan generated with {len(plan.unscheduled)} unscheduled item(s)",
    )


# ── Free-text import ─────────────────────────────────────────────────

@app.post("/parse_schedule_text", response_model=ParsedTextInput)
async def parse_schedule_text(request: ParseTextRequest):
    """Turn a pasted schedule ("Work 9am-5pm; Lunch 12:30-13:15") into fixed events."""
    parsed = parse_text_input(request.text)
    print(f"📝 Parsed {len(parsed.items)} item(s), {len(parsed.unparsed_text.splitlines())} line(s) left over")
    return parsed


# ── Briefing for an existing plan ────────────────────────────────────

@app.post("/briefing", response_model=Briefing)
async def briefing_for_plan(plan: PlanResult, current_time: str = "07:00"):
    if not briefer.available:
        raise HTTPException(status_code=503, detail="Briefing model not configured (set GEMINI_API_KEY)")
    result = briefer.generate(plan, current_time=current_time)
    if result is None:
        raise HTTPException(status_code=502, detail="Briefing model returned no usable briefing")
    return result


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=settings.port, reload=True)
