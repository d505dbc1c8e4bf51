# ABOUTME: NiceGUI web application entry point
# ABOUTME: Mounts the JSON API and renders a plain page with the current surf report

import logging
from zoneinfo import ZoneInfo

from nicegui import Client, app, ui

from surflab.api import create_router, serve_current_report
from surflab.config import Config
from surflab.errors import SurfLabError
from surflab.orchestrator import ReportOrchestrator, ReportSource, ServedReport

logging.basicConfig(
    level=logging.DEBUG if Config.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

# Initialize orchestrator
orchestrator = ReportOrchestrator.from_config()
app.include_router(create_router(orchestrator))
app.on_shutdown(orchestrator.store.close)

SOURCE_LABELS = {
    ReportSource.FRESH_CACHE: "fresh",
    ReportSource.STALE_CACHE: "a bit stale",
    ReportSource.FRESH_GENERATION: "just generated",
    ReportSource.EMERGENCY_FALLBACK: "OLD - live data unavailable",
}


def render_report(served: ServedReport) -> None:
    report = served.report
    conditions = report.conditions
    recs = report.recommendations
    local_time = report.timestamp.astimezone(ZoneInfo(Config.REFRESH_TIMEZONE))

    ui.label(f"{conditions.surfability_score}/100").classes('text-6xl font-bold')
    ui.markdown(report.narrative).classes('max-w-2xl text-center')

    with ui.column().classes('items-center'):
        ui.label('--- CONDITIONS ---').classes('text-lg font-bold')
        ui.label(f"Waves: {conditions.wave_height_ft}ft @ {conditions.wave_period_sec}s")
        ui.label(f"Wind: {conditions.wind_speed_kts}kts from {conditions.wind_direction_deg:.0f}°")
        ui.label(f"Tide: {conditions.tide_state} ({conditions.tide_height_ft}ft)")
        ui.label(f"Weather: {conditions.weather_description}")

    with ui.column().classes('items-center'):
        ui.label('--- RECOMMENDATIONS ---').classes('text-lg font-bold')
        ui.label(f"Board: {recs.board_type}")
        if recs.wetsuit_thickness:
            ui.label(f"Wetsuit: {recs.wetsuit_thickness}")
        ui.label(f"Skill level: {recs.skill_level.value}")
        if recs.best_spots:
            ui.label(f"Spots: {', '.join(recs.best_spots)}")
        if recs.timing_advice:
            ui.label(f"Timing: {recs.timing_advice}")

    freshness = SOURCE_LABELS[served.source]
    ui.label(
        f"Updated {local_time.strftime('%b %d %I:%M %p %Z')} ({served.age_hours}h ago, {freshness})"
    ).classes('text-xs text-gray-500')


@ui.page('/')
async def index(client: Client):
    """Report page - shell first, report once the websocket is up"""
    ui.label(f"{Config.LOCATION_NAME.upper()} SURF REPORT").classes('text-3xl font-bold')
    container = ui.column().classes('w-full items-center')
    with container:
        ui.label('LOADING').classes('animate-pulse')

    # Wait for client WebSocket connection before doing slow work
    await client.connected()

    try:
        served = await serve_current_report(orchestrator)
    except SurfLabError as e:
        log.error(f"Page load failed: {type(e).__name__}: {e}")
        container.clear()
        with container:
            ui.label('No surf report available right now. Go look at the ocean.')
        return

    container.clear()
    with container:
        render_report(served)


if __name__ in {"__main__", "__mp_main__"}:
    ui.run(title="Surf Lab", port=Config.PORT, reload=False, show=False)
