# ABOUTME: Cron entry point that asks the running app to clear and regenerate its cache
# ABOUTME: Schedule at 5AM, 9AM, 1PM and 4PM Eastern, matching the cache expiration slots

import os
import sys

import requests
from dotenv import load_dotenv

load_dotenv()

# =============================================================================
# CONFIGURATION
# =============================================================================
BASE_URL = os.getenv("SURFLAB_URL", "http://localhost:8080")
CRON_SECRET = os.getenv("CRON_SECRET", "")
# Generation can take a while (conditions + LLM), give it room
TIMEOUT_SECONDS = int(os.getenv("WARM_REFRESH_TIMEOUT_SECONDS", "90"))


def warm_refresh(base_url: str, secret: str) -> dict:
    """POST to the warm-cache endpoint and return its JSON result."""
    response = requests.post(
        f"{base_url.rstrip('/')}/api/admin/warm-cache",
        headers={"Authorization": f"Bearer {secret}", "User-Agent": "SurfLab-Cron/1.0"},
        timeout=TIMEOUT_SECONDS,
    )
    response.raise_for_status()
    return response.json()


if __name__ == "__main__":
    if not CRON_SECRET:
        print("CRON_SECRET is not set", file=sys.stderr)
        sys.exit(1)

    try:
        result = warm_refresh(BASE_URL, CRON_SECRET)
    except requests.RequestException as e:
        print(f"Warm refresh failed: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Cleared: {result['cleared']}")
    print(f"Regenerated: {result['regenerated']}")
    print(f"New report: {result.get('new_report_id') or '-'}")
    for run in result.get("next_scheduled_runs", []):
        print(f"Next run: {run}")
