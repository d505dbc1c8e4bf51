# ABOUTME: Verbose debug logging toggled by the DEBUG env var
# ABOUTME: Prints tagged lines to stdout so the hosting platform captures them

from surflab.config import Config


def debug_log(message: str, component: str = "APP") -> None:
    """Print a tagged debug line when DEBUG=true."""
    if not Config.DEBUG:
        return
    print(f"[DEBUG][{component}] {message}", flush=True)
