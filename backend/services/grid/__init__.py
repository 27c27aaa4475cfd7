# services/grid/__init__.py

from services.grid.profiles import DASHBOARD, LOOKUP, MANUAL_COLOR, GridProfile

PROFILE_REGISTRY: dict[str, GridProfile] = {
    "dashboard": DASHBOARD,
    "manual_color": MANUAL_COLOR,
    "lookup": LOOKUP,
}
