"""
Application Module Registry.

Single source of truth for the feature areas whose visibility is gated by
``assignedModules``.  Profile edits are validated against these ids.
"""

from __future__ import annotations

from pydantic import BaseModel


class AppModule(BaseModel):
    """A named feature area of the application."""

    id: str
    label: str


APP_MODULES: tuple[AppModule, ...] = (
    AppModule(id="dashboard", label="Dashboard"),
    AppModule(id="customers", label="Customers"),
    AppModule(id="projects", label="Projects"),
    AppModule(id="users", label="Users"),
    AppModule(id="contractors", label="Contractors"),
    AppModule(id="daily-report", label="Daily Report"),
    AppModule(id="monthly-report", label="Monthly Report"),
    AppModule(id="safety-events", label="Safety Events"),
    AppModule(id="project-team", label="Project Team"),
    AppModule(id="documents", label="Documents"),
    AppModule(id="project-aerial-view", label="Project Aerial View"),
    AppModule(id="calendar", label="Calendar"),
    AppModule(id="map", label="Map"),
    AppModule(id="capex", label="CapEx"),
    AppModule(id="reports-analytics", label="Report/Analytics"),
    AppModule(id="schedule", label="Schedule"),
    AppModule(id="weather", label="Weather"),
)

APP_MODULE_IDS: frozenset[str] = frozenset(module.id for module in APP_MODULES)


def unknown_modules(module_ids: list[str]) -> list[str]:
    """Return the ids in *module_ids* that are not registered, in input order."""
    return [module_id for module_id in module_ids if module_id not in APP_MODULE_IDS]
