from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class AlertStateStore:
    """Per-alert memory of the last observed volume and favorite outcome.

    Lives only as long as the object; nothing here is written to the database,
    so a fresh store means every alert is on its first observation.
    """

    volumes: dict[str, float] = field(default_factory=dict)
    favorites: dict[str, str | None] = field(default_factory=dict)

    def get_previous_volume(self, alert_id: str, current_volume: float) -> float:
        return self.volumes.get(alert_id, current_volume)

    def set_volume(self, alert_id: str, volume: float) -> None:
        self.volumes[alert_id] = volume

    def get_previous_favorite(self, alert_id: str) -> str | None:
        return self.favorites.get(alert_id)

    def set_favorite(self, alert_id: str, outcome_id: str | None) -> None:
        self.favorites[alert_id] = outcome_id

    def swap_volume(self, alert_id: str, current_volume: float) -> float:
        previous = self.get_previous_volume(alert_id, current_volume)
        self.set_volume(alert_id, current_volume)
        return previous

    def swap_favorite(self, alert_id: str, current_favorite: str | None) -> str | None:
        previous = self.get_previous_favorite(alert_id)
        self.set_favorite(alert_id, current_favorite)
        return previous
