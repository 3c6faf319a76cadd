from __future__ import annotations
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .models import Observer

# Bodh Gaya
DEFAULT_OBSERVER = Observer(24.7914, 85.0002, 111.0)

@dataclass(frozen=True)
class Settings:
    observer: Observer = DEFAULT_OBSERVER
    store_path: str = "~/.uposatha/store.json"
    ephemeris: str = "de421.bsp"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        obs = Observer(
            float(env.get("UPOSATHA_LAT", DEFAULT_OBSERVER.latitude)),
            float(env.get("UPOSATHA_LON", DEFAULT_OBSERVER.longitude)),
            float(env.get("UPOSATHA_ALT", DEFAULT_OBSERVER.altitude)),
        )
        return cls(
            observer=obs,
            store_path=env.get("UPOSATHA_STORE", cls.store_path),
            ephemeris=env.get("UPOSATHA_EPHEMERIS", cls.ephemeris),
        )
