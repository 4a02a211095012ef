from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, Field
import tomllib
import os
import random


class SniperCfg(BaseModel):
    tick_seconds: float = 1.0
    refresh_seconds: int = 30
    snipe_threshold_seconds: float = 3.0
    close_window_seconds: int = 5 * 60
    close_refresh_seconds: int = 10
    bid_increment: float = 1.0
    success_rate: float = 0.7
    auto_snipe: bool = True
    demo_mode: bool = False


class NetworkCfg(BaseModel):
    rotate_user_agents: bool = True
    use_proxies: bool = False
    proxy_file: str = "proxies.txt"
    request_timeout_seconds: float = 30.0
    scrape_timeout_seconds: float = 20.0
    alt_scrape_timeout_seconds: float = 15.0


class EbayCfg(BaseModel):
    app_id: str = "YourAppI-d"
    site_id: int = 0
    shopping_url: str = "https://open.api.ebay.com/shopping"
    finding_url: str = "https://svcs.ebay.com/services/search/FindingService/v1"
    proxy_templates: List[str] = Field(
        default_factory=lambda: [
            "https://api.allorigins.win/get?url={quoted}",
            "https://corsproxy.io/?{quoted}",
            "https://cors-anywhere.herokuapp.com/{url}",
        ]
    )


class Settings(BaseModel):
    sniper: SniperCfg = SniperCfg()
    network: NetworkCfg = NetworkCfg()
    ebay: EbayCfg = EbayCfg()
    database_url: str = "sqlite://"
    toast_history: int = 50

    # ---- helpers -----------------------------------------------------
    _UA_POOL = [
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_5) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/17.0 Safari/605.1.15",
    ]

    def random_headers(self) -> dict[str, str]:
        ua = random.choice(self._UA_POOL) if self.network.rotate_user_agents else self._UA_POOL[0]
        return {
            "User-Agent": ua,
            "Accept-Language": "en-US,en;q=0.9",
        }

    def random_proxy(self) -> Optional[str]:
        if not self.network.use_proxies:
            return None
        lines = [
            ln.strip()
            for ln in Path(self.network.proxy_file).read_text().splitlines()
            if ln.strip()
        ]
        return random.choice(lines) if lines else None


def load_settings() -> Settings:
    cfg_path = Path(os.getenv("BAYSNIPE_CONFIG", "baysnipe.toml"))
    raw = tomllib.loads(cfg_path.read_text()) if cfg_path.exists() else {}
    return Settings.model_validate(raw)
