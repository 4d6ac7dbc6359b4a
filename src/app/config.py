"""Configuration management using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Ghost Trees"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Source documents (http(s) URL or local path)
    dataset_url: str = "public/data.geojson"
    boundary_url: str = "public/atlanta.geojson"
    fetch_timeout: float = 10.0

    # Map view; home position is downtown Atlanta
    map_center_lat: float = 33.749
    map_center_lng: float = -84.39
    map_zoom: int = 11
    map_min_zoom: int = 3
    map_max_zoom: int = 18
    map_width: int = 1024   # viewport pixels
    map_height: int = 768

    # Basemap
    tile_url: str = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
    tile_attribution: str = "&copy; OpenStreetMap contributors"
    tile_max_zoom: int = 19

    # Marker clustering
    cluster_radius: int = 80          # pixels
    cluster_chunk_size: int = 500     # markers added per event-loop turn
    popup_max_width: int = 320

    # Diagnostics
    record_type_top_n: int = 12


settings = Settings()
