"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings


def parse_delays(raw: str) -> list[float]:
    """Parse a comma-separated backoff schedule like "5,10,20,30" (seconds)."""
    return [float(part) for part in raw.split(",") if part.strip()]


class Settings(BaseSettings):
    # Redis (session persistence)
    redis_url: str = "redis://localhost:6379/0"

    # Anthropic
    anthropic_api_key: str = ""

    # LLM
    llm_model: str = "claude-sonnet-4-20250514"
    llm_max_tokens: int = 500
    llm_temperature: float = 0.9
    llm_min_interval_seconds: float = 7.0
    llm_retry_delays: str = "5,10,20,30"
    fallback_reply: str = "Just a moment, let me check that for you!"

    # Conversation
    history_limit: int = 15
    handoff_minutes: int = 30
    dedup_cache_size: int = 500
    dedup_path: str = "data/processed_ids.json"

    # Inventory
    inventory_url: str = "https://www.9thgear.co.in/luxury-used-cars-bangalore"
    inventory_base_url: str = "https://www.9thgear.co.in"
    inventory_refresh_minutes: int = 60
    inventory_retry_delays: str = "2,5,10"

    # Lead store: sheets | database | memory
    lead_store: str = "sheets"
    google_application_credentials: str = ""  # file path or inline JSON
    spreadsheet_id: str = ""
    leads_worksheet: str = "Sheet1"
    convo_log_worksheet: str = "ConvoLog"
    learning_worksheet: str = "Learning"
    database_url: str = "sqlite+aiosqlite:///data/leads.db"

    # Twilio (WhatsApp)
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_whatsapp_number: str = ""  # e.g. "+14155238886" for sandbox

    # Business
    business_name: str = "9th Gear"
    assistant_name: str = "Nazim"
    timezone: str = "Asia/Kolkata"
    follow_up_hour: int = 9
    coaching_interval_hours: int = 2

    # App
    log_level: str = "INFO"
    environment: str = "development"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def llm_retry_schedule(self) -> list[float]:
        return parse_delays(self.llm_retry_delays)

    @property
    def inventory_retry_schedule(self) -> list[float]:
        return parse_delays(self.inventory_retry_delays)


settings = Settings()
