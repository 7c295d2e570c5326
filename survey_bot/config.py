from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    supabase_url: str
    supabase_service_key: str
    elevenlabs_api_key: str = ""
    elevenlabs_agent_id: str = ""
    elevenlabs_agent_phone_number_id: str = ""
    elevenlabs_webhook_secret: str = ""
    webhook_base_url: str = "http://localhost:3001"
    log_level: str = "INFO"
    batch_max_concurrent: int = Field(default=5, ge=1)
    batch_delay_seconds: float = Field(default=1.0, ge=0)
    csv_max_bytes: int = Field(default=10 * 1024 * 1024, ge=1)
