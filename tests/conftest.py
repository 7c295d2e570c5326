import httpx
import pytest
from httpx import ASGITransport

SUPABASE_URL = "https://test-project.supabase.co"
REST_URL = f"{SUPABASE_URL}/rest/v1"


@pytest.fixture
def mock_env(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", SUPABASE_URL)
    monkeypatch.setenv("SUPABASE_SERVICE_KEY", "test-service-key")
    monkeypatch.setenv("ELEVENLABS_API_KEY", "test-el-key")
    monkeypatch.setenv("ELEVENLABS_AGENT_ID", "test-agent-id")
    monkeypatch.setenv("ELEVENLABS_AGENT_PHONE_NUMBER_ID", "test-phone-id")
    monkeypatch.setenv("ELEVENLABS_WEBHOOK_SECRET", "")
    monkeypatch.setenv("BATCH_DELAY_SECONDS", "0")


@pytest.fixture
async def client(mock_env):
    from survey_bot.main import app, lifespan

    async with lifespan(app):
        async with httpx.AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as c:
            yield c
