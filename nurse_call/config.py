"""Nurse call assistant configuration, loaded from environment variables / .env file."""

from typing import Any

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Ollama connection
    ollama_host: str = "http://localhost:11434"
    chat_model: str = "nemotron-mini"
    structured_model: str = "mistral"
    probe_timeout_seconds: float = 5.0
    model_timeout_seconds: float = 120.0

    # Decoding knobs (streamed turns)
    model_temperature: float = 0.7
    model_top_k: int = 40
    model_top_p: float = 0.9
    model_num_ctx: int = 512
    model_repeat_penalty: float = 1.1
    # Non-streamed structured turns
    model_num_predict: int = 1024

    # Retry / recovery
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    ollama_autostart: bool = False
    ollama_executable: str = "ollama"

    # Persistence and logs
    db_path: str = "/app/data/nurse_call.db"
    log_dir: str = "/app/logs"

    # Service
    agent_port: int = 8000
    max_history_messages: int = 20
    broadcast_send_timeout_seconds: float = 2.0
    stream_idle_timeout_seconds: float = 30.0

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
        "protected_namespaces": ("settings_",),
    }

    def decoding_options(self, *, streaming: bool = True) -> dict[str, Any]:
        """Ollama ``options`` payload for a chat call."""
        if not streaming:
            return {
                "temperature": self.model_temperature,
                "num_predict": self.model_num_predict,
            }
        return {
            "temperature": self.model_temperature,
            "top_k": self.model_top_k,
            "top_p": self.model_top_p,
            "num_ctx": self.model_num_ctx,
            "repeat_penalty": self.model_repeat_penalty,
        }


settings = Settings()
