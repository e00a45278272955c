import os
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from dotenv import load_dotenv


# ==========================================================
# 1) Cargar .env raíz
# ==========================================================
load_dotenv(".env")
DEPLOY_ENV = os.getenv("DEPLOY_ENV", "prod").lower()

# ==========================================================
# 2) Cargar .env del entorno
# ==========================================================
ENV_PATH = f"DevOps/{DEPLOY_ENV}/.env"
load_dotenv(ENV_PATH, override=True)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=ENV_PATH,
        extra="allow"
    )

    # =========================
    #  App
    # =========================
    deploy_env: str = Field("prod", env="DEPLOY_ENV")
    app_name: str = Field("gate-access-service", env="APP_NAME")
    app_env: str = Field("prod", env="APP_ENV")
    app_host: str = Field("0.0.0.0", env="APP_HOST")
    app_port: int = Field(8000, env="APP_PORT")
    log_level: str = Field("INFO", env="LOG_LEVEL")
    cors_origins: str = Field("*", env="CORS_ORIGINS")

    # =========================
    #  Database
    # =========================
    db_url: str = Field("sqlite+aiosqlite:///./gate_access.db", env="DB_URL")
    db_fallback_url: str = Field("sqlite+aiosqlite:///./gate_access.db", env="DB_FALLBACK_URL")
    db_echo: bool = Field(False, env="DB_ECHO")

    # =========================
    #  OCR (Groq vision)
    # =========================
    ocr_backend: str = Field("groq", env="OCR_BACKEND")
    groq_model: str = Field("meta-llama/llama-4-scout-17b-16e-instruct", env="GROQ_MODEL")
    groq_temperature: float = Field(0.0, env="GROQ_TEMPERATURE")
    groq_max_completion_tokens: int = Field(128, env="GROQ_MAX_COMPLETION_TOKENS")
    groq_timeout: float = Field(20.0, env="GROQ_TIMEOUT")

    # =========================
    #  Detección
    # =========================
    detect_max_concurrent: int = Field(1, env="DETECT_MAX_CONCURRENT")
    detect_max_attempts: int = Field(3, env="DETECT_MAX_ATTEMPTS")
    # límite práctico de Groq para imágenes inline (base64)
    detect_max_image_bytes: int = Field(4 * 1024 * 1024, env="DETECT_MAX_IMAGE_BYTES")

    # =========================
    #  Gate
    # =========================
    gate_dwell_seconds: float = Field(5.0, env="GATE_DWELL_SECONDS")
    gate_reset_timeout_seconds: float = Field(15.0, env="GATE_RESET_TIMEOUT_SECONDS")
    gate_channel: str = Field("gate-channel", env="GATE_CHANNEL")
    gate_event: str = Field("gate-update", env="GATE_EVENT")

    # =========================
    #  Frames (video relay)
    # =========================
    video_channel: str = Field("video-channel", env="VIDEO_CHANNEL")
    video_event: str = Field("frame", env="VIDEO_EVENT")
    default_stream_id: str = Field("mobile-1", env="DEFAULT_STREAM_ID")
    frame_max_streams: int = Field(64, env="FRAME_MAX_STREAMS")

    # =========================
    #  Messaging
    # =========================
    publisher_backend: str = Field("kafka", env="PUBLISHER_BACKEND")
    kafka_broker: str = Field("kafka:9092", env="KAFKA_BROKER")
    kafka_delivery_timeout: float = Field(5.0, env="KAFKA_DELIVERY_TIMEOUT")
    kafka_metadata_timeout: float = Field(10.0, env="KAFKA_METADATA_TIMEOUT")
    publish_retry_attempts: int = Field(3, env="PUBLISH_RETRY_ATTEMPTS")
    publish_retry_base_delay: float = Field(0.2, env="PUBLISH_RETRY_BASE_DELAY")

    # =========================
    #  Monitoring
    # =========================
    prometheus_port: int = Field(9100, env="PROMETHEUS_PORT")


settings = Settings()
