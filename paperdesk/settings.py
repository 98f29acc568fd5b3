from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "PaperDesk"
    env: str = "dev"
    cors_origins: str = "http://localhost:3000"
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    storage_backend: str = "inmemory"  # inmemory|mongo
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "paperdesk"

    # PDF generation queue (the renderer itself lives in another service)
    job_backend: str = "inmemory"  # inmemory|rq
    redis_url: str = "redis://localhost:6379/0"
    rq_queue: str = "pdf_generation"
    pdf_job_func: str = "pdf_worker.jobs.generate_paper_pdf"

    # Generated artifacts
    blob_backend: str = "inmemory"  # inmemory|s3
    s3_bucket: str = "paperdesk-pdfs"
    s3_region: str = "us-east-1"
    s3_endpoint_url: str | None = None
    pdf_url_ttl_seconds: int = 900

    max_conflict_retries: int = 3

    # Observability (OpenTelemetry)
    observability_enabled: bool = True
    otel_service_name: str = "paperdesk"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_console: bool = False
    otel_sample_rate: float = 0.1


settings = Settings()
