from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    APP_NAME: str = "upsc-digest"
    ENV: str = "local"
    # uploads are written here for the duration of one analysis, then deleted
    DATA_DIR: str = "./data"

    # llm
    LLM_PROVIDER: str = "gemini"  # gemini|openai|ollama
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-2.0-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llama3.1"
    OLLAMA_KEEP_ALIVE: str = "30m"

    # two_phase: classify chunks, then one extraction call per category
    # single_pass: one call per text window, merged afterwards
    ANALYSIS_STRATEGY: str = "two_phase"

    # upload limits
    MAX_FILE_SIZE_MB: int = 10
    MAX_PAGES: int = 12
    # below this many extracted characters a document is treated as scanned
    MIN_EXTRACTED_CHARS: int = 200

    # chunking
    CHUNK_MAX_CHARS: int = 2000
    MIN_WORDS_PER_CHUNK: int = 20
    CHUNK_EXCERPT_CHARS: int = 100

    # item validation
    REFERENCE_EXCERPT_CHARS: int = 80
    EXTENDED_REFERENCE_EXCERPT_CHARS: int = 120
    MIN_POINT_WORDS: int = 5
    TITLE_MAX_CHARS: int = 100
    MIN_CONFIDENCE: float = 0.55
    HIGH_CONFIDENCE: float = 0.7
    DEDUP_TITLE_PREFIX: int = 50
    PRIORITY_RANKING: bool = True

    # single-pass windows
    SINGLE_PASS_WINDOW_CHARS: int = 50000
    SINGLE_PASS_MAX_WINDOWS: int = 3

    # model calls
    CLASSIFY_MAX_TOKENS: int = 500
    EXTRACT_MAX_TOKENS: int = 2048
    SINGLE_PASS_MAX_TOKENS: int = 8192
    CLASSIFY_TIMEOUT_SECONDS: float = 25.0
    EXTRACT_TIMEOUT_SECONDS: float = 90.0
    MODEL_MAX_RETRIES: int = 2
    RETRY_BACKOFF_BASE_SECONDS: float = 3.0
    RETRY_BACKOFF_MAX_SECONDS: float = 10.0
    RETRY_AFTER_SECONDS: int = 45

    # request governor
    REQUEST_COOLDOWN_SECONDS: float = 3.0
    BUSY_RETRY_AFTER_SECONDS: int = 30

    # CORS (for browser-based UIs)
    # Comma-separated list of allowed origins.
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000"

    @property
    def max_file_size_bytes(self) -> int:
        return self.MAX_FILE_SIZE_MB * 1024 * 1024

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
