from pathlib import Path
from typing import List
from pydantic_settings import BaseSettings

DEFAULT_SYSTEM_PROMPT = (
    "SYSTEM ROLE: You are a concise, accurate AI assistant specializing in "
    "software engineering, data, cloud, and machine learning. You strictly use "
    "supplied context; if unsure or absent, you say you don't know."
)

class Settings(BaseSettings):
    # API Settings
    API_VERSION: str = "0.1.0"
    API_TITLE: str = "Tech Content RAG API"
    API_DESCRIPTION: str = "Retrieval-augmented chat over analyzed tech articles"

    # Google AI Settings
    GOOGLE_API_KEY: str = ""
    LLM_MODEL: str = "gemini-1.5-flash-latest"
    EMBEDDING_MODEL: str = "models/text-embedding-004"
    EMBEDDING_DIMENSION: int = 768
    LLM_MAX_TOKENS: int = 512

    # Mock toggles
    USE_MOCK_LLM: bool = False
    USE_MOCK_EMBEDDINGS: bool = False
    SKIP_EMBEDDING_FALLBACK: bool = False

    # PostgreSQL Settings
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "tech_content"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_TIMEOUT: float = 5.0

    # Vector store
    VECTOR_STORE_BACKENDS: str = "file"
    COLLECTION_NAME: str = "tech-content-vectors"
    STORE_BATCH_SIZE: int = 10

    # Security
    BEARER_TOKEN: str = ""
    CORS_ORIGINS: str = "*"

    # Content analysis
    SAMPLE_URLS: str = (
        "https://blog.openai.com/gpt-4,"
        "https://aws.amazon.com/blogs/machine-learning/,"
        "https://developers.googleblog.com/2023/05/introducing-palm-2.html"
    )
    QUALITY_THRESHOLD: float = 6.0
    FETCH_DELAY_SECONDS: float = 1.0
    FETCH_TIMEOUT_SECONDS: float = 10.0

    # Embedding pipeline
    CHUNK_MAX_WORDS: int = 500
    EMBED_DELAY_SECONDS: float = 0.1

    # Chat Settings
    SYSTEM_PROMPT: str = DEFAULT_SYSTEM_PROMPT
    RETRIEVAL_TOP_K: int = 3
    MAX_CONVERSATION_TURNS: int = 12
    CONVERSATION_TOKEN_BUDGET: int = 4000
    EMBEDDING_CACHE_SIZE: int = 1024

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "app.log"

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent
    LOGS_DIR: Path = PROJECT_ROOT / "logs"
    DATA_DIR: Path = PROJECT_ROOT / "data"
    CONTENT_OUTPUT_FILE: Path = DATA_DIR / "data-science-output.json"
    VECTOR_FILE: Path = DATA_DIR / "vectors" / "tech-content-vectors.json"
    READINESS_FILE: Path = DATA_DIR / "vector-db-config.json"
    PIPELINE_REPORT_FILE: Path = DATA_DIR / "pipeline-report.json"

    @property
    def bearer_tokens_list(self) -> List[str]:
        if not self.BEARER_TOKEN:
            return []
        return [x.strip() for x in self.BEARER_TOKEN.split(',') if x.strip()]

    @property
    def cors_origins_list(self) -> List[str]:
        if self.CORS_ORIGINS == "*":
            return ["*"]
        return [x.strip() for x in self.CORS_ORIGINS.split(',') if x.strip()]

    @property
    def vector_store_backends_list(self) -> List[str]:
        return [x.strip().lower() for x in self.VECTOR_STORE_BACKENDS.split(',') if x.strip()]

    @property
    def sample_urls_list(self) -> List[str]:
        return [x.strip() for x in self.SAMPLE_URLS.split(',') if x.strip()]

    @property
    def postgres_conninfo(self) -> str:
        conn_params = {
            "dbname": self.POSTGRES_DB,
            "user": self.POSTGRES_USER,
            "password": self.POSTGRES_PASSWORD,
            "host": self.POSTGRES_HOST,
            "port": self.POSTGRES_PORT,
        }
        return " ".join([f"{k}={v}" for k, v in conn_params.items()])

    class Config:
        env_file = ".env"

settings = Settings()
