from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm import declarative_base
from dotenv import load_dotenv
load_dotenv()


class Settings(BaseSettings):
    """Runtime configuration. Every field can be overridden from the environment or .env."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./tosba_cache.db"

    # Generator factories, "package.module:attr"
    curriculum_generator: str = ""
    game_generator: str = ""

    # Content worker
    max_retries: int = 3
    retry_backoff_seconds: float = 1.0
    inter_task_delay_seconds: float = 0.5

    # Module content generation
    questions_per_module: int = 5
    question_delay_seconds: float = 0.5

    # Game session
    target_questions: int = 5
    max_mistakes_for_break: int = 2

    # Prefetching / loading
    prefetch_window_size: int = 4
    prefetch_debounce_seconds: float = 2.0
    prefetch_on_profile_change: bool = True
    loader_timeout_seconds: float = 10.0


settings = Settings()

engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

def reset_db():
    Base.metadata.drop_all(bind=engine)
    print("Database dropped")
    create_db()

def create_db():
    # Import models so they register on Base.metadata
    import api.models.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    print("Database created")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
