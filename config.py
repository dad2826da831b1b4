import os

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.abspath(os.path.dirname(__file__))
DB_PATH = os.path.join(BASE_DIR, "db", "studylog.db")


def engine_options(database_uri, timeout_seconds):
    """Engine options that keep a stuck transaction from holding the store forever."""
    options = {"pool_pre_ping": True}
    if database_uri.startswith("sqlite"):
        options["connect_args"] = {"timeout": timeout_seconds}
    elif database_uri.startswith("postgresql"):
        millis = int(timeout_seconds * 1000)
        # statement_timeout bounds each statement, the idle timeout a transaction left open
        options["connect_args"] = {
            "options": f"-c statement_timeout={millis} -c idle_in_transaction_session_timeout={millis}"
        }
    return options


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-in-production")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL") or f"sqlite:///{DB_PATH}"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    TRANSACTION_TIMEOUT_SECONDS = float(os.getenv("STUDYLOG_TRANSACTION_TIMEOUT", "30"))
    SQLALCHEMY_ENGINE_OPTIONS = engine_options(SQLALCHEMY_DATABASE_URI, TRANSACTION_TIMEOUT_SECONDS)

    DAILY_REVIEW_CAP = int(os.getenv("STUDYLOG_DAILY_REVIEW_CAP", "20"))
    REVIEW_CHECK_INTERVAL_SECONDS = int(os.getenv("STUDYLOG_REVIEW_CHECK_INTERVAL", "300"))
    SCHEDULER_ENABLED = os.getenv("STUDYLOG_SCHEDULER_ENABLED", "true").lower() in ("1", "true", "yes")
    LOG_LEVEL = os.getenv("STUDYLOG_LOG_LEVEL", "INFO")
