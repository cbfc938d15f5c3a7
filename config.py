import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass
class Settings:
    # Data files
    books_file: str = os.getenv("LIBRARY_BOOKS_FILE", "books.txt")
    users_file: str = os.getenv("LIBRARY_USERS_FILE", "users.txt")

    # Rental policy
    loan_period_days: int = int(os.getenv("LOAN_PERIOD_DAYS", "14"))
    fine_per_day: float = float(os.getenv("FINE_PER_DAY", "0.50"))

    # Application
    app_name: str = os.getenv("APP_NAME", "Library Checkout")
    log_level: str = os.getenv("LOG_LEVEL", "WARNING").upper()
    # Role given to accounts created without an explicit --role
    default_role: str = os.getenv("DEFAULT_ROLE", "member")


settings = Settings()
