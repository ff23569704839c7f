from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # static UPI recipient shown on every payment session
    ADMIN_UPI_ID: str = "admin@paytm"
    ADMIN_UPI_NAME: str = "MilkCart Admin"
    PAYMENT_CURRENCY: str = "INR"
    PAYMENT_SESSION_TTL_MINUTES: int = 15
    PAYMENT_VERIFICATION_TTL_HOURS: int = 24

    # money is whole rupees
    DELIVERY_FEE: int = 50
    FREE_DELIVERY_THRESHOLD: int = 500
    TAX_RATE: float = 0.0

    SLOT_LOOKAHEAD_DAYS: int = 7
    MAX_ITEM_QTY: int = 100

    class Config:
        env_file = ".env"
        extra="ignore"

store_settings = Settings()
