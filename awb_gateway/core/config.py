from typing import Dict, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "AWB Gateway"
    API_V1_STR: str = "/api/v1"
    DATABASE_URL: str = "sqlite://"
    LOG_LEVEL: str = "INFO"

    # Consolidator endpoint (CARGO-IMP over HTTP)
    TRANSMIT_ENDPOINT: Optional[str] = None
    TRANSMIT_USERNAME: Optional[str] = None
    TRANSMIT_PASSWORD: Optional[str] = None
    TRANSMIT_DELAY_MS: int = 100
    TRANSMIT_TIMEOUT: float = 10.0

    # EDIFACT envelope
    SENDER_ID: str = "REUAGT89COCRGMASTER/BOG01:PIMA"
    CONTROL_NUMBER: str = "96728316614806"
    DEFAULT_SIGNATURE: str = "CARGOOP"

    DEFAULT_POSTAL_CODES: Dict[str, str] = {
        "EC": "00000",
        "CO": "110111",
        "DEFAULT": "10",
    }
    CHINA_POSTAL_CODE: str = "170452"

    # Type B header
    USE_TYPEB_HEADER: bool = True
    TYPEB_RECIPIENT_ADDRESS: str = "DSGUNXA"
    TYPEB_SENDER_PREFIX: str = "DSGTPXA"
    TYPEB_ORIGIN_ADDRESS: str = "TDVAGT03OPERFLOR/BOG1"
    TYPEB_DEFAULT_PRIORITY: str = "QK"
    TYPEB_INCLUDE_TIMESTAMP: bool = True

    # Cargo-XML routing
    XML_SENDER_ADDRESS: str = "TDVAGT03OPERFLOR/BOG1"
    XML_RECIPIENT_ADDRESS: str = "TDVAIR08DHV"

    # This configures Pydantic to read variables from the ".env" file
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


settings = Settings()
