from typing import List, Union
import logging

from pydantic import AnyHttpUrl, validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    PROJECT_NAME: str = "外贸订单流转与财务对账系统"
    API_V1_STR: str = "/api/v1"

    # CORS配置
    BACKEND_CORS_ORIGINS: List[Union[str, AnyHttpUrl]] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    @validator("BACKEND_CORS_ORIGINS", pre=True)
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # 服务监听
    SERVER_HOST: str = "127.0.0.1"
    SERVER_PORT: int = 8000
    RELOAD: bool = False

    # 数据库配置
    SQLITE_DATABASE_URI: str = "sqlite:///./trade_orders.db"

    # 日志配置
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # 财务默认值
    DEFAULT_CURRENCY: str = "USD"
    DEFAULT_CUSTOMER_TERM_DAYS: int = 30  # 客户账期（天）
    DEFAULT_VENDOR_TERM_DAYS: int = 30  # 供应商账期（天）
    DEFAULT_LOGISTICS_TERM_DAYS: int = 15  # 3PL账期（天）
    DEFAULT_LOGISTICS_PROVIDER: str = "3PL"

    # 关税配置
    DEFAULT_ORIGIN_COUNTRY: str = "CN"

    # 关税自动刷新（每月一次，仅刷新 source=auto 的税率）
    TARIFF_AUTO_REFRESH_ENABLED: bool = False
    TARIFF_REFRESH_DAY: int = 1  # 每月几号（1-28）
    TARIFF_REFRESH_HOUR: int = 2  # 几点执行（0-23）

    class Config:
        case_sensitive = True
        env_file = ".env"


settings = Settings()
logger.info(f"加载配置: API_V1_STR={settings.API_V1_STR}, CORS={settings.BACKEND_CORS_ORIGINS}")
