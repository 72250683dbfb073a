"""配置加载模块 - 从环境变量和 .env 文件加载配置。"""

from enum import Enum
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogFormat(str, Enum):
    """日志格式枚举。"""

    JSON = "json"
    CONSOLE = "console"


class Settings(BaseSettings):
    """系统配置设置。

    从环境变量和 .env 文件加载配置。
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==================== 市场模拟 ====================
    exchanges: list[str] = Field(
        default_factory=lambda: ["Binance", "Kraken", "Coinbase", "Bybit"],
        description="模拟交易所列表",
    )
    pairs: list[str] = Field(
        default_factory=lambda: ["BTC/USDT", "ETH/USDT", "SOL/USDT", "LINK/USDT"],
        description="交易对列表",
    )
    volatility_pct: float = Field(
        default=0.12,
        ge=0.0,
        le=10.0,
        description="每个 tick 的波动率（价格百分比）",
    )
    random_seed: int | None = Field(default=None, description="随机源种子（为空则不固定）")

    # ==================== 资金与执行 ====================
    initial_capital: float = Field(default=10_000.0, gt=0, description="初始资金（USDT）")
    fee_rate: float = Field(default=0.0006, ge=0.0, le=0.01, description="单边手续费率")
    allocation_fraction: float = Field(
        default=0.2,
        gt=0.0,
        le=1.0,
        description="单笔仓位占净值比例",
    )
    max_allocation: float = Field(default=5_000.0, gt=0, description="单笔仓位上限（USDT）")

    # ==================== 扫描参数 ====================
    min_spread_pct: float = Field(default=0.04, ge=0.0, description="最小价差百分比")
    score_threshold: float = Field(default=20.0, ge=0.0, description="自动执行的综合评分阈值")

    # ==================== 调度参数 ====================
    passive_interval_ms: int = Field(default=400, ge=1, description="被动监控 tick 间隔（毫秒）")
    autonomous_interval_ms: int = Field(default=250, ge=1, description="自动交易扫描间隔（毫秒）")
    backtest_ticks: int = Field(default=100, ge=1, le=100_000, description="回测 tick 数")
    backtest_pacing_ms: int = Field(default=45, ge=0, description="回测回放节奏（毫秒）")

    # ==================== 分析与复盘 ====================
    lesson_profit_threshold: float = Field(
        default=25.0,
        ge=0.0,
        description="触发复盘卡片的净盈亏绝对值（USDT）",
    )
    max_lessons: int = Field(default=15, ge=1, le=500, description="保留的复盘卡片数量")

    # ==================== OpenRouter API ====================
    openrouter_api_key: str = Field(default="", description="OpenRouter API Key")
    openrouter_model: str = Field(
        default="anthropic/claude-3.5-sonnet",
        description="OpenRouter 模型名称",
    )
    openrouter_timeout: int = Field(default=30, description="LLM 调用超时（秒）")

    # ==================== 日志配置 ====================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="日志级别",
    )
    log_format: LogFormat = Field(
        default=LogFormat.CONSOLE,
        description="日志输出格式",
    )

    @field_validator("exchanges", "pairs")
    @classmethod
    def ensure_not_empty(cls, v: list[str]) -> list[str]:
        """交易所与交易对列表不能为空且不能重复。"""
        if not v:
            raise ValueError("list_must_not_be_empty")
        if len(set(v)) != len(v):
            raise ValueError("list_must_not_contain_duplicates")
        return v

    @property
    def has_openrouter(self) -> bool:
        """是否配置了 OpenRouter。"""
        return bool(self.openrouter_api_key)


# 全局配置实例（延迟初始化）
_settings: Settings | None = None


def get_settings() -> Settings:
    """获取全局配置实例。"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """重新加载配置。"""
    global _settings
    _settings = Settings()
    return _settings
